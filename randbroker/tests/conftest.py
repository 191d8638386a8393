import base64
import json
import time
from typing import Any, Dict, List, Optional

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from prometheus_client import CollectorRegistry

from randbroker.broker import RandomnessBroker
from randbroker.config import InstantiateParams
from randbroker.metrics import Metrics
from randbroker.oracle.verify import SignatureVerifier
from randbroker.store.memory import MemoryKeyValue
from randbroker.types import Coin, Env, MessageInfo

OWNER = "aura1zyg3zyg3zyg3zyg3zyg3zyg3zyg3zyg36tqqsk"
USER = "aura1yg3zyg3zyg3zyg3zyg3zyg3zyg3zyg3z4k9xcp"
BOT = "aura1xvenxvenxvenxvenxvenxvenxvenxven8gjmdn"
OTHER_BOT = "aura1g3zyg3zyg3zyg3zyg3zyg3zyg3zyg3zyc86yta"
PROXY = "aura1242424242424242424242424242424242ede70"

DENOM = "ueaura"
API_KEY = "uSE6BGQ+JMXW38yyAf+/Q+YVZif1ix0RBgq4T2pry5PQhtnNLPWHJYBHdeS+uLkl7YPT/CqMPPJRci1jnd7zJw=="
SEED = bytes(range(32))


def fmt_time(ts: int) -> str:
    return time.strftime("%Y-%m-%d %H:%M:%SZ", time.gmtime(ts))


def report_payload(
    completion_ts: int,
    *,
    api_key: str = API_KEY,
    data: Optional[List[int]] = None,
    serial: int = 1,
) -> str:
    """Compact JSON text shaped like a signed integer-generation result."""
    body: Dict[str, Any] = {
        "method": "generateSignedIntegers",
        "hashedApiKey": api_key,
        "n": 32,
        "min": 0,
        "max": 255,
        "replacement": True,
        "base": 10,
        "pregeneratedRandomization": None,
        "data": list(data if data is not None else range(32)),
        "license": {"type": "developer", "text": "testing only", "infoUrl": None},
        "licenseData": None,
        "userData": None,
        "ticketData": None,
        "completionTime": fmt_time(completion_ts),
        "serialNumber": serial,
    }
    return json.dumps(body, separators=(",", ":"))


class OracleKey:
    """Throwaway RSA key standing in for the oracle's signing key."""

    def __init__(self) -> None:
        self.private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self.verifier = SignatureVerifier(self.private_key.public_key())

    def sign(self, data: str) -> str:
        sig = self.private_key.sign(data.encode("utf-8"), padding.PKCS1v15(), hashes.SHA512())
        return base64.b64encode(sig).decode("ascii")


@pytest.fixture(scope="session")
def oracle_key() -> OracleKey:
    return OracleKey()


@pytest.fixture()
def metrics() -> Metrics:
    return Metrics(registry=CollectorRegistry())


@pytest.fixture()
def store() -> MemoryKeyValue:
    return MemoryKeyValue()


def default_params(**overrides: Any) -> InstantiateParams:
    d: Dict[str, Any] = dict(
        nois_proxy=PROXY,
        nois_fee=300,
        bounty_denom=DENOM,
        fee=300,
        callback_limit_gas=150_000,
        max_callback=5,
        time_expired=5,
        time_per_block=5,
    )
    d.update(overrides)
    return InstantiateParams(**d)


@pytest.fixture()
def make_broker(store, oracle_key, metrics):
    def _make(params: Optional[InstantiateParams] = None, now: int = 1_000) -> RandomnessBroker:
        b = RandomnessBroker(store, verifier=oracle_key.verifier, metrics=metrics)
        b.instantiate(Env(time=now), MessageInfo(sender=OWNER), params or default_params())
        return b

    return _make


@pytest.fixture()
def broker(make_broker) -> RandomnessBroker:
    return make_broker()


def info(sender: str, amount: int = 0, denom: str = DENOM) -> MessageInfo:
    funds = (Coin(denom, amount),) if amount else ()
    return MessageInfo(sender=sender, funds=funds)
