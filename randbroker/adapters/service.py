"""
randbroker.adapters.service
---------------------------

Host-side wrapper that plays the role of the dispatch substrate for a
standalone broker:

- owns the store and a :class:`~randbroker.broker.RandomnessBroker`
- serializes calls (one operation completes before the next begins)
- supplies a non-decreasing clock for `Env.time`
- decodes wire-format messages and funds
- hands each committed call's outbox to a delivery callback, and keeps the
  most recent messages for inspection

Transport layers (FastAPI router, JSON-RPC methods, CLI) talk to this class,
never to the broker directly.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Optional

from ..broker import RandomnessBroker
from ..config import InstantiateParams, NodeSettings
from ..errors import NotInstantiated
from ..metrics import Metrics
from ..msg import (
    GetBotInfo,
    GetCommitments,
    GetConfigs,
    GetNumberOfCommitment,
    GetPendingCommitments,
    parse_execute,
    parse_query,
)
from ..oracle.verify import SignatureVerifier
from ..store import TransactionalKeyValue, open_store
from ..store.kv import META_OWNER, Buckets
from ..types import Coin, Env, MessageInfo, OutboundMessage, Response
from .accounts import AccountApi

logger = logging.getLogger(__name__)

Clock = Callable[[], int]
Deliver = Callable[[OutboundMessage], None]


def system_clock() -> int:
    return int(time.time())


def parse_funds(funds: Optional[Iterable[Mapping[str, Any]]]) -> tuple:
    return tuple(Coin.from_dict(c) for c in (funds or ()))


class BrokerService:
    def __init__(
        self,
        store: TransactionalKeyValue,
        *,
        clock: Clock = system_clock,
        deliver: Optional[Deliver] = None,
        accounts: Optional[AccountApi] = None,
        verifier: Optional[SignatureVerifier] = None,
        metrics: Optional[Metrics] = None,
        outbox_size: int = 1024,
    ) -> None:
        self.store = store
        self.broker = RandomnessBroker(store, accounts=accounts, verifier=verifier, metrics=metrics)
        self._clock = clock
        self._deliver = deliver
        self._lock = threading.Lock()
        self._last_time = 0
        self.outbox: Deque[Dict[str, Any]] = deque(maxlen=outbox_size)

    @classmethod
    def from_settings(cls, settings: NodeSettings, **kwargs: Any) -> "BrokerService":
        svc = cls(open_store(settings.store_uri), **kwargs)
        if settings.instantiate is not None and not svc.is_instantiated():
            svc.instantiate(settings.owner or "", settings.instantiate)
        return svc

    # ---- plumbing ------------------------------------------------------------

    def _env(self) -> Env:
        # Commitments rely on a non-decreasing clock.
        now = max(int(self._clock()), self._last_time)
        self._last_time = now
        return Env(time=now)

    def _dispatch(self, resp: Response) -> Dict[str, Any]:
        # Runs after commit: a failed delivery never drops the other messages.
        for m in resp.messages:
            self.outbox.append(m.to_dict())
        if self._deliver is not None:
            for m in resp.messages:
                try:
                    self._deliver(m)
                except Exception:
                    logger.exception("delivery of %s failed", m.kind)
                    self.broker.metrics.record_delivery_failure(m.kind)
        return resp.to_dict()

    def is_instantiated(self) -> bool:
        return Buckets(self.store).get_meta(META_OWNER) is not None

    # ---- writes --------------------------------------------------------------

    def instantiate(self, sender: str, params: InstantiateParams | Mapping[str, Any]) -> Dict[str, Any]:
        if not isinstance(params, InstantiateParams):
            params = InstantiateParams.from_dict(params)
        with self._lock:
            resp = self.broker.instantiate(self._env(), MessageInfo(sender=sender), params)
            return self._dispatch(resp)

    def execute(
        self,
        sender: str,
        msg: Mapping[str, Any],
        funds: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """Decode a wire-format execute message and run it as `sender`."""
        typed = parse_execute(msg)
        info = MessageInfo(sender=sender, funds=parse_funds(funds))
        with self._lock:
            resp = self.broker.execute(self._env(), info, typed)
            logger.debug("executed %s for %s (%d message(s))", type(typed).__name__, sender, len(resp.messages))
            return self._dispatch(resp)

    def reply(self, reply_id: int, ok: bool, error: Optional[str] = None) -> Dict[str, Any]:
        with self._lock:
            return self.broker.reply(self._env(), reply_id, ok, error).to_dict()

    def drain_outbox(self) -> List[Dict[str, Any]]:
        with self._lock:
            items = list(self.outbox)
            self.outbox.clear()
            return items

    # ---- reads ---------------------------------------------------------------

    def query(self, msg: Mapping[str, Any]) -> Any:
        typed = parse_query(msg)
        with self._lock:
            return self.broker.query(typed)

    def get_configs(self) -> Dict[str, Any]:
        with self._lock:
            return self.broker.query(GetConfigs())

    def get_pending_commitments(self, limit: int) -> Dict[str, Any]:
        with self._lock:
            return self.broker.query(GetPendingCommitments(limit=limit))

    def get_commitments(self, limit: int) -> Dict[str, Any]:
        with self._lock:
            return self.broker.query(GetCommitments(limit=limit))

    def get_number_of_commitment(self) -> Dict[str, Any]:
        with self._lock:
            return self.broker.query(GetNumberOfCommitment())

    def get_bot_info(self, address: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self.broker.query(GetBotInfo(address=address))

    def status(self) -> Dict[str, Any]:
        try:
            configs = self.get_configs()
        except NotInstantiated:
            configs = None
        return {
            "instantiated": configs is not None,
            "configs": configs,
            "outbox": len(self.outbox),
        }


__all__ = ["BrokerService", "system_clock", "parse_funds"]
