"""
Broker configuration.

This file defines typed configuration objects and helpers for:
- The fee schedule and per-report batching limit (Configs)
- The commitment window policy (TimeConfigs)
- The beacon proxy address and its fee (NoisConfigs)
- Instantiation parameters bundling all three
- Host-side settings for the service wrapper (store URI, bind address, logging)

It provides:
- Dataclass-based configs with validation
- Loading NodeSettings from environment variables (prefix configurable)
- Loading NodeSettings from a JSON or YAML file
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

import yaml

from .constants import UINT128_MAX

_U32_MAX = (1 << 32) - 1
_U64_MAX = (1 << 64) - 1


def _check_uint(name: str, v: Any, hi: int) -> None:
    if not isinstance(v, int) or isinstance(v, bool):
        raise ValueError(f"{name} must be an integer")
    if not (0 <= v <= hi):
        raise ValueError(f"{name} out of range [0, {hi}] (got {v})")


# -------------------------
# Stored policy records
# -------------------------


@dataclass
class Configs:
    """
    bounty_denom: denom every fee is paid in (e.g. "ueaura")
    fee: per-request broker fee, paid out to whichever party fulfills
    callback_limit_gas: gas ceiling attached to each fulfillment callback
    max_callback: max commitments fulfilled by a single oracle report
    """

    bounty_denom: str = "ueaura"
    fee: int = 0
    callback_limit_gas: int = 150_000
    max_callback: int = 5

    def validate(self) -> None:
        if not self.bounty_denom:
            raise ValueError("bounty_denom must be non-empty")
        _check_uint("fee", self.fee, UINT128_MAX)
        _check_uint("callback_limit_gas", self.callback_limit_gas, _U64_MAX)
        _check_uint("max_callback", self.max_callback, _U32_MAX)
        if self.max_callback < 1:
            raise ValueError("max_callback must be >= 1")

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["fee"] = str(self.fee)
        return d

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Configs":
        return cls(
            bounty_denom=str(d["bounty_denom"]),
            fee=int(d["fee"]),
            callback_limit_gas=int(d["callback_limit_gas"]),
            max_callback=int(d["max_callback"]),
        )


@dataclass
class TimeConfigs:
    """
    time_expired: lifetime of a commitment after its window opens (seconds)
    time_per_block: block-time estimate; offsets commit_time from admission (seconds)
    """

    time_expired: int = 5
    time_per_block: int = 5

    def validate(self) -> None:
        _check_uint("time_expired", self.time_expired, _U64_MAX)
        _check_uint("time_per_block", self.time_per_block, _U64_MAX)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "TimeConfigs":
        return cls(time_expired=int(d["time_expired"]), time_per_block=int(d["time_per_block"]))


@dataclass
class NoisConfigs:
    """
    nois_proxy: address of the beacon proxy; the only sender accepted on the beacon path
    nois_fee: fee forwarded to the proxy with every beacon request
    """

    nois_proxy: str = ""
    nois_fee: int = 0

    def validate(self) -> None:
        if not self.nois_proxy:
            raise ValueError("nois_proxy must be non-empty")
        _check_uint("nois_fee", self.nois_fee, UINT128_MAX)

    def to_dict(self) -> Dict[str, Any]:
        return {"nois_proxy": self.nois_proxy, "nois_fee": str(self.nois_fee)}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "NoisConfigs":
        return cls(nois_proxy=str(d["nois_proxy"]), nois_fee=int(d["nois_fee"]))


@dataclass
class InstantiateParams:
    nois_proxy: str
    time_expired: int = 5
    time_per_block: int = 5
    bounty_denom: str = "ueaura"
    fee: int = 0
    nois_fee: int = 0
    callback_limit_gas: int = 150_000
    max_callback: int = 5

    def configs(self) -> Configs:
        return Configs(
            bounty_denom=self.bounty_denom,
            fee=self.fee,
            callback_limit_gas=self.callback_limit_gas,
            max_callback=self.max_callback,
        )

    def time_configs(self) -> TimeConfigs:
        return TimeConfigs(time_expired=self.time_expired, time_per_block=self.time_per_block)

    def nois_configs(self) -> NoisConfigs:
        return NoisConfigs(nois_proxy=self.nois_proxy, nois_fee=self.nois_fee)

    def validate(self) -> None:
        self.configs().validate()
        self.time_configs().validate()
        self.nois_configs().validate()

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["fee"] = str(self.fee)
        d["nois_fee"] = str(self.nois_fee)
        return d

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "InstantiateParams":
        defaults = cls(nois_proxy="")
        return cls(
            nois_proxy=str(d["nois_proxy"]),
            time_expired=int(d.get("time_expired", defaults.time_expired)),
            time_per_block=int(d.get("time_per_block", defaults.time_per_block)),
            bounty_denom=str(d.get("bounty_denom", defaults.bounty_denom)),
            fee=int(d.get("fee", defaults.fee)),
            nois_fee=int(d.get("nois_fee", defaults.nois_fee)),
            callback_limit_gas=int(d.get("callback_limit_gas", defaults.callback_limit_gas)),
            max_callback=int(d.get("max_callback", defaults.max_callback)),
        )


# -------------------------
# Host settings
# -------------------------


@dataclass
class NodeSettings:
    """
    Settings for running the broker behind the service wrapper.

    store_uri: "memory://" or "sqlite:///path/to/broker.db"
    host/port: bind address for the HTTP surface
    log_level: root logging level name
    owner: account recorded as owner when the service instantiates a fresh store
    instantiate: parameters used for that first instantiation (None = require explicit call)
    """

    store_uri: str = "memory://"
    host: str = "127.0.0.1"
    port: int = 8650
    log_level: str = "INFO"
    owner: Optional[str] = None
    instantiate: Optional[InstantiateParams] = None

    def validate(self) -> None:
        if not (self.store_uri == "memory://" or self.store_uri.startswith("sqlite://")):
            raise ValueError("store_uri must be memory:// or sqlite:///<path>")
        if not (0 < self.port < 65536):
            raise ValueError("port must be in 1..65535")
        if self.log_level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log_level: {self.log_level}")
        if self.instantiate is not None:
            if not self.owner:
                raise ValueError("owner is required when instantiate parameters are given")
            self.instantiate.validate()

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["instantiate"] = self.instantiate.to_dict() if self.instantiate else None
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    # -------------------------
    # Loaders
    # -------------------------

    @staticmethod
    def from_env(prefix: str = "RANDBROKER_") -> "NodeSettings":
        """
        Load settings from environment variables. All variables are optional.

        Supported keys (examples):
          - RANDBROKER_STORE_URI=sqlite:///var/lib/randbroker/broker.db
          - RANDBROKER_HOST=0.0.0.0
          - RANDBROKER_PORT=8650
          - RANDBROKER_LOG_LEVEL=DEBUG
          - RANDBROKER_OWNER=aura1owner...

          Instantiation defaults (only used when NOIS_PROXY is set):
          - RANDBROKER_NOIS_PROXY=aura1proxy...
          - RANDBROKER_NOIS_FEE=300
          - RANDBROKER_BOUNTY_DENOM=ueaura
          - RANDBROKER_FEE=300
          - RANDBROKER_CALLBACK_LIMIT_GAS=150000
          - RANDBROKER_MAX_CALLBACK=5
          - RANDBROKER_TIME_EXPIRED=5
          - RANDBROKER_TIME_PER_BLOCK=5
        """

        def _get(name: str, cast: Any, default: Any) -> Any:
            key = prefix + name
            raw = os.getenv(key)
            if raw is None:
                return default
            try:
                return cast(raw)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid value for {key}: {raw!r}") from e

        inst: Optional[InstantiateParams] = None
        proxy = _get("NOIS_PROXY", str, None)
        if proxy:
            inst = InstantiateParams(
                nois_proxy=proxy,
                nois_fee=_get("NOIS_FEE", int, 0),
                bounty_denom=_get("BOUNTY_DENOM", str, "ueaura"),
                fee=_get("FEE", int, 0),
                callback_limit_gas=_get("CALLBACK_LIMIT_GAS", int, 150_000),
                max_callback=_get("MAX_CALLBACK", int, 5),
                time_expired=_get("TIME_EXPIRED", int, 5),
                time_per_block=_get("TIME_PER_BLOCK", int, 5),
            )

        cfg = NodeSettings(
            store_uri=_get("STORE_URI", str, "memory://"),
            host=_get("HOST", str, "127.0.0.1"),
            port=_get("PORT", int, 8650),
            log_level=_get("LOG_LEVEL", str, "INFO"),
            owner=_get("OWNER", str, None),
            instantiate=inst,
        )
        cfg.validate()
        return cfg

    @staticmethod
    def from_file(path: str) -> "NodeSettings":
        """
        Load settings from a JSON or YAML file. Example (YAML):

            store_uri: "sqlite:///var/lib/randbroker/broker.db"
            port: 8650
            log_level: INFO
            owner: aura1owner...
            instantiate:
              nois_proxy: aura1proxy...
              nois_fee: 300
              fee: 300
              max_callback: 5
        """
        data = _parse_json_or_yaml(_read_text(path), path)
        if not isinstance(data, dict):
            raise ValueError(f"{path!r} must contain a mapping at the top level")

        inst_d = data.get("instantiate")
        cfg = NodeSettings(
            store_uri=data.get("store_uri", "memory://"),
            host=data.get("host", "127.0.0.1"),
            port=int(data.get("port", 8650)),
            log_level=data.get("log_level", "INFO"),
            owner=data.get("owner"),
            instantiate=InstantiateParams.from_dict(inst_d) if inst_d else None,
        )
        cfg.validate()
        return cfg


# -------------------------
# Utilities
# -------------------------


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _parse_json_or_yaml(text: str, path_hint: str) -> Dict[str, Any]:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    try:
        return yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse {path_hint!r} as JSON or YAML: {e}") from e


__all__ = [
    "Configs",
    "TimeConfigs",
    "NoisConfigs",
    "InstantiateParams",
    "NodeSettings",
]
