"""
Core typed records for the broker.

These are intentionally minimal and dependency-free so they can be shared by
the registries, the orchestrator, the store codecs and the RPC surface.

Types provided:
  • DataType     — Hex | Int output shape of a request
  • DataRequest  — what a requester asked for (shape, bounds, count)
  • Commitment   — one outstanding request with its fulfillment window
  • Bot          — a registered oracle reporting agent
  • Coin         — an amount in a denom
  • Env          — host-provided execution environment (block time)
  • MessageInfo  — caller identity and attached funds

Timestamps are integer UNIX seconds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

_I32_MIN = -(1 << 31)
_I32_MAX = (1 << 31) - 1
_U32_MAX = (1 << 32) - 1


def _require_int(name: str, v: Any, lo: int, hi: int) -> None:
    if not isinstance(v, int) or isinstance(v, bool):
        raise TypeError(f"{name} must be int")
    if not (lo <= v <= hi):
        raise ValueError(f"{name} out of range [{lo}, {hi}] (got {v})")


def _require_str(name: str, v: Any) -> None:
    if not isinstance(v, str):
        raise TypeError(f"{name} must be str")


class DataType(str, Enum):
    """Output shape of a randomness request."""

    HEX = "hex"
    INT = "int"


@dataclass(frozen=True, slots=True)
class DataRequest:
    """
    Fields:
      data_type — Hex or Int
      min/max   — inclusive integer bounds (meaningful for Int only; 0 for Hex)
      num       — number of values to produce (bounded at admission)
    """

    data_type: DataType
    min: int
    max: int
    num: int

    def __post_init__(self) -> None:  # type: ignore[override]
        if not isinstance(self.data_type, DataType):
            object.__setattr__(self, "data_type", DataType(self.data_type))
        _require_int("min", self.min, _I32_MIN, _I32_MAX)
        _require_int("max", self.max, _I32_MIN, _I32_MAX)
        _require_int("num", self.num, 0, _U32_MAX)

    @classmethod
    def of_hex(cls, num: int) -> "DataRequest":
        return cls(DataType.HEX, 0, 0, num)

    @classmethod
    def of_int(cls, min: int, max: int, num: int) -> "DataRequest":  # noqa: A002 - wire names
        return cls(DataType.INT, min, max, num)

    def to_dict(self) -> Dict[str, Any]:
        return {"data_type": self.data_type.value, "min": self.min, "max": self.max, "num": self.num}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "DataRequest":
        return cls(DataType(d["data_type"]), int(d["min"]), int(d["max"]), int(d["num"]))


@dataclass(frozen=True, slots=True)
class Commitment:
    """
    One outstanding randomness request.

    Fields:
      id            — hex digest of (owner, nonce); also the beacon correlation token
      request_id    — requester-chosen identifier echoed in the fulfillment callback
      owner         — requester account; receives the fulfillment callback
      commit_time   — earliest time an oracle report can apply (now + time_per_block)
      expired_time  — commit_time + time_expired
      data_request  — requested output shape
    """

    id: str
    request_id: str
    owner: str
    commit_time: int
    expired_time: int
    data_request: DataRequest

    def __post_init__(self) -> None:  # type: ignore[override]
        _require_str("id", self.id)
        _require_str("request_id", self.request_id)
        _require_str("owner", self.owner)
        if not isinstance(self.commit_time, int) or not isinstance(self.expired_time, int):
            raise TypeError("commit_time and expired_time must be int")
        if self.commit_time > self.expired_time:
            raise ValueError("commit_time must be <= expired_time")
        if not isinstance(self.data_request, DataRequest):
            raise TypeError("data_request must be a DataRequest")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "owner": self.owner,
            "commit_time": self.commit_time,
            "expired_time": self.expired_time,
            "data_request": self.data_request.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Commitment":
        return cls(
            id=str(d["id"]),
            request_id=str(d["request_id"]),
            owner=str(d["owner"]),
            commit_time=int(d["commit_time"]),
            expired_time=int(d["expired_time"]),
            data_request=DataRequest.from_dict(d["data_request"]),
        )


@dataclass(frozen=True, slots=True)
class Bot:
    """
    A registered oracle reporting agent.

    Fields:
      address         — bot account (registry key)
      hashed_api_key  — hash of the oracle credential the bot submits data under
      moniker         — display name
      last_update     — time of the last register/update (gates the cooldown)
    """

    address: str
    hashed_api_key: str
    moniker: str
    last_update: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "hashed_api_key": self.hashed_api_key,
            "moniker": self.moniker,
            "last_update": self.last_update,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Bot":
        return cls(
            address=str(d["address"]),
            hashed_api_key=str(d["hashed_api_key"]),
            moniker=str(d["moniker"]),
            last_update=int(d["last_update"]),
        )


@dataclass(frozen=True, slots=True)
class Coin:
    denom: str
    amount: int

    def __post_init__(self) -> None:  # type: ignore[override]
        _require_str("denom", self.denom)
        if not isinstance(self.amount, int) or self.amount < 0:
            raise ValueError("amount must be a non-negative int")

    def to_dict(self) -> Dict[str, Any]:
        # Amounts travel as decimal strings (uint128 does not fit JSON numbers).
        return {"denom": self.denom, "amount": str(self.amount)}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Coin":
        return cls(denom=str(d["denom"]), amount=int(d["amount"]))


@dataclass(frozen=True, slots=True)
class Env:
    """Execution environment supplied by the host for a single call."""

    time: int
    height: int = 0


@dataclass(frozen=True, slots=True)
class MessageInfo:
    """Caller identity and funds attached to a single call."""

    sender: str
    funds: Tuple[Coin, ...] = field(default_factory=tuple)

    def amount_of(self, denom: str) -> Optional[int]:
        """Amount attached in `denom`, or None when no coin of that denom was sent."""
        for coin in self.funds:
            if coin.denom == denom:
                return coin.amount
        return None


__all__ = [
    "DataType",
    "DataRequest",
    "Commitment",
    "Bot",
    "Coin",
    "Env",
    "MessageInfo",
]
