"""
Outbox message variants and the per-call Response.

Every execute path returns a :class:`Response`: an ordered list of messages
the host must deliver after the call commits, plus an ordered list of
(key, value) attributes for logs and event streams. The broker never awaits
delivery; reply ids let the host report outcomes back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from ..constants import COMMITMENT_CALLBACK_REPLY_ID, NOIS_CALLBACK_REPLY_ID
from .core import Coin


@dataclass(frozen=True, slots=True)
class BeaconRequest:
    """Ask the beacon proxy for the next randomness, correlated by `job_id`."""

    contract_addr: str
    job_id: str
    funds: Tuple[Coin, ...] = ()
    reply_id: int = NOIS_CALLBACK_REPLY_ID

    kind = "beacon_request"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "contract_addr": self.contract_addr,
            "job_id": self.job_id,
            "funds": [c.to_dict() for c in self.funds],
            "reply_id": self.reply_id,
        }


@dataclass(frozen=True, slots=True)
class HexCallback:
    """Deliver `num` hex strings to the request owner."""

    contract_addr: str
    request_id: str
    randomness: Tuple[str, ...]
    gas_limit: Optional[int] = None
    reply_id: int = COMMITMENT_CALLBACK_REPLY_ID

    kind = "receive_hex_randomness"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "contract_addr": self.contract_addr,
            "request_id": self.request_id,
            "randomness": list(self.randomness),
            "gas_limit": self.gas_limit,
            "reply_id": self.reply_id,
        }


@dataclass(frozen=True, slots=True)
class IntCallback:
    """Deliver `num` bounded integers to the request owner."""

    contract_addr: str
    request_id: str
    randomness: Tuple[int, ...]
    gas_limit: Optional[int] = None
    reply_id: int = COMMITMENT_CALLBACK_REPLY_ID

    kind = "receive_int_randomness"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "contract_addr": self.contract_addr,
            "request_id": self.request_id,
            "randomness": list(self.randomness),
            "gas_limit": self.gas_limit,
            "reply_id": self.reply_id,
        }


@dataclass(frozen=True, slots=True)
class BankSend:
    to_address: str
    amount: Tuple[Coin, ...]

    kind = "bank_send"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "to_address": self.to_address,
            "amount": [c.to_dict() for c in self.amount],
        }


OutboundMessage = Union[BeaconRequest, HexCallback, IntCallback, BankSend]
Callback = Union[HexCallback, IntCallback]


@dataclass
class Response:
    messages: List[OutboundMessage] = field(default_factory=list)
    attributes: List[Tuple[str, str]] = field(default_factory=list)

    def add_message(self, msg: OutboundMessage) -> "Response":
        self.messages.append(msg)
        return self

    def add_attribute(self, key: str, value: Any) -> "Response":
        self.attributes.append((key, str(value)))
        return self

    def attribute(self, key: str) -> Optional[str]:
        """First value recorded under `key`, or None."""
        for k, v in self.attributes:
            if k == key:
                return v
        return None

    def callbacks(self) -> List[Callback]:
        return [m for m in self.messages if isinstance(m, (HexCallback, IntCallback))]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messages": [m.to_dict() for m in self.messages],
            "attributes": [{"key": k, "value": v} for k, v in self.attributes],
        }


__all__ = [
    "BeaconRequest",
    "HexCallback",
    "IntCallback",
    "BankSend",
    "OutboundMessage",
    "Callback",
    "Response",
]
