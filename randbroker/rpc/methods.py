"""
randbroker.rpc.methods
----------------------

JSON-RPC method shims for the broker.

These are intentionally thin: they validate/normalize inputs with pydantic,
then delegate to a :class:`~randbroker.adapters.service.BrokerService`.

Exposed methods:

- broker.status()
- broker.instantiate(sender, params)
- broker.execute(sender, msg, funds?)
- broker.reply(reply_id, ok, error?)
- broker.drainOutbox()
- broker.getConfigs()
- broker.getPendingCommitments(limit?)
- broker.getCommitments(limit?)
- broker.getNumberOfCommitment()
- broker.getBotInfo(address)

`msg` uses the single-key wire form described in :mod:`randbroker.msg`.
Amounts are decimal strings or integers.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import DEFAULT_QUERY_LIMIT

# ---------- request models ----------


class CoinParam(BaseModel):
    model_config = ConfigDict(frozen=True)

    denom: str = Field(..., min_length=1)
    amount: Union[int, str]

    @field_validator("amount")
    @classmethod
    def _amount_uint(cls, v: Union[int, str]) -> str:
        n = int(v)
        if n < 0:
            raise ValueError("amount must be non-negative")
        return str(n)


class InstantiateParamsModel(BaseModel):
    sender: str = Field(..., min_length=1, description="Account recorded as owner.")
    params: Dict[str, Any] = Field(..., description="nois_proxy, fees, windows, limits.")


class ExecuteParams(BaseModel):
    sender: str = Field(..., min_length=1)
    msg: Dict[str, Any] = Field(..., description='Single-key execute message, e.g. {"register_bot": {...}}')
    funds: List[CoinParam] = Field(default_factory=list)

    @field_validator("msg")
    @classmethod
    def _single_variant(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if len(v) != 1:
            raise ValueError("msg must have exactly one variant key")
        return v


class ReplyParams(BaseModel):
    reply_id: int = Field(..., ge=0)
    ok: bool
    error: Optional[str] = None


class LimitQuery(BaseModel):
    limit: int = Field(default=DEFAULT_QUERY_LIMIT, ge=0, description="Capped server-side.")


class AddressQuery(BaseModel):
    address: str = Field(..., min_length=1)


# ---------- method handlers ----------


def broker_status(service: Any, _args: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    return service.status()


def broker_instantiate(service: Any, args: Mapping[str, Any]) -> Dict[str, Any]:
    p = InstantiateParamsModel(**args)
    return service.instantiate(p.sender, p.params)


def broker_execute(service: Any, args: Mapping[str, Any]) -> Dict[str, Any]:
    """Run one execute message; returns {"messages": [...], "attributes": [...]}."""
    p = ExecuteParams(**args)
    return service.execute(p.sender, p.msg, [c.model_dump() for c in p.funds])


def broker_reply(service: Any, args: Mapping[str, Any]) -> Dict[str, Any]:
    p = ReplyParams(**args)
    return service.reply(p.reply_id, p.ok, p.error)


def broker_drain_outbox(service: Any, _args: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
    return service.drain_outbox()


def broker_get_configs(service: Any, _args: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    return service.get_configs()


def broker_get_pending_commitments(service: Any, args: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    q = LimitQuery(**(args or {}))
    return service.get_pending_commitments(q.limit)


def broker_get_commitments(service: Any, args: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    q = LimitQuery(**(args or {}))
    return service.get_commitments(q.limit)


def broker_get_number_of_commitment(service: Any, _args: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    return service.get_number_of_commitment()


def broker_get_bot_info(service: Any, args: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """Bot record, or None when the address is not registered."""
    q = AddressQuery(**args)
    return service.get_bot_info(q.address)


# Public registry mapping JSON-RPC method names to callables.
# Each callable has signature: (service, args_dict) -> result
RPC_METHODS: Dict[str, Callable[..., Any]] = {
    "broker.status": broker_status,
    "broker.instantiate": broker_instantiate,
    "broker.execute": broker_execute,
    "broker.reply": broker_reply,
    "broker.drainOutbox": broker_drain_outbox,
    "broker.getConfigs": broker_get_configs,
    "broker.getPendingCommitments": broker_get_pending_commitments,
    "broker.getCommitments": broker_get_commitments,
    "broker.getNumberOfCommitment": broker_get_number_of_commitment,
    "broker.getBotInfo": broker_get_bot_info,
}

__all__ = [
    "CoinParam",
    "InstantiateParamsModel",
    "ExecuteParams",
    "ReplyParams",
    "LimitQuery",
    "AddressQuery",
    "RPC_METHODS",
]
