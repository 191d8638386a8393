"""
Inbound operation and query variants.

Execute variants map 1:1 onto the broker's public operations. On the wire a
message is a single-key object whose key is the snake_case variant name:

    {"request_hex_randomness": {"request_id": "r1", "num": 3}}
    {"nois_receive": {"callback": {"job_id": "...", "randomness": "<hex>"}}}

:func:`parse_execute` and :func:`parse_query` turn such objects into the typed
variants; :meth:`to_wire` goes the other way.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Type, Union

from .errors import ParseError


@dataclass(frozen=True)
class SetConfigs:
    bounty_denom: str
    fee: int
    callback_limit_gas: int
    max_callback: int


@dataclass(frozen=True)
class SetTimeConfigs:
    time_expired: int
    time_per_block: int


@dataclass(frozen=True)
class SetNoisConfigs:
    nois_proxy: str
    nois_fee: int


@dataclass(frozen=True)
class RegisterBot:
    hashed_api_key: str
    moniker: str


@dataclass(frozen=True)
class UpdateBot:
    hashed_api_key: str
    moniker: str


@dataclass(frozen=True)
class RemoveBot:
    address: str


@dataclass(frozen=True)
class RequestHexRandomness:
    request_id: str
    num: int


@dataclass(frozen=True)
class RequestIntRandomness:
    request_id: str
    min: int
    max: int
    num: int


@dataclass(frozen=True)
class AddRandomness:
    """Signed oracle report: `random_value` is the exact signed JSON text."""

    random_value: str
    signature: str


@dataclass(frozen=True)
class NoisCallback:
    job_id: str
    randomness: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {"job_id": self.job_id, "randomness": self.randomness.hex()}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "NoisCallback":
        if not isinstance(d, Mapping) or "job_id" not in d or "randomness" not in d:
            raise ParseError("callback must carry job_id and randomness")
        raw = d["randomness"]
        if isinstance(raw, (bytes, bytearray)):
            return cls(job_id=str(d["job_id"]), randomness=bytes(raw))
        try:
            return cls(job_id=str(d["job_id"]), randomness=bytes.fromhex(str(raw)))
        except ValueError as e:
            raise ParseError(f"callback randomness is not hex: {e}") from e


@dataclass(frozen=True)
class NoisReceive:
    callback: NoisCallback


ExecuteMsg = Union[
    SetConfigs,
    SetTimeConfigs,
    SetNoisConfigs,
    RegisterBot,
    UpdateBot,
    RemoveBot,
    RequestHexRandomness,
    RequestIntRandomness,
    AddRandomness,
    NoisReceive,
]


# ---- queries -----------------------------------------------------------------


@dataclass(frozen=True)
class GetPendingCommitments:
    limit: int


@dataclass(frozen=True)
class GetCommitments:
    limit: int


@dataclass(frozen=True)
class GetNumberOfCommitment:
    pass


@dataclass(frozen=True)
class GetBotInfo:
    address: str


@dataclass(frozen=True)
class GetConfigs:
    pass


QueryMsg = Union[GetPendingCommitments, GetCommitments, GetNumberOfCommitment, GetBotInfo, GetConfigs]


# ---- wire codec --------------------------------------------------------------

EXECUTE_VARIANTS: Dict[str, Type[Any]] = {
    "set_configs": SetConfigs,
    "set_time_configs": SetTimeConfigs,
    "set_nois_configs": SetNoisConfigs,
    "register_bot": RegisterBot,
    "update_bot": UpdateBot,
    "remove_bot": RemoveBot,
    "request_hex_randomness": RequestHexRandomness,
    "request_int_randomness": RequestIntRandomness,
    "add_randomness": AddRandomness,
    "nois_receive": NoisReceive,
}

QUERY_VARIANTS: Dict[str, Type[Any]] = {
    "get_pending_commitments": GetPendingCommitments,
    "get_commitments": GetCommitments,
    "get_number_of_commitment": GetNumberOfCommitment,
    "get_bot_info": GetBotInfo,
    "get_configs": GetConfigs,
}

_INT_FIELDS = {"fee", "nois_fee", "callback_limit_gas", "max_callback", "time_expired",
               "time_per_block", "num", "min", "max", "limit"}
# uint128 amounts also arrive as decimal strings
_AMOUNT_FIELDS = {"fee", "nois_fee"}


def _as_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ParseError(f"field {name!r} must be an integer")
    if isinstance(value, str):
        if name not in _AMOUNT_FIELDS or not (value.isascii() and value.isdigit()):
            raise ParseError(f"field {name!r} must be an integer")
        return int(value)
    return value


def _build(cls: Type[Any], body: Mapping[str, Any]) -> Any:
    if not isinstance(body, Mapping):
        raise ParseError(f"{cls.__name__} body must be an object")
    kwargs: Dict[str, Any] = {}
    names = {f.name for f in fields(cls)}
    unknown = set(body) - names
    if unknown:
        raise ParseError(f"unknown field(s) for {cls.__name__}: {sorted(unknown)}")
    for name in names:
        if name not in body:
            raise ParseError(f"missing field {name!r} for {cls.__name__}")
        value = body[name]
        if name == "callback":
            value = NoisCallback.from_dict(value)
        elif name in _INT_FIELDS:
            value = _as_int(name, value)
        elif not isinstance(value, str):
            raise ParseError(f"field {name!r} must be a string")
        kwargs[name] = value
    return cls(**kwargs)


def _parse(obj: Mapping[str, Any], table: Dict[str, Type[Any]], what: str) -> Any:
    if not isinstance(obj, Mapping) or len(obj) != 1:
        raise ParseError(f"{what} must be an object with exactly one variant key")
    (key, body), = obj.items()
    cls = table.get(key)
    if cls is None:
        raise ParseError(f"unknown {what} variant: {key!r}")
    return _build(cls, body or {})


def parse_execute(obj: Mapping[str, Any]) -> ExecuteMsg:
    return _parse(obj, EXECUTE_VARIANTS, "execute message")


def parse_query(obj: Mapping[str, Any]) -> QueryMsg:
    return _parse(obj, QUERY_VARIANTS, "query message")


def to_wire(msg: Any) -> Dict[str, Any]:
    for key, cls in {**EXECUTE_VARIANTS, **QUERY_VARIANTS}.items():
        if type(msg) is cls:
            body = asdict(msg)
            if isinstance(msg, NoisReceive):
                body = {"callback": msg.callback.to_dict()}
            for k in ("fee", "nois_fee"):
                if k in body:
                    body[k] = str(body[k])
            return {key: body}
    raise TypeError(f"not a broker message: {type(msg).__name__}")


__all__ = [
    "SetConfigs",
    "SetTimeConfigs",
    "SetNoisConfigs",
    "RegisterBot",
    "UpdateBot",
    "RemoveBot",
    "RequestHexRandomness",
    "RequestIntRandomness",
    "AddRandomness",
    "NoisCallback",
    "NoisReceive",
    "ExecuteMsg",
    "GetPendingCommitments",
    "GetCommitments",
    "GetNumberOfCommitment",
    "GetBotInfo",
    "GetConfigs",
    "QueryMsg",
    "EXECUTE_VARIANTS",
    "QUERY_VARIANTS",
    "parse_execute",
    "parse_query",
    "to_wire",
]
