"""
Broker error types.

A small, typed hierarchy raised by the orchestrator and its components.
Callers can catch :class:`BrokerError` to handle every rejection, or the
concrete subclasses for finer control. Every error carries a stable `code`,
a coarse `category` and optional structured `details`, and is safe to surface
over RPC and logs.

Any error raised from an execute path aborts the whole call: staged state is
discarded and no outbound message is emitted.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional

# Categories (kept small; used as a metrics label and in RPC error payloads)
AUTHORIZATION = "authorization"
VALIDATION = "validation"
VERIFICATION = "verification"
PARSE = "parse"
ARITHMETIC = "arithmetic"
NOT_FOUND = "not_found"
ALREADY_EXISTS = "already_exists"


class BrokerError(Exception):
    """Base class for all broker rejections."""

    code: str = "BROKER_ERROR"
    category: str = VALIDATION

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "category": self.category,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            try:
                packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"))
            except (TypeError, ValueError):
                packed = str(self.details)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


# ---- authorization -----------------------------------------------------------


class Unauthorized(BrokerError):
    """Caller is not the owner."""

    code = "UNAUTHORIZED"
    category = AUTHORIZATION

    def __init__(self, *, sender: Optional[str] = None, message: str = "caller is not the owner") -> None:
        super().__init__(message, details={"sender": sender} if sender is not None else None)


class UnauthorizedReceive(BrokerError):
    """Beacon callback from an address other than the configured beacon proxy."""

    code = "UNAUTHORIZED_RECEIVE"
    category = AUTHORIZATION

    def __init__(self, *, sender: Optional[str] = None, message: str = "sender is not the beacon proxy") -> None:
        super().__init__(message, details={"sender": sender} if sender is not None else None)


class UnregisteredAddress(BrokerError):
    """Caller must be a registered bot."""

    code = "UNREGISTERED_ADDRESS"
    category = NOT_FOUND

    def __init__(self, *, address: Optional[str] = None, message: str = "address is not a registered bot") -> None:
        super().__init__(message, details={"address": address} if address is not None else None)


class AddressAlreadyRegistered(BrokerError):
    code = "ADDRESS_ALREADY_REGISTERED"
    category = ALREADY_EXISTS

    def __init__(self, *, address: Optional[str] = None, message: str = "address is already registered") -> None:
        super().__init__(message, details={"address": address} if address is not None else None)


class TooManyActions(BrokerError):
    """Bot update attempted before its cooldown elapsed."""

    code = "TOO_MANY_ACTIONS"
    category = VALIDATION

    def __init__(self, *, address: str, next_allowed: int, now: int) -> None:
        super().__init__(
            "bot update attempted before cooldown elapsed",
            details={"address": address, "next_allowed": int(next_allowed), "now": int(now)},
        )


# ---- validation --------------------------------------------------------------


class ValidationError(BrokerError):
    """Out-of-range count, unknown denom, insufficient funds, empty int range."""

    code = "VALIDATION_ERROR"
    category = VALIDATION


class InvalidAddress(BrokerError):
    code = "INVALID_ADDRESS"
    category = VALIDATION

    def __init__(self, address: str, *, message: str = "invalid account address") -> None:
        super().__init__(message, details={"address": address})


class InvalidProxyAddress(InvalidAddress):
    code = "INVALID_PROXY_ADDRESS"

    def __init__(self, address: str) -> None:
        super().__init__(address, message="invalid beacon proxy address")


class InvalidRandomness(BrokerError):
    """Beacon delivered a seed that is not exactly 32 bytes."""

    code = "INVALID_RANDOMNESS"
    category = VALIDATION

    def __init__(self, *, length: int) -> None:
        super().__init__("randomness must be exactly 32 bytes", details={"length": int(length)})


# ---- verification ------------------------------------------------------------


class SignatureVerificationFailed(BrokerError):
    code = "SIGNATURE_VERIFICATION_FAILED"
    category = VERIFICATION

    def __init__(self, message: str = "oracle signature does not verify") -> None:
        super().__init__(message)


class InvalidApiKey(BrokerError):
    """Payload credential hash differs from the submitting bot's stored hash."""

    code = "INVALID_API_KEY"
    category = VERIFICATION

    def __init__(self, *, address: str) -> None:
        super().__init__("payload api key does not belong to the submitting bot", details={"address": address})


# ---- parse / arithmetic ------------------------------------------------------


class ParseError(BrokerError):
    """Malformed base64, payload JSON, or completion-time string."""

    code = "PARSE_ERROR"
    category = PARSE


class FeeOverflow(BrokerError):
    code = "FEE_OVERFLOW"
    category = ARITHMETIC

    def __init__(self, message: str = "fee arithmetic overflows uint128") -> None:
        super().__init__(message)


# ---- lifecycle ---------------------------------------------------------------


class NotInstantiated(BrokerError):
    code = "NOT_INSTANTIATED"
    category = NOT_FOUND

    def __init__(self) -> None:
        super().__init__("broker state has not been instantiated")


class AlreadyInstantiated(BrokerError):
    code = "ALREADY_INSTANTIATED"
    category = ALREADY_EXISTS

    def __init__(self) -> None:
        super().__init__("broker state is already instantiated")


__all__ = [
    "AUTHORIZATION",
    "VALIDATION",
    "VERIFICATION",
    "PARSE",
    "ARITHMETIC",
    "NOT_FOUND",
    "ALREADY_EXISTS",
    "BrokerError",
    "Unauthorized",
    "UnauthorizedReceive",
    "UnregisteredAddress",
    "AddressAlreadyRegistered",
    "TooManyActions",
    "ValidationError",
    "InvalidAddress",
    "InvalidProxyAddress",
    "InvalidRandomness",
    "SignatureVerificationFailed",
    "InvalidApiKey",
    "ParseError",
    "FeeOverflow",
    "NotInstantiated",
    "AlreadyInstantiated",
]
