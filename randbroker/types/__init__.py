"""
Broker types package.

  • core      — DataType, DataRequest, Commitment, Bot, Coin, Env, MessageInfo
  • messages  — outbox variants and Response

Re-exported for convenience:
    from randbroker.types import Commitment, Response
"""

from __future__ import annotations

from .core import Bot, Coin, Commitment, DataRequest, DataType, Env, MessageInfo
from .messages import (
    BankSend,
    BeaconRequest,
    Callback,
    HexCallback,
    IntCallback,
    OutboundMessage,
    Response,
)

__all__ = [
    "Bot",
    "Coin",
    "Commitment",
    "DataRequest",
    "DataType",
    "Env",
    "MessageInfo",
    "BankSend",
    "BeaconRequest",
    "Callback",
    "HexCallback",
    "IntCallback",
    "OutboundMessage",
    "Response",
]
