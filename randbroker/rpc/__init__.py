"""JSON-RPC surface for the broker (method table in :mod:`randbroker.rpc.methods`)."""

from __future__ import annotations

from .methods import RPC_METHODS

__all__ = ["RPC_METHODS"]
