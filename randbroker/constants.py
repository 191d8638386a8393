"""
Broker constants.

This module centralizes:
- Admission bounds for the number of values a single request may ask for
- Data-type tags used in stored requests and callback payloads
- Reply identifiers attached to outbound messages
- Domain separation tags for commitment ids and randomness expansion
- Query caps and the oracle completion-time wire format

Operational knobs (fees, gas, windows) live in :mod:`randbroker.config`;
the values here are stable and changing them would alter derived ids or
expanded outputs for historical requests.
"""

from __future__ import annotations

# -----------------------------
# Admission bounds
# -----------------------------
MIN_NUM: int = 1
MAX_NUM: int = 256

# Upper bound for fee arithmetic (amounts are unsigned 128-bit).
UINT128_MAX: int = (1 << 128) - 1

# -----------------------------
# Data types
# -----------------------------
HEX_DATA_TYPE: str = "hex"
INT_DATA_TYPE: str = "int"

# -----------------------------
# Reply identifiers
# -----------------------------
# The host substrate reports delivery outcomes keyed by these ids.
NOIS_CALLBACK_REPLY_ID: int = 1
COMMITMENT_CALLBACK_REPLY_ID: int = 2

# -----------------------------
# Domain separation
# -----------------------------
DOMAIN_PREFIX: bytes = b"randbroker."

# Key-derivation tag mixed with the per-request diversification key.
DOMAIN_SUB_RANDOMNESS: bytes = DOMAIN_PREFIX + b"subrand.key.v1"
# Child-seed stream derived from the keyed base seed.
DOMAIN_SUB_RANDOMNESS_BLOCK: bytes = DOMAIN_PREFIX + b"subrand.block.v1"
# Re-draw stream used by rejection sampling of bounded integers.
DOMAIN_INT_REDRAW: bytes = DOMAIN_PREFIX + b"int.redraw.v1"

# -----------------------------
# Queries
# -----------------------------
# Hard server-side cap applied to every paged query.
MAX_QUERY_LIMIT: int = 100
DEFAULT_QUERY_LIMIT: int = 30

# -----------------------------
# Oracle wire format
# -----------------------------
# completionTime as emitted by the signed oracle feed, always UTC.
COMPLETION_TIME_FORMAT: str = "%Y-%m-%d %H:%M:%SZ"

# Seed width delivered by both randomness sources.
SEED_LEN: int = 32

__all__ = [
    "MIN_NUM",
    "MAX_NUM",
    "UINT128_MAX",
    "HEX_DATA_TYPE",
    "INT_DATA_TYPE",
    "NOIS_CALLBACK_REPLY_ID",
    "COMMITMENT_CALLBACK_REPLY_ID",
    "DOMAIN_PREFIX",
    "DOMAIN_SUB_RANDOMNESS",
    "DOMAIN_SUB_RANDOMNESS_BLOCK",
    "DOMAIN_INT_REDRAW",
    "MAX_QUERY_LIMIT",
    "DEFAULT_QUERY_LIMIT",
    "COMPLETION_TIME_FORMAT",
    "SEED_LEN",
]
