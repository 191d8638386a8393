"""
Oracle admission: signature gate plus payload decoding.

    from randbroker.oracle import verify_message, decode_randomorg_data
"""

from __future__ import annotations

from .payload import License, RandomOrgData, decode_randomorg_data, parse_completion_time
from .verify import SignatureVerifier, decode_signature, verify_message

__all__ = [
    "License",
    "RandomOrgData",
    "decode_randomorg_data",
    "parse_completion_time",
    "SignatureVerifier",
    "decode_signature",
    "verify_message",
]
