"""
randbroker — verifiable-randomness brokerage.

Accepts randomness requests, collects a bounty, and fulfills every request
exactly once from one of two sources:

- a push-based randomness beacon that calls back with a seed per request,
- a pull-based signed oracle feed submitted by registered reporting bots.

Only light, stable exports are surfaced here to avoid import cycles; the
orchestrator lives in :mod:`randbroker.broker`.
"""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__"]
