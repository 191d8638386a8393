"""
Stateful registries over the broker's store buckets:

  • commitments — ordered sequence + pending index, time-window selection
  • bots        — reporting agents and their update cooldown
  • nonces      — per-owner counters and commitment id derivation
"""

from __future__ import annotations

from .bots import BotRegistry
from .commitments import CommitmentRegistry, Selection
from .nonces import NonceTable, make_commit_id

__all__ = ["BotRegistry", "CommitmentRegistry", "Selection", "NonceTable", "make_commit_id"]
