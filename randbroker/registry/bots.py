"""
Bot registry and update cooldown.

One record per bot address. A bot may rewrite its record only once the
cooldown has elapsed since its last write:

    now - time_per_block - time_expired >= last_update

i.e. no sooner than a commitment admitted at the previous update could have
expired, so a bot cannot swap credentials underneath reports it may still owe.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..errors import AddressAlreadyRegistered, TooManyActions, UnregisteredAddress
from ..store.kv import Buckets
from ..types.core import Bot

log = logging.getLogger(__name__)


def next_update_allowed(bot: Bot, time_per_block: int, time_expired: int) -> int:
    return bot.last_update + time_per_block + time_expired


class BotRegistry:
    def __init__(self, buckets: Buckets) -> None:
        self._b = buckets

    def get(self, address: str) -> Optional[Bot]:
        rec = self._b.get_bot(address)
        return Bot.from_dict(rec) if rec is not None else None

    def has(self, address: str) -> bool:
        return self._b.has_bot(address)

    def register(self, address: str, hashed_api_key: str, moniker: str, now: int) -> Bot:
        if self._b.has_bot(address):
            raise AddressAlreadyRegistered(address=address)
        bot = Bot(address=address, hashed_api_key=hashed_api_key, moniker=moniker, last_update=now)
        self._b.put_bot(address, bot.to_dict())
        log.info("bot registered address=%s moniker=%s", address, moniker)
        return bot

    def update(
        self,
        address: str,
        hashed_api_key: str,
        moniker: str,
        now: int,
        *,
        time_per_block: int,
        time_expired: int,
    ) -> Bot:
        current = self.get(address)
        if current is None:
            raise UnregisteredAddress(address=address)
        if now - time_per_block - time_expired < current.last_update:
            raise TooManyActions(
                address=address,
                next_allowed=next_update_allowed(current, time_per_block, time_expired),
                now=now,
            )
        bot = Bot(address=address, hashed_api_key=hashed_api_key, moniker=moniker, last_update=now)
        self._b.put_bot(address, bot.to_dict())
        log.info("bot updated address=%s moniker=%s", address, moniker)
        return bot

    def remove(self, address: str) -> bool:
        """Delete the record; returns whether one existed."""
        existed = self._b.has_bot(address)
        self._b.del_bot(address)
        return existed


__all__ = ["BotRegistry", "next_update_allowed"]
