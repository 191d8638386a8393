import pytest

from randbroker.errors import AddressAlreadyRegistered, TooManyActions, UnregisteredAddress
from randbroker.registry import BotRegistry, NonceTable, make_commit_id
from randbroker.registry.bots import next_update_allowed
from randbroker.store.kv import Buckets
from randbroker.store.memory import MemoryKeyValue

from .conftest import BOT


def mk() -> BotRegistry:
    return BotRegistry(Buckets(MemoryKeyValue()))


def test_register_and_get():
    reg = mk()
    bot = reg.register(BOT, "key", "bot-1", 100)
    assert reg.get(BOT) == bot
    assert reg.has(BOT)
    assert bot.last_update == 100


def test_register_twice_rejected():
    reg = mk()
    reg.register(BOT, "key", "bot-1", 100)
    with pytest.raises(AddressAlreadyRegistered):
        reg.register(BOT, "key2", "bot-2", 200)


@pytest.mark.parametrize("now,ok", [(109, False), (110, True), (111, True)])
def test_update_cooldown_boundary(now, ok):
    reg = mk()
    reg.register(BOT, "key", "bot-1", 100)
    if ok:
        bot = reg.update(BOT, "key2", "bot-2", now, time_per_block=5, time_expired=5)
        assert (bot.hashed_api_key, bot.moniker, bot.last_update) == ("key2", "bot-2", now)
    else:
        with pytest.raises(TooManyActions) as ei:
            reg.update(BOT, "key2", "bot-2", now, time_per_block=5, time_expired=5)
        assert ei.value.details["next_allowed"] == 110
        assert reg.get(BOT).hashed_api_key == "key"


def test_update_unregistered():
    with pytest.raises(UnregisteredAddress):
        mk().update(BOT, "k", "m", 1_000, time_per_block=5, time_expired=5)


def test_remove():
    reg = mk()
    reg.register(BOT, "key", "bot-1", 100)
    assert reg.remove(BOT) is True
    assert reg.get(BOT) is None
    assert reg.remove(BOT) is False


def test_next_update_allowed():
    bot = mk().register(BOT, "key", "bot-1", 100)
    assert next_update_allowed(bot, 5, 7) == 112


def test_commit_id_vector():
    assert make_commit_id("aabbccddee", 0) == "3a904b5371a39495ed468856437d3ffc598edf9b36d1a4dcf710f9840bb8135b"


def test_nonces_start_at_zero_and_increment_per_owner():
    nonces = NonceTable(Buckets(MemoryKeyValue()))
    assert nonces.current("a") == 0
    assert nonces.increment("a") == 1
    assert nonces.increment("a") == 2
    assert nonces.current("b") == 0
    assert make_commit_id("a", 1) != make_commit_id("a", 2)
