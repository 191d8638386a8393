import pytest

from randbroker.adapters.accounts import CHARSET, Bech32Accounts, checksum_spec
from randbroker.errors import InvalidAddress

from .conftest import BOT, OWNER, USER

# BIP-0173 / BIP-0350 test vectors.
BECH32_VALID = [
    "A12UEL5L",
    "a12uel5l",
    "abcdef1qpzry9x8gf2tvdw0s3jn54khce6mua7lmqqqxw",
    "?1ezyfcl",
    "an83characterlonghumanreadablepartthatcontainsthenumber1andtheexcludedcharactersbio1tt5tgs",
]
BECH32M_VALID = [
    "a1lqfn3a",
    "abcdef1l7aum6echk45nj3s0wdvt2fg8x9yrzpqzd3ryx",
    "aura1venxvenxvenxvenxvenxvenxvenxvenxsccnn6",
]


@pytest.fixture()
def accounts() -> Bech32Accounts:
    return Bech32Accounts()


@pytest.mark.parametrize("address", BECH32_VALID + BECH32M_VALID + [OWNER, USER, BOT])
def test_valid_addresses_accepted(accounts, address):
    assert accounts.addr_validate(address) == address.lower()


def test_checksum_flavour():
    def data(addr):
        return [CHARSET.index(c) for c in addr[addr.rfind("1") + 1:]]

    assert checksum_spec("aura", data(OWNER)) == "bech32"
    assert checksum_spec("abcdef", data(BECH32M_VALID[1])) == "bech32m"
    assert checksum_spec("aura", data(OWNER[:-1] + "q")) is None


@pytest.mark.parametrize(
    "address,reason",
    [
        (OWNER[:-1] + "q", "checksum mismatch"),
        (USER[:10] + ("q" if USER[10] != "q" else "p") + USER[11:], "checksum mismatch"),
        ("A1G7SGD8", "checksum mismatch"),  # checksum over the uppercase prefix
        ("Aura" + OWNER[4:], "mixed-case address"),
        ("x1b4n0q5v", "invalid data character"),
        ("li1dgmt3", "invalid position of separator '1'"),
        ("pzry9x0s0muk", "invalid position of separator '1'"),
        ("1pzry9x0s0muk", "invalid position of separator '1'"),
        ("x", "invalid position of separator '1'"),
        ("an84characterslonghumanreadablepartthatcontainsthenumber1andtheexcludedcharactersbio1569pvx", "address too long"),
        ("", "address must be a non-empty string"),
    ],
)
def test_invalid_addresses_rejected(accounts, address, reason):
    with pytest.raises(InvalidAddress) as ei:
        accounts.addr_validate(address)
    assert ei.value.message == reason


def test_uppercase_form_is_canonicalized(accounts):
    assert accounts.addr_validate(OWNER.upper()) == OWNER


def test_prefix_pinning():
    pinned = Bech32Accounts(hrp="aura")
    assert pinned.addr_validate(USER) == USER
    with pytest.raises(InvalidAddress) as ei:
        pinned.addr_validate(BECH32_VALID[2])
    assert ei.value.message == "address prefix must be 'aura'"


def test_non_string_rejected(accounts):
    with pytest.raises(InvalidAddress):
        accounts.addr_validate(None)  # type: ignore[arg-type]
