"""
Account validation collaborator.

The broker never interprets addresses itself; it asks an :class:`AccountApi`
whether a string is a valid account and uses the canonical form returned.
Hosts embedding the broker in a chain runtime pass their own implementation.

:class:`Bech32Accounts` is the default for standalone hosts and tests. It
decodes `<hrp>1<data><checksum>` per BIP-0173 / BIP-0350 and accepts either
checksum constant (chain accounts use Bech32, newer formats Bech32m).

References
----------
BIP-0173: https://github.com/bitcoin/bips/blob/master/bip-0173.mediawiki
BIP-0350: https://github.com/bitcoin/bips/blob/master/bip-0350.mediawiki
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from ..errors import InvalidAddress


class AccountApi(Protocol):
    def addr_validate(self, address: str) -> str:
        """Return the canonical form of `address` or raise InvalidAddress."""
        ...


CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
CHARSET_REV = {c: i for i, c in enumerate(CHARSET)}

_BECH32_CONST = 1
_BECH32M_CONST = 0x2BC830A3
_GENERATORS = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_CHECKSUM_LEN = 6


def _polymod(values: Sequence[int]) -> int:
    chk = 1
    for v in values:
        top = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ v
        for i in range(5):
            if (top >> i) & 1:
                chk ^= _GENERATORS[i]
    return chk


def _hrp_expand(hrp: str) -> List[int]:
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def checksum_spec(hrp: str, data: Sequence[int]) -> Optional[str]:
    """"bech32" / "bech32m" when the trailing checksum verifies, else None."""
    pm = _polymod(_hrp_expand(hrp) + list(data))
    if pm == _BECH32_CONST:
        return "bech32"
    if pm == _BECH32M_CONST:
        return "bech32m"
    return None


class Bech32Accounts:
    """
    Full Bech32 decode: single case, HRP of printable ASCII, data part from
    the Bech32 alphabet, a valid checksum and a total length of at most
    `max_len`. When `hrp` is given, the prefix must match it. The canonical
    form is the lowercase string.
    """

    def __init__(self, hrp: Optional[str] = None, *, max_len: int = 90) -> None:
        self.hrp = hrp
        self.max_len = max_len

    def addr_validate(self, address: str) -> str:
        if not isinstance(address, str) or not address:
            raise InvalidAddress(str(address), message="address must be a non-empty string")
        if address != address.lower() and address != address.upper():
            raise InvalidAddress(address, message="mixed-case address")
        if len(address) > self.max_len:
            raise InvalidAddress(address, message="address too long")
        canonical = address.lower()

        pos = canonical.rfind("1")
        if pos < 1 or pos + 1 + _CHECKSUM_LEN > len(canonical):
            raise InvalidAddress(address, message="invalid position of separator '1'")
        hrp, data_part = canonical[:pos], canonical[pos + 1:]
        if any(ord(c) < 33 or ord(c) > 126 for c in hrp):
            raise InvalidAddress(address, message="invalid prefix characters")
        try:
            data = [CHARSET_REV[c] for c in data_part]
        except KeyError:
            raise InvalidAddress(address, message="invalid data character") from None
        if checksum_spec(hrp, data) is None:
            raise InvalidAddress(address, message="checksum mismatch")
        if self.hrp is not None and hrp != self.hrp:
            raise InvalidAddress(address, message=f"address prefix must be {self.hrp!r}")
        return canonical


__all__ = ["AccountApi", "Bech32Accounts", "checksum_spec"]
