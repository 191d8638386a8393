"""
Oracle signature gate.

Verifies that a data blob was signed by the pinned oracle operator: the blob
is hashed with SHA-512 and checked against an RSA PKCS#1 v1.5 signature. The
public key (modulus + exponent) is compiled in; trust is pinned to a single
operator and is not configurable at runtime.

Outcomes are kept distinct:
  * signature decodes and verifies  -> True
  * signature decodes, fails check  -> False (a normal outcome, not a fault)
  * signature is not valid base64   -> :class:`~randbroker.errors.ParseError`

The :class:`SignatureVerifier` wrapper lets hosts and tests inject a different
key; the broker uses :meth:`SignatureVerifier.from_pinned` unless told otherwise.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from functools import lru_cache

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..errors import ParseError

log = logging.getLogger(__name__)

# random.org signing key (https://api.random.org/server.crt), 4096-bit
MODULUS_HEX: str = (
    "ecedc74162e74f30828ffab0a08e2f8ff4fddb7ef07bbe2bc1c256db0e12bb320a565027e72"
    "85a25c69e429769987c2642ddda53c1b56daee7df197b85d78f921f9a12460cde254e84965d9022a3cf0db1ee55124089d"
    "992c827b3c47888692524f2275fa7e606312bb7562b8c8f01e47ab3de4a226e4a8866056e67541f26881b9acad3eb88a68"
    "220dd786dd70dc398e320f34bbdf86cda9150d6216b76839f0bf1aee6f23217d6b41976cba9d72836de30a27d356bbbdb7"
    "57b2fe04615e12f60c3eaf22791549ef271abca7925c4a22f46be0cc28eecb618124e5ece353b97f4ed59ea1b1722eaeab"
    "26e5120af44a83444d816726c49592bcb24cfb4eee58798dd160e1098705411fcdf71640c9318f82db0ef447327e5422ba"
    "1f900ee0fbded67ff2109d9ce195987e0e021bde38d70f9d06a89b1dedc774a23259bb319fe812d267c836299389dcab41"
    "d6efe76781d541474fe99368a77984c7b3226abef04838d1cc68386b27f11daf293ad13aa3ca5ed1dee556edd74c70bd90"
    "be6a6775ea95de92c7db49d99436a038d33e53c885818c2dd78485799852b8670c2869389ad6bec6ff7a1e0cdfcb1651c7"
    "0141397db01bd6464adb4826b3971640f98e4a38f109dcd211f068ca14dc1b77c064f589372e76e8712a7713cd81543d60"
    "8b8cd177d32d0610a519cfffc62f12e56ac5868f25fac67e742abf8ae5582d39065"
)
EXPONENT: int = 0x010001


def decode_signature(signature: str) -> bytes:
    try:
        return base64.b64decode(signature, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ParseError("Invalid base64 string!") from e


def encode_data(data: str) -> bytes:
    try:
        return data.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ParseError("Invalid data string!") from e


@dataclass(frozen=True)
class SignatureVerifier:
    public_key: rsa.RSAPublicKey

    @classmethod
    def from_numbers(cls, n: int, e: int = EXPONENT) -> "SignatureVerifier":
        return cls(rsa.RSAPublicNumbers(e, n).public_key())

    @classmethod
    def from_pinned(cls) -> "SignatureVerifier":
        return _pinned()

    def verify(self, data: str, signature: str) -> bool:
        sig = decode_signature(signature)
        blob = encode_data(data)
        try:
            self.public_key.verify(sig, blob, padding.PKCS1v15(), hashes.SHA512())
        except InvalidSignature:
            log.debug("oracle signature rejected (sig=%s…)", signature[:16])
            return False
        return True


@lru_cache(maxsize=1)
def _pinned() -> SignatureVerifier:
    return SignatureVerifier.from_numbers(int(MODULUS_HEX, 16), EXPONENT)


def verify_message(data: str, signature: str) -> bool:
    """Verify `signature` (base64) over `data` against the pinned oracle key."""
    return _pinned().verify(data, signature)


__all__ = ["MODULUS_HEX", "EXPONENT", "SignatureVerifier", "decode_signature", "encode_data", "verify_message"]
