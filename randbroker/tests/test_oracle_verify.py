import base64

import pytest

from randbroker.errors import ParseError
from randbroker.oracle.verify import MODULUS_HEX, SignatureVerifier, decode_signature, verify_message

# A published signed integer-generation result and its signature.
SIGNED_DATA = (
    '{"method":"generateSignedIntegers","hashedApiKey":"oT3AdLMVZKajz0pgW/8Z+t5sGZkqQSOnAi1aB8Li0tXgWf8LolrgdQ1wn9sKx1ehxhUZmhwUIpAtM8QeRbn51Q==",'
    '"n":6,"min":1,"max":6,"replacement":true,"base":10,"data":[6,1,4,4,3,6],'
    '"completionTime":"2014-06-03 17:15:13Z","serialNumber":79924}'
)
SIGNATURE = (
    "XWTB2PiGutI86GYDNIEiYvbTkAC1PQO3U2A/Depb2m2W4zUF81UFjTthCNmvPYFdnrBlGMgS7mo1rNUKfkVU9M0Yv0fPkjVaYoDo3ADOw1DGtENtU+Em+Clhowz+FQEhfUTLOBTfruYpnb1CSjbovo8AzjHF0pb+0F8awVMZPuHEhjE8oHJcQInVXmkLq/IR5WNcM0E0ygRQto37NE9CIFDst+5WAN7UmlqYTNil+iqmzjj92vTDlHr+Gh3bhgxb+aR9rabpaGQni2MlyXH0kGCrbAdryvCzUTZ/SxXY6MWfmNFODzvibcO2j//GFm/Z8uyVuyeAt5GNO0QQipWvv8eauALAW87JDLw8vgYcbFapHIAsWOyrhD9tMMmaejKzc+leMwvs0BSy6I8jwLBy6MlcPUHO3i4JFs+0qstKtqaVzmUGm+fnfJPZLySHBBazrX0tMpn36FyiE3wn8XYncOJM1ylUNdT9j2A+xp3ZuoMkr4+Fv6Flh444B+eeqEdZTlgSmXDh7VFoCrcks4QO2KJ0ajzltNv42fO5KdizOPg1fV1totJivzsxA4i0+RnhpPO9tdT4iYjBcuNSdh9nYDtcn7cizODaCr6Y+oOzfIktBok19YjebgMd+AbDhkVmHmPEsaOuL62eqdmCobwPJUjVtM8cgccQqfkfek30uK4="
)


def test_pinned_modulus_is_4096_bits():
    assert len(MODULUS_HEX) == 1024
    assert int(MODULUS_HEX, 16).bit_length() == 4096


def test_known_report_verifies():
    assert verify_message(SIGNED_DATA, SIGNATURE) is True


def test_other_data_does_not_verify():
    assert verify_message("some random data", SIGNATURE) is False


def test_single_byte_change_does_not_verify():
    tampered = SIGNED_DATA.replace('"serialNumber":79924', '"serialNumber":79925')
    assert verify_message(tampered, SIGNATURE) is False


def test_invalid_base64_is_parse_error():
    with pytest.raises(ParseError) as ei:
        verify_message("some random data", "@#*" + SIGNATURE[3:])
    assert ei.value.message == "Invalid base64 string!"


def test_decode_signature_roundtrips_bytes():
    raw = decode_signature(SIGNATURE)
    assert len(raw) == 512
    assert base64.b64encode(raw).decode() == SIGNATURE


def test_injected_key(oracle_key):
    sig = oracle_key.sign("hello")
    assert oracle_key.verifier.verify("hello", sig) is True
    assert oracle_key.verifier.verify("hellO", sig) is False
    # the pinned key does not accept a foreign signature
    assert SignatureVerifier.from_pinned().verify("hello", sig) is False


def test_unencodable_data_is_parse_error(oracle_key):
    sig = oracle_key.sign("hello")
    with pytest.raises(ParseError) as ei:
        oracle_key.verifier.verify("hel\ud800lo", sig)
    assert ei.value.message == "Invalid data string!"
    with pytest.raises(ParseError):
        verify_message("\udfff", SIGNATURE)
