"""Tests for keypairs and the keypair file codec."""

import pytest

from valdir.crypto import CURVE_ORDER, pubkey_from_privkey
from valdir.exceptions import KeypairDecodeError
from valdir.keys import (
    KEYPAIR_FILE_LENGTH,
    Keypair,
    decode_keypair,
    deterministic_privkey,
    encode_keypair,
    generate_deterministic_keypair,
)

# Interop keypair for validator index 0.
INTEROP_PRIVKEY_0 = 0x25295F0D1D592A90B333E26E85149708208E9F8E8BC18F6C77BD62F8AD7A6866
INTEROP_PUBKEY_0 = bytes.fromhex(
    "a99a76ed7796f7be22d5b7e85deeb7c5677e88e511e0b337618f8c4eb61349b4"
    "bf2d153f649f7b53359fe8b94a38e44c"
)


def test_interop_keypair_index_0():
    keypair = generate_deterministic_keypair(0)

    assert keypair.privkey == INTEROP_PRIVKEY_0
    assert keypair.pubkey == INTEROP_PUBKEY_0


def test_deterministic_keypairs_are_stable_and_distinct():
    assert generate_deterministic_keypair(42) == generate_deterministic_keypair(42)
    assert generate_deterministic_keypair(42) != generate_deterministic_keypair(43)
    assert 0 < deterministic_privkey(42) < CURVE_ORDER


def test_negative_index_rejected():
    with pytest.raises(ValueError):
        generate_deterministic_keypair(-1)


def test_random_keypairs_differ():
    first = Keypair.random()
    second = Keypair.random()

    assert first != second
    assert first.pubkey == pubkey_from_privkey(first.privkey)
    assert len(first.pubkey) == 48


def test_repr_hides_secret_key():
    keypair = generate_deterministic_keypair(1)

    assert str(keypair.privkey) not in repr(keypair)
    assert hex(keypair.privkey)[2:] not in repr(keypair)


class TestKeypairCodec:
    def test_layout(self):
        keypair = generate_deterministic_keypair(2)
        encoded = encode_keypair(keypair)

        assert len(encoded) == KEYPAIR_FILE_LENGTH == 80
        assert encoded[:48] == keypair.pubkey
        assert int.from_bytes(encoded[48:], "big") == keypair.privkey
        assert decode_keypair(encoded) == keypair

    @pytest.mark.parametrize("length", [0, 1, 48, 79, 81, 160])
    def test_wrong_length_rejected(self, length):
        with pytest.raises(KeypairDecodeError, match="Unable to decode keypair"):
            decode_keypair(b"\x01" * length)

    def test_no_consistency_check(self):
        # A mismatched pair decodes as written; consistency is the writer's job.
        pubkey = generate_deterministic_keypair(3).pubkey
        privkey = generate_deterministic_keypair(4).privkey
        data = pubkey + privkey.to_bytes(32, "big")

        decoded = decode_keypair(data)
        assert decoded.pubkey == pubkey
        assert decoded.privkey == privkey
