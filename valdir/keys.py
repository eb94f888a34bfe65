"""Validator keypairs and the keypair file codec."""

import logging
import secrets
from dataclasses import dataclass, field

from .crypto import CURVE_ORDER, keygen, pubkey_from_privkey, sha256, sign
from .exceptions import KeypairDecodeError
from .spec.constants import BLS_PUBKEY_LENGTH, BLS_SECRET_KEY_LENGTH
from .spec.types import BLSPubkey, BLSSecretKey, SszKeypair
from . import ssz

logger = logging.getLogger(__name__)

KEYPAIR_FILE_LENGTH = BLS_PUBKEY_LENGTH + BLS_SECRET_KEY_LENGTH


@dataclass(frozen=True)
class Keypair:
    """A BLS keypair. The secret key is kept out of repr."""

    pubkey: bytes
    privkey: int = field(repr=False)

    @classmethod
    def from_privkey(cls, privkey: int) -> "Keypair":
        return cls(pubkey=pubkey_from_privkey(privkey), privkey=privkey)

    @classmethod
    def random(cls) -> "Keypair":
        """Generate a keypair from fresh OS randomness."""
        return cls.from_privkey(keygen(secrets.token_bytes(32)))

    def sign(self, message: bytes) -> bytes:
        return sign(self.privkey, message)

    @property
    def pubkey_hex(self) -> str:
        return "0x" + self.pubkey.hex()


def deterministic_privkey(index: int) -> int:
    """Interop secret key for a validator index.

    Insecure: for tests and local devnets only.
    """
    digest = sha256(index.to_bytes(32, "little"))
    return int.from_bytes(digest, "little") % CURVE_ORDER


def generate_deterministic_keypair(index: int) -> Keypair:
    """Return the interop keypair for ``index``. Do not store value in these keys."""
    if index < 0:
        raise ValueError(f"Keypair index must be non-negative, got {index}")
    return Keypair.from_privkey(deterministic_privkey(index))


def encode_keypair(keypair: Keypair) -> bytes:
    """Encode a keypair into the fixed-length file layout (pubkey || big-endian secret)."""
    container = SszKeypair(
        pubkey=BLSPubkey(keypair.pubkey),
        privkey=BLSSecretKey(keypair.privkey.to_bytes(BLS_SECRET_KEY_LENGTH, "big")),
    )
    return ssz.encode(container)


def decode_keypair(data: bytes) -> Keypair:
    """Decode a keypair file.

    Only the layout is checked; the public key is not re-derived from the
    secret key.
    """
    if len(data) != KEYPAIR_FILE_LENGTH:
        raise KeypairDecodeError(
            f"Unable to decode keypair: expected {KEYPAIR_FILE_LENGTH} bytes, got {len(data)}"
        )
    try:
        container = ssz.decode(SszKeypair, data)
    except Exception as e:
        raise KeypairDecodeError(f"Unable to decode keypair: {e}") from e

    return Keypair(
        pubkey=bytes(container.pubkey),
        privkey=int.from_bytes(bytes(container.privkey), "big"),
    )


__all__ = [
    "Keypair",
    "KEYPAIR_FILE_LENGTH",
    "deterministic_privkey",
    "generate_deterministic_keypair",
    "encode_keypair",
    "decode_keypair",
]
