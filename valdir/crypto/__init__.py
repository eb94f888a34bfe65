"""Cryptographic utilities.

BLS12-381 signatures via py_ecc (G2 proof-of-possession ciphersuite, as used
by the beacon chain).
"""

import hashlib
import logging
from typing import Optional

from py_ecc.bls import G2ProofOfPossession as _py_ecc_bls
from py_ecc.optimized_bls12_381 import curve_order

logger = logging.getLogger(__name__)

CURVE_ORDER = curve_order


def sha256(data: bytes) -> bytes:
    """Compute SHA256 hash."""
    return hashlib.sha256(data).digest()


def hash_tree_root(obj) -> bytes:
    """Compute the hash tree root of an SSZ object or return bytes directly.

    Args:
        obj: SSZ object with hash_tree_root() method, or 32-byte root

    Returns:
        32-byte hash tree root
    """
    if isinstance(obj, bytes):
        if len(obj) == 32:
            return obj
        raise ValueError(f"Expected 32-byte root, got {len(obj)} bytes")

    if hasattr(obj, 'hash_tree_root'):
        return bytes(obj.hash_tree_root())

    raise TypeError(f"Cannot compute hash_tree_root of {type(obj)}")


def compute_fork_data_root(current_version: bytes, genesis_validators_root: bytes) -> bytes:
    """Return the 32-byte fork data root for the current fork version."""
    from valdir.spec.types import ForkData, Root, Version

    return hash_tree_root(
        ForkData(
            current_version=Version(current_version),
            genesis_validators_root=Root(genesis_validators_root),
        )
    )


def compute_domain(
    domain_type: bytes,
    fork_version: Optional[bytes] = None,
    genesis_validators_root: Optional[bytes] = None,
) -> bytes:
    """Return the domain for signing.

    Deposits are signed against the genesis fork version with an empty
    validators root, so they are valid across forks.

    Args:
        domain_type: 4-byte domain type
        fork_version: 4-byte fork version (defaults to zeros)
        genesis_validators_root: 32-byte genesis validators root (defaults to zeros)

    Returns:
        32-byte domain
    """
    if fork_version is None:
        fork_version = b"\x00\x00\x00\x00"
    if genesis_validators_root is None:
        genesis_validators_root = b"\x00" * 32

    fork_data_root = compute_fork_data_root(fork_version, genesis_validators_root)
    return domain_type + fork_data_root[:28]


def compute_signing_root(obj, domain: bytes) -> bytes:
    """Compute the signing root for a message and domain.

    Args:
        obj: SSZ object or 32-byte root
        domain: 32-byte domain

    Returns:
        32-byte signing root
    """
    from valdir.spec.types import Domain, SigningData, Root

    signing_data = SigningData(
        object_root=Root(hash_tree_root(obj)),
        domain=Domain(domain),
    )
    return hash_tree_root(signing_data)


def keygen(ikm: bytes) -> int:
    """Derive a secret key from at least 32 bytes of input key material."""
    return _py_ecc_bls.KeyGen(ikm)


def sign(privkey: int, message: bytes) -> bytes:
    """Sign a message with a BLS private key."""
    return _py_ecc_bls.Sign(privkey, message)


def verify(pubkey: bytes, message: bytes, signature: bytes) -> bool:
    """Verify a BLS signature."""
    try:
        return _py_ecc_bls.Verify(pubkey, message, signature)
    except Exception as e:
        logger.debug(f"Signature verification raised: {e}")
        return False


def pubkey_from_privkey(privkey: int) -> bytes:
    """Derive public key from private key."""
    return _py_ecc_bls.SkToPk(privkey)


def get_withdrawal_credentials(pubkey: bytes, prefix_byte: int) -> bytes:
    """Return BLS withdrawal credentials: prefix byte followed by sha256(pubkey)[1:]."""
    return bytes([prefix_byte]) + sha256(pubkey)[1:]


__all__ = [
    "CURVE_ORDER",
    "sha256",
    "hash_tree_root",
    "compute_fork_data_root",
    "compute_domain",
    "compute_signing_root",
    "keygen",
    "sign",
    "verify",
    "pubkey_from_privkey",
    "get_withdrawal_credentials",
]
