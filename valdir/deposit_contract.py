"""Eth1 deposit contract transaction data.

The payload is the calldata of a ``deposit(bytes,bytes,bytes,bytes32)`` call:
a 4-byte keccak selector followed by the ABI-encoded pubkey, withdrawal
credentials, signature and deposit data root.
"""

import logging
import re
from typing import TYPE_CHECKING

from Crypto.Hash import keccak
from eth_abi import decode, encode

from .crypto import compute_signing_root, get_withdrawal_credentials, hash_tree_root, verify
from .exceptions import DepositDataDecodeError
from .spec.constants import BLS_SIGNATURE_LENGTH, DEPOSIT_ARGUMENT_TYPES, DEPOSIT_FUNCTION_SIGNATURE
from .spec.types import BLSPubkey, BLSSignature, Bytes32, DepositData, DepositMessage, Gwei

if TYPE_CHECKING:
    from .config import ChainSpec
    from .keys import Keypair

logger = logging.getLogger(__name__)

EMPTY_SIGNATURE = b"\x00" * BLS_SIGNATURE_LENGTH
HEX_PREFIX = "0x"
HEX_BODY = re.compile(r"[0-9a-fA-F]*")


def keccak256(data: bytes) -> bytes:
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


DEPOSIT_FUNCTION_SELECTOR = keccak256(DEPOSIT_FUNCTION_SIGNATURE.encode("ascii"))[:4]


def create_deposit_data(
    voting_keypair: "Keypair",
    withdrawal_pubkey: bytes,
    amount: int,
    spec: "ChainSpec",
) -> DepositData:
    """Build and sign the deposit data for a validator.

    Args:
        voting_keypair: Keypair whose public key is registered and which signs the deposit
        withdrawal_pubkey: Public key the withdrawal credentials are derived from
        amount: Deposit amount in Gwei
        spec: Chain parameters (withdrawal prefix, deposit domain)

    Returns:
        Signed deposit data
    """
    withdrawal_credentials = get_withdrawal_credentials(
        withdrawal_pubkey, spec.bls_withdrawal_prefix_byte
    )

    deposit_data = DepositData(
        pubkey=BLSPubkey(voting_keypair.pubkey),
        withdrawal_credentials=Bytes32(withdrawal_credentials),
        amount=Gwei(amount),
        signature=BLSSignature(EMPTY_SIGNATURE),
    )

    signing_root = compute_signing_root(_deposit_message(deposit_data), spec.deposit_domain())
    deposit_data.signature = BLSSignature(voting_keypair.sign(signing_root))
    return deposit_data


def verify_deposit_signature(deposit_data: DepositData, spec: "ChainSpec") -> bool:
    """Check the deposit signature against the deposit domain."""
    signing_root = compute_signing_root(_deposit_message(deposit_data), spec.deposit_domain())
    return verify(bytes(deposit_data.pubkey), signing_root, bytes(deposit_data.signature))


def _deposit_message(deposit_data: DepositData) -> DepositMessage:
    return DepositMessage(
        pubkey=deposit_data.pubkey,
        withdrawal_credentials=deposit_data.withdrawal_credentials,
        amount=deposit_data.amount,
    )


def encode_eth1_tx_data(deposit_data: DepositData) -> bytes:
    """Encode deposit data as deposit contract calldata."""
    deposit_data_root = hash_tree_root(deposit_data)
    arguments = encode(
        list(DEPOSIT_ARGUMENT_TYPES),
        [
            bytes(deposit_data.pubkey),
            bytes(deposit_data.withdrawal_credentials),
            bytes(deposit_data.signature),
            deposit_data_root,
        ],
    )
    return DEPOSIT_FUNCTION_SELECTOR + arguments


def decode_eth1_tx_data(payload: bytes, amount: int) -> tuple[DepositData, bytes]:
    """Decode deposit contract calldata back into deposit data.

    The amount travels as the transaction value rather than in the calldata, so
    it must be supplied. The decoded deposit data root must match the root
    recomputed with that amount.

    Returns:
        (deposit data, deposit data root)
    """
    if payload[:4] != DEPOSIT_FUNCTION_SELECTOR:
        raise DepositDataDecodeError(
            f"Unexpected function selector: 0x{payload[:4].hex()}"
        )
    try:
        pubkey, withdrawal_credentials, signature, root = decode(
            list(DEPOSIT_ARGUMENT_TYPES), payload[4:]
        )
        deposit_data = DepositData(
            pubkey=BLSPubkey(pubkey),
            withdrawal_credentials=Bytes32(withdrawal_credentials),
            amount=Gwei(amount),
            signature=BLSSignature(signature),
        )
    except Exception as e:
        raise DepositDataDecodeError(f"Unable to decode eth1 deposit tx data: {e}") from e

    computed_root = hash_tree_root(deposit_data)
    if computed_root != bytes(root):
        raise DepositDataDecodeError(
            f"Deposit data root mismatch: payload has 0x{bytes(root).hex()}, "
            f"computed 0x{computed_root.hex()}"
        )
    return deposit_data, computed_root


def to_deposit_file_text(payload: bytes) -> str:
    """Render a payload in the deposit file format: 0x-prefixed lowercase hex."""
    return HEX_PREFIX + payload.hex()


def from_deposit_file_text(text: str) -> bytes:
    """Parse the deposit file format. Anything but an exact 0x prefix is rejected."""
    if not text.startswith(HEX_PREFIX):
        raise DepositDataDecodeError(f"String did not start with 0x: {text[:16]}")
    body = text[len(HEX_PREFIX):]
    # fromhex tolerates whitespace; the body must be pure hex
    if not HEX_BODY.fullmatch(body):
        raise DepositDataDecodeError(
            f"Unable to decode eth1 data file as hex: invalid character in {body[:16]!r}"
        )
    if len(body) % 2:
        raise DepositDataDecodeError(
            f"Unable to decode eth1 data file as hex: odd length {len(body)}"
        )
    return bytes.fromhex(body)


__all__ = [
    "DEPOSIT_FUNCTION_SELECTOR",
    "create_deposit_data",
    "verify_deposit_signature",
    "encode_eth1_tx_data",
    "decode_eth1_tx_data",
    "to_deposit_file_text",
    "from_deposit_file_text",
]
