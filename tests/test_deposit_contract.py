"""Tests for deposit contract transaction data."""

import pytest

from valdir import ssz
from valdir.crypto import get_withdrawal_credentials, sha256
from valdir.deposit_contract import (
    DEPOSIT_FUNCTION_SELECTOR,
    create_deposit_data,
    decode_eth1_tx_data,
    encode_eth1_tx_data,
    from_deposit_file_text,
    to_deposit_file_text,
    verify_deposit_signature,
)
from valdir.exceptions import DepositDataDecodeError
from valdir.keys import generate_deterministic_keypair


@pytest.fixture(scope="module")
def signed_deposit():
    from valdir.config import ChainSpec

    spec = ChainSpec.minimal()
    voting = generate_deterministic_keypair(20)
    withdrawal = generate_deterministic_keypair(21)
    deposit = create_deposit_data(voting, withdrawal.pubkey, spec.max_effective_balance, spec)
    return spec, voting, withdrawal, deposit


def test_function_selector():
    assert DEPOSIT_FUNCTION_SELECTOR.hex() == "22895118"


def test_withdrawal_credentials():
    pubkey = generate_deterministic_keypair(0).pubkey
    credentials = get_withdrawal_credentials(pubkey, 0)

    assert len(credentials) == 32
    assert credentials[0] == 0
    assert credentials[1:] == sha256(pubkey)[1:]


def test_deposit_data_fields(signed_deposit):
    spec, voting, withdrawal, deposit = signed_deposit

    assert bytes(deposit.pubkey) == voting.pubkey
    assert bytes(deposit.withdrawal_credentials) == get_withdrawal_credentials(
        withdrawal.pubkey, spec.bls_withdrawal_prefix_byte
    )
    assert int(deposit.amount) == spec.max_effective_balance
    assert bytes(deposit.signature) != b"\x00" * 96


def test_deposit_signature_verifies(signed_deposit):
    spec, _, _, deposit = signed_deposit

    assert verify_deposit_signature(deposit, spec)


def test_signature_is_domain_separated(signed_deposit):
    from valdir.config import ChainSpec

    _, _, _, deposit = signed_deposit
    other = ChainSpec.mainnet()
    other.genesis_fork_version = b"\x10\x00\x00\x38"

    assert not verify_deposit_signature(deposit, other)


def test_encode_decode(signed_deposit):
    spec, _, _, deposit = signed_deposit
    payload = encode_eth1_tx_data(deposit)

    assert payload[:4] == DEPOSIT_FUNCTION_SELECTOR
    # selector + 4 head words + padded pubkey, credentials and signature
    assert len(payload) == 4 + 32 * 4 + (32 + 64) + (32 + 32) + (32 + 96)

    decoded, root = decode_eth1_tx_data(payload, spec.max_effective_balance)
    assert ssz.encode(decoded) == ssz.encode(deposit)
    assert root == bytes(deposit.hash_tree_root())


def test_decode_with_wrong_amount_fails(signed_deposit):
    spec, _, _, deposit = signed_deposit
    payload = encode_eth1_tx_data(deposit)

    with pytest.raises(DepositDataDecodeError, match="root mismatch"):
        decode_eth1_tx_data(payload, spec.max_effective_balance - 1)


def test_decode_rejects_other_selector(signed_deposit):
    spec, _, _, deposit = signed_deposit
    payload = b"\xde\xad\xbe\xef" + encode_eth1_tx_data(deposit)[4:]

    with pytest.raises(DepositDataDecodeError, match="selector"):
        decode_eth1_tx_data(payload, spec.max_effective_balance)


def test_decode_rejects_truncated_payload(signed_deposit):
    spec, _, _, deposit = signed_deposit
    payload = encode_eth1_tx_data(deposit)[:100]

    with pytest.raises(DepositDataDecodeError):
        decode_eth1_tx_data(payload, spec.max_effective_balance)


class TestDepositFileText:
    def test_format(self):
        assert to_deposit_file_text(b"\x00\xab\xff") == "0x00abff"
        assert from_deposit_file_text("0x00abff") == b"\x00\xab\xff"

    def test_empty_payload(self):
        assert from_deposit_file_text("0x") == b""

    @pytest.mark.parametrize("text", ["00abff", "0X00abff", " 0x00abff", "x000abff"])
    def test_prefix_required(self, text):
        with pytest.raises(DepositDataDecodeError, match="did not start with 0x"):
            from_deposit_file_text(text)

    @pytest.mark.parametrize("text", ["0xzz", "0xabc", "0xab cd", "0xabcd\n", "0x\tab"])
    def test_invalid_hex(self, text):
        with pytest.raises(DepositDataDecodeError, match="as hex"):
            from_deposit_file_text(text)
