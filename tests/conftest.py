"""Shared fixtures for validator directory tests."""

import pytest

from valdir.config import ChainSpec
from valdir.validator_directory import ValidatorDirectoryBuilder

DETERMINISTIC_INDEX = 42


@pytest.fixture
def minimal_spec():
    """Minimal preset chain spec (8 slots per epoch)."""
    return ChainSpec.minimal()


@pytest.fixture
def base_dir(tmp_path):
    """Base path that validator directories are created in."""
    return tmp_path / "validators"


def build_full_directory(base_path, spec, index=None):
    """Run every builder step, using interop keys when ``index`` is given."""
    builder = (
        ValidatorDirectoryBuilder()
        .spec(spec)
        .slots_per_epoch(spec.slots_per_epoch)
        .full_deposit_amount()
    )
    if index is None:
        builder = builder.thread_random_keypairs()
    else:
        builder = builder.insecure_keypairs(index)
    return (
        builder.create_directory(base_path)
        .write_keypair_files()
        .write_eth1_data_file()
        .create_sqlite_slashing_dbs()
        .build()
    )


def build_signing_directory(base_path, spec, index):
    """Build a directory with keys and slashing protection but no deposit data."""
    return (
        ValidatorDirectoryBuilder()
        .spec(spec)
        .slots_per_epoch(spec.slots_per_epoch)
        .insecure_keypairs(index)
        .create_directory(base_path)
        .write_keypair_files()
        .create_sqlite_slashing_dbs()
        .build()
    )


@pytest.fixture
def full_directory(base_dir, minimal_spec):
    """A fully built directory for the deterministic keypair at index 42."""
    return build_full_directory(base_dir, minimal_spec, DETERMINISTIC_INDEX)


@pytest.fixture
def signing_directory(base_dir, minimal_spec):
    """A directory without deposit data, cheap to build (no signing)."""
    return build_signing_directory(base_dir, minimal_spec, 7)


@pytest.fixture
def make_full_directory():
    return build_full_directory


@pytest.fixture
def make_signing_directory():
    return build_signing_directory
