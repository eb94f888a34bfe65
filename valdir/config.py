"""Protocol parameters needed to build validator directories."""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from .crypto import compute_domain
from .spec.constants import (
    BLS_WITHDRAWAL_PREFIX,
    DOMAIN_DEPOSIT,
    GENESIS_FORK_VERSION,
    MAX_EFFECTIVE_BALANCE,
    MINIMAL_GENESIS_FORK_VERSION,
    PRESETS,
    SLOTS_PER_EPOCH,
)

logger = logging.getLogger(__name__)


@dataclass
class ChainSpec:
    """Chain parameters, loadable from a consensus config yaml."""

    config_name: str = "mainnet"
    preset_base: str = "mainnet"

    slots_per_epoch: int = SLOTS_PER_EPOCH("mainnet")
    max_effective_balance: int = MAX_EFFECTIVE_BALANCE
    bls_withdrawal_prefix_byte: int = BLS_WITHDRAWAL_PREFIX

    genesis_fork_version: bytes = field(default_factory=lambda: GENESIS_FORK_VERSION)
    domain_deposit: bytes = field(default_factory=lambda: DOMAIN_DEPOSIT)

    @classmethod
    def mainnet(cls) -> "ChainSpec":
        return cls()

    @classmethod
    def minimal(cls) -> "ChainSpec":
        """Create a minimal preset configuration for testing."""
        spec = cls()
        spec.config_name = "minimal"
        spec.preset_base = "minimal"
        spec.slots_per_epoch = SLOTS_PER_EPOCH("minimal")
        spec.genesis_fork_version = MINIMAL_GENESIS_FORK_VERSION
        return spec

    @classmethod
    def for_preset(cls, preset: str) -> "ChainSpec":
        if preset not in PRESETS:
            raise ValueError(f"Unknown preset: {preset}")
        return cls.minimal() if preset == "minimal" else cls.mainnet()

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ChainSpec":
        """Load chain spec from a yaml file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict) -> "ChainSpec":
        """Create a chain spec from a dictionary of upper-case config keys.

        The preset named by PRESET_BASE provides defaults for absent keys.
        """
        preset = str(data.get("PRESET_BASE", "mainnet")).strip("'\"")
        spec = cls.for_preset(preset)
        field_names = {f.name for f in fields(cls)}
        for key, value in data.items():
            attr_name = key.lower()
            if attr_name == "bls_withdrawal_prefix":
                attr_name = "bls_withdrawal_prefix_byte"
            if attr_name not in field_names:
                continue
            if isinstance(value, str) and value.startswith("0x"):
                value = bytes.fromhex(value[2:])
            if attr_name == "genesis_fork_version" and isinstance(value, int):
                value = value.to_bytes(4, "big")
            if attr_name == "bls_withdrawal_prefix_byte" and isinstance(value, bytes):
                value = value[0]
            setattr(spec, attr_name, value)

        logger.debug(f"Loaded chain spec {spec.config_name} (preset {spec.preset_base})")
        return spec

    def deposit_domain(self) -> bytes:
        """Return the domain deposits are signed under."""
        return compute_domain(self.domain_deposit, self.genesis_fork_version)
