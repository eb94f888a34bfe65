"""Validator directories: keys, deposit data and slashing protection on disk."""

import logging

from .config import ChainSpec
from .exceptions import ValidatorDirectoryError
from .keys import Keypair, generate_deterministic_keypair
from .validator_directory import ValidatorDirectory, ValidatorDirectoryBuilder

__version__ = "0.1.0"


def setup_logging(level: str = "INFO") -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


__all__ = [
    "ChainSpec",
    "Keypair",
    "ValidatorDirectory",
    "ValidatorDirectoryBuilder",
    "ValidatorDirectoryError",
    "generate_deterministic_keypair",
    "setup_logging",
]
