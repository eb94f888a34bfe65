"""Consensus types and constants used by validator directories."""

from . import constants
from .types import DepositData, DepositMessage, ForkData, SigningData, SszKeypair

__all__ = [
    "constants",
    "DepositData",
    "DepositMessage",
    "ForkData",
    "SigningData",
    "SszKeypair",
]
