"""Slashing protection databases."""

from .history import AttestationHistory, BlockHistory, ValidatorHistory

__all__ = ["ValidatorHistory", "AttestationHistory", "BlockHistory"]
