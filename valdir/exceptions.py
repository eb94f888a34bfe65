"""Exceptions for validator directory management."""


class ValidatorDirectoryError(Exception):
    """Base error for validator directory operations."""


class MissingPrerequisiteError(ValidatorDirectoryError):
    """A builder step ran before one of the steps it depends on."""

    def __init__(self, step: str, requirement: str):
        self.step = step
        self.requirement = requirement
        super().__init__(f"{step} requires {requirement}")


class CollisionError(ValidatorDirectoryError):
    """A file or directory that must be created fresh already exists."""

    def __init__(self, message: str, path):
        self.path = path
        super().__init__(f"{message}: {path}")


class DirectoryExistsError(CollisionError):
    """Validator directory already exists."""

    def __init__(self, path):
        super().__init__("Validator directory already exists", path)


class KeyFileExistsError(CollisionError):
    """Keypair file already exists."""

    def __init__(self, path):
        super().__init__("Keypair file already exists at", path)


class DepositFileExistsError(CollisionError):
    """Eth1 deposit data file already exists."""

    def __init__(self, path):
        super().__init__("Eth1 data file already exists at", path)


class ValidatorDirectoryIOError(ValidatorDirectoryError):
    """Underlying filesystem operation failed."""


class DirectoryNotFoundError(ValidatorDirectoryError):
    """Validator directory does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Validator directory does not exist: {path}")


class DecodeError(ValidatorDirectoryError):
    """Persisted bytes could not be decoded."""


class KeypairDecodeError(DecodeError):
    """Malformed or truncated keypair file."""


class DepositDataDecodeError(DecodeError):
    """Malformed eth1 deposit data file or payload."""


class SlashingProtectionError(ValidatorDirectoryError):
    """Error from a slashing protection database."""


class SlashingProtectionNotFoundError(SlashingProtectionError):
    """Slashing protection database missing."""


class SlashingProtectionExistsError(SlashingProtectionError):
    """Attempted to create a slashing protection database that already exists."""


class SlotsPerEpochError(SlashingProtectionError):
    """The slots_per_epoch parameter is unset or undecodable."""


class InvalidParameterError(ValidatorDirectoryError, ValueError):
    """A builder parameter is out of range."""
