"""On-disk validator directories.

A validator directory lives under a base path (e.g. ``~/.valdir/validators/``)
and is named after the validator's voting public key. It holds:

- ``voting_keypair`` and ``withdrawal_keypair``: encoded keypairs, mode 0600
- ``eth1_deposit_data.rlp``: 0x-prefixed hex of the deposit transaction data
- two SQLite slashing protection databases, one for attestations and one
  for block proposals; the block database also stores ``slots_per_epoch``

``ValidatorDirectoryBuilder`` creates directories; ``ValidatorDirectory.load_for_signing``
reopens one with only what is needed to sign.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .config import ChainSpec
from .deposit_contract import (
    create_deposit_data,
    encode_eth1_tx_data,
    from_deposit_file_text,
    to_deposit_file_text,
)
from .exceptions import (
    DepositDataDecodeError,
    DepositFileExistsError,
    DirectoryExistsError,
    DirectoryNotFoundError,
    InvalidParameterError,
    KeypairDecodeError,
    KeyFileExistsError,
    MissingPrerequisiteError,
    SlashingProtectionNotFoundError,
    SlotsPerEpochError,
    ValidatorDirectoryError,
    ValidatorDirectoryIOError,
)
from .keys import Keypair, decode_keypair, encode_keypair, generate_deterministic_keypair
from .slashing_protection import AttestationHistory, BlockHistory

logger = logging.getLogger(__name__)

VOTING_KEY_PREFIX = "voting"
WITHDRAWAL_KEY_PREFIX = "withdrawal"
ETH1_DEPOSIT_DATA_FILE = "eth1_deposit_data.rlp"
ATTESTER_SLASHING_DB = "attester_slashing_protection.sqlite"
BLOCK_PRODUCER_SLASHING_DB = "block_producer_slashing_protection.sqlite"

KEYPAIR_FILE_MODE = 0o600
MAX_UINT64 = 2**64 - 1

PathLike = Union[str, Path]


def keypair_file(prefix: str) -> str:
    """Return the filename of a keypair file."""
    return f"{prefix}_keypair"


def dir_name(voting_pubkey: bytes) -> str:
    """Return the directory name for a validator with the given voting key."""
    return "0x" + voting_pubkey.hex()


@dataclass(frozen=True)
class ValidatorDirectory:
    """The files of one validator directory, as loaded into memory."""

    directory: Path
    voting_keypair: Optional[Keypair] = None
    withdrawal_keypair: Optional[Keypair] = None
    deposit_data: Optional[bytes] = None
    attestation_slashing_protection: Optional[Path] = None
    block_slashing_protection: Optional[Path] = None
    slots_per_epoch: Optional[int] = None

    @property
    def voting_pubkey_hex(self) -> Optional[str]:
        if self.voting_keypair is None:
            return None
        return self.voting_keypair.pubkey_hex

    @classmethod
    def load_for_signing(cls, directory: PathLike, slots_per_epoch: int) -> "ValidatorDirectory":
        """Load a validator directory with only the components needed to sign.

        Both slashing protection databases must exist and the block database
        must hold a slots_per_epoch value; ``slots_per_epoch`` is only used if
        it does not. The withdrawal keypair and deposit data are optional.

        Raises:
            DirectoryNotFoundError: directory is missing
            SlashingProtectionNotFoundError: either database is missing
            ValidatorDirectoryError: voting keypair or slashing protection unusable
        """
        directory = Path(directory)
        if not directory.exists():
            raise DirectoryNotFoundError(directory)

        attestation_slashing_protection = directory / ATTESTER_SLASHING_DB
        block_slashing_protection = directory / BLOCK_PRODUCER_SLASHING_DB

        if not (attestation_slashing_protection.exists() and block_slashing_protection.exists()):
            raise SlashingProtectionNotFoundError(
                f"Unable to find slashing protection in {directory}"
            )

        with BlockHistory.open(block_slashing_protection, slots_per_epoch) as block_history:
            stored_slots_per_epoch = block_history.slots_per_epoch()

        try:
            voting_keypair = load_keypair(directory, VOTING_KEY_PREFIX)
        except KeypairDecodeError as e:
            raise KeypairDecodeError(f"Unable to get voting keypair: {e}") from e
        except ValidatorDirectoryIOError as e:
            raise ValidatorDirectoryIOError(f"Unable to get voting keypair: {e}") from e

        withdrawal_keypair = _load_optional(load_keypair, directory, WITHDRAWAL_KEY_PREFIX)
        deposit_data = _load_optional(load_eth1_deposit_data, directory)

        logger.info(f"Loaded validator directory {directory} for signing")
        return cls(
            directory=directory,
            voting_keypair=voting_keypair,
            withdrawal_keypair=withdrawal_keypair,
            deposit_data=deposit_data,
            attestation_slashing_protection=attestation_slashing_protection,
            block_slashing_protection=block_slashing_protection,
            slots_per_epoch=stored_slots_per_epoch,
        )


def _load_optional(loader, *args):
    """Run an optional-file loader, returning None on any directory error."""
    try:
        return loader(*args)
    except ValidatorDirectoryError as e:
        logger.debug(f"Optional validator file not loaded: {e}")
        return None


def _read_file(path: Path, description: str) -> bytes:
    if not path.exists():
        raise ValidatorDirectoryIOError(f"{description} file does not exist: {path}")
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise ValidatorDirectoryIOError(f"Unable to read {description.lower()} file: {e}") from e


def load_keypair(base_path: PathLike, file_prefix: str) -> Keypair:
    """Load a ``Keypair`` from a file."""
    path = Path(base_path) / keypair_file(file_prefix)
    return decode_keypair(_read_file(path, "Keypair"))


def load_eth1_deposit_data(base_path: PathLike) -> bytes:
    """Load eth1 deposit data from file."""
    path = Path(base_path) / ETH1_DEPOSIT_DATA_FILE
    data = _read_file(path, "Eth1 deposit data")
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DepositDataDecodeError(f"Eth1 deposit data file is not valid UTF-8: {e}") from e
    return from_deposit_file_text(text)


class ValidatorDirectoryBuilder:
    """Builds a ``ValidatorDirectory``, both in-memory and on-disk.

    Each step returns the builder so steps can be chained, and raises if a step
    it depends on has not run. Example::

        validator_dir = (
            ValidatorDirectoryBuilder()
            .spec(ChainSpec.mainnet())
            .full_deposit_amount()
            .thread_random_keypairs()
            .create_directory(base_path)
            .write_keypair_files()
            .write_eth1_data_file()
            .create_sqlite_slashing_dbs()
            .build()
        )

    A failed step is not rolled back. Retrying the whole pipeline requires
    removing any directory already created.
    """

    def __init__(self):
        self.directory: Optional[Path] = None
        self.voting_keypair: Optional[Keypair] = None
        self.withdrawal_keypair: Optional[Keypair] = None
        self.amount: Optional[int] = None
        self.deposit_data: Optional[bytes] = None
        self.attestation_slashing_protection: Optional[Path] = None
        self.block_slashing_protection: Optional[Path] = None
        self.chain_spec: Optional[ChainSpec] = None
        self._slots_per_epoch: Optional[int] = None

    def _require(self, value, step: str, requirement: str):
        if value is None:
            raise MissingPrerequisiteError(step, requirement)
        return value

    def spec(self, chain_spec: ChainSpec) -> "ValidatorDirectoryBuilder":
        """Set the chain specification for this validator."""
        self.chain_spec = chain_spec
        return self

    def slots_per_epoch(self, slots_per_epoch: int) -> "ValidatorDirectoryBuilder":
        self._slots_per_epoch = slots_per_epoch
        return self

    def full_deposit_amount(self) -> "ValidatorDirectoryBuilder":
        """Use the spec's ``max_effective_balance`` as this validator's deposit."""
        chain_spec = self._require(self.chain_spec, "full_deposit_amount", "a spec")
        self.amount = chain_spec.max_effective_balance
        return self

    def custom_deposit_amount(self, gwei: int) -> "ValidatorDirectoryBuilder":
        """Use a validator deposit of ``gwei``."""
        if not 0 <= gwei <= MAX_UINT64:
            raise InvalidParameterError(f"Deposit amount must fit in a uint64, got {gwei}")
        self.amount = gwei
        return self

    def thread_random_keypairs(self) -> "ValidatorDirectoryBuilder":
        """Generate random voting and withdrawal keypairs."""
        self.voting_keypair = Keypair.random()
        self.withdrawal_keypair = Keypair.random()
        return self

    def insecure_keypairs(self, index: int) -> "ValidatorDirectoryBuilder":
        """Use the deterministic interop keypair for ``index`` as both keypairs.

        Only for use in testing. Do not store value in these keys.
        """
        keypair = generate_deterministic_keypair(index)
        self.voting_keypair = keypair
        self.withdrawal_keypair = keypair
        return self

    def create_directory(self, base_path: PathLike) -> "ValidatorDirectoryBuilder":
        """Create the validator directory inside ``base_path``."""
        voting_keypair = self._require(self.voting_keypair, "create_directory", "a voting_keypair")

        directory = Path(base_path) / dir_name(voting_keypair.pubkey)
        if directory.exists():
            raise DirectoryExistsError(directory)

        try:
            directory.mkdir(parents=True)
        except FileExistsError as e:
            raise DirectoryExistsError(directory) from e
        except OSError as e:
            raise ValidatorDirectoryIOError(f"Unable to create validator directory: {e}") from e

        logger.info(f"Created validator directory {directory}")
        self.directory = directory
        return self

    def write_keypair_files(self) -> "ValidatorDirectoryBuilder":
        """Write the voting and withdrawal keypairs to disk."""
        voting_keypair = self._require(
            self.voting_keypair, "write_keypair_files", "a voting_keypair"
        )
        withdrawal_keypair = self._require(
            self.withdrawal_keypair, "write_keypair_files", "a withdrawal_keypair"
        )
        self._require(self.directory, "write_keypair_files", "a directory")

        self._save_keypair(voting_keypair, VOTING_KEY_PREFIX)
        self._save_keypair(withdrawal_keypair, WITHDRAWAL_KEY_PREFIX)
        return self

    def _save_keypair(self, keypair: Keypair, file_prefix: str) -> None:
        directory = self._require(self.directory, "save_keypair", "a directory")
        path = directory / keypair_file(file_prefix)

        if path.exists():
            raise KeyFileExistsError(path)

        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, KEYPAIR_FILE_MODE)
        except FileExistsError as e:
            raise KeyFileExistsError(path) from e
        except OSError as e:
            raise ValidatorDirectoryIOError(f"Unable to create file: {e}") from e

        with os.fdopen(fd, "wb") as f:
            try:
                # umask may have narrowed the mode; set it exactly before writing
                os.fchmod(f.fileno(), KEYPAIR_FILE_MODE)
            except OSError as e:
                raise ValidatorDirectoryIOError(f"Unable to set file permissions: {e}") from e
            try:
                f.write(encode_keypair(keypair))
            except OSError as e:
                raise ValidatorDirectoryIOError(f"Unable to write keypair to file: {e}") from e

        logger.info(f"Wrote {file_prefix} keypair to {path}")

    def write_eth1_data_file(self) -> "ValidatorDirectoryBuilder":
        """Write the eth1 deposit transaction data to file.

        This can be used to submit a validator deposit.
        """
        step = "write_eth1_data_file"
        voting_keypair = self._require(self.voting_keypair, step, "a voting_keypair")
        withdrawal_keypair = self._require(self.withdrawal_keypair, step, "a withdrawal_keypair")
        amount = self._require(self.amount, step, "an amount")
        chain_spec = self._require(self.chain_spec, step, "a spec")
        directory = self._require(self.directory, step, "a directory")
        path = directory / ETH1_DEPOSIT_DATA_FILE

        try:
            deposit = create_deposit_data(
                voting_keypair, withdrawal_keypair.pubkey, amount, chain_spec
            )
        except Exception as e:
            raise ValidatorDirectoryError(f"Unable to create deposit data: {e}") from e
        try:
            deposit_data = encode_eth1_tx_data(deposit)
        except Exception as e:
            raise ValidatorDirectoryError(f"Unable to encode eth1 deposit tx data: {e}") from e

        if path.exists():
            raise DepositFileExistsError(path)

        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(to_deposit_file_text(deposit_data))
        except FileExistsError as e:
            raise DepositFileExistsError(path) from e
        except OSError as e:
            raise ValidatorDirectoryIOError(f"Unable to write eth1 data file: {e}") from e

        logger.info(f"Wrote eth1 deposit data ({amount} gwei) to {path}")
        self.deposit_data = deposit_data
        return self

    def create_sqlite_slashing_dbs(self) -> "ValidatorDirectoryBuilder":
        """Create the attestation and block slashing protection databases.

        The block database records slots_per_epoch, taken from ``slots_per_epoch()``
        or else the spec, and is read back to check it was stored.
        """
        step = "create_sqlite_slashing_dbs"
        directory = self._require(self.directory, step, "a directory")
        slots_per_epoch = self._slots_per_epoch
        if slots_per_epoch is None and self.chain_spec is not None:
            slots_per_epoch = self.chain_spec.slots_per_epoch
        self._require(slots_per_epoch, step, "slots_per_epoch or a spec")
        if slots_per_epoch <= 0:
            raise SlotsPerEpochError(f"Invalid slots_per_epoch: {slots_per_epoch}")

        attestation_path = directory / ATTESTER_SLASHING_DB
        block_path = directory / BLOCK_PRODUCER_SLASHING_DB

        AttestationHistory.new(attestation_path).close()
        with BlockHistory.new(block_path, slots_per_epoch) as block_history:
            stored = block_history.slots_per_epoch()
        if stored != slots_per_epoch:
            raise SlotsPerEpochError(
                f"slots_per_epoch stored in {block_path} is {stored}, expected {slots_per_epoch}"
            )

        self.attestation_slashing_protection = attestation_path
        self.block_slashing_protection = block_path
        self._slots_per_epoch = slots_per_epoch
        return self

    def build(self) -> ValidatorDirectory:
        """Return the finished ``ValidatorDirectory``."""
        directory = self._require(self.directory, "build", "a directory")
        return ValidatorDirectory(
            directory=directory,
            voting_keypair=self.voting_keypair,
            withdrawal_keypair=self.withdrawal_keypair,
            deposit_data=self.deposit_data,
            attestation_slashing_protection=self.attestation_slashing_protection,
            block_slashing_protection=self.block_slashing_protection,
            slots_per_epoch=self._slots_per_epoch,
        )
