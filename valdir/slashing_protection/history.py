"""SQLite-backed slashing protection history.

Only the lifecycle of a history database lives here: creating it, opening it
and reading back its parameters. Checking and recording signed messages
against the tables is done by the signing client.
"""

import logging
import os
import sqlite3
from pathlib import Path
from typing import Optional, Union

from ..exceptions import (
    SlashingProtectionError,
    SlashingProtectionExistsError,
    SlashingProtectionNotFoundError,
    SlotsPerEpochError,
)

logger = logging.getLogger(__name__)

META_SLOTS_PER_EPOCH = "slots_per_epoch"


class ValidatorHistory:
    """Handle on one slashing protection database.

    Use ``new`` to create a database and ``open`` to reopen an existing one.
    Subclasses name the table holding their signed messages.
    """

    kind: str = ""
    table_name: str = ""
    table_schema: str = ""

    def __init__(self, path: Path, conn: sqlite3.Connection):
        self.path = path
        self._conn: Optional[sqlite3.Connection] = conn

    @classmethod
    def new(
        cls, path: Union[str, Path], slots_per_epoch: Optional[int] = None
    ) -> "ValidatorHistory":
        """Create a fresh database at ``path``. Fails if the file already exists."""
        path = Path(path)
        if slots_per_epoch is not None and slots_per_epoch <= 0:
            raise SlotsPerEpochError(f"Invalid slots_per_epoch: {slots_per_epoch}")
        if path.exists():
            raise SlashingProtectionExistsError(
                f"Slashing protection database already exists: {path}"
            )

        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError as e:
            raise SlashingProtectionExistsError(
                f"Slashing protection database already exists: {path}"
            ) from e
        except OSError as e:
            raise SlashingProtectionError(f"Unable to create {path}: {e}") from e
        try:
            os.fchmod(fd, 0o600)
        finally:
            os.close(fd)

        conn = None
        try:
            conn = sqlite3.connect(str(path))
            conn.executescript(f"""
                CREATE TABLE IF NOT EXISTS metadata (
                    key TEXT PRIMARY KEY,
                    value BLOB
                );
                {cls.table_schema}
            """)
            history = cls(path, conn)
            if slots_per_epoch is not None:
                history._set_slots_per_epoch(slots_per_epoch)
            conn.commit()
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            raise SlashingProtectionError(f"Unable to create {path}: {e}") from e
        except SlashingProtectionError:
            conn.close()
            raise

        logger.info(f"Created {cls.kind} slashing protection database at {path}")
        return history

    @classmethod
    def open(
        cls, path: Union[str, Path], slots_per_epoch: Optional[int] = None
    ) -> "ValidatorHistory":
        """Open an existing database.

        ``slots_per_epoch`` is a fallback: it is recorded only if the database
        does not already hold a value.
        """
        path = Path(path)
        if not path.exists():
            raise SlashingProtectionNotFoundError(
                f"Slashing protection database does not exist: {path}"
            )

        try:
            # mode=rw so a missing file is never silently recreated
            conn = sqlite3.connect(f"{path.absolute().as_uri()}?mode=rw", uri=True)
            row = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
                (cls.table_name,),
            ).fetchone()
        except sqlite3.Error as e:
            raise SlashingProtectionError(f"Unable to open {path}: {e}") from e

        if row is None:
            conn.close()
            raise SlashingProtectionError(
                f"{path} is not a {cls.kind} slashing protection database"
            )

        history = cls(path, conn)
        if slots_per_epoch is None:
            return history

        try:
            stored = history._get_slots_per_epoch()
            if stored is None:
                history._set_slots_per_epoch(slots_per_epoch)
                conn.commit()
            elif stored != slots_per_epoch:
                logger.warning(
                    f"Stored slots_per_epoch {stored} in {path} differs from "
                    f"requested {slots_per_epoch}, using stored value"
                )
        except (SlashingProtectionError, sqlite3.Error) as e:
            history.close()
            if isinstance(e, SlashingProtectionError):
                raise
            raise SlashingProtectionError(f"Unable to open {path}: {e}") from e
        return history

    def slots_per_epoch(self) -> int:
        """Return the stored slots_per_epoch, failing if it is unset."""
        value = self._get_slots_per_epoch()
        if value is None:
            raise SlotsPerEpochError(f"slots_per_epoch is not set in {self.path}")
        return value

    def _get_slots_per_epoch(self) -> Optional[int]:
        row = self._connection().execute(
            "SELECT value FROM metadata WHERE key = ?", (META_SLOTS_PER_EPOCH,)
        ).fetchone()
        if row is None:
            return None
        value = row[0]
        if not isinstance(value, bytes) or len(value) != 8:
            raise SlotsPerEpochError(
                f"Unable to decode slots_per_epoch in {self.path}: {value!r}"
            )
        return int.from_bytes(value, "little")

    def _set_slots_per_epoch(self, slots_per_epoch: int) -> None:
        if slots_per_epoch <= 0:
            raise SlotsPerEpochError(f"Invalid slots_per_epoch: {slots_per_epoch}")
        self._connection().execute(
            "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
            (META_SLOTS_PER_EPOCH, slots_per_epoch.to_bytes(8, "little")),
        )

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise SlashingProtectionError(f"Database {self.path} is closed")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(path={str(self.path)!r})"


class AttestationHistory(ValidatorHistory):
    """History of signed attestations, keyed by target epoch."""

    kind = "attestation"
    table_name = "signed_attestations"
    table_schema = """
        CREATE TABLE IF NOT EXISTS signed_attestations (
            target_epoch INTEGER PRIMARY KEY,
            source_epoch INTEGER NOT NULL,
            signing_root BLOB NOT NULL
        );
    """


class BlockHistory(ValidatorHistory):
    """History of signed block proposals, keyed by slot."""

    kind = "block"
    table_name = "signed_blocks"
    table_schema = """
        CREATE TABLE IF NOT EXISTS signed_blocks (
            slot INTEGER PRIMARY KEY,
            signing_root BLOB NOT NULL
        );
    """
