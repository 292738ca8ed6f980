"""SQLite persistence for memsync-cli, via sqler."""

import base64
import binascii
from pathlib import Path
from typing import Optional

from sqler import F, SQLerDB, SQLerModel

from .config import ensure_db_dir, get_db_path
from .errors import PersistenceError


DEFAULT_SLOT_KEY = "memories"
SNAPSHOT_TABLE = "store_snapshots"


class StoreSnapshot(SQLerModel):
    """One serialized Local Store, stored as a single document."""

    _table = SNAPSHOT_TABLE
    __tablename__ = SNAPSHOT_TABLE

    key: str
    payload: str  # base64 of the serialized store


_db: SQLerDB | None = None


def get_database(db_path: str | None = None, use_global: bool = False) -> SQLerDB:
    """Get or create the database connection.

    Args:
        db_path: Optional override for database path
        use_global: If True, force global database

    Returns:
        Configured SQLerDB instance
    """
    global _db

    path = get_db_path(db_path, use_global=use_global)
    ensure_db_dir(path)

    if _db is None or str(path) != str(getattr(_db, "path", None)):
        _db = SQLerDB.on_disk(str(path))
        _init_schema(_db)

    return _db


def _init_schema(db: SQLerDB) -> None:
    # db.query() creates the table when it is missing
    db.query(SNAPSHOT_TABLE)


def reset_database() -> None:
    """Reset the global database connection (for testing)."""
    global _db
    _db = None


class SqlerSlot:
    """Persistence slot that keeps the store blob in the sqler database.

    The database is held by the slot and passed to every query and save, so
    two slots on two files never see each other's data.

    Args:
        db: Database holding the snapshot table
        key: Name of the snapshot document, one per store
    """

    def __init__(self, db: SQLerDB, key: str = DEFAULT_SLOT_KEY) -> None:
        self.db = db
        self.key = key
        _init_schema(db)

    @classmethod
    def open(cls, db_path: str | None = None, use_global: bool = False) -> "SqlerSlot":
        """Open the slot in the database resolved the same way as the CLI's --db."""
        return cls(get_database(db_path, use_global=use_global))

    @property
    def path(self) -> Optional[Path]:
        raw = getattr(self.db, "path", None)
        return Path(raw) if raw else None

    def _find(self) -> Optional[StoreSnapshot]:
        return StoreSnapshot.using(self.db).filter(F("key") == self.key).first()

    def write_blob(self, blob: bytes) -> None:
        payload = base64.b64encode(blob).decode("ascii")
        try:
            snapshot = self._find()
            if snapshot is None:
                snapshot = StoreSnapshot(key=self.key, payload=payload)
            else:
                snapshot.payload = payload
            snapshot.save(db=self.db)
        except Exception as e:
            raise PersistenceError(f"cannot write snapshot {self.key!r}: {e}") from e

    def read_blob(self) -> Optional[bytes]:
        try:
            snapshot = self._find()
        except Exception as e:
            raise PersistenceError(f"cannot read snapshot {self.key!r}: {e}") from e
        if snapshot is None:
            return None
        try:
            return base64.b64decode(snapshot.payload.encode("ascii"), validate=True)
        except (binascii.Error, ValueError) as e:
            raise PersistenceError(f"snapshot {self.key!r} is not valid base64") from e
