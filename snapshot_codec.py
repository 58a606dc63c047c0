"""
Snapshot codec
--------------
Moves the in-memory database between three forms:

- the live ``sqlite3.Connection`` (an in-memory database),
- a snapshot string in the local store (JSON array of byte values under a
  fixed key),
- a downloadable ``.sqlite`` file.

Saving is best effort: a quota failure is logged and reported through the
return value, never raised, and never touches the live handle.
"""
import json
import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional

from local_store import LocalStore
from registry_errors import CorruptSnapshot, ImportDecodeFailure, StorageQuotaExceeded

logger = logging.getLogger(__name__)

SQLITE_MIME = "application/x-sqlite3"


@dataclass(frozen=True)
class ExportedFile:
    filename: str
    data: bytes
    mime: str = SQLITE_MIME


def new_database() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def open_database(data: bytes) -> sqlite3.Connection:
    """Build a handle from raw database bytes and verify it. Raises sqlite3.Error / ValueError."""
    if not data:
        raise ValueError("empty database content")
    conn = new_database()
    try:
        conn.deserialize(bytes(data))
        result = conn.execute("PRAGMA quick_check").fetchone()
        if result is None or result[0] != "ok":
            raise sqlite3.DatabaseError(f"integrity check failed: {result[0] if result else 'no result'}")
    except Exception:
        conn.close()
        raise
    return conn


def encode_snapshot(data: bytes) -> str:
    return json.dumps(list(data))


def decode_snapshot(raw: str) -> bytes:
    try:
        values = json.loads(raw)
    except ValueError as e:
        raise CorruptSnapshot(f"Snapshot is not valid JSON: {e}") from e
    if not isinstance(values, list):
        raise CorruptSnapshot("Snapshot is not a byte array")
    try:
        return bytes(values)
    except (TypeError, ValueError) as e:
        raise CorruptSnapshot(f"Snapshot holds non-byte values: {e}") from e


class SnapshotCodec:
    def __init__(self, store: LocalStore, key: str, export_filename: str, warn_bytes: int):
        self.store = store
        self.key = key
        self.export_filename = export_filename
        self.warn_bytes = warn_bytes

    def save_snapshot(self, conn: sqlite3.Connection) -> bool:
        """Write the handle to the local store. Returns False when the store refused it."""
        encoded = encode_snapshot(conn.serialize())
        size = len(encoded)
        if size >= self.store.quota_bytes:
            logger.warning(f"Snapshot is {size} bytes, over the local storage quota of {self.store.quota_bytes}")
        elif size >= self.warn_bytes:
            logger.warning(f"Snapshot is {size} bytes, approaching the local storage quota of {self.store.quota_bytes}. "
                           "Download a .sqlite backup.")
        try:
            self.store.set_item(self.key, encoded)
        except StorageQuotaExceeded as e:
            logger.warning(f"Snapshot not saved: {e}")
            return False
        logger.debug(f"Snapshot saved ({size} bytes)")
        return True

    def load_snapshot(self) -> Optional[sqlite3.Connection]:
        """None when no snapshot exists; CorruptSnapshot when one exists but is unusable."""
        raw = self.store.get_item(self.key)
        if raw is None:
            return None
        data = decode_snapshot(raw)
        try:
            return open_database(data)
        except (sqlite3.Error, ValueError) as e:
            raise CorruptSnapshot(f"Snapshot is not a readable database: {e}") from e

    def discard_snapshot(self):
        self.store.remove_item(self.key)

    def export_to_file(self, conn: sqlite3.Connection) -> ExportedFile:
        return ExportedFile(filename=self.export_filename, data=conn.serialize())

    def open_import(self, data: bytes) -> sqlite3.Connection:
        try:
            return open_database(data)
        except (sqlite3.Error, ValueError) as e:
            raise ImportDecodeFailure(f"Not a valid SQLite database: {e}") from e
