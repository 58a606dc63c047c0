"""
Connection manager
------------------
Owns the single in-memory database handle.

    UNINITIALIZED --connection()--> INITIALIZING --ok--> READY
          ^                              |
          +-----------failure------------+

    READY --replace(new)--> READY   (import: full-state replacement)

Concurrent first callers share one pending Future, so the engine is loaded
and the schema is created at most once per successful initialization.
"""
import logging
import sqlite3
import threading
from concurrent.futures import Future
from enum import Enum
from typing import Callable, Optional

from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_fixed

from registry_errors import CorruptSnapshot, RuntimeUnavailable
from registry_schema import ensure_schema
from snapshot_codec import SnapshotCodec, new_database

logger = logging.getLogger(__name__)

MIN_SQLITE_VERSION = (3, 23, 0)


class ConnectionState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


def load_engine():
    """Return the sqlite3 module once it can serialize/deserialize, else raise RuntimeUnavailable."""
    try:
        import sqlite3 as engine
    except ImportError as e:
        raise RuntimeUnavailable(f"sqlite3 is not available: {e}") from e
    if not hasattr(engine.Connection, "serialize") or not hasattr(engine.Connection, "deserialize"):
        raise RuntimeUnavailable("sqlite3 lacks serialize/deserialize (Python 3.11+ required)")
    if engine.sqlite_version_info < MIN_SQLITE_VERSION:
        raise RuntimeUnavailable(f"SQLite {engine.sqlite_version} is too old, "
                                 f"need {'.'.join(map(str, MIN_SQLITE_VERSION))}+")
    return engine


class ConnectionManager:
    def __init__(self, codec: SnapshotCodec, engine_loader: Callable = load_engine,
                 runtime_wait: float = 0.5):
        self.codec = codec
        self.engine_loader = engine_loader
        self.runtime_wait = runtime_wait
        # serializes handle mutation and replacement across sessions
        self.lock = threading.RLock()
        self.initializations = 0
        self._state_lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._pending: Optional[Future] = None

    @property
    def state(self) -> ConnectionState:
        with self._state_lock:
            if self._conn is not None:
                return ConnectionState.READY
            if self._pending is not None:
                return ConnectionState.INITIALIZING
            return ConnectionState.UNINITIALIZED

    def connection(self) -> sqlite3.Connection:
        with self._state_lock:
            if self._conn is not None:
                return self._conn
            owner = self._pending is None
            if owner:
                self._pending = Future()
            pending = self._pending

        if not owner:
            return pending.result()

        conn = None
        try:
            conn = self._initialize()
        except BaseException as e:
            # waiters must be released even when the owner is interrupted
            pending.set_exception(e)
            raise
        finally:
            with self._state_lock:
                self._conn = conn
                self._pending = None
        pending.set_result(conn)
        return conn

    def _load_runtime(self):
        retrying = Retrying(
            retry=retry_if_exception_type(RuntimeUnavailable),
            wait=wait_fixed(self.runtime_wait),
            stop=stop_after_attempt(2),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )
        return retrying(self.engine_loader)

    def _initialize(self) -> sqlite3.Connection:
        self.initializations += 1
        logger.info("Initializing registry database")
        self._load_runtime()

        conn = None
        try:
            conn = self.codec.load_snapshot()
        except CorruptSnapshot as e:
            logger.warning(f"Discarding unusable snapshot, starting with an empty registry: {e}")
            self.codec.discard_snapshot()

        if conn is None:
            logger.info("No saved snapshot, creating a new database")
            conn = new_database()
        try:
            version = ensure_schema(conn)
        except sqlite3.Error:
            conn.close()
            raise
        logger.info(f"Registry database ready (schema v{version})")
        return conn

    def replace(self, conn: sqlite3.Connection):
        """Swap in a new handle wholesale; the previous one is closed."""
        with self.lock:
            with self._state_lock:
                old, self._conn = self._conn, conn
            if old is not None and old is not conn:
                old.close()
        logger.info("Registry database handle replaced")
