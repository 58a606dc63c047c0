import sqlite3

import pytest

from connection_manager import ConnectionManager
from local_store import LocalStore
from record_store import RecordStore
from snapshot_codec import SnapshotCodec

QUOTA = 5 * 1024 * 1024


@pytest.fixture
def storage_path(tmp_path):
    return tmp_path / "local_storage.json"


@pytest.fixture
def local_store(storage_path):
    return LocalStore(storage_path, QUOTA)


def make_codec(local_store, warn_bytes=QUOTA):
    return SnapshotCodec(local_store, key="sqlite_db_backup", export_filename="employees.sqlite",
                         warn_bytes=warn_bytes)


@pytest.fixture
def codec(local_store):
    return make_codec(local_store)


@pytest.fixture
def manager(codec):
    return ConnectionManager(codec, runtime_wait=0)


@pytest.fixture
def store(manager, codec):
    return RecordStore(manager, codec)


def reopen(storage_path, quota=QUOTA):
    """A fresh process: new store, codec and manager over the same storage file."""
    codec = make_codec(LocalStore(storage_path, quota))
    return RecordStore(ConnectionManager(codec, runtime_wait=0), codec)


def legacy_database_bytes(rows):
    """Bytes of a database created by the earlier workHours revision."""
    conn = sqlite3.connect(":memory:")
    conn.execute("""
    CREATE TABLE IF NOT EXISTS employees (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        registration TEXT UNIQUE NOT NULL,
        role TEXT NOT NULL,
        workHours INTEGER NOT NULL
    )
    """)
    conn.executemany("INSERT INTO employees (name, registration, role, workHours) VALUES (?, ?, ?, ?)", rows)
    conn.commit()
    data = conn.serialize()
    conn.close()
    return data


def foreign_database_bytes(ddl, rows):
    """Bytes of a database some other tool wrote, with the given employees DDL."""
    conn = sqlite3.connect(":memory:")
    conn.execute(ddl)
    conn.executemany("INSERT INTO employees (id, name, registration, role, shift) VALUES (?, ?, ?, ?, ?)", rows)
    conn.commit()
    data = conn.serialize()
    conn.close()
    return data
