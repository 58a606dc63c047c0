import sqlite3

import pytest

from conftest import legacy_database_bytes, reopen
from registry_models import Employee, Shift
from registry_schema import SCHEMA_VERSION, ensure_schema, has_unique_index, schema_version
from snapshot_codec import new_database, open_database


def _columns(conn, table):
    return [r[1] for r in conn.execute(f"PRAGMA table_info({table})")]


def test_fresh_schema():
    conn = new_database()
    assert ensure_schema(conn) == SCHEMA_VERSION
    assert _columns(conn, "employees") == ["id", "name", "registration", "role", "shift", "workHours"]
    assert _columns(conn, "config") == ["key", "value"]


def test_idempotent():
    conn = new_database()
    ensure_schema(conn)
    assert ensure_schema(conn) == SCHEMA_VERSION
    assert schema_version(conn) == SCHEMA_VERSION


def test_legacy_work_hours_table_is_migrated():
    conn = open_database(legacy_database_bytes([("Ana", "1", "Nurse", 40), ("Bruno", "2", "Driver", 30)]))
    assert schema_version(conn) == 0
    ensure_schema(conn)

    rows = conn.execute("SELECT id, name, shift, workHours FROM employees ORDER BY id").fetchall()
    assert [tuple(r) for r in rows] == [(1, "Ana", "FullDay", 40), (2, "Bruno", "FullDay", 30)]
    # new rows no longer need workHours
    conn.execute("INSERT INTO employees (name, registration, role, shift) VALUES ('C', '3', 'X', 'Night')")
    assert _columns(conn, "config") == ["key", "value"]


def test_legacy_registration_stays_unique():
    conn = open_database(legacy_database_bytes([("Ana", "1", "Nurse", 40)]))
    ensure_schema(conn)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute("INSERT INTO employees (name, registration, role) VALUES ('B', '1', 'X')")


def test_newer_schema_left_alone():
    conn = new_database()
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 5}")
    assert ensure_schema(conn) == SCHEMA_VERSION + 5


def test_import_legacy_file(tmp_path):
    store = reopen(tmp_path / "s.json")
    assert store.import_database(legacy_database_bytes([("Ana", "1", "Nurse", 40)])) == 1
    [ana] = store.list_employees()
    assert ana.shift is Shift.FULL_DAY
    added = store.add_employee(Employee(name="Bia", registration="2", role="Nurse", shift=Shift.MORNING))
    assert added.id == 2


def test_unique_registration_detection():
    conn = new_database()
    ensure_schema(conn)
    assert has_unique_index(conn, "employees", "registration")
    assert not has_unique_index(conn, "employees", "name")

    bare = new_database()
    bare.execute("CREATE TABLE employees (id INTEGER PRIMARY KEY, registration TEXT, role TEXT)")
    bare.execute("CREATE UNIQUE INDEX idx_reg_role ON employees(registration, role)")
    assert not has_unique_index(bare, "employees", "registration")
