"""
Record store
------------
CRUD over the ``employees`` and ``config`` tables. Every call asks the
connection manager for the current handle (an import may have replaced it),
and every successful write is followed by the write-through policy.
"""
import logging
import sqlite3
from dataclasses import replace
from typing import Iterable, List, Optional, Tuple

import registry_config as cfg
from connection_manager import ConnectionManager
from local_store import LocalStore
from registry_errors import DuplicateKey, ImportDecodeFailure, MalformedRow, MissingIdentifier
from registry_models import EMPLOYEE_COLUMNS, Employee, employee_from_row
from registry_schema import ensure_schema, has_unique_index
from snapshot_codec import ExportedFile, SnapshotCodec

logger = logging.getLogger(__name__)

# name is the listing contract; id keeps equal names in insertion order
ORDER_BY = "ORDER BY name COLLATE NOCASE, id"


class WriteThroughPolicy:
    """
    Snapshot the database to the local store after every committed write.

    Fire-and-forget: a failed save is logged and the write it follows stays
    committed in memory. Disable it for batch jobs that save once at the end.
    """

    def __init__(self, manager: ConnectionManager, codec: SnapshotCodec, enabled: bool = True):
        self.manager = manager
        self.codec = codec
        self.enabled = enabled

    def after_write(self, operation: str, force: bool = False) -> bool:
        if not (self.enabled or force):
            return False
        try:
            saved = self.codec.save_snapshot(self.manager.connection())
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Snapshot after {operation} failed: {e}")
            return False
        if not saved:
            logger.warning(f"Snapshot after {operation} was not persisted; data lives in memory until the next save")
        return saved


def _is_duplicate_registration(error: sqlite3.IntegrityError) -> bool:
    return "UNIQUE" in str(error) and "registration" in str(error)


def filter_employees(employees: Iterable[Employee], text: str) -> List[Employee]:
    needle = (text or "").strip().lower()
    if not needle:
        return list(employees)
    return [e for e in employees
            if needle in e.name.lower() or needle in e.registration.lower() or needle in e.role.lower()]


class RecordStore:
    def __init__(self, manager: ConnectionManager, codec: SnapshotCodec, write_through: bool = True):
        self.manager = manager
        self.codec = codec
        self.policy = WriteThroughPolicy(manager, codec, enabled=write_through)

    def _fetch(self, sql: str, params=()) -> list:
        # reads hold the lock too, so an import cannot close the handle under them
        with self.manager.lock:
            return self.manager.connection().execute(sql, params).fetchall()

    # --- Employees ---
    def list_employees(self) -> List[Employee]:
        try:
            rows = self._fetch(f"SELECT id, name, registration, role, shift FROM employees {ORDER_BY}")
        except sqlite3.OperationalError as e:
            if "no such table" in str(e):
                logger.warning("employees table not found, returning an empty list")
                return []
            raise
        return [employee_from_row(r) for r in rows]

    def search_employees(self, text: str) -> List[Employee]:
        return filter_employees(self.list_employees(), text)

    def get_employee(self, employee_id: int) -> Optional[Employee]:
        rows = self._fetch("SELECT id, name, registration, role, shift FROM employees WHERE id = ?", (employee_id,))
        return employee_from_row(rows[0]) if rows else None

    def count_employees(self) -> int:
        return self._fetch("SELECT COUNT(*) FROM employees")[0][0]

    @staticmethod
    def _insert(conn: sqlite3.Connection, employee: Employee) -> Employee:
        # a failed statement is undone on its own; the caller decides about the transaction
        try:
            cur = conn.execute(
                "INSERT INTO employees (name, registration, role, shift) VALUES (?, ?, ?, ?)",
                (employee.name, employee.registration, employee.role, employee.shift.value)
            )
        except sqlite3.IntegrityError as e:
            if _is_duplicate_registration(e):
                raise DuplicateKey(employee.registration) from e
            raise
        return replace(employee, id=cur.lastrowid)

    def add_employee(self, employee: Employee) -> Employee:
        employee = employee.validate()
        with self.manager.lock:
            conn = self.manager.connection()
            try:
                saved = self._insert(conn, employee)
            except (DuplicateKey, sqlite3.Error):
                conn.rollback()
                raise
            conn.commit()
            logger.info(f"Added employee {saved.registration} (id {saved.id})")
            self.policy.after_write("add")
        return saved

    def add_employees(self, employees: Iterable[Employee]) -> Tuple[int, List[str]]:
        """Bulk insert; duplicate registrations are skipped and reported, everything else is committed together."""
        employees = [e.validate() for e in employees]
        added, skipped = 0, []
        with self.manager.lock:
            conn = self.manager.connection()
            for employee in employees:
                try:
                    self._insert(conn, employee)
                except DuplicateKey:
                    skipped.append(employee.registration)
                    continue
                except sqlite3.Error:
                    conn.rollback()
                    raise
                added += 1
            conn.commit()
            logger.info(f"Bulk added {added} employees, skipped {len(skipped)} duplicates")
            if added:
                self.policy.after_write("bulk add")
        return added, skipped

    def update_employee(self, employee: Employee) -> bool:
        if employee.id is None:
            raise MissingIdentifier("Cannot update an employee without an id.")
        employee = employee.validate()
        with self.manager.lock:
            conn = self.manager.connection()
            try:
                cur = conn.execute(
                    "UPDATE employees SET name = ?, registration = ?, role = ?, shift = ? WHERE id = ?",
                    (employee.name, employee.registration, employee.role, employee.shift.value, employee.id)
                )
            except sqlite3.IntegrityError as e:
                conn.rollback()
                if _is_duplicate_registration(e):
                    raise DuplicateKey(employee.registration) from e
                raise
            conn.commit()
            if cur.rowcount == 0:
                logger.warning(f"Update skipped, no employee with id {employee.id}")
                return False
            logger.info(f"Updated employee id {employee.id}")
            self.policy.after_write("update")
        return True

    def delete_employee(self, employee_id: int):
        with self.manager.lock:
            conn = self.manager.connection()
            cur = conn.execute("DELETE FROM employees WHERE id = ?", (employee_id,))
            conn.commit()
            if cur.rowcount:
                logger.info(f"Deleted employee id {employee_id}")
            self.policy.after_write("delete")

    # --- Config ---
    def get_config(self, key: str) -> Optional[str]:
        rows = self._fetch("SELECT value FROM config WHERE key = ?", (key,))
        return rows[0]["value"] if rows else None

    def set_config(self, key: str, value: str):
        with self.manager.lock:
            conn = self.manager.connection()
            conn.execute("""
            INSERT INTO config (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """, (key, value))
            conn.commit()
            self.policy.after_write("set config")

    # --- Files ---
    def export_database(self) -> ExportedFile:
        with self.manager.lock:
            return self.codec.export_to_file(self.manager.connection())

    def import_database(self, data: bytes) -> int:
        """Replace the whole database with uploaded bytes. Returns the imported employee count."""
        new_conn = self.codec.open_import(data)
        try:
            ensure_schema(new_conn)
            columns = {r[1] for r in new_conn.execute("PRAGMA table_info(employees)").fetchall()}
            missing = sorted(set(EMPLOYEE_COLUMNS) - columns)
            if missing:
                raise ImportDecodeFailure(f"employees table is missing columns: {', '.join(missing)}")
            if not has_unique_index(new_conn, "employees", "registration"):
                raise ImportDecodeFailure("employees.registration is not declared UNIQUE")
            rows = new_conn.execute("SELECT id, name, registration, role, shift FROM employees").fetchall()
            count = len([employee_from_row(r) for r in rows])
        except sqlite3.Error as e:
            new_conn.close()
            raise ImportDecodeFailure(f"Imported database could not be prepared: {e}") from e
        except MalformedRow as e:
            new_conn.close()
            raise ImportDecodeFailure(f"Imported database holds an unreadable employee: {e}") from e
        except ImportDecodeFailure:
            new_conn.close()
            raise

        with self.manager.lock:
            # finish any pending first-time init before swapping
            self.manager.connection()
            self.manager.replace(new_conn)
            logger.info(f"Imported database with {count} employees")
            self.policy.after_write("import", force=True)
        return count


def build_record_store(storage_path=None, write_through=None) -> RecordStore:
    """Compose store, codec and manager from the environment configuration."""
    store = LocalStore(storage_path or cfg.STORAGE_PATH, cfg.STORAGE_QUOTA_BYTES)
    codec = SnapshotCodec(store, key=cfg.SNAPSHOT_KEY, export_filename=cfg.EXPORT_FILENAME,
                          warn_bytes=cfg.SNAPSHOT_WARN_BYTES)
    manager = ConnectionManager(codec, runtime_wait=cfg.RUNTIME_WAIT_SECONDS)
    return RecordStore(manager, codec, write_through=cfg.WRITE_THROUGH if write_through is None else write_through)
