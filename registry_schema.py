"""
Versioned schema for the registry database.

The installed version lives in ``PRAGMA user_version``. Each migration is
idempotent, so a database created by an older revision (``workHours``
instead of ``shift``, no config table) is brought forward in place without
dropping any column.
"""
import logging
import sqlite3

logger = logging.getLogger(__name__)

SHIFT_VALUES = ("Morning", "Afternoon", "Night", "FullDay")


def _columns(conn: sqlite3.Connection, table: str) -> list:
    return [r[1] for r in conn.execute(f"PRAGMA table_info({table})").fetchall()]


def has_unique_index(conn: sqlite3.Connection, table: str, column: str) -> bool:
    """True when a full (non-partial) unique index covers exactly ``column``."""
    for index in conn.execute(f"PRAGMA index_list({table})").fetchall():
        name, unique, partial = index[1], index[2], index[4]
        if not unique or partial:
            continue
        covered = [r[2] for r in conn.execute(f"PRAGMA index_info('{name}')").fetchall()]
        if covered == [column]:
            return True
    return False


def _create_employees(conn: sqlite3.Connection, table: str = "employees"):
    checks = ", ".join(f"'{v}'" for v in SHIFT_VALUES)
    conn.execute(f"""
    CREATE TABLE IF NOT EXISTS {table} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        registration TEXT UNIQUE NOT NULL,
        role TEXT NOT NULL,
        shift TEXT NOT NULL DEFAULT 'FullDay' CHECK (shift IN ({checks})),
        workHours INTEGER
    )
    """)


def _migrate_employees(conn: sqlite3.Connection):
    existing = _columns(conn, "employees")
    if existing and "shift" not in existing:
        # legacy revision: workHours was NOT NULL and there was no shift.
        # SQLite cannot relax NOT NULL in place, so rebuild and keep workHours as history.
        logger.info("Migrating legacy employees table (workHours -> shift)")
        hours = "workHours" if "workHours" in existing else "NULL"
        conn.execute("ALTER TABLE employees RENAME TO employees_legacy")
        _create_employees(conn)
        conn.execute(f"""
        INSERT INTO employees (id, name, registration, role, shift, workHours)
        SELECT id, name, registration, role, 'FullDay', {hours} FROM employees_legacy
        """)
        conn.execute("DROP TABLE employees_legacy")
    else:
        _create_employees(conn)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_employees_name ON employees(name)")


def _migrate_config(conn: sqlite3.Connection):
    conn.execute("""
    CREATE TABLE IF NOT EXISTS config (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """)


MIGRATIONS = (_migrate_employees, _migrate_config)
SCHEMA_VERSION = len(MIGRATIONS)


def schema_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0]


def ensure_schema(conn: sqlite3.Connection) -> int:
    """Apply every migration newer than the installed version. Returns the resulting version."""
    installed = schema_version(conn)
    if installed > SCHEMA_VERSION:
        logger.warning(f"Database schema v{installed} is newer than v{SCHEMA_VERSION}; leaving it as is")
        return installed

    # unversioned legacy snapshots report v0 and replay every step
    if not conn.in_transaction:
        conn.execute("BEGIN")
    try:
        for version, migration in enumerate(MIGRATIONS[installed:], start=installed + 1):
            migration(conn)
            conn.execute(f"PRAGMA user_version = {version}")
            logger.debug(f"Schema migrated to v{version}")
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise
    return schema_version(conn)
