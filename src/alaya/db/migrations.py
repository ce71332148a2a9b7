# ABOUTME: Forward-only migration runner for the Alaya database.
# ABOUTME: Applies each pending step in its own transaction and records it in schema_version.

import logging
import re
import sqlite3

from alaya.db.schema import (
    LATEST_VERSION,
    MIGRATIONS,
    SCHEMA_VERSION_DDL,
    Migration,
    Step,
    TableRebuild,
)

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    """Raised when a schema step cannot be applied.

    The failing step is rolled back, so the database stays at the last
    fully applied version.
    """

    def __init__(self, version: int, name: str, reason: str) -> None:
        super().__init__(f"Migration {version:03d}_{name} failed: {reason}")
        self.version = version
        self.name = name
        self.reason = reason


def _table_names(conn: sqlite3.Connection) -> set[str]:
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    return {row[0] for row in cursor.fetchall()}


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied schema version, or 0 for a fresh database."""
    if "schema_version" not in _table_names(conn):
        return 0
    cursor = conn.execute("SELECT MAX(version) FROM schema_version")
    row = cursor.fetchone()
    return row[0] if row and row[0] is not None else 0


def applied_versions(conn: sqlite3.Connection) -> list[int]:
    """Return every recorded version in ascending order."""
    if "schema_version" not in _table_names(conn):
        return []
    cursor = conn.execute("SELECT version FROM schema_version ORDER BY version")
    return [row[0] for row in cursor.fetchall()]


def _recover_interrupted_rebuild(conn: sqlite3.Connection) -> None:
    """Finish a shadow-table swap that stopped between DROP and RENAME.

    Databases written by older, non-transactional tooling can be left with
    only the shadow table. Its rows are complete at that point, so renaming
    it back is the only safe move.
    """
    tables = _table_names(conn)
    pairs = {(step.table, step.shadow) for step in MIGRATIONS if isinstance(step, TableRebuild)}
    for table, shadow in sorted(pairs):
        if table not in tables and shadow in tables:
            logger.warning(
                "Found %s without %s; completing interrupted table swap", shadow, table
            )
            conn.execute(f"ALTER TABLE {shadow} RENAME TO {table}")
            conn.commit()


# Versions recorded by the earlier `_migrations` runner, keyed by file prefix.
# Its 006 added notes, which step 5 already carries.
_LEGACY_FILE_VERSIONS = {1: 1, 2: 2, 3: 3, 4: 4, 5: 5, 6: 5, 7: 6}

_LEGACY_PREFIX_RE = re.compile(r"^(\d+)_")


def _table_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}


def _legacy_version(conn: sqlite3.Connection) -> int | None:
    """Version implied by a `_migrations` table of executed filenames."""
    if "_migrations" not in _table_names(conn):
        return None
    versions = []
    for (filename,) in conn.execute("SELECT filename FROM _migrations").fetchall():
        match = _LEGACY_PREFIX_RE.match(filename or "")
        if match and int(match.group(1)) in _LEGACY_FILE_VERSIONS:
            versions.append(_LEGACY_FILE_VERSIONS[int(match.group(1))])
    return max(versions) if versions else None


def _version_from_shape(conn: sqlite3.Connection) -> int:
    """Version implied by the columns of an existing books table."""
    columns = _table_columns(conn, "books")
    if "user_id" in columns:
        return 3
    if "isbn" in columns:
        return 5 if "filepath" in columns else 4
    return LATEST_VERSION


def _adopt_existing_database(conn: sqlite3.Connection) -> None:
    """Record a baseline for a books table that predates schema_version.

    The baseline comes from `_migrations` when present, otherwise from the
    shape of books. Rerunnable steps at or below it are replayed so the
    account tables exist, and the baseline step's indexes are recreated.
    """
    baseline = _legacy_version(conn) or _version_from_shape(conn)
    logger.info("Adopting existing database at schema version %d", baseline)

    statements = ["BEGIN;"]
    for step in MIGRATIONS:
        if step.version > baseline:
            break
        if isinstance(step, Migration) and step.rerunnable:
            statements.append(step.script())
        statements.append(
            f"INSERT INTO schema_version (version, name) VALUES ({step.version}, '{step.name}');"
        )
    baseline_step = MIGRATIONS[baseline - 1]
    if isinstance(baseline_step, TableRebuild):
        statements.extend(f"{index};" for index in baseline_step.indexes)
    statements.append("COMMIT;")

    try:
        conn.executescript("\n".join(statements))
    except sqlite3.Error as exc:
        if conn.in_transaction:
            conn.rollback()
        raise MigrationError(baseline, "adopt_existing", str(exc)) from exc


def _step_script(conn: sqlite3.Connection, step: Step) -> str:
    if isinstance(step, TableRebuild):
        return step.script(_table_columns(conn, step.table))
    return step.script()


def _apply_step(conn: sqlite3.Connection, step: Step) -> None:
    logger.info("Applying migration %03d_%s", step.version, step.name)
    script = (
        "BEGIN;\n"
        f"{_step_script(conn, step)}"
        f"INSERT INTO schema_version (version, name) VALUES ({step.version}, '{step.name}');\n"
        "COMMIT;\n"
    )
    try:
        conn.executescript(script)
    except sqlite3.Error as exc:
        if conn.in_transaction:
            conn.rollback()
        raise MigrationError(step.version, step.name, str(exc)) from exc


def apply_migrations(conn: sqlite3.Connection, target: int | None = None) -> list[int]:
    """Apply pending schema migrations sequentially.

    Reads the current schema version and applies every step with a higher
    version, up to ``target`` when given. Each step and its schema_version
    row commit together, so a crash leaves the database at a step boundary.
    No-op if the database is already current.

    Args:
        conn: An open connection to the database file.
        target: Stop after this version. Defaults to the latest step.

    Returns:
        The versions applied by this call, in order.

    Raises:
        MigrationError: If a step fails, or the database is newer than
            the code that opened it.
    """
    conn.executescript(SCHEMA_VERSION_DDL)
    _recover_interrupted_rebuild(conn)
    if not applied_versions(conn) and "books" in _table_names(conn):
        _adopt_existing_database(conn)

    current = current_version(conn)
    if current > LATEST_VERSION:
        raise MigrationError(
            current,
            "unknown",
            f"database is at version {current}, newest known is {LATEST_VERSION}",
        )

    applied: list[int] = []
    for step in MIGRATIONS:
        if step.version <= current:
            continue
        if target is not None and step.version > target:
            break
        _apply_step(conn, step)
        applied.append(step.version)

    if applied:
        logger.info("Schema is now at version %d", applied[-1])
    else:
        logger.debug("Schema already at version %d", current)
    return applied
