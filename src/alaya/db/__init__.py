# ABOUTME: Public API for the Alaya database layer.
# ABOUTME: Exports connection management, migrations, catalog and account operations.

from alaya.db.accounts import AccountStore, DuplicateUsernameError
from alaya.db.catalog import (
    BookCatalog,
    BookNotFoundError,
    ConstraintViolationError,
    DuplicateFilepathError,
)
from alaya.db.connection import DEFAULT_DB_PATH, open_database
from alaya.db.mapping import Book, User
from alaya.db.migrations import MigrationError, apply_migrations, current_version

__all__ = [
    "DEFAULT_DB_PATH",
    "AccountStore",
    "Book",
    "BookCatalog",
    "BookNotFoundError",
    "ConstraintViolationError",
    "DuplicateFilepathError",
    "DuplicateUsernameError",
    "MigrationError",
    "User",
    "apply_migrations",
    "current_version",
    "open_database",
]
