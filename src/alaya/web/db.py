# ABOUTME: Per-request database access for the Flask app.
# ABOUTME: One sqlite connection per application context, closed on teardown.

import sqlite3

from flask import current_app, g

from alaya.db.accounts import AccountStore
from alaya.db.catalog import BookCatalog
from alaya.db.connection import connect


def get_db() -> sqlite3.Connection:
    """Return this request's connection, opening it on first use.

    The schema was migrated when the app was created, so requests skip it.
    """
    if "db" not in g:
        g.db = connect(current_app.config["ALAYA_SETTINGS"].db_path)
    return g.db


def close_db(exc: BaseException | None = None) -> None:
    db = g.pop("db", None)
    if db is not None:
        db.close()


def get_catalog() -> BookCatalog:
    return BookCatalog(get_db())


def get_accounts() -> AccountStore:
    return AccountStore(get_db())
