# ABOUTME: User accounts and login sessions for the Alaya web UI.
# ABOUTME: Hashes passwords with passlib and issues opaque session tokens.

import sqlite3
import uuid

from passlib.context import CryptContext

from alaya.db.catalog import ConstraintViolationError
from alaya.db.mapping import User, row_to_user, utc_now

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class DuplicateUsernameError(ConstraintViolationError):
    """Raised when signing up with a username that is already taken."""


class AccountStore:
    """User and session persistence on top of a sqlite3 connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_user(self, username: str, password: str) -> User:
        """Create an account.

        Raises:
            DuplicateUsernameError: If the username exists.
        """
        now = utc_now()
        user = User(
            id=str(uuid.uuid4()),
            username=username,
            password_hash=pwd_context.hash(password),
            created_at=now,
        )
        try:
            self._conn.execute(
                "INSERT INTO users (id, username, password_hash, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (user.id, user.username, user.password_hash, now, now),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            if "users.username" in str(exc):
                raise DuplicateUsernameError(f"Username {username!r} already exists") from exc
            raise ConstraintViolationError(str(exc)) from exc
        return user

    def get_user(self, username: str) -> User | None:
        cursor = self._conn.execute("SELECT * FROM users WHERE username = ?", (username,))
        row = cursor.fetchone()
        return row_to_user(row) if row else None

    def verify_user(self, username: str, password: str) -> User | None:
        """Return the user when the password matches, else None."""
        user = self.get_user(username)
        if user is None or not pwd_context.verify(password, user.password_hash):
            return None
        return user

    def create_session(self, user_id: str) -> str:
        """Start a session for user_id and return its token. Sessions never expire."""
        token = str(uuid.uuid4())
        self._conn.execute(
            "INSERT INTO sessions (id, user_id, token, created_at) VALUES (?, ?, ?, ?)",
            (str(uuid.uuid4()), user_id, token, utc_now()),
        )
        self._conn.commit()
        return token

    def validate_session(self, token: str) -> User | None:
        cursor = self._conn.execute(
            "SELECT u.* FROM sessions s JOIN users u ON s.user_id = u.id WHERE s.token = ?",
            (token,),
        )
        row = cursor.fetchone()
        return row_to_user(row) if row else None

    def delete_session(self, token: str) -> None:
        self._conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
        self._conn.commit()
