"""User documents for the auth backend.

One sqlite table with unique usernames and emails. Passwords are stored as
bcrypt hashes and never leave this module in clear or hashed form.
"""

import sqlite3
from pathlib import Path

import bcrypt
from pydantic import BaseModel

from cryptodash.config import settings
from cryptodash.errors import (
    InvalidCredentialsError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from cryptodash.logging import logger

BCRYPT_ROUNDS = 10

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL
);
"""


class User(BaseModel):
    id: int
    username: str
    email: str


def _get_db_path() -> Path:
    """Get database path from settings or default to ~/.cryptodash/users.db."""
    if settings.users_db_path:
        return Path(settings.users_db_path)

    default_dir = Path.home() / ".cryptodash"
    default_dir.mkdir(parents=True, exist_ok=True)
    return default_dir / "users.db"


def _password_bytes(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(
        _password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    ).decode("ascii")


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(_password_bytes(password), hashed.encode("ascii"))


class UserStore:
    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path else _get_db_path()

    def _get_connection(self) -> sqlite3.Connection:
        """Get connection and ensure schema exists."""
        conn = sqlite3.connect(self.path)
        conn.executescript(_SCHEMA)
        conn.commit()
        return conn

    def _find(self, conn: sqlite3.Connection, email: str) -> tuple | None:
        return conn.execute(
            "SELECT id, username, email, password FROM users WHERE email = ?",
            (email,),
        ).fetchone()

    def find_by_email(self, email: str) -> User | None:
        conn = self._get_connection()
        try:
            row = self._find(conn, email)
        finally:
            conn.close()
        if row is None:
            return None
        return User(id=row[0], username=row[1], email=row[2])

    def create(self, username: str, email: str, password: str) -> User:
        """
        Register a user.

        Raises:
            UserAlreadyExistsError: the email is already registered
            sqlite3.IntegrityError: the username is taken
        """
        conn = self._get_connection()
        try:
            if self._find(conn, email) is not None:
                raise UserAlreadyExistsError(email)

            cursor = conn.execute(
                "INSERT INTO users (username, email, password) VALUES (?, ?, ?)",
                (username, email, hash_password(password)),
            )
            conn.commit()
            logger.info("Created user username={username}", username=username)
            return User(id=cursor.lastrowid, username=username, email=email)
        finally:
            conn.close()

    def authenticate(self, email: str, password: str) -> User:
        """
        Check a login attempt.

        Raises:
            UserNotFoundError: no user has this email
            InvalidCredentialsError: the password does not match
        """
        conn = self._get_connection()
        try:
            row = self._find(conn, email)
        finally:
            conn.close()

        if row is None:
            raise UserNotFoundError(email)
        if not verify_password(password, row[3]):
            raise InvalidCredentialsError()
        return User(id=row[0], username=row[1], email=row[2])
