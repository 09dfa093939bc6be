"""
Registration and login against the key-value store.

Account rules:
  - username and password are both required
  - username at least 3 characters, password at least 6
  - usernames are unique
"""
import hashlib
import hmac
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone

from .errors import TaskflowError, ValidationError
from .store import SnapshotStore, user_key

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6
_PBKDF2_ROUNDS = 100_000


class AuthError(TaskflowError):
    """Raised when a login attempt fails."""
    pass


class UsernameTaken(TaskflowError):
    """Raised when registering a username that already exists."""
    pass


@dataclass
class User:
    username: str
    last_login: str


def _hash_password(password: str, salt: bytes) -> str:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ROUNDS).hex()


class AccountStore:
    """User accounts kept under "user_<username>" keys."""

    def __init__(self, store: SnapshotStore):
        self.store = store

    def register(self, username: str, password: str) -> None:
        username = (username or "").strip()
        password = (password or "").strip()
        if not username or not password:
            raise ValidationError("Please enter both username and password")
        if len(username) < MIN_USERNAME_LENGTH:
            raise ValidationError(f"Username must be at least {MIN_USERNAME_LENGTH} characters long")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        if self.store.get(user_key(username)) is not None:
            raise UsernameTaken(f"Username {username!r} already exists")

        salt = os.urandom(16)
        record = {"salt": salt.hex(), "hash": _hash_password(password, salt)}
        self.store.set(user_key(username), json.dumps(record))
        logger.info("Registered user %s", username)

    def login(self, username: str, password: str) -> User:
        username = (username or "").strip()
        password = (password or "").strip()
        if not username or not password:
            raise ValidationError("Please enter both username and password")

        raw = self.store.get(user_key(username))
        if raw is None:
            logger.warning("Login failed for unknown user %s", username)
            raise AuthError("Invalid username or password")
        try:
            record = json.loads(raw)
            salt = bytes.fromhex(record["salt"])
            expected = record["hash"]
        except (ValueError, KeyError, TypeError):
            logger.error("Corrupt account record for %s", username)
            raise AuthError("Invalid username or password")

        if not hmac.compare_digest(_hash_password(password, salt), expected):
            logger.warning("Login failed for user %s", username)
            raise AuthError("Invalid username or password")
        return User(username=username, last_login=datetime.now(timezone.utc).isoformat())
