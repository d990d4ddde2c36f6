"""
User management for tubelist.

Handles registration, login and account removal.
"""

import logging
from typing import Optional

import bcrypt

from .backend import StorageBackend
from .errors import AuthError, ConflictError, NotFoundError
from .models import User
from .validation import (
    validate_avatar,
    validate_email,
    validate_first_name,
    validate_password,
    validate_username,
)

INVALID_CREDENTIALS = "Invalid username or password."


class UserManager:
    """Manages user accounts and credentials."""

    def __init__(self, backend: StorageBackend, bcrypt_rounds: int = 10):
        """
        Initialize UserManager.

        Args:
            backend: Storage backend for persistence
            bcrypt_rounds: bcrypt cost factor used when hashing new passwords
        """
        self.backend = backend
        self.bcrypt_rounds = bcrypt_rounds
        self.logger = logging.getLogger(__name__)

    def _hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.bcrypt_rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def _check_password(password: str, password_hash: Optional[str]) -> bool:
        if not password or not password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Stored hash is not a bcrypt hash
            return False

    def create_user(
        self,
        username: str,
        email: str,
        first_name: str,
        avatar: str,
        password: str,
        last_name: Optional[str] = None,
    ) -> User:
        """
        Register a new user.

        Args:
            username: Unique login name (at least 6 characters)
            email: Unique email address
            first_name: Non-empty, no digits
            avatar: Local .svg avatar filename or absolute image URL
            password: At least 6 characters, mixing letters and non-letters
            last_name: Optional last name

        Returns:
            The new User, without its password hash

        Raises:
            ValidationError: If any field is malformed
            ConflictError: If the username or email is already registered
        """
        validate_username(username)
        validate_email(email)
        validate_password(password)
        validate_first_name(first_name)
        validate_avatar(avatar)

        with self.backend.lock:
            if self.backend.get_user(username) is not None:
                raise ConflictError("Username is already taken.")
            if self.backend.get_user_by_email(email) is not None:
                raise ConflictError("Email is already registered.")

            user = User(
                username=username,
                email=email,
                first_name=first_name.strip(),
                last_name=last_name or None,
                avatar=avatar.strip(),
                password_hash=self._hash_password(password),
            )
            self.backend.create_user(user)

        self.logger.info("Registered user %s", username)
        return user.public()

    def authenticate(self, username: str, password: str) -> User:
        """
        Check credentials.

        The same error is raised for an unknown user and a wrong password so
        callers cannot tell which usernames exist.
        """
        user = self.backend.get_user(username) if username else None
        if user is None or not self._check_password(password, user.password_hash):
            self.logger.info("Failed login attempt for %s", username)
            raise AuthError(INVALID_CREDENTIALS)
        return user.public()

    def get_user(self, username: str) -> User:
        """Get a user by username (without password hash)."""
        user = self.backend.get_user(username)
        if user is None:
            raise NotFoundError("User not found.")
        return user.public()

    def get_avatar(self, username: str) -> str:
        """Get the avatar reference for a user, or '' if none is stored."""
        return self.get_user(username).avatar or ""

    def delete_user(self, username: str) -> None:
        """Delete a user together with all of their playlists."""
        with self.backend.lock:
            if not self.backend.delete_user(username):
                raise NotFoundError("User not found.")
        self.logger.info("Deleted user %s and their playlists", username)
