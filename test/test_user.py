"""
Unit tests for UserManager.

Runs against both storage backends (see the `backend` fixture in conftest.py).
"""

import pytest

from tubelist.errors import AuthError, ConflictError, NotFoundError, ValidationError
from tubelist.playlist import PlaylistManager
from tubelist.user import UserManager


@pytest.fixture
def user_manager(backend):
    """Create a UserManager with the cheapest bcrypt cost."""
    return UserManager(backend, bcrypt_rounds=4)


def register(user_manager, username="alice01", email="alice@example.com", password="abc123"):
    return user_manager.create_user(
        username=username,
        email=email,
        first_name="Alice",
        avatar="avatar1.svg",
        password=password,
    )


class TestUserManager:
    """Tests for UserManager."""

    def test_create_user(self, user_manager):
        user = register(user_manager)

        assert user.username == "alice01"
        assert user.email == "alice@example.com"
        assert user.first_name == "Alice"
        assert user.avatar == "avatar1.svg"
        assert user.password_hash is None

    def test_password_is_hashed(self, user_manager, backend):
        register(user_manager)

        stored = backend.get_user("alice01")
        assert stored.password_hash
        assert stored.password_hash != "abc123"
        assert stored.password_hash.startswith("$2")

    def test_duplicate_username(self, user_manager):
        register(user_manager)

        with pytest.raises(ConflictError, match="Username is already taken."):
            register(user_manager, email="other@example.com")

    def test_duplicate_email(self, user_manager):
        register(user_manager)

        with pytest.raises(ConflictError, match="Email is already registered."):
            register(user_manager, username="alice02")

    def test_validation_runs_before_uniqueness(self, user_manager):
        register(user_manager)

        with pytest.raises(ValidationError):
            register(user_manager, password="abcdef")

    @pytest.mark.parametrize(
        "password,message",
        [
            ("abc", "at least 6 characters"),
            ("abcdef", "one letter and one non-letter"),
            ("123456", "one letter and one non-letter"),
        ],
    )
    def test_rejected_passwords_create_nothing(self, user_manager, backend, password, message):
        with pytest.raises(ValidationError, match=message):
            register(user_manager, password=password)

        assert backend.get_user("alice01") is None

    def test_authenticate(self, user_manager):
        register(user_manager)

        user = user_manager.authenticate("alice01", "abc123")
        assert user.username == "alice01"
        assert user.password_hash is None

    def test_authenticate_wrong_password(self, user_manager):
        register(user_manager)

        with pytest.raises(AuthError, match="Invalid username or password."):
            user_manager.authenticate("alice01", "wrong1")

    def test_authenticate_unknown_user_same_error(self, user_manager):
        with pytest.raises(AuthError, match="Invalid username or password."):
            user_manager.authenticate("nobody1", "abc123")

    def test_get_user_not_found(self, user_manager):
        with pytest.raises(NotFoundError, match="User not found."):
            user_manager.get_user("nobody1")

    def test_get_avatar(self, user_manager):
        register(user_manager)

        assert user_manager.get_avatar("alice01") == "avatar1.svg"

    def test_delete_user_removes_playlists(self, user_manager, backend):
        register(user_manager)
        playlists = PlaylistManager(backend)
        playlist = playlists.create_playlist("Favorites", "alice01")

        user_manager.delete_user("alice01")

        assert backend.get_user("alice01") is None
        assert backend.get_playlist(playlist.id) is None

    def test_delete_missing_user(self, user_manager):
        with pytest.raises(NotFoundError):
            user_manager.delete_user("nobody1")
