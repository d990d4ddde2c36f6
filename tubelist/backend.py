"""
Storage backend abstraction for tubelist.

The store's invariants live in UserManager and PlaylistManager; a backend
only persists rows. Absent entities are reported as None/False, never raised.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .models import ConfigEntry, Playlist, SongEntry, User


class StorageBackend(ABC):
    """Abstract base class for persistence adapters."""

    def __init__(self):
        # Held by the managers around check-then-write sequences
        self.lock = threading.RLock()

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier for this backend (e.g., 'sqlite')."""
        ...

    # Users

    @abstractmethod
    def create_user(self, user: User) -> User:
        """Insert a user. Caller guarantees username/email are free."""
        ...

    @abstractmethod
    def get_user(self, username: str) -> Optional[User]:
        """Get a user (including password hash) by username."""
        ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    def delete_user(self, username: str) -> bool:
        """Delete a user and, by cascade, all of their playlists."""
        ...

    # Playlists

    @abstractmethod
    def create_playlist(self, owner: str, name: str) -> Playlist:
        """Insert a playlist with a freshly allocated id and no songs."""
        ...

    @abstractmethod
    def get_playlist(self, playlist_id: int) -> Optional[Playlist]:
        ...

    @abstractmethod
    def list_playlists(self, owner: str) -> List[Playlist]:
        """All playlists owned by a user, in insertion order."""
        ...

    @abstractmethod
    def rename_playlist(self, playlist_id: int, name: str) -> bool:
        ...

    @abstractmethod
    def delete_playlist(self, playlist_id: int) -> bool:
        """Delete a playlist and its songs."""
        ...

    # Songs

    @abstractmethod
    def add_song(self, playlist_id: int, youtube_id: str) -> SongEntry:
        """Append an unrated song entry to a playlist."""
        ...

    @abstractmethod
    def get_song(self, playlist_id: int, entry_id: int) -> Optional[SongEntry]:
        """Get an entry only if it belongs to the given playlist."""
        ...

    @abstractmethod
    def update_rating(self, playlist_id: int, entry_id: int, rating: int) -> bool:
        ...

    @abstractmethod
    def remove_song(self, playlist_id: int, entry_id: int) -> bool:
        ...

    # Configuration

    @abstractmethod
    def get_config(self, key: str) -> Optional[ConfigEntry]:
        ...

    @abstractmethod
    def set_config(self, key: str, value: str) -> bool:
        ...

    @abstractmethod
    def all_config(self) -> List[ConfigEntry]:
        ...

    @abstractmethod
    def initialize_config_defaults(self, defaults: Dict[str, Optional[str]]) -> None:
        """Insert defaults for keys that are not yet stored."""
        ...

    def close(self) -> None:
        """Release resources. Default is a no-op."""
        pass
