"""
Playlist management for tubelist.

Owns playlist and song-entry mutations and enforces their consistency rules:
every playlist has an existing owner, entries belong to exactly one playlist,
ratings stay within bounds. Nothing is written until validation has passed.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List

from .backend import StorageBackend
from .enrichment import fetch_enriched
from .errors import NotFoundError
from .models import Playlist, SongEntry
from .validation import validate_playlist_name, validate_rating, validate_youtube_id

if TYPE_CHECKING:
    from .youtube import YouTubeClient

PLAYLIST_NOT_FOUND = "Playlist not found."
SONG_NOT_FOUND = "Song not found in playlist."


class PlaylistManager:
    """Manages playlists and their song entries."""

    def __init__(self, backend: StorageBackend):
        """
        Initialize PlaylistManager.

        Args:
            backend: Storage backend for persistence
        """
        self.backend = backend
        self.logger = logging.getLogger(__name__)

    def _require_playlist(self, playlist_id: int) -> Playlist:
        playlist = self.backend.get_playlist(playlist_id)
        if playlist is None:
            raise NotFoundError(PLAYLIST_NOT_FOUND)
        return playlist

    # =========================================================================
    # Playlists
    # =========================================================================

    def create_playlist(self, name: str, owner_username: str) -> Playlist:
        """Create an empty playlist. Names need not be unique."""
        name = validate_playlist_name(name)

        with self.backend.lock:
            if self.backend.get_user(owner_username) is None:
                raise NotFoundError("User not found.")
            playlist = self.backend.create_playlist(owner_username, name)

        self.logger.info(
            "Playlist created: %s (%s) for user %s", playlist.id, name, owner_username
        )
        return playlist

    def get_playlist(self, playlist_id: int) -> Playlist:
        return self._require_playlist(playlist_id)

    def rename_playlist(self, playlist_id: int, name: str) -> Playlist:
        name = validate_playlist_name(name)
        with self.backend.lock:
            if not self.backend.rename_playlist(playlist_id, name):
                raise NotFoundError(PLAYLIST_NOT_FOUND)
            playlist = self._require_playlist(playlist_id)
        self.logger.info("Playlist renamed: %s -> %s", playlist_id, name)
        return playlist

    def delete_playlist(self, playlist_id: int) -> None:
        """Delete a playlist and its songs. Deleting a missing playlist is an error."""
        with self.backend.lock:
            if not self.backend.delete_playlist(playlist_id):
                raise NotFoundError(PLAYLIST_NOT_FOUND)
        self.logger.info("Playlist deleted: %s", playlist_id)

    def list_playlists_for_user(self, username: str) -> List[Playlist]:
        if self.backend.get_user(username) is None:
            raise NotFoundError("User not found.")
        return self.backend.list_playlists(username)

    # =========================================================================
    # Songs
    # =========================================================================

    def add_song(self, playlist_id: int, youtube_id: str) -> Playlist:
        """Append an unrated song. The same video may appear more than once."""
        youtube_id = validate_youtube_id(youtube_id)

        with self.backend.lock:
            self._require_playlist(playlist_id)
            entry = self.backend.add_song(playlist_id, youtube_id)
            playlist = self._require_playlist(playlist_id)

        self.logger.info(
            "Song added to playlist %s: %s (entry %s)", playlist_id, youtube_id, entry.entry_id
        )
        return playlist

    def remove_song(self, playlist_id: int, entry_id: int) -> Playlist:
        with self.backend.lock:
            self._require_playlist(playlist_id)
            if not self.backend.remove_song(playlist_id, entry_id):
                raise NotFoundError(SONG_NOT_FOUND)
            playlist = self._require_playlist(playlist_id)

        self.logger.info("Song removed from playlist %s: entry %s", playlist_id, entry_id)
        return playlist

    def rate_song(self, playlist_id: int, entry_id: int, rating: Any) -> SongEntry:
        """Set a song's rating (1-10). Invalid ratings leave the old one intact."""
        value = validate_rating(rating)

        with self.backend.lock:
            self._require_playlist(playlist_id)
            if not self.backend.update_rating(playlist_id, entry_id, value):
                raise NotFoundError(SONG_NOT_FOUND)
            song = self.backend.get_song(playlist_id, entry_id)

        if song is None:
            raise NotFoundError(SONG_NOT_FOUND)
        self.logger.debug("Rated entry %s in playlist %s: %s", entry_id, playlist_id, value)
        return song

    def get_playlist_with_videos(
        self, playlist_id: int, youtube_client: "YouTubeClient"
    ) -> Dict[str, Any]:
        """
        Get a playlist along with its songs joined to YouTube metadata.

        Metadata failures degrade to placeholder titles rather than failing.
        """
        playlist = self._require_playlist(playlist_id)
        return {
            "playlist": playlist,
            "videos": fetch_enriched(playlist.songs, youtube_client),
        }
