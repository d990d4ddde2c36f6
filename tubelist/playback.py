"""
Playback queue controller for tubelist.

Derives the visible (filtered, sorted) list of a playlist's songs, plays them
back one at a time through a VideoPlayer, and keeps the queue consistent when
songs are deleted or re-rated during playback.
"""

import logging
import threading
from collections import OrderedDict
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from pyuca import Collator

from .enrichment import enrich_songs, fetch_enriched
from .errors import NotFoundError, ValidationError
from .models import EnrichedSongEntry, Playlist, SongEntry
from .player import PlayerEvent, SessionPlayer, VideoPlayer

if TYPE_CHECKING:
    from .playlist import PlaylistManager
    from .youtube import YouTubeClient

_collator: Optional[Collator] = None
_collator_lock = threading.Lock()


def title_sort_key(title: str):
    """Unicode collation key for a title, so 'Éclair' sorts between 'apple' and 'Zebra'."""
    global _collator
    if _collator is None:
        with _collator_lock:
            if _collator is None:
                _collator = Collator()
    return _collator.sort_key(title)


class PlaybackState(Enum):
    """Playback state enumeration. Pausing is left to the player itself."""

    IDLE = "idle"
    PLAYING = "playing"


class SortType(Enum):
    NONE = "none"
    NAME = "name"
    RATING = "rating"


class PlaybackQueueController:
    """Owns the ephemeral play queue for one viewer of one playlist at a time."""

    def __init__(
        self,
        player: VideoPlayer,
        playlist_manager: Optional["PlaylistManager"] = None,
    ):
        """
        Initialize PlaybackQueueController.

        Args:
            player: Player the queue drives
            playlist_manager: Store used for delete/rate/add; optional for read-only use
        """
        self.player = player
        self.playlist_manager = playlist_manager
        self.logger = logging.getLogger(__name__)
        self.lock = threading.RLock()

        self.state = PlaybackState.IDLE
        self._playlist_id: Optional[int] = None
        self._playlist_name: Optional[str] = None

        # Canonical song order for the selected playlist (sorting mutates it)
        self._songs: List[EnrichedSongEntry] = []
        # entry_id -> store position, used to restore insertion order
        self._positions: Dict[int, int] = {}
        self._next_position = 0

        self._queue: List[EnrichedSongEntry] = []
        self._current_index = -1
        self._sort_type = SortType.NONE
        self._filter_text = ""

        self.player.on_state_change(self._on_player_event)

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def playlist_id(self) -> Optional[int]:
        return self._playlist_id

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def queue(self) -> List[EnrichedSongEntry]:
        return list(self._queue)

    @property
    def songs(self) -> List[EnrichedSongEntry]:
        return list(self._songs)

    @property
    def sort_type(self) -> SortType:
        return self._sort_type

    @property
    def filter_text(self) -> str:
        return self._filter_text

    @property
    def visible(self) -> List[EnrichedSongEntry]:
        """Songs whose title contains the filter text, in canonical order."""
        needle = self._filter_text.lower()
        return [entry for entry in self._songs if needle in entry.title.lower()]

    @property
    def current(self) -> Optional[EnrichedSongEntry]:
        if 0 <= self._current_index < len(self._queue):
            return self._queue[self._current_index]
        return None

    @property
    def has_previous(self) -> bool:
        return bool(self._queue) and self._current_index > 0

    @property
    def has_next(self) -> bool:
        return bool(self._queue) and self._current_index < len(self._queue) - 1

    # =========================================================================
    # Playlist selection and enrichment
    # =========================================================================

    def select_playlist(self, playlist: Playlist) -> int:
        """
        Switch to a playlist, discarding the previous queue.

        Songs are shown without metadata until apply_enrichment() is called
        with the returned request token.

        Returns:
            Token identifying this selection (the playlist id)
        """
        with self.lock:
            self.close(reset=True)
            self._playlist_id = playlist.id
            self._playlist_name = playlist.name
            self._songs = enrich_songs(playlist.songs, None)
            self._positions = {song.entry_id: i for i, song in enumerate(playlist.songs)}
            self._next_position = len(playlist.songs)
            self._apply_sort()
            self.logger.info("Selected playlist %s (%s songs)", playlist.id, len(self._songs))
            return playlist.id

    def deselect(self):
        """Forget the selected playlist entirely (e.g., after it was deleted)."""
        with self.lock:
            self.close(reset=True)
            self._playlist_id = None
            self._playlist_name = None
            self._songs = []
            self._positions = {}
            self._next_position = 0

    def apply_enrichment(self, playlist_id: int, enriched: List[EnrichedSongEntry]) -> bool:
        """
        Merge metadata fetched for a selection into the current song list.

        Results for a playlist that is no longer selected are dropped, as is
        metadata for entries deleted since the request. Entries added since
        the request stay without metadata.

        Returns:
            True if the results were applied
        """
        with self.lock:
            if playlist_id != self._playlist_id:
                self.logger.debug(
                    "Discarding metadata for playlist %s (now showing %s)",
                    playlist_id,
                    self._playlist_id,
                )
                return False

            metadata = {entry.entry_id: entry.metadata for entry in enriched}
            for entry in self._songs:
                if entry.entry_id in metadata:
                    # Mutate in place so queued references see the metadata too
                    entry.metadata = metadata[entry.entry_id]
            self._apply_sort()
            return True

    def load_playlist(self, playlist: Playlist, youtube_client: "YouTubeClient") -> bool:
        """Select a playlist and fetch its metadata. The lock is not held while fetching."""
        token = self.select_playlist(playlist)
        enriched = fetch_enriched(playlist.songs, youtube_client)
        return self.apply_enrichment(token, enriched)

    # =========================================================================
    # Filtering and sorting
    # =========================================================================

    def set_filter(self, text: Optional[str]) -> List[EnrichedSongEntry]:
        with self.lock:
            self._filter_text = text or ""
            return self.visible

    def sort(self, sort_type: Union[SortType, str]) -> List[EnrichedSongEntry]:
        """
        Reorder the canonical song list.

        'name' sorts by title, 'rating' by rating descending with unrated
        songs last, 'none' restores store order. The queue is left untouched.
        """
        if not isinstance(sort_type, SortType):
            try:
                sort_type = SortType(sort_type)
            except ValueError:
                raise ValidationError(f"Unknown sort type: {sort_type}") from None

        with self.lock:
            self._sort_type = sort_type
            self._apply_sort()
            return self.visible

    def _apply_sort(self):
        if self._sort_type == SortType.NAME:
            self._songs.sort(key=lambda entry: title_sort_key(entry.title))
        elif self._sort_type == SortType.RATING:
            # Stable, so equal ratings keep their current relative order
            self._songs.sort(key=lambda entry: entry.rating or 0, reverse=True)
        else:
            self._songs.sort(key=lambda entry: self._positions.get(entry.entry_id, 0))

    # =========================================================================
    # Playback navigation
    # =========================================================================

    def _load_current(self, autoplay: bool = True):
        entry = self._queue[self._current_index]
        self.logger.info(
            "Loading queue item %s/%s: %s",
            self._current_index + 1,
            len(self._queue),
            entry.youtube_id,
        )
        self.player.load(entry.youtube_id)
        if autoplay:
            self.player.play()
        self.state = PlaybackState.PLAYING

    def start(self) -> bool:
        """Queue the whole visible list and play it from the top."""
        with self.lock:
            visible = self.visible
            if not visible:
                self.logger.debug("Nothing visible to play")
                return False
            self._queue = list(visible)
            self._current_index = 0
            self._load_current()
            return True

    def resume(self) -> bool:
        """Continue where playback stopped, or start over if there is nothing to continue."""
        with self.lock:
            if not self._queue or self._current_index == -1:
                return self.start()
            if self._current_index >= len(self._queue):
                self._current_index = 0
            self._load_current()
            return True

    def play_at(self, index: int) -> bool:
        """Play the visible song at `index`, queueing it and everything visible after it."""
        with self.lock:
            visible = self.visible
            if index < 0 or index >= len(visible):
                return False
            self._queue = visible[index:]
            self._current_index = 0
            self._load_current()
            return True

    def play_entry(self, entry_id: int) -> bool:
        """Play a specific visible song."""
        with self.lock:
            for index, entry in enumerate(self.visible):
                if entry.entry_id == entry_id:
                    return self.play_at(index)
            return False

    def next(self) -> bool:
        with self.lock:
            if not self.has_next:
                return False
            self._current_index += 1
            self._load_current()
            return True

    def previous(self) -> bool:
        with self.lock:
            if not self.has_previous:
                return False
            self._current_index -= 1
            self._load_current()
            return True

    def on_video_ended(self):
        """Advance after a video finishes; after the last one, go idle."""
        with self.lock:
            if self.has_next:
                self._current_index += 1
                self._load_current()
            else:
                self.logger.info("Reached end of queue")
                self._current_index = -1
                self.state = PlaybackState.IDLE

    def close(self, reset: bool = False):
        """
        Stop the player.

        Args:
            reset: Also forget the queue (used when switching playlists).
                   Otherwise resume() can continue later.
        """
        with self.lock:
            self.player.stop()
            self.state = PlaybackState.IDLE
            if reset:
                self._queue = []
                self._current_index = -1

    def _on_player_event(self, event: PlayerEvent):
        if event == PlayerEvent.ENDED:
            self.on_video_ended()

    # =========================================================================
    # Reacting to store changes
    # =========================================================================

    def on_entry_deleted(self, entry_id: int):
        """Remove a deleted entry from the queue, keeping the current song if possible."""
        with self.lock:
            index = next(
                (i for i, entry in enumerate(self._queue) if entry.entry_id == entry_id), -1
            )
            if index == -1:
                return

            del self._queue[index]

            if index == self._current_index:
                if not self._queue:
                    self._current_index = -1
                    self.close()
                    return
                # The song after the deleted one (or the new last song) takes over
                self._current_index = min(self._current_index, len(self._queue) - 1)
                self._load_current()
            elif index < self._current_index:
                self._current_index -= 1

    def _forget_entry(self, entry_id: int):
        self.on_entry_deleted(entry_id)
        self._songs = [entry for entry in self._songs if entry.entry_id != entry_id]
        self._positions.pop(entry_id, None)

    def _find_song(self, entry_id: int) -> Optional[EnrichedSongEntry]:
        for entry in self._songs:
            if entry.entry_id == entry_id:
                return entry
        return None

    def _require_store(self) -> "PlaylistManager":
        if self.playlist_manager is None or self._playlist_id is None:
            raise ValidationError("No playlist selected.")
        return self.playlist_manager

    def delete_song(self, entry_id: int) -> bool:
        """
        Remove a song from the selected playlist.

        The store is updated first; local state only changes once it succeeds.
        An entry that is already gone from the store is dropped locally.

        Returns:
            True if the store deleted the entry, False if it was already gone
        """
        with self.lock:
            store = self._require_store()
            try:
                store.remove_song(self._playlist_id, entry_id)
                removed = True
            except NotFoundError:
                self.logger.info(
                    "Entry %s already removed from playlist %s", entry_id, self._playlist_id
                )
                removed = False
            self._forget_entry(entry_id)
            return removed

    def rate_song(self, entry_id: int, rating: Any) -> Optional[SongEntry]:
        """
        Rate a song in the selected playlist.

        Returns:
            The updated entry, or None if the entry no longer exists
        """
        with self.lock:
            store = self._require_store()
            try:
                updated = store.rate_song(self._playlist_id, entry_id, rating)
            except NotFoundError:
                self.logger.info("Entry %s vanished before rating", entry_id)
                self._forget_entry(entry_id)
                return None

            entry = self._find_song(entry_id)
            if entry is not None:
                entry.song.rating = updated.rating
                if self._sort_type == SortType.RATING:
                    self._apply_sort()
            return updated

    def add_song(self, youtube_id: str) -> SongEntry:
        """Add a video to the selected playlist and show it (without metadata)."""
        with self.lock:
            store = self._require_store()
            playlist = store.add_song(self._playlist_id, youtube_id)
            added = [song for song in playlist.songs if song.entry_id not in self._positions]
            for song in added:
                self._songs.append(EnrichedSongEntry(song=song))
                self._positions[song.entry_id] = self._next_position
                self._next_position += 1
            self._apply_sort()
            return added[-1]

    # =========================================================================
    # Status
    # =========================================================================

    def status(self) -> Dict[str, Any]:
        with self.lock:
            current = self.current
            return {
                "state": self.state.value,
                "playlist_id": self._playlist_id,
                "playlist_name": self._playlist_name,
                "sort": self._sort_type.value,
                "filter": self._filter_text,
                "current_index": self._current_index,
                "current": current.to_dict() if current else None,
                "has_previous": self.has_previous,
                "has_next": self.has_next,
                "queue": [entry.to_dict() for entry in self._queue],
                "visible": [entry.to_dict() for entry in self.visible],
            }


class PlaybackRegistry:
    """
    Keeps one queue controller per browser session.

    At most max_sessions controllers are kept; the least recently used one
    is closed and dropped when a new session needs room.
    """

    DEFAULT_MAX_SESSIONS = 256

    def __init__(
        self, playlist_manager: "PlaylistManager", max_sessions: int = DEFAULT_MAX_SESSIONS
    ):
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.playlist_manager = playlist_manager
        self.max_sessions = max_sessions
        self.logger = logging.getLogger(__name__)
        self._controllers: "OrderedDict[str, PlaybackQueueController]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._controllers)

    def __contains__(self, session_key: str) -> bool:
        with self._lock:
            return session_key in self._controllers

    def get(self, session_key: str) -> PlaybackQueueController:
        evicted = []
        with self._lock:
            controller = self._controllers.get(session_key)
            if controller is not None:
                self._controllers.move_to_end(session_key)
                return controller

            controller = PlaybackQueueController(SessionPlayer(), self.playlist_manager)
            self._controllers[session_key] = controller
            self.logger.debug("Created playback controller for session %s", session_key)
            while len(self._controllers) > self.max_sessions:
                old_key, old_controller = self._controllers.popitem(last=False)
                self.logger.info("Evicting idle playback controller for session %s", old_key)
                evicted.append(old_controller)

        for old_controller in evicted:
            old_controller.close(reset=True)
        return controller

    def discard(self, session_key: str):
        with self._lock:
            controller = self._controllers.pop(session_key, None)
        if controller is not None:
            controller.close(reset=True)
