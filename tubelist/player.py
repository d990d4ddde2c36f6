"""
Video player capability used by the playback queue.

The queue controller only talks to VideoPlayer. The embedded browser player
is reached through SessionPlayer, which records what the page should show
and receives state changes reported back by the page.
"""

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional


class PlayerEvent(Enum):
    """State changes reported by a video player."""

    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"


StateCallback = Callable[[PlayerEvent], None]


class VideoPlayer(ABC):
    """Abstract video player."""

    @abstractmethod
    def load(self, video_id: str) -> None:
        """Load a video and show the player surface."""
        ...

    @abstractmethod
    def play(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop playback and hide the player surface."""
        ...

    @abstractmethod
    def on_state_change(self, callback: StateCallback) -> None:
        """Register a callback for player state changes."""
        ...


class SessionPlayer(VideoPlayer):
    """
    Player adapter for a browser session.

    The page polls `snapshot()` to decide what its embedded YouTube player
    should be doing, and forwards the embedded player's events to `notify()`.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._callbacks: List[StateCallback] = []
        self.video_id: Optional[str] = None
        self.visible = False
        self.playing = False
        # Bumped on every load so the page can tell a reload of the same video
        self.load_count = 0

    def load(self, video_id: str) -> None:
        with self._lock:
            self.video_id = video_id
            self.visible = True
            self.load_count += 1
        self.logger.debug("Loaded video %s", video_id)

    def play(self) -> None:
        with self._lock:
            self.playing = True

    def stop(self) -> None:
        with self._lock:
            self.playing = False
            self.visible = False

    def on_state_change(self, callback: StateCallback) -> None:
        self._callbacks.append(callback)

    def notify(self, event: PlayerEvent) -> None:
        """Forward a state change reported by the page."""
        with self._lock:
            if event == PlayerEvent.PLAYING:
                self.playing = True
            elif event in (PlayerEvent.PAUSED, PlayerEvent.ENDED):
                self.playing = False
        for callback in list(self._callbacks):
            callback(event)

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "video_id": self.video_id,
                "visible": self.visible,
                "playing": self.playing,
                "load_count": self.load_count,
            }
