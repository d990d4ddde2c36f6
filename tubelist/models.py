"""
Data models for tubelist.

Defines typed dataclasses for all entities used throughout the application.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

UNKNOWN_TITLE = "Unknown Title"
PLACEHOLDER_THUMBNAIL = "https://via.placeholder.com/120x90"


@dataclass
class User:
    """Registered user. The password hash never leaves the store."""

    username: str
    email: str
    first_name: str
    avatar: str
    last_name: Optional[str] = None
    password_hash: Optional[str] = field(default=None, repr=False)

    def public(self) -> "User":
        """Return a copy safe to hand to a client (no password hash)."""
        return User(
            username=self.username,
            email=self.email,
            first_name=self.first_name,
            avatar=self.avatar,
            last_name=self.last_name,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "avatar": self.avatar,
        }


@dataclass
class SongEntry:
    """One playlist line item referencing a YouTube video."""

    entry_id: int
    youtube_id: str
    rating: Optional[int] = None  # None until first rated

    def to_dict(self) -> Dict[str, Any]:
        return {"entry_id": self.entry_id, "youtube_id": self.youtube_id, "rating": self.rating}


@dataclass
class Playlist:
    """Named, user-owned ordered collection of song entries."""

    id: int
    owner: str  # username
    name: str
    songs: List[SongEntry] = field(default_factory=list)

    def find_song(self, entry_id: int) -> Optional[SongEntry]:
        for song in self.songs:
            if song.entry_id == entry_id:
                return song
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner,
            "name": self.name,
            "songs": [song.to_dict() for song in self.songs],
        }


@dataclass
class VideoMetadata:
    """Video details returned by the YouTube Data API."""

    video_id: str
    title: str
    thumbnail_url: str = ""
    duration_iso8601: str = ""
    view_count: int = 0
    channel_title: str = ""
    published_at: Optional[str] = None

    @property
    def duration_seconds(self) -> Optional[int]:
        from .youtube import parse_duration

        return parse_duration(self.duration_iso8601)

    @property
    def duration_display(self) -> str:
        from .youtube import format_duration

        return format_duration(self.duration_seconds)

    @property
    def view_count_display(self) -> str:
        return f"{self.view_count:,}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "video_id": self.video_id,
            "title": self.title,
            "thumbnail_url": self.thumbnail_url,
            "duration": self.duration_display,
            "duration_seconds": self.duration_seconds,
            "view_count": self.view_count,
            "view_count_display": self.view_count_display,
            "channel_title": self.channel_title,
            "published_at": self.published_at,
        }


@dataclass
class EnrichedSongEntry:
    """A SongEntry joined with its (possibly missing) video metadata."""

    song: SongEntry
    metadata: Optional[VideoMetadata] = None

    @property
    def entry_id(self) -> int:
        return self.song.entry_id

    @property
    def youtube_id(self) -> str:
        return self.song.youtube_id

    @property
    def rating(self) -> Optional[int]:
        return self.song.rating

    @property
    def title(self) -> str:
        return self.metadata.title if self.metadata else UNKNOWN_TITLE

    @property
    def thumbnail_url(self) -> str:
        if self.metadata and self.metadata.thumbnail_url:
            return self.metadata.thumbnail_url
        return PLACEHOLDER_THUMBNAIL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "youtube_id": self.youtube_id,
            "rating": self.rating,
            "title": self.title,
            "thumbnail_url": self.thumbnail_url,
            "duration": self.metadata.duration_display if self.metadata else None,
            "has_metadata": self.metadata is not None,
        }


@dataclass
class ConfigEntry:
    """Configuration entry."""

    key: str
    value: str
