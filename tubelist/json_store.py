"""
Flat-file JSON storage for tubelist.

Keeps the whole store in one JSON document that is rewritten atomically
after every mutation. Ids come from monotonic counters so a deleted id is
never handed out again.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from .backend import StorageBackend
from .models import ConfigEntry, Playlist, SongEntry, User


def _empty_document() -> Dict[str, Any]:
    return {
        "next_playlist_id": 1,
        "next_entry_id": 1,
        "users": [],
        "playlists": [],
        "config": {},
    }


class JsonFileBackend(StorageBackend):
    """Flat-file storage adapter."""

    def __init__(self, path: Optional[str] = None):
        """
        Initialize the JSON store.

        Args:
            path: Path to the JSON document. If None, uses ~/.tubelist/tubelist.json
        """
        super().__init__()
        self.logger = logging.getLogger(__name__)

        if path is None:
            data_dir = Path.home() / ".tubelist"
            data_dir.mkdir(exist_ok=True)
            path = str(data_dir / "tubelist.json")

        self.path = path
        self._data = self._load()
        self.logger.info("JSON store initialized at %s", self.path)

    @property
    def name(self) -> str:
        return "json"

    # Document I/O

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path) or os.path.getsize(self.path) == 0:
            return _empty_document()
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        # Documents written by older versions may lack newer sections
        for key, value in _empty_document().items():
            data.setdefault(key, value)
        return data

    def _save(self) -> None:
        """Write the document to a temp file and atomically swap it in."""
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            # Drop the unsaved in-memory change so memory matches disk
            self._data = self._load()
            raise

    # Record conversion

    @staticmethod
    def _user_from_record(record: Dict[str, Any]) -> User:
        return User(
            username=record["username"],
            email=record["email"],
            first_name=record["first_name"],
            last_name=record.get("last_name"),
            avatar=record.get("img_url") or "",
            password_hash=record["password"],
        )

    @staticmethod
    def _song_from_record(record: Dict[str, Any]) -> SongEntry:
        return SongEntry(
            entry_id=record["entry_id"],
            youtube_id=record["youtube_id"],
            rating=record.get("rating") or None,
        )

    def _playlist_from_record(self, record: Dict[str, Any]) -> Playlist:
        return Playlist(
            id=record["id"],
            owner=record["owner"],
            name=record["name"],
            songs=[self._song_from_record(song) for song in record["songs"]],
        )

    def _find_user_record(self, username: str) -> Optional[Dict[str, Any]]:
        for record in self._data["users"]:
            if record["username"] == username:
                return record
        return None

    def _find_playlist_record(self, playlist_id: int) -> Optional[Dict[str, Any]]:
        for record in self._data["playlists"]:
            if record["id"] == playlist_id:
                return record
        return None

    def _find_song_record(self, playlist_id: int, entry_id: int) -> Optional[Dict[str, Any]]:
        playlist = self._find_playlist_record(playlist_id)
        if playlist is None:
            return None
        for song in playlist["songs"]:
            if song["entry_id"] == entry_id:
                return song
        return None

    # Users

    def create_user(self, user: User) -> User:
        with self.lock:
            self._data["users"].append(
                {
                    "username": user.username,
                    "email": user.email,
                    "first_name": user.first_name,
                    "last_name": user.last_name,
                    "img_url": user.avatar,
                    "password": user.password_hash,
                }
            )
            self._save()
        return user

    def get_user(self, username: str) -> Optional[User]:
        record = self._find_user_record(username)
        return self._user_from_record(record) if record else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        for record in self._data["users"]:
            if record["email"] == email:
                return self._user_from_record(record)
        return None

    def delete_user(self, username: str) -> bool:
        with self.lock:
            record = self._find_user_record(username)
            if record is None:
                return False
            self._data["users"].remove(record)
            self._data["playlists"] = [
                p for p in self._data["playlists"] if p["owner"] != username
            ]
            self._save()
            return True

    # Playlists

    def create_playlist(self, owner: str, name: str) -> Playlist:
        with self.lock:
            if self._find_user_record(owner) is None:
                raise LookupError(f"No user {owner!r}")
            playlist_id = self._data["next_playlist_id"]
            self._data["next_playlist_id"] = playlist_id + 1
            self._data["playlists"].append(
                {"id": playlist_id, "owner": owner, "name": name, "songs": []}
            )
            self._save()
        return Playlist(id=playlist_id, owner=owner, name=name, songs=[])

    def get_playlist(self, playlist_id: int) -> Optional[Playlist]:
        record = self._find_playlist_record(playlist_id)
        return self._playlist_from_record(record) if record else None

    def list_playlists(self, owner: str) -> List[Playlist]:
        return [
            self._playlist_from_record(record)
            for record in self._data["playlists"]
            if record["owner"] == owner
        ]

    def rename_playlist(self, playlist_id: int, name: str) -> bool:
        with self.lock:
            record = self._find_playlist_record(playlist_id)
            if record is None:
                return False
            record["name"] = name
            self._save()
            return True

    def delete_playlist(self, playlist_id: int) -> bool:
        with self.lock:
            record = self._find_playlist_record(playlist_id)
            if record is None:
                return False
            self._data["playlists"].remove(record)
            self._save()
            return True

    # Songs

    def add_song(self, playlist_id: int, youtube_id: str) -> SongEntry:
        with self.lock:
            record = self._find_playlist_record(playlist_id)
            if record is None:
                raise LookupError(f"No playlist {playlist_id}")
            entry_id = self._data["next_entry_id"]
            self._data["next_entry_id"] = entry_id + 1
            record["songs"].append({"entry_id": entry_id, "youtube_id": youtube_id, "rating": 0})
            self._save()
        return SongEntry(entry_id=entry_id, youtube_id=youtube_id)

    def get_song(self, playlist_id: int, entry_id: int) -> Optional[SongEntry]:
        record = self._find_song_record(playlist_id, entry_id)
        return self._song_from_record(record) if record else None

    def update_rating(self, playlist_id: int, entry_id: int, rating: int) -> bool:
        with self.lock:
            record = self._find_song_record(playlist_id, entry_id)
            if record is None:
                return False
            record["rating"] = rating
            self._save()
            return True

    def remove_song(self, playlist_id: int, entry_id: int) -> bool:
        with self.lock:
            playlist = self._find_playlist_record(playlist_id)
            song = self._find_song_record(playlist_id, entry_id)
            if playlist is None or song is None:
                return False
            playlist["songs"].remove(song)
            self._save()
            return True

    # Configuration

    def get_config(self, key: str) -> Optional[ConfigEntry]:
        if key not in self._data["config"]:
            return None
        return ConfigEntry(key=key, value=self._data["config"][key])

    def set_config(self, key: str, value: str) -> bool:
        with self.lock:
            self._data["config"][key] = value
            self._save()
        return True

    def all_config(self) -> List[ConfigEntry]:
        return [
            ConfigEntry(key=key, value=value)
            for key, value in sorted(self._data["config"].items())
        ]

    def initialize_config_defaults(self, defaults: Dict[str, Optional[str]]) -> None:
        with self.lock:
            changed = False
            for key, value in defaults.items():
                if key not in self._data["config"]:
                    self._data["config"][key] = None if value is None else str(value)
                    changed = True
            if changed:
                self._save()
