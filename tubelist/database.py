"""
Database module for tubelist.

Handles SQLite database initialization, schema creation, connection management,
and the repositories that map rows to model objects.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Dict, List, Optional

from .backend import StorageBackend
from .models import ConfigEntry, Playlist, SongEntry, User


class Database:
    """Manages SQLite database connection and schema."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses ~/.tubelist/tubelist.db
        """
        self.logger = logging.getLogger(__name__)

        if db_path is None:
            home = Path.home()
            data_dir = home / ".tubelist"
            data_dir.mkdir(exist_ok=True)
            db_path = str(data_dir / "tubelist.db")

        self.db_path = db_path
        self._ensure_schema()
        self.logger.info("Database initialized at %s", self.db_path)

    def _ensure_schema(self):
        """Ensure database schema exists."""
        conn = self.get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT UNIQUE NOT NULL,
                email TEXT UNIQUE NOT NULL,
                first_name TEXT NOT NULL,
                last_name TEXT,
                img_url TEXT,
                password TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS playlists (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                title TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
            )
        """)

        # rating 0 means "not rated yet"
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS playlist_songs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                playlist_id INTEGER NOT NULL,
                youtube_id TEXT NOT NULL,
                rating INTEGER DEFAULT 0,
                FOREIGN KEY (playlist_id) REFERENCES playlists(id) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS config (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_playlists_user_id
            ON playlists(user_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_playlist_songs_playlist_id
            ON playlist_songs(playlist_id)
        """)

        conn.commit()
        conn.close()
        self.logger.debug("Database schema created/verified")

    def get_connection(self):
        """
        Get a new database connection.

        Foreign keys are enforced per connection, so every connection turns them on.
        Caller is responsible for closing the connection when done.
        """
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn


class UserRepository:
    """Row mapping for the users table."""

    def __init__(self, database: Database):
        self.database = database

    def _row_to_user(self, row) -> User:
        return User(
            username=row["username"],
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            avatar=row["img_url"] or "",
            password_hash=row["password"],
        )

    def create(self, user: User) -> User:
        conn = self.database.get_connection()
        try:
            conn.execute(
                """
                INSERT INTO users (username, email, first_name, last_name, img_url, password)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    user.username,
                    user.email,
                    user.first_name,
                    user.last_name,
                    user.avatar,
                    user.password_hash,
                ),
            )
            conn.commit()
            return user
        finally:
            conn.close()

    def get_by_username(self, username: str) -> Optional[User]:
        conn = self.database.get_connection()
        try:
            row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
            return self._row_to_user(row) if row else None
        finally:
            conn.close()

    def get_by_email(self, email: str) -> Optional[User]:
        conn = self.database.get_connection()
        try:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
            return self._row_to_user(row) if row else None
        finally:
            conn.close()

    def get_id(self, username: str) -> Optional[int]:
        conn = self.database.get_connection()
        try:
            row = conn.execute("SELECT id FROM users WHERE username = ?", (username,)).fetchone()
            return row["id"] if row else None
        finally:
            conn.close()

    def delete(self, username: str) -> bool:
        conn = self.database.get_connection()
        try:
            cursor = conn.execute("DELETE FROM users WHERE username = ?", (username,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()


class PlaylistSongRepository:
    """Row mapping for the playlist_songs table."""

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    def _row_to_song(row) -> SongEntry:
        return SongEntry(
            entry_id=row["id"],
            youtube_id=row["youtube_id"],
            rating=row["rating"] or None,
        )

    def add(self, playlist_id: int, youtube_id: str) -> SongEntry:
        conn = self.database.get_connection()
        try:
            cursor = conn.execute(
                "INSERT INTO playlist_songs (playlist_id, youtube_id, rating) VALUES (?, ?, 0)",
                (playlist_id, youtube_id),
            )
            conn.commit()
            return SongEntry(entry_id=cursor.lastrowid, youtube_id=youtube_id)
        finally:
            conn.close()

    def get_for_playlist(self, playlist_id: int) -> List[SongEntry]:
        conn = self.database.get_connection()
        try:
            rows = conn.execute(
                "SELECT id, youtube_id, rating FROM playlist_songs WHERE playlist_id = ? ORDER BY id",
                (playlist_id,),
            ).fetchall()
            return [self._row_to_song(row) for row in rows]
        finally:
            conn.close()

    def get(self, playlist_id: int, entry_id: int) -> Optional[SongEntry]:
        conn = self.database.get_connection()
        try:
            row = conn.execute(
                "SELECT id, youtube_id, rating FROM playlist_songs WHERE id = ? AND playlist_id = ?",
                (entry_id, playlist_id),
            ).fetchone()
            return self._row_to_song(row) if row else None
        finally:
            conn.close()

    def update_rating(self, playlist_id: int, entry_id: int, rating: int) -> bool:
        conn = self.database.get_connection()
        try:
            cursor = conn.execute(
                "UPDATE playlist_songs SET rating = ? WHERE id = ? AND playlist_id = ?",
                (rating, entry_id, playlist_id),
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def remove(self, playlist_id: int, entry_id: int) -> bool:
        conn = self.database.get_connection()
        try:
            cursor = conn.execute(
                "DELETE FROM playlist_songs WHERE id = ? AND playlist_id = ?",
                (entry_id, playlist_id),
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()


class PlaylistRepository:
    """Row mapping for the playlists table (songs loaded alongside)."""

    def __init__(self, database: Database):
        self.database = database
        self.songs = PlaylistSongRepository(database)

    def _row_to_playlist(self, row) -> Playlist:
        return Playlist(
            id=row["id"],
            owner=row["username"],
            name=row["title"],
            songs=self.songs.get_for_playlist(row["id"]),
        )

    def create(self, user_id: int, owner: str, name: str) -> Playlist:
        conn = self.database.get_connection()
        try:
            cursor = conn.execute(
                "INSERT INTO playlists (user_id, title) VALUES (?, ?)", (user_id, name)
            )
            conn.commit()
            return Playlist(id=cursor.lastrowid, owner=owner, name=name, songs=[])
        finally:
            conn.close()

    def get(self, playlist_id: int) -> Optional[Playlist]:
        conn = self.database.get_connection()
        try:
            row = conn.execute(
                """
                SELECT p.id, p.title, u.username
                FROM playlists p JOIN users u ON u.id = p.user_id
                WHERE p.id = ?
                """,
                (playlist_id,),
            ).fetchone()
        finally:
            conn.close()
        return self._row_to_playlist(row) if row else None

    def get_by_owner(self, owner: str) -> List[Playlist]:
        conn = self.database.get_connection()
        try:
            rows = conn.execute(
                """
                SELECT p.id, p.title, u.username
                FROM playlists p JOIN users u ON u.id = p.user_id
                WHERE u.username = ?
                ORDER BY p.id
                """,
                (owner,),
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_playlist(row) for row in rows]

    def rename(self, playlist_id: int, name: str) -> bool:
        conn = self.database.get_connection()
        try:
            cursor = conn.execute(
                "UPDATE playlists SET title = ? WHERE id = ?", (name, playlist_id)
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def delete(self, playlist_id: int) -> bool:
        conn = self.database.get_connection()
        try:
            cursor = conn.execute("DELETE FROM playlists WHERE id = ?", (playlist_id,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()


class ConfigRepository:
    """Key/value rows in the config table."""

    def __init__(self, database: Database):
        self.database = database

    def get(self, key: str) -> Optional[ConfigEntry]:
        conn = self.database.get_connection()
        try:
            row = conn.execute("SELECT key, value FROM config WHERE key = ?", (key,)).fetchone()
            return ConfigEntry(key=row["key"], value=row["value"]) if row else None
        finally:
            conn.close()

    def set(self, key: str, value: str) -> bool:
        conn = self.database.get_connection()
        try:
            conn.execute(
                """
                INSERT INTO config (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )
            conn.commit()
            return True
        finally:
            conn.close()

    def get_all(self) -> List[ConfigEntry]:
        conn = self.database.get_connection()
        try:
            rows = conn.execute("SELECT key, value FROM config ORDER BY key").fetchall()
            return [ConfigEntry(key=row["key"], value=row["value"]) for row in rows]
        finally:
            conn.close()

    def initialize_defaults(self, defaults: Dict[str, Optional[str]]) -> None:
        conn = self.database.get_connection()
        try:
            for key, value in defaults.items():
                conn.execute(
                    "INSERT OR IGNORE INTO config (key, value) VALUES (?, ?)",
                    (key, None if value is None else str(value)),
                )
            conn.commit()
        finally:
            conn.close()


class SQLiteBackend(StorageBackend):
    """Relational storage adapter."""

    def __init__(self, database: Database):
        super().__init__()
        self.database = database
        self.users = UserRepository(database)
        self.playlists = PlaylistRepository(database)
        self.songs = PlaylistSongRepository(database)
        self.config = ConfigRepository(database)

    @property
    def name(self) -> str:
        return "sqlite"

    def create_user(self, user: User) -> User:
        return self.users.create(user)

    def get_user(self, username: str) -> Optional[User]:
        return self.users.get_by_username(username)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.users.get_by_email(email)

    def delete_user(self, username: str) -> bool:
        return self.users.delete(username)

    def create_playlist(self, owner: str, name: str) -> Playlist:
        user_id = self.users.get_id(owner)
        if user_id is None:
            raise LookupError(f"No user {owner!r}")
        return self.playlists.create(user_id, owner, name)

    def get_playlist(self, playlist_id: int) -> Optional[Playlist]:
        return self.playlists.get(playlist_id)

    def list_playlists(self, owner: str) -> List[Playlist]:
        return self.playlists.get_by_owner(owner)

    def rename_playlist(self, playlist_id: int, name: str) -> bool:
        return self.playlists.rename(playlist_id, name)

    def delete_playlist(self, playlist_id: int) -> bool:
        return self.playlists.delete(playlist_id)

    def add_song(self, playlist_id: int, youtube_id: str) -> SongEntry:
        return self.songs.add(playlist_id, youtube_id)

    def get_song(self, playlist_id: int, entry_id: int) -> Optional[SongEntry]:
        return self.songs.get(playlist_id, entry_id)

    def update_rating(self, playlist_id: int, entry_id: int, rating: int) -> bool:
        return self.songs.update_rating(playlist_id, entry_id, rating)

    def remove_song(self, playlist_id: int, entry_id: int) -> bool:
        return self.songs.remove(playlist_id, entry_id)

    def get_config(self, key: str) -> Optional[ConfigEntry]:
        return self.config.get(key)

    def set_config(self, key: str, value: str) -> bool:
        return self.config.set(key, value)

    def all_config(self) -> List[ConfigEntry]:
        return self.config.get_all()

    def initialize_config_defaults(self, defaults: Dict[str, Optional[str]]) -> None:
        self.config.initialize_defaults(defaults)
