"""
FastAPI web server for tubelist.

Provides the REST API for accounts, playlists, search and per-session
playback, plus the single-page web UI.
"""

import logging
import os
import secrets
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel
from starlette.middleware.sessions import SessionMiddleware

from ..config_manager import CONFIG_SCHEMA, ConfigManager
from ..errors import TubelistError, ValidationError
from ..models import Playlist
from ..playback import PlaybackQueueController, PlaybackRegistry
from ..player import PlayerEvent
from ..playlist import PlaylistManager
from ..user import UserManager
from ..youtube import YouTubeClient

logger = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")


# Request models
class RegisterRequest(BaseModel):
    username: str
    email: str
    first_name: str
    avatar: str
    password: str
    password_confirmation: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(BaseModel):
    username: str
    password: str


class PlaylistNameRequest(BaseModel):
    name: str


class AddSongRequest(BaseModel):
    youtube_id: str


class RatingRequest(BaseModel):
    # Validated by the store so malformed values get the store's message
    rating: Any = None


class FilterRequest(BaseModel):
    text: str = ""


class SortRequest(BaseModel):
    sort: str


class PlayerEventRequest(BaseModel):
    event: str


class OperatorAuthRequest(BaseModel):
    pin: str


class ConfigUpdateRequest(BaseModel):
    key: str
    value: str


# Dependency to get components
def get_user_manager(request: Request) -> UserManager:
    """Get UserManager from app state."""
    return request.app.state.user_manager


def get_playlist_manager(request: Request) -> PlaylistManager:
    """Get PlaylistManager from app state."""
    return request.app.state.playlist_manager


def get_youtube_client(request: Request) -> YouTubeClient:
    """Get YouTubeClient from app state."""
    return request.app.state.youtube_client


def get_config_manager(request: Request) -> ConfigManager:
    """Get ConfigManager from app state."""
    return request.app.state.config_manager


def require_username(request: Request) -> str:
    """Require a logged-in session (raises 401 otherwise)."""
    username = request.session.get("username")
    if not username:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return username


def get_controller(
    request: Request, username: str = Depends(require_username)
) -> PlaybackQueueController:
    """Get (or create) the playback controller for this logged-in browser session."""
    session_key = request.session.get("sid")
    if not session_key:
        session_key = secrets.token_hex(16)
        request.session["sid"] = session_key
    return request.app.state.playback_registry.get(session_key)


def start_user_session(request: Request, username: str):
    """Log a user into this browser session, dropping the previous session's queue."""
    session_key = request.session.pop("sid", None)
    if session_key:
        request.app.state.playback_registry.discard(session_key)
    request.session.pop("operator", None)
    request.session["username"] = username


def check_operator(request: Request) -> bool:
    """Check if this session has unlocked operator mode."""
    return request.session.get("operator", False)


def require_operator(request: Request) -> bool:
    """Require operator mode (raises 403 otherwise)."""
    if not check_operator(request):
        raise HTTPException(status_code=403, detail="Operator access required")
    return True


def require_owned_playlist(
    playlist_id: int, username: str, playlist_mgr: PlaylistManager
) -> Playlist:
    playlist = playlist_mgr.get_playlist(playlist_id)
    if playlist.owner != username:
        raise HTTPException(status_code=403, detail="You can only manage your own playlists")
    return playlist


def player_status(controller: PlaybackQueueController) -> dict:
    status = controller.status()
    snapshot = getattr(controller.player, "snapshot", None)
    status["player"] = snapshot() if snapshot else None
    return status


def create_app(
    user_manager: UserManager,
    playlist_manager: PlaylistManager,
    youtube_client: YouTubeClient,
    config_manager: ConfigManager,
    playback_registry: Optional[PlaybackRegistry] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        user_manager: UserManager instance
        playlist_manager: PlaylistManager instance
        youtube_client: YouTubeClient instance
        config_manager: ConfigManager instance
        playback_registry: Per-session playback controllers (created if omitted)

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(title="tubelist", version="1.0.0")

    app.add_middleware(SessionMiddleware, secret_key=config_manager.get("session_secret"))

    # Store components in app state
    app.state.user_manager = user_manager
    app.state.playlist_manager = playlist_manager
    app.state.youtube_client = youtube_client
    app.state.config_manager = config_manager
    app.state.playback_registry = playback_registry or PlaybackRegistry(playlist_manager)

    templates = Jinja2Templates(directory=TEMPLATE_DIR)

    @app.exception_handler(TubelistError)
    async def tubelist_error_handler(request: Request, exc: TubelistError):
        if exc.status_code >= 500:
            logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # Authentication endpoints
    @app.post("/api/register", status_code=201)
    def register(
        request: Request,
        request_data: RegisterRequest,
        user_mgr: UserManager = Depends(get_user_manager),
    ):
        """Register a new user and log them in."""
        if (
            request_data.password_confirmation is not None
            and request_data.password_confirmation != request_data.password
        ):
            raise ValidationError("Passwords do not match.")

        user = user_mgr.create_user(
            username=request_data.username,
            email=request_data.email,
            first_name=request_data.first_name,
            avatar=request_data.avatar,
            password=request_data.password,
            last_name=request_data.last_name,
        )
        start_user_session(request, user.username)
        return {"status": "registered", "user": user.to_dict()}

    @app.post("/api/login")
    def login(
        request: Request,
        request_data: LoginRequest,
        user_mgr: UserManager = Depends(get_user_manager),
    ):
        """Log in with username and password."""
        user = user_mgr.authenticate(request_data.username, request_data.password)
        start_user_session(request, user.username)
        return {"status": "authenticated", "user": user.to_dict()}

    @app.post("/api/logout")
    def logout(request: Request):
        """End the session and drop its playback queue."""
        session_key = request.session.get("sid")
        if session_key:
            request.app.state.playback_registry.discard(session_key)
        request.session.clear()
        return {"status": "logged_out"}

    @app.get("/api/session")
    def get_session(request: Request, user_mgr: UserManager = Depends(get_user_manager)):
        """Report who is logged in, if anyone."""
        username = request.session.get("username")
        if not username:
            return {"user": None}
        return {"user": user_mgr.get_user(username).to_dict()}

    @app.get("/api/users/{username}/image")
    def get_user_image(username: str, user_mgr: UserManager = Depends(get_user_manager)):
        """Get a user's avatar reference."""
        return {"image_url": user_mgr.get_avatar(username)}

    # Playlist endpoints
    @app.get("/api/playlists")
    def list_playlists(
        username: str = Depends(require_username),
        playlist_mgr: PlaylistManager = Depends(get_playlist_manager),
    ):
        """List the logged-in user's playlists."""
        playlists = playlist_mgr.list_playlists_for_user(username)
        return {"playlists": [playlist.to_dict() for playlist in playlists]}

    @app.post("/api/playlists", status_code=201)
    def create_playlist(
        request_data: PlaylistNameRequest,
        username: str = Depends(require_username),
        playlist_mgr: PlaylistManager = Depends(get_playlist_manager),
    ):
        """Create an empty playlist."""
        playlist = playlist_mgr.create_playlist(request_data.name, username)
        return playlist.to_dict()

    @app.get("/api/playlists/{playlist_id}")
    def get_playlist(
        playlist_id: int,
        details: bool = False,
        username: str = Depends(require_username),
        playlist_mgr: PlaylistManager = Depends(get_playlist_manager),
        youtube: YouTubeClient = Depends(get_youtube_client),
    ):
        """Get a playlist, optionally with video details for each song."""
        playlist = require_owned_playlist(playlist_id, username, playlist_mgr)
        if not details:
            return playlist.to_dict()
        result = playlist_mgr.get_playlist_with_videos(playlist_id, youtube)
        return {
            "playlist": result["playlist"].to_dict(),
            "videos": [video.to_dict() for video in result["videos"]],
        }

    @app.put("/api/playlists/{playlist_id}")
    def rename_playlist(
        playlist_id: int,
        request_data: PlaylistNameRequest,
        username: str = Depends(require_username),
        playlist_mgr: PlaylistManager = Depends(get_playlist_manager),
    ):
        """Rename a playlist."""
        require_owned_playlist(playlist_id, username, playlist_mgr)
        return playlist_mgr.rename_playlist(playlist_id, request_data.name).to_dict()

    @app.delete("/api/playlists/{playlist_id}")
    def delete_playlist(
        playlist_id: int,
        username: str = Depends(require_username),
        playlist_mgr: PlaylistManager = Depends(get_playlist_manager),
        controller: PlaybackQueueController = Depends(get_controller),
    ):
        """Delete a playlist and its songs."""
        require_owned_playlist(playlist_id, username, playlist_mgr)
        playlist_mgr.delete_playlist(playlist_id)
        if controller.playlist_id == playlist_id:
            controller.deselect()
        return {"status": "deleted"}

    @app.post("/api/playlists/{playlist_id}/songs", status_code=201)
    def add_song(
        playlist_id: int,
        request_data: AddSongRequest,
        username: str = Depends(require_username),
        playlist_mgr: PlaylistManager = Depends(get_playlist_manager),
        controller: PlaybackQueueController = Depends(get_controller),
    ):
        """Add a video to a playlist."""
        require_owned_playlist(playlist_id, username, playlist_mgr)
        if controller.playlist_id == playlist_id:
            controller.add_song(request_data.youtube_id)
            return playlist_mgr.get_playlist(playlist_id).to_dict()
        return playlist_mgr.add_song(playlist_id, request_data.youtube_id).to_dict()

    @app.delete("/api/playlists/{playlist_id}/songs/{entry_id}")
    def remove_song(
        playlist_id: int,
        entry_id: int,
        username: str = Depends(require_username),
        playlist_mgr: PlaylistManager = Depends(get_playlist_manager),
        controller: PlaybackQueueController = Depends(get_controller),
    ):
        """Remove a song. The session's queue is adjusted if it is playing this playlist."""
        require_owned_playlist(playlist_id, username, playlist_mgr)
        if controller.playlist_id == playlist_id:
            removed = controller.delete_song(entry_id)
            return {
                "status": "removed" if removed else "already_removed",
                "playlist": playlist_mgr.get_playlist(playlist_id).to_dict(),
            }
        playlist = playlist_mgr.remove_song(playlist_id, entry_id)
        return {"status": "removed", "playlist": playlist.to_dict()}

    @app.put("/api/playlists/{playlist_id}/songs/{entry_id}")
    def rate_song(
        playlist_id: int,
        entry_id: int,
        request_data: RatingRequest,
        username: str = Depends(require_username),
        playlist_mgr: PlaylistManager = Depends(get_playlist_manager),
        controller: PlaybackQueueController = Depends(get_controller),
    ):
        """Set a song's rating (1-10)."""
        require_owned_playlist(playlist_id, username, playlist_mgr)
        if controller.playlist_id == playlist_id:
            song = controller.rate_song(entry_id, request_data.rating)
            if song is None:
                return {"status": "already_removed", "song": None}
        else:
            song = playlist_mgr.rate_song(playlist_id, entry_id, request_data.rating)
        return {"status": "updated", "song": song.to_dict()}

    # YouTube endpoints
    @app.get("/api/search")
    def search(
        q: str = "",
        max_results: Optional[int] = None,
        youtube: YouTubeClient = Depends(get_youtube_client),
    ):
        """Search YouTube for videos."""
        if not q.strip():
            return {"query": q, "results": []}
        results = youtube.search(q.strip(), max_results)
        return {"query": q, "results": [video.to_dict() for video in results]}

    @app.get("/api/videos")
    def get_videos(ids: str = "", youtube: YouTubeClient = Depends(get_youtube_client)):
        """Get details for comma-separated video ids. Unknown ids are omitted."""
        video_ids = [video_id.strip() for video_id in ids.split(",") if video_id.strip()]
        details = youtube.get_video_details(video_ids)
        return {"items": {video_id: video.to_dict() for video_id, video in details.items()}}

    # Playback endpoints
    @app.get("/api/player/status")
    def get_player_status(controller: PlaybackQueueController = Depends(get_controller)):
        """Get this session's queue and player state."""
        return player_status(controller)

    @app.post("/api/player/select/{playlist_id}")
    def select_playlist(
        playlist_id: int,
        play: bool = False,
        username: str = Depends(require_username),
        playlist_mgr: PlaylistManager = Depends(get_playlist_manager),
        youtube: YouTubeClient = Depends(get_youtube_client),
        controller: PlaybackQueueController = Depends(get_controller),
    ):
        """Show a playlist in the player, optionally starting playback."""
        playlist = require_owned_playlist(playlist_id, username, playlist_mgr)
        controller.load_playlist(playlist, youtube)
        if play:
            controller.start()
        return player_status(controller)

    @app.post("/api/player/start")
    def start(controller: PlaybackQueueController = Depends(get_controller)):
        """Play the visible list from the beginning."""
        controller.start()
        return player_status(controller)

    @app.post("/api/player/resume")
    def resume(controller: PlaybackQueueController = Depends(get_controller)):
        """Continue playback where it stopped."""
        controller.resume()
        return player_status(controller)

    @app.post("/api/player/play/{entry_id}")
    def play_entry(entry_id: int, controller: PlaybackQueueController = Depends(get_controller)):
        """Play a specific visible song and queue the visible songs after it."""
        if not controller.play_entry(entry_id):
            raise HTTPException(status_code=404, detail="Song is not in the visible list")
        return player_status(controller)

    @app.post("/api/player/next")
    def next_song(controller: PlaybackQueueController = Depends(get_controller)):
        """Skip to the next queued song."""
        controller.next()
        return player_status(controller)

    @app.post("/api/player/previous")
    def previous_song(controller: PlaybackQueueController = Depends(get_controller)):
        """Go back to the previous queued song."""
        controller.previous()
        return player_status(controller)

    @app.post("/api/player/close")
    def close_player(controller: PlaybackQueueController = Depends(get_controller)):
        """Stop and hide the player, keeping the queue for resume."""
        controller.close()
        return player_status(controller)

    @app.post("/api/player/event")
    def player_event(
        request_data: PlayerEventRequest,
        controller: PlaybackQueueController = Depends(get_controller),
    ):
        """Receive a state change from the embedded player (e.g., 'ended')."""
        try:
            event = PlayerEvent(request_data.event)
        except ValueError:
            raise ValidationError(f"Unknown player event: {request_data.event}") from None
        notify = getattr(controller.player, "notify", None)
        if notify is None:
            raise HTTPException(status_code=400, detail="Player does not accept events")
        notify(event)
        return player_status(controller)

    @app.post("/api/player/filter")
    def set_filter(
        request_data: FilterRequest,
        controller: PlaybackQueueController = Depends(get_controller),
    ):
        """Filter the visible list by title."""
        controller.set_filter(request_data.text)
        return player_status(controller)

    @app.post("/api/player/sort")
    def set_sort(
        request_data: SortRequest,
        controller: PlaybackQueueController = Depends(get_controller),
    ):
        """Sort the playlist by 'name', 'rating' or 'none'."""
        controller.sort(request_data.sort)
        return player_status(controller)

    # Operator endpoints
    @app.get("/api/auth/operator")
    def check_operator_status(request: Request):
        """Check if this session is in operator mode."""
        return {"operator": check_operator(request)}

    @app.post("/api/auth/operator")
    def authenticate_operator(
        request: Request,
        auth_data: OperatorAuthRequest,
        username: str = Depends(require_username),
        config: ConfigManager = Depends(get_config_manager),
    ):
        """Unlock operator mode with the operator PIN."""
        correct_pin = config.get("operator_pin")
        if not correct_pin:
            raise HTTPException(status_code=403, detail="Operator PIN is not configured")
        if not secrets.compare_digest(auth_data.pin.encode(), correct_pin.encode()):
            logger.warning("Failed operator PIN attempt by %s", username)
            raise HTTPException(status_code=401, detail="Invalid PIN")
        request.session["operator"] = True
        return {"status": "authenticated", "operator": True}

    @app.post("/api/auth/operator/logout")
    def logout_operator(request: Request):
        """Leave operator mode."""
        request.session.pop("operator", None)
        return {"status": "logged_out", "operator": False}

    # Configuration endpoints
    @app.get("/api/config")
    def get_config(
        username: str = Depends(require_username),
        is_operator: bool = Depends(require_operator),
        config: ConfigManager = Depends(get_config_manager),
    ):
        """Get configuration (secrets masked) with schema metadata."""
        return config.get_full_config()

    @app.patch("/api/config")
    def update_config(
        request_data: ConfigUpdateRequest,
        username: str = Depends(require_username),
        is_operator: bool = Depends(require_operator),
        config: ConfigManager = Depends(get_config_manager),
    ):
        """Update an editable configuration key (operator only)."""
        if request_data.key not in CONFIG_SCHEMA:
            raise ValidationError(f"Unknown configuration key: {request_data.key}")
        config.set(request_data.key, request_data.value)
        logger.info("Configuration %s updated by operator %s", request_data.key, username)
        return {"status": "updated", "key": request_data.key}

    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    # Web UI
    @app.get("/", response_class=HTMLResponse)
    def index(request: Request):
        """Serve web UI."""
        return templates.TemplateResponse(request, "index.html")

    return app
