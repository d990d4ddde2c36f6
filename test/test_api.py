"""
API endpoint tests for tubelist.

Covers:
- Account endpoints (register, login, logout, session)
- Playlist and song endpoints, including ownership checks
- Search endpoints against a mocked YouTubeClient
- Per-session playback endpoints
"""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from tubelist.config_manager import ConfigManager
from tubelist.errors import UpstreamError
from tubelist.models import VideoMetadata
from tubelist.playback import PlaybackRegistry
from tubelist.playlist import PlaylistManager
from tubelist.user import UserManager
from tubelist.web.server import create_app
from tubelist.youtube import YouTubeClient

ALICE = {
    "username": "alice01",
    "email": "alice@example.com",
    "first_name": "Alice",
    "avatar": "avatar1.svg",
    "password": "abc123",
}
BOB = {
    "username": "bobby01",
    "email": "bob@example.com",
    "first_name": "Bob",
    "avatar": "https://example.com/bob.png",
    "password": "xyz789",
}


@pytest.fixture
def mock_youtube():
    """Create a mock YouTubeClient."""
    client = Mock(spec=YouTubeClient)
    client.search.return_value = [
        VideoMetadata(video_id="test123", title="Test Song", duration_iso8601="PT3M")
    ]
    client.get_video_details.side_effect = lambda ids: {
        video_id: VideoMetadata(video_id=video_id, title=f"Title {video_id}")
        for video_id in ids
        if video_id != "missing"
    }
    return client


@pytest.fixture
def app_components(backend, mock_youtube):
    """Create all app components with mocked dependencies."""
    config_manager = ConfigManager(backend)
    playlist_manager = PlaylistManager(backend)
    return {
        "config": config_manager,
        "user": UserManager(backend, bcrypt_rounds=4),
        "playlist": playlist_manager,
        "youtube": mock_youtube,
        "registry": PlaybackRegistry(playlist_manager),
    }


@pytest.fixture
def client(app_components):
    """Create test client with all components."""
    app = create_app(
        user_manager=app_components["user"],
        playlist_manager=app_components["playlist"],
        youtube_client=app_components["youtube"],
        config_manager=app_components["config"],
        playback_registry=app_components["registry"],
    )
    return TestClient(app)


@pytest.fixture
def alice(client):
    """Register Alice and leave her logged in."""
    response = client.post("/api/register", json=ALICE)
    assert response.status_code == 201
    return response.json()["user"]


def create_playlist(client, name="Favorites", videos=()):
    response = client.post("/api/playlists", json={"name": name})
    assert response.status_code == 201
    playlist = response.json()
    for video_id in videos:
        response = client.post(
            f"/api/playlists/{playlist['id']}/songs", json={"youtube_id": video_id}
        )
        assert response.status_code == 201
        playlist = response.json()
    return playlist


# =============================================================================
# Account Endpoints
# =============================================================================


class TestAccountEndpoints:
    def test_register(self, client):
        response = client.post("/api/register", json=ALICE)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "registered"
        assert data["user"]["username"] == "alice01"
        assert "password" not in data["user"]
        assert "password_hash" not in data["user"]

    def test_register_logs_in(self, client, alice):
        response = client.get("/api/session")
        assert response.json()["user"]["username"] == "alice01"

    def test_register_password_mismatch(self, client):
        response = client.post(
            "/api/register", json={**ALICE, "password_confirmation": "abc124"}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Passwords do not match."

    @pytest.mark.parametrize(
        "password,message",
        [
            ("abc12", "Password must be at least 6 characters long."),
            (
                "abcdef",
                "Password must contain at least one letter and one non-letter character.",
            ),
        ],
    )
    def test_register_weak_password(self, client, password, message):
        response = client.post("/api/register", json={**ALICE, "password": password})

        assert response.status_code == 400
        assert response.json()["detail"] == message

    def test_register_duplicate_username(self, client, alice):
        response = client.post("/api/register", json={**ALICE, "email": "new@example.com"})

        assert response.status_code == 409
        assert response.json()["detail"] == "Username is already taken."

    def test_login(self, client, alice):
        client.post("/api/logout")

        response = client.post("/api/login", json={"username": "alice01", "password": "abc123"})

        assert response.status_code == 200
        assert response.json()["status"] == "authenticated"
        assert client.get("/api/session").json()["user"]["username"] == "alice01"

    def test_login_wrong_password(self, client, alice):
        client.post("/api/logout")

        response = client.post("/api/login", json={"username": "alice01", "password": "nope12"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or password."
        assert client.get("/api/session").json()["user"] is None

    def test_logout(self, client, alice):
        response = client.post("/api/logout")

        assert response.status_code == 200
        assert client.get("/api/session").json() == {"user": None}

    def test_user_image(self, client, alice):
        response = client.get("/api/users/alice01/image")
        assert response.json() == {"image_url": "avatar1.svg"}

    def test_user_image_unknown_user(self, client):
        response = client.get("/api/users/nobody1/image")
        assert response.status_code == 404


# =============================================================================
# Playlist Endpoints
# =============================================================================


class TestPlaylistEndpoints:
    def test_requires_login(self, client):
        assert client.get("/api/playlists").status_code == 401
        assert client.post("/api/playlists", json={"name": "x"}).status_code == 401

    def test_create_and_list(self, client, alice):
        playlist = create_playlist(client, "Road trip")

        assert playlist["name"] == "Road trip"
        assert playlist["owner"] == "alice01"
        assert playlist["songs"] == []

        response = client.get("/api/playlists")
        assert [p["name"] for p in response.json()["playlists"]] == ["Road trip"]

    def test_create_blank_name(self, client, alice):
        response = client.post("/api/playlists", json={"name": "  "})
        assert response.status_code == 400

    def test_get_with_details(self, client, alice):
        playlist = create_playlist(client, videos=["vid1", "missing"])

        response = client.get(f"/api/playlists/{playlist['id']}?details=true")

        assert response.status_code == 200
        titles = [video["title"] for video in response.json()["videos"]]
        assert titles == ["Title vid1", "Unknown Title"]

    def test_get_with_details_upstream_down(self, client, alice, mock_youtube):
        playlist = create_playlist(client, videos=["vid1"])
        mock_youtube.get_video_details.side_effect = UpstreamError("quota exceeded")

        response = client.get(f"/api/playlists/{playlist['id']}?details=true")

        assert response.status_code == 200
        assert response.json()["videos"][0]["has_metadata"] is False

    def test_rename(self, client, alice):
        playlist = create_playlist(client)

        response = client.put(f"/api/playlists/{playlist['id']}", json={"name": "Renamed"})

        assert response.json()["name"] == "Renamed"

    def test_delete(self, client, alice):
        playlist = create_playlist(client)

        response = client.delete(f"/api/playlists/{playlist['id']}")

        assert response.status_code == 200
        assert client.get(f"/api/playlists/{playlist['id']}").status_code == 404

    def test_missing_playlist(self, client, alice):
        assert client.get("/api/playlists/9999").status_code == 404
        assert client.delete("/api/playlists/9999").status_code == 404

    def test_other_users_playlist_forbidden(self, client, alice):
        playlist = create_playlist(client)
        client.post("/api/logout")
        client.post("/api/register", json=BOB)

        assert client.get(f"/api/playlists/{playlist['id']}").status_code == 403
        assert client.delete(f"/api/playlists/{playlist['id']}").status_code == 403
        response = client.post(
            f"/api/playlists/{playlist['id']}/songs", json={"youtube_id": "vid1"}
        )
        assert response.status_code == 403


class TestSongEndpoints:
    def test_add_rate_remove(self, client, alice):
        playlist = create_playlist(client, videos=["vid1"])
        entry_id = playlist["songs"][0]["entry_id"]
        base = f"/api/playlists/{playlist['id']}/songs/{entry_id}"

        response = client.put(base, json={"rating": 7})
        assert response.status_code == 200
        assert response.json()["song"]["rating"] == 7

        response = client.delete(base)
        assert response.status_code == 200
        assert response.json()["playlist"]["songs"] == []

        assert client.delete(base).status_code == 404

    @pytest.mark.parametrize("rating", [0, 11, "abc"])
    def test_invalid_rating(self, client, alice, rating):
        playlist = create_playlist(client, videos=["vid1"])
        entry_id = playlist["songs"][0]["entry_id"]

        response = client.put(
            f"/api/playlists/{playlist['id']}/songs/{entry_id}", json={"rating": rating}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Rating must be a number between 1 and 10."

    def test_add_blank_video(self, client, alice):
        playlist = create_playlist(client)

        response = client.post(
            f"/api/playlists/{playlist['id']}/songs", json={"youtube_id": " "}
        )

        assert response.status_code == 400


# =============================================================================
# Search Endpoints
# =============================================================================


class TestSearchEndpoints:
    def test_search(self, client, mock_youtube):
        response = client.get("/api/search?q=test")

        assert response.status_code == 200
        result = response.json()["results"][0]
        assert result["video_id"] == "test123"
        assert result["duration"] == "3:00"
        mock_youtube.search.assert_called_once_with("test", None)

    def test_search_empty_query(self, client, mock_youtube):
        assert client.get("/api/search?q=  ").json()["results"] == []
        mock_youtube.search.assert_not_called()

    def test_search_upstream_error(self, client, mock_youtube):
        mock_youtube.search.side_effect = UpstreamError("YouTube API key is not configured.")

        response = client.get("/api/search?q=test")

        assert response.status_code == 502
        assert response.json()["detail"] == "YouTube API key is not configured."

    def test_videos(self, client):
        response = client.get("/api/videos?ids=vid1,missing,vid2")

        assert set(response.json()["items"]) == {"vid1", "vid2"}


# =============================================================================
# Playback Endpoints
# =============================================================================


class TestPlayerEndpoints:
    @pytest.fixture
    def selected(self, client, alice):
        playlist = create_playlist(client, videos=["vidA", "vidB", "vidC"])
        response = client.post(f"/api/player/select/{playlist['id']}")
        assert response.status_code == 200
        return playlist

    def test_status_initially_idle(self, client, alice):
        status = client.get("/api/player/status").json()

        assert status["state"] == "idle"
        assert status["playlist_id"] is None
        assert status["player"]["visible"] is False

    def test_player_requires_login(self, client, app_components):
        for _ in range(3):
            assert TestClient(client.app).get("/api/player/status").status_code == 401
        assert client.post("/api/player/start").status_code == 401
        assert client.post("/api/player/event", json={"event": "ended"}).status_code == 401

        assert len(app_components["registry"]) == 0

    def test_select_enriches(self, client, selected):
        status = client.get("/api/player/status").json()

        assert status["playlist_id"] == selected["id"]
        assert [s["title"] for s in status["visible"]] == [
            "Title vidA",
            "Title vidB",
            "Title vidC",
        ]

    def test_select_and_play(self, client, alice):
        playlist = create_playlist(client, videos=["vidA"])

        status = client.post(f"/api/player/select/{playlist['id']}?play=true").json()

        assert status["state"] == "playing"
        assert status["player"]["video_id"] == "vidA"

    def test_select_requires_login(self, client):
        assert client.post("/api/player/select/1").status_code == 401

    def test_navigation(self, client, selected):
        status = client.post("/api/player/start").json()
        assert status["current_index"] == 0
        assert status["player"]["video_id"] == "vidA"

        status = client.post("/api/player/next").json()
        assert status["player"]["video_id"] == "vidB"

        status = client.post("/api/player/previous").json()
        assert status["player"]["video_id"] == "vidA"

        status = client.post("/api/player/close").json()
        assert status["state"] == "idle"
        assert status["player"]["visible"] is False

        status = client.post("/api/player/resume").json()
        assert status["player"]["video_id"] == "vidA"

    def test_ended_event_advances(self, client, selected):
        client.post("/api/player/start")

        status = client.post("/api/player/event", json={"event": "ended"}).json()

        assert status["current_index"] == 1
        assert status["player"]["video_id"] == "vidB"

    def test_unknown_event(self, client, selected):
        response = client.post("/api/player/event", json={"event": "exploded"})
        assert response.status_code == 400

    def test_play_entry(self, client, selected):
        entry_id = selected["songs"][1]["entry_id"]

        status = client.post(f"/api/player/play/{entry_id}").json()

        assert [s["youtube_id"] for s in status["queue"]] == ["vidB", "vidC"]

    def test_play_unknown_entry(self, client, selected):
        assert client.post("/api/player/play/9999").status_code == 404

    def test_filter_and_sort(self, client, selected):
        status = client.post("/api/player/filter", json={"text": "VIDB"}).json()
        assert [s["youtube_id"] for s in status["visible"]] == ["vidB"]

        client.post("/api/player/filter", json={"text": ""})
        status = client.post("/api/player/sort", json={"sort": "name"}).json()
        assert status["sort"] == "name"

        response = client.post("/api/player/sort", json={"sort": "length"})
        assert response.status_code == 400

    def test_delete_playing_song_adjusts_queue(self, client, selected):
        client.post("/api/player/start")
        client.post("/api/player/next")
        entry_id = selected["songs"][1]["entry_id"]

        response = client.delete(f"/api/playlists/{selected['id']}/songs/{entry_id}")
        assert response.json()["status"] == "removed"

        status = client.get("/api/player/status").json()
        assert entry_id not in [s["entry_id"] for s in status["queue"]]
        assert status["current_index"] == 1
        assert status["player"]["video_id"] == "vidC"

    def test_rate_selected_song_updates_view(self, client, selected):
        entry_id = selected["songs"][2]["entry_id"]
        client.post("/api/player/sort", json={"sort": "rating"})

        response = client.put(
            f"/api/playlists/{selected['id']}/songs/{entry_id}", json={"rating": 9}
        )
        assert response.json()["song"]["rating"] == 9

        status = client.get("/api/player/status").json()
        assert status["visible"][0]["entry_id"] == entry_id

    def test_add_song_to_selected_playlist(self, client, selected):
        client.post(f"/api/playlists/{selected['id']}/songs", json={"youtube_id": "vidD"})

        status = client.get("/api/player/status").json()
        assert status["visible"][-1]["youtube_id"] == "vidD"
        assert status["visible"][-1]["has_metadata"] is False

    def test_delete_selected_playlist_deselects(self, client, selected):
        client.post("/api/player/start")

        client.delete(f"/api/playlists/{selected['id']}")

        status = client.get("/api/player/status").json()
        assert status["playlist_id"] is None
        assert status["visible"] == []
        assert status["state"] == "idle"

    def test_sessions_have_separate_queues(self, client, selected):
        client.post("/api/player/start")

        other = TestClient(client.app)
        other.post("/api/register", json=BOB)
        status = other.get("/api/player/status").json()

        assert status["playlist_id"] is None
        assert status["queue"] == []

    def test_login_as_other_user_drops_previous_queue(self, client, selected, app_components):
        client.post("/api/player/start")
        TestClient(client.app).post("/api/register", json=BOB)

        response = client.post("/api/login", json={"username": "bobby01", "password": "xyz789"})
        assert response.status_code == 200
        status = client.get("/api/player/status").json()

        assert status["playlist_id"] is None
        assert status["queue"] == []
        assert status["state"] == "idle"
        assert len(app_components["registry"]) == 1


# =============================================================================
# Configuration and misc
# =============================================================================


class TestConfigEndpoints:
    @pytest.fixture
    def operator(self, client, alice, app_components):
        """Alice, logged in and unlocked as operator."""
        app_components["config"].set("operator_pin", "2468")
        response = client.post("/api/auth/operator", json={"pin": "2468"})
        assert response.status_code == 200
        return alice

    def test_requires_login(self, client):
        assert client.get("/api/config").status_code == 401
        assert client.post("/api/auth/operator", json={"pin": "2468"}).status_code == 401

    def test_requires_operator(self, client, alice, app_components):
        app_components["config"].set("youtube_api_key", "real-key")

        assert client.get("/api/config").status_code == 403
        response = client.patch(
            "/api/config", json={"key": "youtube_api_key", "value": "other-key"}
        )

        assert response.status_code == 403
        assert app_components["config"].get("youtube_api_key") == "real-key"

    def test_operator_pin_not_configured(self, client, alice):
        response = client.post("/api/auth/operator", json={"pin": ""})

        assert response.status_code == 403
        assert client.get("/api/auth/operator").json() == {"operator": False}

    def test_wrong_pin(self, client, alice, app_components):
        app_components["config"].set("operator_pin", "2468")

        response = client.post("/api/auth/operator", json={"pin": "1111"})

        assert response.status_code == 401
        assert client.get("/api/config").status_code == 403

    def test_operator_status_and_logout(self, client, operator):
        assert client.get("/api/auth/operator").json() == {"operator": True}

        client.post("/api/auth/operator/logout")

        assert client.get("/api/auth/operator").json() == {"operator": False}
        assert client.get("/api/config").status_code == 403

    def test_login_leaves_operator_mode(self, client, operator):
        client.post("/api/login", json={"username": "alice01", "password": "abc123"})

        assert client.get("/api/config").status_code == 403

    def test_get_config_masks_secrets(self, client, operator):
        data = client.get("/api/config").json()

        assert data["values"]["session_secret"] == "********"
        assert data["values"]["operator_pin"] == "********"
        assert "youtube_api_key" in data["schema"]
        assert "session_secret" not in data["schema"]

    def test_update_config(self, client, operator, app_components):
        response = client.patch(
            "/api/config", json={"key": "youtube_api_key", "value": "new-key"}
        )

        assert response.status_code == 200
        assert app_components["config"].get("youtube_api_key") == "new-key"

    def test_session_secret_not_editable(self, client, operator, app_components):
        secret = app_components["config"].get("session_secret")

        response = client.patch("/api/config", json={"key": "session_secret", "value": "x"})

        assert response.status_code == 400
        assert app_components["config"].get("session_secret") == secret

    def test_update_unknown_key(self, client, operator):
        response = client.patch("/api/config", json={"key": "bogus", "value": "1"})
        assert response.status_code == 400


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_index_page(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "tubelist" in response.text
