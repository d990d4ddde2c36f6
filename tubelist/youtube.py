"""
YouTube Data API v3 client for tubelist.

Provides video search and batched metadata lookup.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .errors import UpstreamError
from .models import VideoMetadata

if TYPE_CHECKING:
    from .config_manager import ConfigManager

logger = logging.getLogger(__name__)

# videos.list accepts at most 50 ids per request
MAX_IDS_PER_REQUEST = 50


def parse_duration(duration_str: str) -> Optional[int]:
    """
    Parse ISO 8601 duration string to seconds.

    Args:
        duration_str: ISO 8601 duration (e.g., "PT4M13S")

    Returns:
        Duration in seconds, or None if parsing fails
    """
    if not duration_str or not duration_str.startswith("PT"):
        return None

    remaining = duration_str[2:]
    if not remaining:
        return None

    try:
        hours = minutes = seconds = 0

        if "H" in remaining:
            part, remaining = remaining.split("H", 1)
            hours = int(part)

        if "M" in remaining:
            part, remaining = remaining.split("M", 1)
            minutes = int(part)

        if "S" in remaining:
            part, remaining = remaining.split("S", 1)
            if part:
                seconds = int(part)

        if remaining.strip():
            # Text left over that wasn't parsed
            return None

        return hours * 3600 + minutes * 60 + seconds
    except ValueError as e:
        logger.warning("Failed to parse duration %s: %s", duration_str, e)
        return None


def format_duration(total_seconds: Optional[int]) -> str:
    """Format seconds as "M:SS" or "H:MM:SS" ("0:00" when unknown)."""
    if not total_seconds:
        return "0:00"
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def _pick_thumbnail(snippet: dict) -> str:
    thumbnails = snippet.get("thumbnails", {})
    for size in ("medium", "default", "high"):
        url = thumbnails.get(size, {}).get("url")
        if url:
            return url
    return ""


def _to_metadata(video_id: str, snippet: dict, details: Optional[dict] = None) -> VideoMetadata:
    details = details or {}
    statistics = details.get("statistics", {})
    try:
        view_count = int(statistics.get("viewCount", 0))
    except (TypeError, ValueError):
        view_count = 0
    return VideoMetadata(
        video_id=video_id,
        title=snippet.get("title", ""),
        thumbnail_url=_pick_thumbnail(snippet),
        duration_iso8601=details.get("contentDetails", {}).get("duration", ""),
        view_count=view_count,
        channel_title=snippet.get("channelTitle", ""),
        published_at=snippet.get("publishedAt"),
    )


class YouTubeClient:
    """Search and metadata lookup against the YouTube Data API."""

    def __init__(self, config_manager: "ConfigManager"):
        """
        Initialize YouTubeClient.

        Args:
            config_manager: ConfigManager for runtime config access
        """
        self.logger = logging.getLogger(__name__)
        self.config_manager = config_manager

        # Lazy-initialized YouTube API client
        self._youtube = None
        self._last_api_key: Optional[str] = None

    def _get_youtube_client(self):
        """
        Get or create the YouTube API client.

        Reinitializes the client if the API key has changed, so the key can be
        updated at runtime.

        Raises:
            UpstreamError: If no API key is configured or the client cannot be built
        """
        api_key = self.config_manager.get("youtube_api_key")

        if not api_key:
            self._youtube = None
            self._last_api_key = None
            raise UpstreamError("YouTube API key is not configured.")

        if api_key != self._last_api_key or self._youtube is None:
            try:
                self._youtube = build("youtube", "v3", developerKey=api_key, cache_discovery=False)
                self._last_api_key = api_key
                self.logger.info("YouTube API client initialized")
            except Exception as e:
                self.logger.error("Failed to initialize YouTube API client: %s", e)
                self._youtube = None
                self._last_api_key = None
                raise UpstreamError(f"Could not initialize YouTube API client: {e}") from e

        return self._youtube

    def is_configured(self) -> bool:
        """Check if a YouTube API key is configured."""
        return bool(self.config_manager.get("youtube_api_key"))

    def search(self, query: str, max_results: Optional[int] = None) -> List[VideoMetadata]:
        """
        Search YouTube for videos.

        Args:
            query: Search query
            max_results: Maximum number of results (defaults to search_max_results config)

        Returns:
            Videos in search-relevance order, with duration and view counts filled in
        """
        if max_results is None:
            max_results = self.config_manager.get_int("search_max_results", 9)

        youtube = self._get_youtube_client()
        self.logger.debug("Searching YouTube: %s", query)

        try:
            response = (
                youtube.search()
                .list(part="snippet", q=query, type="video", maxResults=max_results)
                .execute()
            )
            items = [item for item in response.get("items", []) if item.get("id", {}).get("videoId")]
            if not items:
                self.logger.info("No videos found for query: %s", query)
                return []

            video_ids = [item["id"]["videoId"] for item in items]
            details_response = (
                youtube.videos()
                .list(part="contentDetails,statistics", id=",".join(video_ids))
                .execute()
            )
            details = {item["id"]: item for item in details_response.get("items", [])}
        except HttpError as e:
            self.logger.error("YouTube API error: %s", e)
            raise UpstreamError(f"YouTube search failed: {e}") from e
        except Exception as e:
            self.logger.error("Error searching YouTube: %s", e, exc_info=True)
            raise UpstreamError(f"YouTube search failed: {e}") from e

        results = []
        for item in items:
            video_id = item["id"]["videoId"]
            results.append(_to_metadata(video_id, item.get("snippet", {}), details.get(video_id)))
        self.logger.info("Found %s videos for query: %s", len(results), query)
        return results

    def get_video_details(self, video_ids: Iterable[str]) -> Dict[str, VideoMetadata]:
        """
        Get metadata for a set of videos.

        Args:
            video_ids: YouTube video ids (duplicates are collapsed)

        Returns:
            Mapping of video id to metadata. Ids YouTube does not know are absent.
        """
        unique_ids = [video_id for video_id in dict.fromkeys(video_ids) if video_id]
        if not unique_ids:
            return {}

        youtube = self._get_youtube_client()
        results: Dict[str, VideoMetadata] = {}

        try:
            for start in range(0, len(unique_ids), MAX_IDS_PER_REQUEST):
                batch = unique_ids[start : start + MAX_IDS_PER_REQUEST]
                response = (
                    youtube.videos()
                    .list(part="snippet,contentDetails,statistics", id=",".join(batch))
                    .execute()
                )
                for item in response.get("items", []):
                    results[item["id"]] = _to_metadata(item["id"], item.get("snippet", {}), item)
        except HttpError as e:
            self.logger.error("YouTube API error getting video details: %s", e)
            raise UpstreamError(f"YouTube video lookup failed: {e}") from e
        except Exception as e:
            self.logger.error("Error getting video details: %s", e, exc_info=True)
            raise UpstreamError(f"YouTube video lookup failed: {e}") from e

        return results
