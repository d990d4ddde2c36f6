"""
Joins playlist song entries with YouTube video metadata.
"""

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from .errors import UpstreamError
from .models import EnrichedSongEntry, SongEntry, VideoMetadata

if TYPE_CHECKING:
    from .youtube import YouTubeClient

logger = logging.getLogger(__name__)


def enrich_songs(
    songs: Iterable[SongEntry], metadata: Optional[Dict[str, VideoMetadata]]
) -> List[EnrichedSongEntry]:
    """Join songs with metadata by video id, keeping the songs' order."""
    metadata = metadata or {}
    return [EnrichedSongEntry(song=song, metadata=metadata.get(song.youtube_id)) for song in songs]


def fetch_enriched(
    songs: Iterable[SongEntry], youtube_client: "YouTubeClient"
) -> List[EnrichedSongEntry]:
    """
    Look up metadata for the songs and join it in.

    If the YouTube API is unavailable every entry is returned without
    metadata, so the playlist can still be shown and played.
    """
    songs = list(songs)
    if not songs:
        return []

    video_ids = list(dict.fromkeys(song.youtube_id for song in songs))
    try:
        metadata = youtube_client.get_video_details(video_ids)
    except UpstreamError as e:
        logger.warning("Video metadata unavailable, showing placeholders: %s", e)
        metadata = {}

    missing = [video_id for video_id in video_ids if video_id not in metadata]
    if missing and metadata:
        logger.info("No metadata for %s video(s): %s", len(missing), ", ".join(missing))
    return enrich_songs(songs, metadata)
