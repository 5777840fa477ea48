"""Educational videos from the YouTube Data API v3.

Two requests per query: ``search`` for candidate ids, then ``videos`` for
duration, view count and publish date.  Shorts and very long streams are
dropped and the rest ranked by a score weighted towards relevance.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from studypath.config import settings
from studypath.errors import ResourceFetchFailed
from studypath.models import Resource
from studypath.resources.providers import ResourceProvider

logger = logging.getLogger(__name__)

YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"

MIN_DURATION_MINUTES = 5
MAX_DURATION_MINUTES = 180
MAX_VIDEO_RESULTS = 3

_DURATION_RE = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


def parse_duration(duration: str) -> tuple[int, int, int]:
    """Parse an ISO-8601 duration such as ``PT1H2M30S`` into ``(h, m, s)``."""
    match = _DURATION_RE.match(duration or "")
    if not match:
        return (0, 0, 0)
    return tuple(int(part or 0) for part in match.groups())  # type: ignore[return-value]


def format_duration(hours: int, minutes: int, seconds: int) -> str:
    """``1:02:30`` with hours, ``12:05`` without."""
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def format_view_count(views: int) -> str:
    if views >= 1_000_000:
        return f"{views / 1_000_000:.1f}M"
    if views >= 1_000:
        return f"{views / 1_000:.1f}K"
    return str(views)


def _parse_published(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def score_video(view_count: int, published_at: str, now: Optional[datetime] = None) -> float:
    """Relevance base of 0.6, plus log-scaled views and a bonus for recency."""
    now = now or datetime.now(timezone.utc)
    view_score = math.log10(max(view_count, 1)) / 7
    published = _parse_published(published_at)
    recency = 0.0
    if published is not None and (now - published).days < 2 * 365:
        recency = 0.1
    return 0.6 + view_score * 0.3 + recency


def _to_resource(index: int, video: dict[str, Any], duration: str, views: int) -> Resource:
    snippet = video.get("snippet") or {}
    thumbnails = snippet.get("thumbnails") or {}
    thumbnail = (thumbnails.get("high") or thumbnails.get("default") or {}).get("url", "")
    channel = snippet.get("channelTitle") or ""
    return Resource(
        id=f"resource_yt_{index}",
        type="video",
        title=snippet.get("title") or "Untitled Video",
        url=f"https://www.youtube.com/watch?v={video['id']}",
        description=(snippet.get("description") or "")[:200] or "No description available",
        source=channel or "Unknown Channel",
        metadata={
            "duration": duration,
            "thumbnail": thumbnail,
            "views": format_view_count(views),
            "channel": channel or "Unknown",
        },
    )


def rank_videos(videos: list[dict[str, Any]]) -> list[Resource]:
    """Filter ``videos`` resources by duration and keep the top three by score."""
    scored: list[tuple[float, dict[str, Any], str, int]] = []
    for video in videos:
        snippet = video.get("snippet")
        statistics = video.get("statistics")
        details = video.get("contentDetails")
        if not snippet or statistics is None or not details or not video.get("id"):
            continue

        hours, minutes, seconds = parse_duration(details.get("duration", ""))
        total_minutes = hours * 60 + minutes
        if not MIN_DURATION_MINUTES <= total_minutes <= MAX_DURATION_MINUTES:
            continue

        views = int(statistics.get("viewCount") or 0)
        score = score_video(views, snippet.get("publishedAt") or "")
        scored.append((score, video, format_duration(hours, minutes, seconds), views))

    scored.sort(key=lambda item: item[0], reverse=True)
    return [
        _to_resource(i, video, duration, views)
        for i, (_, video, duration, views) in enumerate(scored[:MAX_VIDEO_RESULTS], start=1)
    ]


class YouTubeProvider(ResourceProvider):
    """Medium-length, high-definition tutorial videos for a query."""

    max_results = 10

    @property
    def name(self) -> str:
        return "YouTube"

    async def search(self, query: str) -> list[Resource]:
        api_key = settings.youtube_api_key
        if not api_key:
            raise ResourceFetchFailed("YOUTUBE_API_KEY environment variable is not set")

        try:
            async with httpx.AsyncClient(
                base_url=YOUTUBE_API_BASE, timeout=settings.request_timeout
            ) as client:
                resp = await client.get(
                    "/search",
                    params={
                        "part": "snippet",
                        "q": f"{query} tutorial",
                        "type": "video",
                        "videoDuration": "medium",
                        "videoDefinition": "high",
                        "relevanceLanguage": "en",
                        "maxResults": self.max_results,
                        "order": "relevance",
                        "key": api_key,
                    },
                )
                resp.raise_for_status()
                video_ids = [
                    item["id"]["videoId"]
                    for item in resp.json().get("items") or []
                    if (item.get("id") or {}).get("videoId")
                ]
                if not video_ids:
                    return []

                resp = await client.get(
                    "/videos",
                    params={
                        "part": "contentDetails,statistics,snippet",
                        "id": ",".join(video_ids),
                        "key": api_key,
                    },
                )
                resp.raise_for_status()
                videos = resp.json().get("items") or []
        except (httpx.HTTPError, ValueError, KeyError) as exc:
            raise ResourceFetchFailed(f"Failed to fetch YouTube videos: {exc}") from exc

        resources = rank_videos(videos)
        logger.info("[YouTube] %d video(s) for %r", len(resources), query)
        return resources
