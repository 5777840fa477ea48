"""Combine video and web providers into one ranked batch per node."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Optional

from studypath.errors import ResourceFetchFailed
from studypath.models import Resource, Roadmap, TopicNode
from studypath.resources.providers import ResourceProvider, build_web_chain
from studypath.resources.youtube import YouTubeProvider

logger = logging.getLogger(__name__)

MAX_RESOURCES = 5
MAX_VIDEOS = 2


def build_query(node_title: str, node_topic: Optional[str] = None) -> str:
    return f"{node_title} {node_topic}" if node_topic else node_title


def merge_resources(videos: list[Resource], web: list[Resource]) -> list[Resource]:
    """Official docs first, then two videos, then web results up to five.

    Ids are rewritten to ``resource_1`` .. ``resource_n`` in final order.
    """
    web = list(web)
    merged: list[Resource] = []

    official = next((r for r in web if r.type == "documentation"), None)
    if official is not None:
        merged.append(official)
        web.remove(official)

    merged.extend(videos[:MAX_VIDEOS])
    merged.extend(web[: max(MAX_RESOURCES - len(merged), 0)])

    return [replace(r, id=f"resource_{i}") for i, r in enumerate(merged, start=1)]


class ResourceFetcher:
    """Query the video and web providers concurrently for one node.

    A provider failure is logged and treated as an empty result.  Only when
    both fail is :class:`ResourceFetchFailed` raised; two providers that work
    but find nothing give an empty list.
    """

    def __init__(
        self,
        video_provider: Optional[ResourceProvider] = None,
        web_provider: Optional[ResourceProvider] = None,
    ) -> None:
        self.video_provider = video_provider or YouTubeProvider()
        self.web_provider = web_provider or build_web_chain()

    async def fetch_resources(
        self,
        node_title: str,
        node_topic: Optional[str] = None,
        node_description: Optional[str] = None,
    ) -> list[Resource]:
        # The description is accepted for callers but not used in the query.
        query = build_query(node_title, node_topic)
        video_result, web_result = await asyncio.gather(
            self.video_provider.search(query),
            self.web_provider.search(query),
            return_exceptions=True,
        )

        videos: list[Resource] = []
        web: list[Resource] = []
        failures: list[BaseException] = []
        for provider, result, bucket in (
            (self.video_provider, video_result, videos),
            (self.web_provider, web_result, web),
        ):
            if isinstance(result, ResourceFetchFailed):
                logger.error("[%s] failed: %s", provider.name, result)
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                bucket.extend(result)

        resources = merge_resources(videos, web)
        if not resources and len(failures) == 2:
            raise ResourceFetchFailed("Unable to fetch resources. Please try again later.")
        return resources

    async def load_for_node(self, node: TopicNode, roadmap: Roadmap) -> list[Resource]:
        """Resource loader signature used by the navigation cursor."""
        return await self.fetch_resources(node.label, roadmap.topic, node.description)
