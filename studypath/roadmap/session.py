"""The operations a user interface drives on one open roadmap.

A :class:`RoadmapSession` ties a roadmap to its repository and navigation
cursor.  It is what the CLI works through; every change it makes is
persisted before it becomes visible.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from studypath.errors import NotFoundError
from studypath.models import Position, Roadmap, TopicNode
from studypath.roadmap.cursor import NavigationCursor
from studypath.roadmap.progress import (
    ProgressStats,
    completed_node_count,
    is_resource_complete,
    progress_stats,
    toggle_resource_complete,
)
from studypath.roadmap.traversal import TopicTreeItem, build_topic_tree

if TYPE_CHECKING:
    from studypath.db.roadmaps import RoadmapRepository
    from studypath.generator.llm import RoadmapGenerator
    from studypath.resources.fetcher import ResourceFetcher

logger = logging.getLogger(__name__)

# Route id that means "generate a roadmap from a topic".
NEW_ROADMAP_ID = "new"


class RoadmapSession:
    def __init__(
        self,
        roadmap: Roadmap,
        repository: RoadmapRepository,
        fetcher: Optional[ResourceFetcher] = None,
    ) -> None:
        self.repository = repository
        self.cursor = NavigationCursor(
            roadmap,
            repository=repository,
            load_resources=fetcher.load_for_node if fetcher is not None else None,
        )

    @classmethod
    async def load_or_create(
        cls,
        repository: RoadmapRepository,
        roadmap_id: str,
        *,
        topic: Optional[str] = None,
        generator: Optional[RoadmapGenerator] = None,
        fetcher: Optional[ResourceFetcher] = None,
    ) -> RoadmapSession:
        """Open a stored roadmap, or generate one when *roadmap_id* is ``"new"``.

        The cursor is restored to the saved ``last_position`` if there is one.

        Raises:
            NotFoundError: If no roadmap is stored under *roadmap_id*.
            ValueError: If ``"new"`` is requested without a topic or generator.
            InvalidTopic, GenerationFailed: From the generator.
        """
        if roadmap_id == NEW_ROADMAP_ID:
            if not topic or generator is None:
                raise ValueError("A topic and a generator are required for a new roadmap")
            roadmap = await generator.create_roadmap(topic)
            repository.save(roadmap)
            logger.info("Created roadmap %s (%r)", roadmap.id, roadmap.title)
        else:
            stored = repository.get(roadmap_id)
            if stored is None:
                raise NotFoundError(f"Roadmap not found: {roadmap_id!r}")
            roadmap = stored

        session = cls(roadmap, repository, fetcher)
        await session.cursor.restore()
        return session

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    @property
    def roadmap(self) -> Roadmap:
        return self.cursor.roadmap

    @property
    def position(self) -> Optional[Position]:
        return self.cursor.position

    async def select_node(self, node_id: str) -> Position:
        return await self.cursor.select_node(node_id)

    async def advance(self) -> bool:
        return await self.cursor.advance()

    async def retreat(self) -> bool:
        return await self.cursor.retreat()

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------
    def toggle_resource_complete(
        self, resource_id: Optional[str] = None, node_id: Optional[str] = None
    ) -> bool:
        """Flip completion of a resource, by default the current one.

        Pass both *resource_id* and *node_id*, or neither.  Returns the new
        completion state.

        Raises:
            ValueError: If only one of the two ids is given.
            NotFoundError: If no ids are given and the cursor is not on a
                resource.
        """
        if (resource_id is None) != (node_id is None):
            raise ValueError("resource_id and node_id must be given together")
        if node_id is None or resource_id is None:
            node = self.cursor.current_node
            resource = self.cursor.current_resource
            if node is None or resource is None:
                raise NotFoundError("No current resource to mark")
            node_id, resource_id = node.id, resource.id

        completed = toggle_resource_complete(
            self.roadmap.completed_resources, node_id, resource_id
        )
        changes: dict = {"completed_resources": completed}
        if self.position is not None:
            changes["last_position"] = self.position
        self.cursor.update_roadmap(**changes)
        return is_resource_complete(completed, node_id, resource_id)

    def progress(self) -> ProgressStats:
        return progress_stats(self.roadmap.nodes, self.roadmap.completed_resources)

    def completed_nodes(self) -> int:
        return completed_node_count(self.roadmap.nodes, self.roadmap.completed_resources)

    def topic_tree(self) -> list[TopicTreeItem]:
        return build_topic_tree(self.roadmap.nodes, self.roadmap.edges)

    def sequence(self) -> list[TopicNode]:
        return self.cursor.sequence

    def export(self) -> str:
        return self.repository.export_roadmap(self.roadmap.id)
