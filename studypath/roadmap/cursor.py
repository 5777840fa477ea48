"""Navigation over a roadmap's resources in canonical learning order.

A cursor is either unpositioned or positioned at ``(node_id, resource_index)``.
Moving forward walks the current node's resources and then continues with
the next node of the DFS sequence; moving back mirrors that, landing on the
last resource of the previous node when it is known.

Resources are fetched lazily the first time a node is entered.  At most one
fetch per node is ever in flight: a second request for the same node awaits
the pending one, and nodes whose ``resources_fetched`` flag is set are never
fetched again.

Every move is written to the repository as the roadmap's ``last_position``
before the cursor itself changes, so a failed write leaves the cursor where
it was.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from studypath.errors import NotFoundError, ResourceFetchFailed
from studypath.models import Position, Resource, Roadmap, TopicNode
from studypath.roadmap.traversal import dfs_sequence

if TYPE_CHECKING:
    from studypath.db.roadmaps import RoadmapRepository

logger = logging.getLogger(__name__)

ResourceLoader = Callable[[TopicNode, Roadmap], Awaitable[list[Resource]]]


class NavigationCursor:
    """Position state machine for one roadmap.

    Args:
        roadmap: The roadmap to navigate.
        repository: Where moves and fetch results are persisted.  ``None``
            keeps everything in memory.
        load_resources: Coroutine function returning the resources for a
            node.  ``None`` disables fetching.
    """

    def __init__(
        self,
        roadmap: Roadmap,
        repository: Optional[RoadmapRepository] = None,
        load_resources: Optional[ResourceLoader] = None,
    ) -> None:
        self._roadmap = roadmap
        self._repository = repository
        self._load_resources = load_resources
        self._position: Optional[Position] = None
        self._pending: dict[str, asyncio.Future[None]] = {}
        # Fetches only swap resources in, so the order never changes.
        self._sequence_ids = [n.id for n in dfs_sequence(roadmap.nodes, roadmap.edges)]

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def roadmap(self) -> Roadmap:
        return self._roadmap

    @property
    def position(self) -> Optional[Position]:
        return self._position

    @property
    def sequence(self) -> list[TopicNode]:
        """The DFS sequence with each node's current resources."""
        nodes = {n.id: n for n in self._roadmap.nodes}
        return [nodes[node_id] for node_id in self._sequence_ids]

    @property
    def sequence_index(self) -> int:
        """Index of the current node in the sequence, or ``-1``."""
        if self._position is None:
            return -1
        try:
            return self._sequence_ids.index(self._position.node_id)
        except ValueError:
            return -1

    @property
    def current_node(self) -> Optional[TopicNode]:
        if self._position is None:
            return None
        return self._roadmap.get_node(self._position.node_id)

    @property
    def current_resource(self) -> Optional[Resource]:
        node = self.current_node
        if node is None or self._position is None:
            return None
        resources = node.resource_list
        if 0 <= self._position.resource_index < len(resources):
            return resources[self._position.resource_index]
        return None

    @property
    def loading(self) -> bool:
        """True while the current node's resources are being fetched."""
        return self._position is not None and self._position.node_id in self._pending

    @property
    def can_advance(self) -> bool:
        return self._plan_advance() is not None

    @property
    def can_retreat(self) -> bool:
        return self._plan_retreat() is not None

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------
    def _plan_advance(self) -> Optional[Position]:
        node = self.current_node
        if node is None or self._position is None:
            return None
        index = self._position.resource_index
        if index + 1 < len(node.resource_list):
            return Position(node.id, index + 1)

        seq_index = self.sequence_index
        if 0 <= seq_index < len(self._sequence_ids) - 1:
            return Position(self._sequence_ids[seq_index + 1], 0)
        return None

    def _plan_retreat(self) -> Optional[Position]:
        node = self.current_node
        if node is None or self._position is None:
            return None
        index = self._position.resource_index
        resources = node.resource_list
        if index > 0 and resources:
            return Position(node.id, min(index, len(resources)) - 1)

        seq_index = self.sequence_index
        if seq_index > 0:
            previous = self._roadmap.get_node(self._sequence_ids[seq_index - 1])
            assert previous is not None
            if previous.resources_fetched and previous.resource_list:
                return Position(previous.id, len(previous.resource_list) - 1)
            return Position(previous.id, 0)
        return None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _commit(self, roadmap: Roadmap) -> None:
        if self._repository is not None:
            self._repository.save(roadmap)
        self._roadmap = roadmap

    def update_roadmap(self, **changes: Any) -> Roadmap:
        """Apply *changes* to the roadmap, refresh ``updated_at`` and persist."""
        self._commit(self._roadmap.touch(**changes))
        return self._roadmap

    async def _move(self, target: Position) -> None:
        self._commit(self._roadmap.touch(last_position=target))
        self._position = target
        logger.debug("Cursor at %s[%d]", target.node_id, target.resource_index)
        await self.ensure_resources(target.node_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    async def select_node(self, node_id: str) -> Position:
        """Jump to the first resource of *node_id*, fetching it if needed.

        Raises:
            NotFoundError: If the roadmap has no such node.
        """
        if self._roadmap.get_node(node_id) is None:
            raise NotFoundError(f"Node not found: {node_id!r}")
        await self._move(Position(node_id, 0))
        assert self._position is not None
        return self._position

    async def advance(self) -> bool:
        """Move forward one step.  Returns ``False`` (and does nothing) at the end."""
        target = self._plan_advance()
        if target is None:
            return False
        await self._move(target)
        return True

    async def retreat(self) -> bool:
        """Move back one step.  Returns ``False`` (and does nothing) at the start."""
        target = self._plan_retreat()
        if target is None:
            return False
        await self._move(target)
        return True

    async def restore(self) -> Optional[Position]:
        """Resume at the roadmap's saved ``last_position``.

        The saved node must still exist.  Once its resources are known the
        index is clamped to the last available resource.  Restoring is not a
        move, so nothing is written back.
        """
        saved = self._roadmap.last_position
        if saved is None or self._roadmap.get_node(saved.node_id) is None:
            return None

        self._position = saved
        await self.ensure_resources(saved.node_id)

        node = self.current_node
        assert node is not None
        if node.resources_fetched:
            last = max(len(node.resource_list) - 1, 0)
            self._position = Position(node.id, min(saved.resource_index, last))
        return self._position

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------
    async def ensure_resources(self, node_id: str) -> None:
        """Fetch resources for *node_id* unless they are known or already pending."""
        node = self._roadmap.get_node(node_id)
        if node is None or node.resources_fetched or self._load_resources is None:
            return

        pending = self._pending.get(node_id)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch(node_id))
            self._pending[node_id] = pending
        await asyncio.shield(pending)

    async def _fetch(self, node_id: str) -> None:
        assert self._load_resources is not None
        try:
            node = self._roadmap.get_node(node_id)
            assert node is not None
            try:
                resources = await self._load_resources(node, self._roadmap)
            except ResourceFetchFailed as exc:
                logger.warning("Could not fetch resources for %r: %s", node.label, exc)
                return

            # Re-read: the roadmap may have moved on while the fetch was pending.
            current = self._roadmap.get_node(node_id)
            assert current is not None
            updated = self._roadmap.replace_node(current.with_resources(resources))
            self._commit(updated.touch())
            logger.info("Fetched %d resource(s) for %r", len(resources), node.label)
        finally:
            self._pending.pop(node_id, None)
