"""Dataclass models for roadmaps.

These are plain, frozen Python objects.  Every mutation produces a new value
via :func:`dataclasses.replace`, so what is held in memory never aliases what
was last persisted.  ``to_dict`` renders the camelCase document format used
for storage and export; parsing goes through :mod:`studypath.validation`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

RESOURCE_TYPES = ("video", "documentation", "article", "tutorial", "course")

# nodeId -> completed resource ids
CompletedResources = Mapping[str, frozenset[str]]


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Resource:
    id: str
    type: str
    title: str
    url: str
    description: str = ""
    source: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "url": self.url,
            "description": self.description,
            "source": self.source,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class TopicNode:
    id: str
    label: str
    description: str
    level: int
    category: str
    order: int = 1
    resources: Optional[tuple[Resource, ...]] = None
    resources_fetched: bool = False
    position: Optional[dict[str, float]] = None

    @property
    def resource_list(self) -> tuple[Resource, ...]:
        """Resources as a tuple, empty when none have been fetched."""
        return self.resources or ()

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.level, self.order)

    def with_resources(self, resources: list[Resource]) -> TopicNode:
        """Attach a fetch result.  The flag is set even for an empty list."""
        return replace(self, resources=tuple(resources), resources_fetched=True)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "level": self.level,
            "order": self.order,
            "category": self.category,
            "resources": (
                [r.to_dict() for r in self.resources]
                if self.resources is not None
                else None
            ),
            "resourcesFetched": self.resources_fetched,
        }
        if self.position is not None:
            data["position"] = dict(self.position)
        return data


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id or f"edge_{self.source}_{self.target}",
            "source": self.source,
            "target": self.target,
        }


@dataclass(frozen=True)
class Position:
    """Where a learner is: a node id and an index into its resource list."""

    node_id: str
    resource_index: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"nodeId": self.node_id, "resourceIndex": self.resource_index}


@dataclass(frozen=True)
class Roadmap:
    id: str
    topic: str
    title: str
    created_at: str
    updated_at: str
    nodes: tuple[TopicNode, ...]
    edges: tuple[Edge, ...]
    completed_resources: CompletedResources = field(default_factory=dict)
    last_position: Optional[Position] = None

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def get_node(self, node_id: str) -> Optional[TopicNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def replace_node(self, node: TopicNode) -> Roadmap:
        """Return a copy with the node of the same id swapped for *node*."""
        nodes = tuple(node if n.id == node.id else n for n in self.nodes)
        return replace(self, nodes=nodes)

    def touch(self, **changes: Any) -> Roadmap:
        """Return a copy with *changes* applied and ``updated_at`` refreshed."""
        return replace(self, updated_at=utc_now_iso(), **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "topic": self.topic,
            "title": self.title,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "nodeCount": self.node_count,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "completedResources": {
                node_id: sorted(ids)
                for node_id, ids in self.completed_resources.items()
                if ids
            },
            "lastPosition": (
                self.last_position.to_dict() if self.last_position else None
            ),
        }


@dataclass(frozen=True)
class RoadmapMetadata:
    """Lightweight summary of a roadmap used for list views."""

    id: str
    title: str
    topic: str
    created_at: str
    node_count: int
    completed_count: int = 0
    total_resources: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "topic": self.topic,
            "createdAt": self.created_at,
            "nodeCount": self.node_count,
            "completedCount": self.completed_count,
            "totalResources": self.total_resources,
        }
