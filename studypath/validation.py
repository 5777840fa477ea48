"""Normalisation of raw roadmap documents into :class:`~studypath.models.Roadmap`.

``validate`` is used when ingesting a freshly generated roadmap and when
importing a foreign document.  ``load_roadmap`` reads an aggregate back from
the key/value store.  Both are the only places where defaults are applied;
every other code path works on a fully-populated ``Roadmap``.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

from pydantic import ValidationError

from studypath.errors import SchemaError
from studypath.models import (
    Edge,
    Position,
    Resource,
    Roadmap,
    RoadmapMetadata,
    TopicNode,
    utc_now_iso,
)
from studypath.schemas import MetadataDocument, RoadmapDocument


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _format_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def _check_top_level(raw: Any) -> None:
    """Reject the document shapes the UI reports with a dedicated message."""
    if not isinstance(raw, dict):
        raise SchemaError("Invalid roadmap structure: expected a JSON object")
    if raw.get("nodes") is None or raw.get("edges") is None:
        raise SchemaError(
            "Invalid roadmap structure: missing required fields (nodes, edges)"
        )
    if not isinstance(raw["nodes"], list) or not raw["nodes"]:
        raise SchemaError("Invalid roadmap structure: nodes must be a non-empty array")
    if not isinstance(raw["edges"], list):
        raise SchemaError("Invalid roadmap structure: edges must be an array")
    if not raw.get("topic") or not raw.get("title"):
        raise SchemaError("Invalid roadmap structure: missing topic or title")


def _parse(raw: Any) -> RoadmapDocument:
    _check_top_level(raw)
    try:
        doc = RoadmapDocument.model_validate(raw)
    except ValidationError as exc:
        raise SchemaError(f"Invalid roadmap structure: {_format_errors(exc)}") from exc

    node_ids: set[str] = set()
    for node in doc.nodes:
        if node.id in node_ids:
            raise SchemaError(f"Invalid roadmap structure: duplicate node id {node.id!r}")
        node_ids.add(node.id)

    for edge in doc.edges:
        for end in (edge.source, edge.target):
            if end not in node_ids:
                raise SchemaError(
                    f"Invalid roadmap structure: edge {edge.source!r} -> "
                    f"{edge.target!r} references unknown node {end!r}"
                )
    return doc


def _to_roadmap(
    doc: RoadmapDocument,
    *,
    roadmap_id: str,
    created_at: str,
    updated_at: str,
) -> Roadmap:
    nodes = tuple(
        TopicNode(
            id=n.id,
            label=n.label,
            description=n.description,
            level=n.level,
            order=n.order,
            category=n.category,
            resources=(
                tuple(Resource(**r.model_dump()) for r in n.resources)
                if n.resources is not None
                else None
            ),
            resources_fetched=n.resources_fetched,
            position=n.position,
        )
        for n in doc.nodes
    )
    edges = tuple(Edge(source=e.source, target=e.target, id=e.id) for e in doc.edges)

    if doc.completed_nodes is not None:
        # Legacy documents tracked whole nodes, not resources.  There is no
        # way to tell which resources were done, so progress starts over.
        completed: dict[str, frozenset[str]] = {}
    else:
        completed = {
            node_id: frozenset(ids)
            for node_id, ids in (doc.completed_resources or {}).items()
            if ids
        }

    last_position: Optional[Position] = None
    if doc.last_position is not None:
        last_position = Position(
            node_id=doc.last_position.node_id,
            resource_index=doc.last_position.resource_index,
        )

    return Roadmap(
        id=roadmap_id,
        topic=doc.topic,
        title=doc.title,
        created_at=created_at,
        updated_at=updated_at,
        nodes=nodes,
        edges=edges,
        completed_resources=completed,
        last_position=last_position,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate(raw: Any, *, new_id: Optional[str] = None) -> Roadmap:
    """Validate an incoming roadmap document and return the normalised aggregate.

    Args:
        raw: Decoded JSON (a ``dict``) from the generator or an import.
        new_id: Identifier to assign.  Imports always pass a fresh one so an
            incoming ``id`` can never overwrite a stored roadmap.  When
            omitted the document's own id is kept, or a UUID is generated.

    Returns:
        A :class:`Roadmap` with ``createdAt`` defaulted and ``updatedAt``
        refreshed to the current time.

    Raises:
        SchemaError: If any required field is missing or malformed.
    """
    doc = _parse(raw)
    now = utc_now_iso()
    return _to_roadmap(
        doc,
        roadmap_id=new_id or doc.id or str(uuid.uuid4()),
        created_at=doc.created_at or now,
        updated_at=now,
    )


def load_roadmap(raw: Any) -> Roadmap:
    """Rebuild a stored aggregate without touching its timestamps.

    Raises:
        SchemaError: If the stored document is not a valid roadmap.
    """
    doc = _parse(raw)
    if not doc.id:
        raise SchemaError("Invalid roadmap structure: missing id")
    now = utc_now_iso()
    return _to_roadmap(
        doc,
        roadmap_id=doc.id,
        created_at=doc.created_at or now,
        updated_at=doc.updated_at or doc.created_at or now,
    )


def load_metadata_list(raw: Any) -> list[RoadmapMetadata]:
    """Parse the stored metadata index.

    Raises:
        SchemaError: If *raw* is not a list of metadata entries.
    """
    if not isinstance(raw, list):
        raise SchemaError("Roadmap index is not a list")
    try:
        docs = [MetadataDocument.model_validate(item) for item in raw]
    except ValidationError as exc:
        raise SchemaError(f"Invalid roadmap index: {_format_errors(exc)}") from exc
    return [RoadmapMetadata(**d.model_dump()) for d in docs]
