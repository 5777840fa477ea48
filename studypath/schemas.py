"""Pydantic schemas for the roadmap document format.

These describe the JSON shape of roadmaps as they arrive from the generator,
from an import, or from the key/value store.  Field names are snake_case in
Python and camelCase on the wire.  Defaults for optional node fields are
declared here and nowhere else.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from studypath.models import RESOURCE_TYPES


class _Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


class ResourceDocument(_Document):
    id: str
    type: str
    title: str
    url: str
    description: str = ""
    source: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        value = value.lower()
        # Documents written by the web client call videos "youtube".
        if value == "youtube":
            value = "video"
        if value not in RESOURCE_TYPES:
            raise ValueError(f"unknown resource type {value!r}")
        return value

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_metadata(cls, value: Any) -> Any:
        return {} if value is None else value


class NodeDocument(_Document):
    id: str
    label: str
    description: str
    level: int = Field(ge=1)
    category: str
    order: int = 1
    resources: Optional[list[ResourceDocument]] = None
    resources_fetched: bool = False
    position: Optional[dict[str, float]] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_data(cls, raw: Any) -> Any:
        """Accept the ``{"id", "position", "data": {...}}`` node shape."""
        if isinstance(raw, dict) and isinstance(raw.get("data"), dict):
            flat = dict(raw["data"])
            flat["id"] = raw.get("id")
            if raw.get("position") is not None:
                flat.setdefault("position", raw["position"])
            return flat
        return raw


class EdgeDocument(_Document):
    source: str
    target: str
    id: Optional[str] = None


class PositionDocument(_Document):
    node_id: str
    resource_index: int = Field(default=0, ge=0)


class RoadmapDocument(_Document):
    id: Optional[str] = None
    topic: str
    title: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    nodes: list[NodeDocument] = Field(min_length=1)
    edges: list[EdgeDocument]
    completed_resources: Optional[dict[str, list[str]]] = None
    last_position: Optional[PositionDocument] = None
    # Legacy field: a flat list of completed node ids.
    completed_nodes: Optional[list[Any]] = None


class MetadataDocument(_Document):
    id: str
    title: str
    topic: str
    created_at: str
    node_count: int
    completed_count: int = 0
    total_resources: int = 0
