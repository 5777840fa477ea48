"""Shared fixtures: roadmap documents, roadmaps and in-memory repositories.

The default roadmap is::

    root
    ├── a
    │   └── a1
    └── b

so its canonical learning order is ``root, a, a1, b``.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from studypath.config import settings
from studypath.db.kv import InMemoryKeyValueStore
from studypath.db.roadmaps import RoadmapRepository
from studypath.models import Resource, Roadmap
from studypath.validation import validate


def _node(node_id: str, level: int, order: int = 1, **extra: Any) -> dict[str, Any]:
    data = {
        "id": node_id,
        "label": f"Topic {node_id}",
        "description": f"About {node_id}.",
        "level": level,
        "order": order,
        "category": "fundamentals",
    }
    data.update(extra)
    return data


def _edge(source: str, target: str) -> dict[str, str]:
    return {"id": f"edge_{source}_{target}", "source": source, "target": target}


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep every test away from the real workspace, CLI dir and API keys."""
    monkeypatch.setattr(settings, "workspace_dir", tmp_path / "workspace")
    monkeypatch.setattr(settings, "cli_config_dir", tmp_path / ".studypath_cli")
    monkeypatch.setattr(settings, "youtube_api_key", "")
    monkeypatch.setattr(settings, "serper_api_key", "")
    return settings


@pytest.fixture
def make_document() -> Callable[..., dict[str, Any]]:
    """Return a factory for raw roadmap documents.

    Keyword arguments override top-level fields of the default document.
    """

    def _make(**overrides: Any) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "topic": "Python",
            "title": "Python Roadmap",
            "nodes": [
                _node("root", 1),
                _node("a", 2, 1),
                _node("b", 2, 2),
                _node("a1", 3, 1),
            ],
            "edges": [_edge("root", "a"), _edge("root", "b"), _edge("a", "a1")],
        }
        doc.update(overrides)
        return doc

    return _make


@pytest.fixture
def node_doc() -> Callable[..., dict[str, Any]]:
    return _node


@pytest.fixture
def edge_doc() -> Callable[..., dict[str, str]]:
    return _edge


@pytest.fixture
def make_roadmap(make_document) -> Callable[..., Roadmap]:
    def _make(roadmap_id: str = "rm-1", **overrides: Any) -> Roadmap:
        return validate(make_document(**overrides), new_id=roadmap_id)

    return _make


@pytest.fixture
def make_resources() -> Callable[..., list[Resource]]:
    def _make(count: int, prefix: str = "resource") -> list[Resource]:
        return [
            Resource(
                id=f"{prefix}_{i}",
                type="article",
                title=f"Resource {i}",
                url=f"https://example.com/{prefix}/{i}",
                source="example.com",
            )
            for i in range(1, count + 1)
        ]

    return _make


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def repository(store) -> RoadmapRepository:
    return RoadmapRepository(store, prefix="studypath", max_roadmaps=10)
