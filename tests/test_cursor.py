"""Tests for studypath.roadmap.cursor.NavigationCursor.

Resource fetching is replaced by ``FakeLoader``; persistence goes to an
in-memory repository.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from studypath.db.kv import InMemoryKeyValueStore
from studypath.db.roadmaps import RoadmapRepository
from studypath.errors import NotFoundError, ResourceFetchFailed, StorageQuotaExceeded
from studypath.models import Position, Resource, Roadmap, TopicNode
from studypath.roadmap.cursor import NavigationCursor
from studypath.roadmap.progress import ESTIMATED_RESOURCES_PER_NODE, progress_stats


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _resources(node_id: str, count: int) -> list[Resource]:
    return [
        Resource(id=f"{node_id}_r{i}", type="article", title=f"{node_id} {i}", url=f"https://x/{node_id}/{i}")
        for i in range(count)
    ]


def _resource_docs(node_id: str, count: int) -> list[dict]:
    return [r.to_dict() for r in _resources(node_id, count)]


class FakeLoader:
    """Returns canned resources per node id and records every call."""

    def __init__(self, counts: dict[str, int], gate: Optional[asyncio.Event] = None) -> None:
        self.counts = counts
        self.gate = gate
        self.calls: list[str] = []
        self.fail_for: set[str] = set()

    async def __call__(self, node: TopicNode, roadmap: Roadmap) -> list[Resource]:
        self.calls.append(node.id)
        if self.gate is not None:
            await self.gate.wait()
        if node.id in self.fail_for:
            raise ResourceFetchFailed("providers down")
        return _resources(node.id, self.counts.get(node.id, 0))


class ArmableStore(InMemoryKeyValueStore):
    def __init__(self) -> None:
        super().__init__()
        self.full = False

    def set(self, key: str, value: str) -> None:
        if self.full and key != "__storage_test__":
            raise StorageQuotaExceeded("full")
        super().set(key, value)


@pytest.fixture
def scenario(make_roadmap, node_doc, edge_doc) -> Roadmap:
    """Root without resources, Child1 with two, Child2 with one."""
    return make_roadmap(
        "scenario",
        nodes=[
            node_doc("root", 1, 1),
            node_doc("child1", 2, 1),
            node_doc("child2", 2, 2),
        ],
        edges=[edge_doc("root", "child1"), edge_doc("root", "child2")],
    )


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------

class TestNavigation:
    async def test_unpositioned_cursor_cannot_move(self, make_roadmap):
        cursor = NavigationCursor(make_roadmap())
        assert cursor.position is None
        assert not cursor.can_advance
        assert not cursor.can_retreat
        assert await cursor.advance() is False
        assert await cursor.retreat() is False

    async def test_select_unknown_node(self, make_roadmap):
        cursor = NavigationCursor(make_roadmap())
        with pytest.raises(NotFoundError):
            await cursor.select_node("ghost")

    async def test_end_to_end_scenario(self, scenario, repository):
        repository.save(scenario)
        loader = FakeLoader({"child1": 2, "child2": 1})
        cursor = NavigationCursor(scenario, repository, loader)

        assert [n.id for n in cursor.sequence] == ["root", "child1", "child2"]

        assert await cursor.select_node("root") == Position("root", 0)
        assert await cursor.advance()
        assert cursor.position == Position("child1", 0)
        assert await cursor.advance()
        assert cursor.position == Position("child1", 1)
        assert await cursor.advance()
        assert cursor.position == Position("child2", 0)
        assert await cursor.advance() is False
        assert cursor.position == Position("child2", 0)

        stats = progress_stats(cursor.roadmap.nodes, cursor.roadmap.completed_resources)
        # Root was fetched but has nothing, so it still counts the estimate.
        assert (stats.completed_count, stats.total_resources) == (0, ESTIMATED_RESOURCES_PER_NODE + 3)

    async def test_unfetched_root_still_counts_estimate(
        self, make_roadmap, node_doc, edge_doc
    ):
        roadmap = make_roadmap(
            nodes=[
                node_doc("root", 1, 1),
                node_doc("child1", 2, 1, resourcesFetched=True, resources=_resource_docs("child1", 2)),
                node_doc("child2", 2, 2, resourcesFetched=True, resources=_resource_docs("child2", 1)),
            ],
            edges=[edge_doc("root", "child1"), edge_doc("root", "child2")],
        )
        cursor = NavigationCursor(roadmap)
        await cursor.select_node("root")
        assert await cursor.advance()
        assert cursor.position == Position("child1", 0)

        stats = progress_stats(cursor.roadmap.nodes, cursor.roadmap.completed_resources)
        assert stats.total_resources == ESTIMATED_RESOURCES_PER_NODE + 3

    @pytest.mark.parametrize("steps", range(1, 8))
    async def test_round_trip(self, make_roadmap, steps):
        loader = FakeLoader({"root": 2, "a": 2, "a1": 2, "b": 2})
        cursor = NavigationCursor(make_roadmap(), load_resources=loader)
        await cursor.select_node("root")

        for _ in range(steps):
            assert await cursor.advance()
        for _ in range(steps):
            assert await cursor.retreat()
        assert cursor.position == Position("root", 0)

    async def test_retreat_lands_on_last_resource_of_previous_node(self, make_roadmap):
        loader = FakeLoader({"root": 3, "a": 1})
        cursor = NavigationCursor(make_roadmap(), load_resources=loader)
        await cursor.select_node("root")
        await cursor.select_node("a")

        assert await cursor.retreat()
        assert cursor.position == Position("root", 2)

    async def test_can_advance_matches_advance(self, make_roadmap):
        loader = FakeLoader({"root": 1, "a": 2, "b": 1})
        cursor = NavigationCursor(make_roadmap(), load_resources=loader)
        await cursor.select_node("root")

        while True:
            expected = cursor.can_advance
            moved = await cursor.advance()
            assert moved == expected
            if not moved:
                break
        assert cursor.position == Position("b", 0)

        while True:
            expected = cursor.can_retreat
            moved = await cursor.retreat()
            assert moved == expected
            if not moved:
                break
        assert cursor.position == Position("root", 0)


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------

class TestFetching:
    async def test_at_most_one_fetch_for_concurrent_selects(self, make_roadmap):
        loader = FakeLoader({"a": 2}, gate=asyncio.Event())
        cursor = NavigationCursor(make_roadmap(), load_resources=loader)

        first = asyncio.create_task(cursor.select_node("a"))
        second = asyncio.create_task(cursor.select_node("a"))
        await asyncio.sleep(0)
        assert cursor.loading

        loader.gate.set()
        await asyncio.gather(first, second)

        assert loader.calls == ["a"]
        assert not cursor.loading
        assert len(cursor.current_node.resource_list) == 2

    async def test_fetched_node_is_not_fetched_again(self, make_roadmap):
        loader = FakeLoader({"a": 2})
        cursor = NavigationCursor(make_roadmap(), load_resources=loader)
        await cursor.select_node("a")
        await cursor.select_node("b")
        await cursor.select_node("a")
        assert loader.calls == ["a", "b"]

    async def test_empty_result_still_marks_fetched(self, make_roadmap):
        loader = FakeLoader({})
        cursor = NavigationCursor(make_roadmap(), load_resources=loader)
        await cursor.select_node("a")
        await cursor.select_node("a")

        node = cursor.roadmap.get_node("a")
        assert node.resources_fetched is True
        assert node.resources == ()
        assert loader.calls == ["a"]

    async def test_failed_fetch_leaves_node_unfetched(self, make_roadmap):
        loader = FakeLoader({"a": 2})
        loader.fail_for.add("a")
        cursor = NavigationCursor(make_roadmap(), load_resources=loader)

        await cursor.select_node("a")
        assert cursor.position == Position("a", 0)
        assert cursor.roadmap.get_node("a").resources_fetched is False

        loader.fail_for.clear()
        await cursor.select_node("a")
        assert loader.calls == ["a", "a"]
        assert cursor.roadmap.get_node("a").resources_fetched is True

    async def test_fetch_result_is_persisted(self, make_roadmap, repository):
        roadmap = make_roadmap()
        repository.save(roadmap)
        cursor = NavigationCursor(roadmap, repository, FakeLoader({"a": 3}))

        await cursor.select_node("a")
        stored = repository.get(roadmap.id)
        assert len(stored.get_node("a").resource_list) == 3
        assert stored.last_position == Position("a", 0)


# ---------------------------------------------------------------------------
# Persistence and resumption
# ---------------------------------------------------------------------------

class TestPersistence:
    async def test_moves_persist_last_position(self, make_roadmap, repository):
        roadmap = make_roadmap()
        repository.save(roadmap)
        cursor = NavigationCursor(roadmap, repository, FakeLoader({"root": 2}))

        await cursor.select_node("root")
        await cursor.advance()
        assert repository.get(roadmap.id).last_position == Position("root", 1)

    async def test_failed_save_keeps_previous_position(self, make_roadmap):
        store = ArmableStore()
        repository = RoadmapRepository(store, prefix="studypath")
        roadmap = make_roadmap()
        repository.save(roadmap)
        cursor = NavigationCursor(roadmap, repository, FakeLoader({"root": 2}))
        await cursor.select_node("root")

        store.full = True
        with pytest.raises(StorageQuotaExceeded):
            await cursor.advance()
        assert cursor.position == Position("root", 0)
        assert cursor.roadmap.last_position == Position("root", 0)

    async def test_restore_clamps_to_available_resources(self, make_roadmap, node_doc):
        roadmap = make_roadmap(
            nodes=[node_doc("a", 1, resourcesFetched=True, resources=_resource_docs("a", 2))],
            edges=[],
            lastPosition={"nodeId": "a", "resourceIndex": 5},
        )
        cursor = NavigationCursor(roadmap)
        assert await cursor.restore() == Position("a", 1)

    async def test_restore_fetches_then_clamps(self, make_roadmap):
        roadmap = make_roadmap(lastPosition={"nodeId": "a1", "resourceIndex": 9})
        loader = FakeLoader({"a1": 3})
        cursor = NavigationCursor(roadmap, load_resources=loader)

        assert await cursor.restore() == Position("a1", 2)
        assert loader.calls == ["a1"]

    async def test_restore_with_empty_node_goes_to_zero(self, make_roadmap, node_doc):
        roadmap = make_roadmap(
            nodes=[node_doc("a", 1, resourcesFetched=True, resources=[])],
            edges=[],
            lastPosition={"nodeId": "a", "resourceIndex": 3},
        )
        assert await NavigationCursor(roadmap).restore() == Position("a", 0)

    async def test_restore_ignores_missing_node(self, make_roadmap):
        roadmap = make_roadmap(lastPosition={"nodeId": "gone", "resourceIndex": 0})
        cursor = NavigationCursor(roadmap)
        assert await cursor.restore() is None
        assert cursor.position is None

    async def test_restore_does_not_write(self, make_roadmap, node_doc, store, repository):
        roadmap = make_roadmap(
            nodes=[node_doc("a", 1, resourcesFetched=True, resources=_resource_docs("a", 1))],
            edges=[],
            lastPosition={"nodeId": "a", "resourceIndex": 0},
        )
        repository.save(roadmap)
        before = dict(store.data)

        await NavigationCursor(roadmap, repository).restore()
        assert store.data == before
