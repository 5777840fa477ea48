"""Tests for the 'roadmap' and 'learn' CLI command groups.

The SQLite store and the CLI context live under ``tmp_path`` (see the
autouse ``isolated_settings`` fixture).  Generation and resource fetching
are patched out.
"""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from cli.context import CliContext, load_context, save_context
from cli.main import app
from studypath.db import open_repository
from studypath.models import Resource

runner = CliRunner()


class FakeGenerator:
    def __init__(self, roadmap) -> None:
        self.roadmap = roadmap

    async def create_roadmap(self, topic: str):
        return self.roadmap


class FakeFetcher:
    async def load_for_node(self, node, roadmap):
        return [
            Resource(id=f"{node.id}_{i}", type="article", title=f"{node.label} #{i}", url=f"https://x/{node.id}/{i}")
            for i in range(2)
        ]


@pytest.fixture
def saved(make_roadmap):
    """Store one roadmap and make it active."""
    repository = open_repository()
    roadmap = make_roadmap("rm-1")
    try:
        repository.save(roadmap)
    finally:
        repository.close()
    save_context(CliContext(active_roadmap_id="rm-1", active_roadmap_title=roadmap.title))
    return roadmap


@pytest.fixture(autouse=True)
def fake_fetcher(monkeypatch):
    monkeypatch.setattr("cli.commands.learn.ResourceFetcher", FakeFetcher)


def _stored(roadmap_id: str = "rm-1"):
    repository = open_repository()
    try:
        return repository.get(roadmap_id)
    finally:
        repository.close()


# ---------------------------------------------------------------------------
# roadmap
# ---------------------------------------------------------------------------

class TestRoadmapCommands:
    def test_new(self, monkeypatch, make_roadmap):
        monkeypatch.setattr(
            "cli.commands.roadmap.RoadmapGenerator", lambda: FakeGenerator(make_roadmap("gen-1"))
        )
        result = runner.invoke(app, ["roadmap", "new", "Python"])

        assert result.exit_code == 0, result.stdout
        assert "✅ Roadmap created" in result.stdout
        assert load_context().active_roadmap_id == "gen-1"
        assert _stored("gen-1") is not None

    def test_list(self, saved):
        result = runner.invoke(app, ["roadmap", "list"])
        assert result.exit_code == 0
        assert "* Python Roadmap" in result.stdout
        assert "[rm-1]" in result.stdout

    def test_list_empty(self):
        result = runner.invoke(app, ["roadmap", "list"])
        assert "No roadmaps found." in result.stdout

    def test_open(self, saved):
        save_context(CliContext())
        result = runner.invoke(app, ["roadmap", "open", "rm-1"])
        assert result.exit_code == 0
        assert load_context().active_roadmap_id == "rm-1"

    def test_open_missing(self):
        result = runner.invoke(app, ["roadmap", "open", "nope"])
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_export_and_import(self, saved, tmp_path):
        out = tmp_path / "export.json"
        result = runner.invoke(app, ["roadmap", "export", "--output", str(out)])
        assert result.exit_code == 0
        assert json.loads(out.read_text())["id"] == "rm-1"

        result = runner.invoke(app, ["roadmap", "import", str(out)])
        assert result.exit_code == 0
        new_id = load_context().active_roadmap_id
        assert new_id != "rm-1"
        assert _stored(new_id) is not None

    def test_import_invalid_json(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{nope")
        result = runner.invoke(app, ["roadmap", "import", str(bad)])
        assert result.exit_code == 1
        assert "Invalid JSON format" in result.stdout

    def test_export_requires_active_roadmap(self):
        result = runner.invoke(app, ["roadmap", "export"])
        assert result.exit_code == 1
        assert "No active roadmap" in result.stdout

    def test_delete_clears_active(self, saved):
        result = runner.invoke(app, ["roadmap", "delete", "rm-1"])
        assert result.exit_code == 0
        assert _stored() is None
        assert load_context().active_roadmap_id is None

    def test_clear(self, saved):
        result = runner.invoke(app, ["roadmap", "clear", "--yes"])
        assert result.exit_code == 0
        assert _stored() is None

    def test_info(self, saved):
        result = runner.invoke(app, ["roadmap", "info"])
        assert result.exit_code == 0
        assert "1/10" in result.stdout


# ---------------------------------------------------------------------------
# learn
# ---------------------------------------------------------------------------

class TestLearnCommands:
    def test_select_next_prev(self, saved):
        result = runner.invoke(app, ["learn", "select", "a"])
        assert result.exit_code == 0, result.stdout
        assert "Topic a" in result.stdout

        runner.invoke(app, ["learn", "next"])
        assert _stored().last_position.resource_index == 1

        runner.invoke(app, ["learn", "next"])
        assert _stored().last_position.node_id == "a1"

        runner.invoke(app, ["learn", "prev"])
        position = _stored().last_position
        assert (position.node_id, position.resource_index) == ("a", 1)

    def test_select_unknown_node(self, saved):
        result = runner.invoke(app, ["learn", "select", "ghost"])
        assert result.exit_code == 1
        assert "Node not found" in result.stdout

    def test_done_toggles_current_resource(self, saved):
        runner.invoke(app, ["learn", "select", "b"])
        result = runner.invoke(app, ["learn", "done"])
        assert result.exit_code == 0
        assert "Marked complete" in result.stdout
        assert _stored().completed_resources == {"b": frozenset({"b_0"})}

        result = runner.invoke(app, ["learn", "done"])
        assert "Marked not complete" in result.stdout

    def test_show_and_progress(self, saved):
        runner.invoke(app, ["learn", "select", "root"])
        result = runner.invoke(app, ["learn", "show"])
        assert result.exit_code == 0
        assert "Python Roadmap" in result.stdout
        assert "▶ Topic root" in result.stdout

        result = runner.invoke(app, ["learn", "progress"])
        assert result.exit_code == 0
        assert "0/17 resources" in result.stdout
        assert "Topics complete: 0/4" in result.stdout

    def test_next_at_end(self, saved):
        runner.invoke(app, ["learn", "select", "b"])
        runner.invoke(app, ["learn", "next"])
        result = runner.invoke(app, ["learn", "next"])
        assert "end of the roadmap" in result.stdout

    def test_requires_active_roadmap(self):
        result = runner.invoke(app, ["learn", "show"])
        assert result.exit_code == 1

    def test_next_before_start_shows_hint(self, saved):
        result = runner.invoke(app, ["learn", "next"])
        assert result.exit_code == 0
        assert "Not started yet" in result.stdout
        assert "end of the roadmap" not in result.stdout

    def test_prev_before_start_shows_hint(self, saved):
        result = runner.invoke(app, ["learn", "prev"])
        assert "Not started yet" in result.stdout
        assert "start of the roadmap" not in result.stdout

    @pytest.mark.parametrize("args", [["--node", "a"], ["--resource", "a_0"]])
    def test_done_requires_node_and_resource_together(self, saved, args):
        runner.invoke(app, ["learn", "select", "b"])
        result = runner.invoke(app, ["learn", "done", *args])
        assert result.exit_code == 1
        assert "both --node and --resource" in result.stdout
        assert _stored().completed_resources == {}

    def test_done_explicit_ids(self, saved):
        result = runner.invoke(app, ["learn", "done", "--node", "a", "--resource", "a_1"])
        assert result.exit_code == 0
        assert _stored().completed_resources == {"a": frozenset({"a_1"})}

    def test_show_renders_shared_child_once(self, make_roadmap, node_doc, edge_doc):
        roadmap = make_roadmap(
            "dag-1",
            nodes=[node_doc("r", 1, 1), node_doc("x", 2, 1), node_doc("y", 2, 2), node_doc("s", 3, 1)],
            edges=[edge_doc("r", "x"), edge_doc("r", "y"), edge_doc("x", "s"), edge_doc("y", "s")],
        )
        repository = open_repository()
        try:
            repository.save(roadmap)
        finally:
            repository.close()
        save_context(CliContext(active_roadmap_id="dag-1", active_roadmap_title=roadmap.title))

        result = runner.invoke(app, ["learn", "show"])
        assert result.exit_code == 0
        assert result.stdout.count("Topic s") == 2
        assert "Topic s (see above)" in result.stdout
