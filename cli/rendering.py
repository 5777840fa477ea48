"""Utilities for rendering roadmaps in the CLI."""

from __future__ import annotations

from typing import Optional

from studypath.models import CompletedResources, Resource
from studypath.roadmap.progress import ProgressStats, is_node_fully_complete
from studypath.roadmap.traversal import TopicTreeItem


def render_tree(
    items: list[TopicTreeItem],
    completed: CompletedResources,
    current_node_id: Optional[str] = None,
) -> str:
    """Render the topic tree as ASCII, marking finished and current nodes.

    ``✓`` marks a node whose resources are all complete, ``▶`` the node the
    cursor is on.  Each node's children are drawn once; a node reached again
    through another parent or a cycle is listed as ``(see above)``.
    """
    lines: list[str] = []
    expanded: set[str] = set()
    # (item, prefix, is_last, is_root)
    stack = [(root, "", True, True) for root in reversed(items)]

    while stack:
        item, prefix, is_last, is_root = stack.pop()
        node = item.node
        mark = "✓" if is_node_fully_complete(node, completed) else " "
        pointer = "▶ " if node.id == current_node_id else ""
        repeated = node.id in expanded
        label = f"[{mark}] {pointer}{node.label}"
        if repeated:
            label += " (see above)"

        if is_root:
            lines.append(label)
            child_prefix = ""
        else:
            connector = "└── " if is_last else "├── "
            lines.append(f"{prefix}{connector}{label}")
            child_prefix = prefix + ("    " if is_last else "│   ")

        if repeated:
            continue
        expanded.add(node.id)
        count = len(item.children)
        for i in reversed(range(count)):
            stack.append((item.children[i], child_prefix, i == count - 1, False))

    return "\n".join(lines)


def _get_icon(resource_type: str) -> str:
    icons = {
        "video": "🎬",
        "documentation": "📘",
        "article": "📄",
        "tutorial": "🧭",
        "course": "🎓",
    }
    return icons.get(resource_type, "🔗")


def render_resource(resource: Resource, index: int, total: int, done: bool) -> str:
    check = "✓" if done else " "
    lines = [
        f"[{check}] {index + 1}/{total} {_get_icon(resource.type)} {resource.title}",
        f"    {resource.url}",
    ]
    if resource.source:
        lines.append(f"    source: {resource.source}")
    duration = resource.metadata.get("duration")
    if duration:
        lines.append(f"    duration: {duration}")
    return "\n".join(lines)


def render_progress(stats: ProgressStats, width: int = 30) -> str:
    filled = round(width * stats.percent / 100)
    bar = "█" * filled + "░" * (width - filled)
    return f"{bar} {stats.percent}% ({stats.completed_count}/{stats.total_resources} resources)"
