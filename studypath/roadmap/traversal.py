"""Linearisation of a roadmap graph into the canonical learning order.

The generator is asked for a tree, but nothing guarantees it returns one: a
node may have several parents, be unreachable, or sit on a cycle.
``dfs_sequence`` still produces a total, deterministic order in which every
node appears exactly once.  ``build_topic_tree`` produces the collapsible
sidebar view from the same adjacency and the same sort.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from studypath.models import Edge, TopicNode


@dataclass(eq=False)
class TopicTreeItem:
    """One entry of the sidebar tree, shared by every parent of its node."""

    node: TopicNode
    children: list[TopicTreeItem] = field(default_factory=list, repr=False)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _children_map(
    nodes: Sequence[TopicNode], edges: Iterable[Edge]
) -> tuple[dict[str, TopicNode], dict[str, list[TopicNode]], set[str]]:
    """Return ``(node_map, children, targets)`` for *nodes* and *edges*.

    Children are sorted by ``(level, order)``; edges naming unknown ids are
    ignored for adjacency but their target still counts as "has a parent".
    """
    node_map = {n.id: n for n in nodes}
    children: dict[str, list[TopicNode]] = {n.id: [] for n in nodes}
    targets: set[str] = set()

    for edge in edges:
        targets.add(edge.target)
        child = node_map.get(edge.target)
        if edge.source in children and child is not None:
            children[edge.source].append(child)

    for kids in children.values():
        kids.sort(key=lambda n: n.sort_key)
    return node_map, children, targets


def _roots(nodes: Sequence[TopicNode], targets: set[str]) -> list[TopicNode]:
    return sorted((n for n in nodes if n.id not in targets), key=lambda n: n.sort_key)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def dfs_sequence(nodes: Sequence[TopicNode], edges: Iterable[Edge]) -> list[TopicNode]:
    """Return every node exactly once in depth-first, level/order-sorted order.

    Roots (nodes that are never an edge target) are visited in
    ``(level, order)`` order; each node is followed by its subtree, children
    again sorted by ``(level, order)``.  Nodes reachable along several paths
    are emitted the first time they are reached.  Nodes never reached (for
    example, members of a cycle with no root) are appended in input order.

    An explicit stack is used so very deep roadmaps cannot exhaust the
    interpreter's recursion limit.
    """
    _, children, targets = _children_map(nodes, edges)

    sequence: list[TopicNode] = []
    visited: set[str] = set()

    for root in _roots(nodes, targets):
        stack = [root]
        while stack:
            node = stack.pop()
            if node.id in visited:
                continue
            visited.add(node.id)
            sequence.append(node)
            # Reversed so the smallest (level, order) child is popped first.
            stack.extend(reversed(children[node.id]))

    for node in nodes:
        if node.id not in visited:
            visited.add(node.id)
            sequence.append(node)

    return sequence


def sequence_index(sequence: Sequence[TopicNode], node_id: str) -> int:
    """Return the index of *node_id* in *sequence*, or ``-1``."""
    for i, node in enumerate(sequence):
        if node.id == node_id:
            return i
    return -1


def build_topic_tree(
    nodes: Sequence[TopicNode], edges: Iterable[Edge]
) -> list[TopicTreeItem]:
    """Return the sidebar tree: one item per root, children per adjacency.

    Every node id has exactly one item, shared by all of its parents, so the
    structure stays linear in the size of the graph.  Edges on a cycle make
    it cyclic: anything walking it must skip ids it has already visited.
    Nodes no root reaches start trees of their own, in input order.
    """
    _, children, targets = _children_map(nodes, edges)
    items = {n.id: TopicTreeItem(node=n) for n in nodes}
    for node_id, kids in children.items():
        items[node_id].children.extend(items[kid.id] for kid in kids)

    trees: list[TopicTreeItem] = []
    seen: set[str] = set()

    def _start(item: TopicTreeItem) -> None:
        trees.append(item)
        stack = [item]
        while stack:
            current = stack.pop()
            if current.node.id in seen:
                continue
            seen.add(current.node.id)
            stack.extend(current.children)

    for root in _roots(nodes, targets):
        _start(items[root.id])
    for node in nodes:
        if node.id not in seen:
            _start(items[node.id])
    return trees
