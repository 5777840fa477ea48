"""Resource-completion bookkeeping and aggregate progress.

Completion state is a mapping ``node_id -> frozenset(resource_id)``.  It is
never mutated in place: every toggle returns a new top-level mapping so the
caller can diff and persist it explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from studypath.models import CompletedResources, TopicNode

# Matches the batch size of the resource fetcher (see
# studypath.resources.fetcher.MAX_RESOURCES).  Keep the two in sync.
ESTIMATED_RESOURCES_PER_NODE = 5


@dataclass(frozen=True)
class ProgressStats:
    completed_count: int
    total_resources: int

    @property
    def percent(self) -> int:
        if self.total_resources <= 0:
            return 0
        return round(self.completed_count * 100 / self.total_resources)


def toggle_resource_complete(
    completed: CompletedResources, node_id: str, resource_id: str
) -> dict[str, frozenset[str]]:
    """Flip the completion mark of one resource and return the new mapping.

    Calling this twice with the same ids returns a mapping equal to the
    original.  Ids are not checked against the roadmap.
    """
    current = completed.get(node_id, frozenset())
    if resource_id in current:
        updated = current - {resource_id}
    else:
        updated = current | {resource_id}

    result = {k: v for k, v in completed.items() if k != node_id}
    if updated:
        result[node_id] = updated
    return result


def is_resource_complete(
    completed: CompletedResources, node_id: str, resource_id: str
) -> bool:
    return resource_id in completed.get(node_id, frozenset())


def is_node_fully_complete(node: TopicNode, completed: CompletedResources) -> bool:
    """True iff *node* has at least one resource and all of them are complete."""
    resources = node.resource_list
    if not resources:
        return False
    done = completed.get(node.id, frozenset())
    return all(r.id in done for r in resources)


def completed_node_count(
    nodes: Iterable[TopicNode], completed: CompletedResources
) -> int:
    return sum(1 for n in nodes if is_node_fully_complete(n, completed))


def progress_stats(
    nodes: Iterable[TopicNode], completed: CompletedResources
) -> ProgressStats:
    """Sum completed and total resources over *nodes*.

    Fetched nodes with at least one resource count their real resources.
    Every other node, whether unfetched or fetched with nothing found, counts
    as ``ESTIMATED_RESOURCES_PER_NODE`` resources with none completed, so the
    total is an estimate until every node has resources.
    """
    completed_count = 0
    total = 0
    for node in nodes:
        resources = node.resource_list
        if node.resources_fetched and resources:
            done = completed.get(node.id, frozenset())
            total += len(resources)
            completed_count += sum(1 for r in resources if r.id in done)
        else:
            total += ESTIMATED_RESOURCES_PER_NODE
    return ProgressStats(completed_count=completed_count, total_resources=total)
