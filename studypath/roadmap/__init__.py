"""Roadmap traversal, progress and navigation.

Only the dependency-free pieces are re-exported here; import
``studypath.roadmap.session`` directly for the session facade.
"""

from studypath.roadmap.progress import ProgressStats, progress_stats, toggle_resource_complete
from studypath.roadmap.traversal import TopicTreeItem, build_topic_tree, dfs_sequence

__all__ = [
    "ProgressStats",
    "TopicTreeItem",
    "build_topic_tree",
    "dfs_sequence",
    "progress_stats",
    "toggle_resource_complete",
]
