"""Persistence layer package.

Public re-exports so callers can write::

    from studypath.db import open_repository, RoadmapRepository
"""

from studypath.db.connection import get_connection
from studypath.db.migrations import init_db
from studypath.db.roadmaps import RoadmapRepository, open_repository

__all__ = ["get_connection", "init_db", "open_repository", "RoadmapRepository"]
