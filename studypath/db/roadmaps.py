"""Bounded persistence of roadmaps in a key/value store.

Layout inside the store (``prefix`` defaults to ``settings.storage_prefix``)::

    {prefix}_roadmaps          JSON list of metadata, newest first
    {prefix}_roadmap_{id}      JSON document of one full roadmap

At most ``max_roadmaps`` roadmaps are kept.  Saving a new one beyond that
evicts the entry at the end of the list together with its document.  Corrupt
entries are deleted on read instead of being reported.
"""

from __future__ import annotations

import enum
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from studypath.config import settings
from studypath.db.connection import get_connection
from studypath.db.kv import KeyValueStore, SqliteKeyValueStore
from studypath.db.migrations import init_db
from studypath.errors import (
    InvalidJson,
    NotFoundError,
    SchemaError,
    StorageError,
    StorageUnavailable,
)
from studypath.models import Roadmap, RoadmapMetadata
from studypath.roadmap.progress import progress_stats
from studypath.validation import load_metadata_list, load_roadmap, validate

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {
    "title",
    "topic",
    "nodes",
    "edges",
    "completed_resources",
    "last_position",
}


class ImportStatus(str, enum.Enum):
    SUCCESS = "success"
    INVALID_JSON = "invalid_json"
    SCHEMA_ERROR = "schema_error"


@dataclass(frozen=True)
class ImportResult:
    status: ImportStatus
    roadmap: Optional[Roadmap] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ImportStatus.SUCCESS

    def raise_for_status(self) -> Roadmap:
        """Return the imported roadmap or raise the matching typed error."""
        if self.status is ImportStatus.INVALID_JSON:
            raise InvalidJson(self.error or "Invalid JSON format")
        if self.status is ImportStatus.SCHEMA_ERROR:
            raise SchemaError(self.error or "Invalid roadmap structure")
        assert self.roadmap is not None
        return self.roadmap


@dataclass(frozen=True)
class StorageInfo:
    available: bool
    roadmap_count: int
    max_roadmaps: int


def build_metadata(roadmap: Roadmap) -> RoadmapMetadata:
    """Project *roadmap* onto its list-view summary."""
    stats = progress_stats(roadmap.nodes, roadmap.completed_resources)
    return RoadmapMetadata(
        id=roadmap.id,
        title=roadmap.title,
        topic=roadmap.topic,
        created_at=roadmap.created_at,
        node_count=roadmap.node_count,
        completed_count=stats.completed_count,
        total_resources=stats.total_resources,
    )


class RoadmapRepository:
    """Roadmap aggregates and their metadata index in a :class:`KeyValueStore`.

    The store is probed once on construction.

    Raises:
        StorageUnavailable: If the store cannot be written to.
    """

    def __init__(
        self,
        store: KeyValueStore,
        prefix: Optional[str] = None,
        max_roadmaps: Optional[int] = None,
    ) -> None:
        store.probe()
        self._store = store
        self._prefix = prefix or settings.storage_prefix
        self._max_roadmaps = max_roadmaps or settings.max_roadmaps

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------
    @property
    def list_key(self) -> str:
        return f"{self._prefix}_roadmaps"

    def roadmap_key(self, roadmap_id: str) -> str:
        return f"{self._prefix}_roadmap_{roadmap_id}"

    def _write_index(self, entries: list[RoadmapMetadata]) -> None:
        self._store.set(self.list_key, json.dumps([m.to_dict() for m in entries]))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def list_metadata(self) -> list[RoadmapMetadata]:
        """Return the metadata index, newest first.  A corrupt index is reset."""
        data = self._store.get(self.list_key)
        if data is None:
            return []
        try:
            return load_metadata_list(json.loads(data))
        except (ValueError, SchemaError) as exc:
            logger.warning("Resetting corrupt roadmap index: %s", exc)
            self._store.remove(self.list_key)
            return []

    def get(self, roadmap_id: str) -> Optional[Roadmap]:
        """Return the roadmap stored under *roadmap_id*, or ``None``.

        A document that cannot be decoded or fails validation is deleted
        (document and index entry) and ``None`` is returned.
        """
        data = self._store.get(self.roadmap_key(roadmap_id))
        if data is None:
            return None
        try:
            return load_roadmap(json.loads(data))
        except (ValueError, SchemaError) as exc:
            logger.warning("Removing corrupt roadmap %s: %s", roadmap_id, exc)
            self.delete(roadmap_id)
            return None

    def list_roadmaps(self) -> list[Roadmap]:
        """Return every roadmap in the index that can still be loaded."""
        roadmaps = []
        for meta in self.list_metadata():
            roadmap = self.get(meta.id)
            if roadmap is not None:
                roadmaps.append(roadmap)
        return roadmaps

    def close(self) -> None:
        self._store.close()

    def storage_info(self) -> StorageInfo:
        return StorageInfo(
            available=True,
            roadmap_count=len(self.list_metadata()),
            max_roadmaps=self._max_roadmaps,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def save(self, roadmap: Roadmap) -> None:
        """Upsert *roadmap* and its metadata, evicting the oldest beyond the cap.

        Raises:
            StorageQuotaExceeded: If the store rejects the write for space.
            StorageError: For any other write failure.  The index is rolled
                back so it never lists a roadmap whose document was not
                written.
        """
        previous = self.list_metadata()
        entries = list(previous)
        meta = build_metadata(roadmap)

        evicted: list[RoadmapMetadata] = []
        existing = next((i for i, m in enumerate(entries) if m.id == roadmap.id), None)
        if existing is not None:
            entries[existing] = meta
        else:
            entries.insert(0, meta)
            while len(entries) > self._max_roadmaps:
                evicted.append(entries.pop())

        self._write_index(entries)
        for old in evicted:
            logger.info("Evicting roadmap %s (%r) to stay within %d", old.id, old.title, self._max_roadmaps)
            self._store.remove(self.roadmap_key(old.id))

        try:
            self._store.set(self.roadmap_key(roadmap.id), json.dumps(roadmap.to_dict()))
        except StorageError:
            evicted_ids = {m.id for m in evicted}
            self._write_index([m for m in previous if m.id not in evicted_ids])
            raise

    def update(self, roadmap_id: str, **fields: Any) -> Roadmap:
        """Merge *fields* into a stored roadmap, refresh ``updated_at`` and save.

        Allowed fields: ``title``, ``topic``, ``nodes``, ``edges``,
        ``completed_resources``, ``last_position``.

        Raises:
            NotFoundError: If no roadmap is stored under *roadmap_id*.
            ValueError: If a field cannot be updated.
        """
        roadmap = self.get(roadmap_id)
        if roadmap is None:
            raise NotFoundError(f"Roadmap not found: {roadmap_id!r}")

        for key in fields:
            if key not in _UPDATABLE_FIELDS:
                raise ValueError(f"Cannot update field {key!r}")
        if "nodes" in fields:
            fields["nodes"] = tuple(fields["nodes"])
        if "edges" in fields:
            fields["edges"] = tuple(fields["edges"])

        updated = roadmap.touch(**fields)
        self.save(updated)
        return updated

    def delete(self, roadmap_id: str) -> None:
        """Remove a roadmap and its index entry.  A no-op if it does not exist."""
        entries = self.list_metadata()
        remaining = [m for m in entries if m.id != roadmap_id]
        if len(remaining) != len(entries):
            self._write_index(remaining)
        self._store.remove(self.roadmap_key(roadmap_id))

    def clear_all(self) -> None:
        """Delete every roadmap and the index itself."""
        for meta in self.list_metadata():
            self._store.remove(self.roadmap_key(meta.id))
        self._store.remove(self.list_key)

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------
    def import_roadmap(self, raw_json: str) -> ImportResult:
        """Parse, validate and save a roadmap document under a fresh id.

        Storage failures are raised, not folded into the result.
        """
        try:
            data = json.loads(raw_json)
        except ValueError:
            return ImportResult(ImportStatus.INVALID_JSON, error="Invalid JSON format")

        try:
            roadmap = validate(data, new_id=str(uuid.uuid4()))
        except SchemaError as exc:
            return ImportResult(ImportStatus.SCHEMA_ERROR, error=str(exc))

        self.save(roadmap)
        logger.info("Imported roadmap %s (%r)", roadmap.id, roadmap.title)
        return ImportResult(ImportStatus.SUCCESS, roadmap=roadmap)

    def export_roadmap(self, roadmap_id: str) -> str:
        """Return the stored roadmap as pretty-printed JSON.

        Raises:
            NotFoundError: If no roadmap is stored under *roadmap_id*.
        """
        roadmap = self.get(roadmap_id)
        if roadmap is None:
            raise NotFoundError(f"Roadmap not found: {roadmap_id!r}")
        return json.dumps(roadmap.to_dict(), indent=2)


def open_repository(db_path: Optional[Path] = None) -> RoadmapRepository:
    """Open the SQLite-backed repository at *db_path* (default ``settings.db_path``).

    Raises:
        StorageUnavailable: If the database cannot be opened or written.
    """
    try:
        conn = get_connection(db_path)
        init_db(conn)
    except (OSError, sqlite3.Error) as exc:
        raise StorageUnavailable(f"Cannot open roadmap storage: {exc}") from exc
    store = SqliteKeyValueStore(conn, max_bytes=settings.storage_max_bytes)
    return RoadmapRepository(store)
