"""Persistent state management for the StudyPath CLI.

Tracks the "active roadmap" and user preferences.
Stored in `~/.studypath_cli/context.json`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from functools import wraps
from pathlib import Path
from typing import Any, Callable

import typer
from studypath.config import settings

logger = logging.getLogger(__name__)


@dataclass
class CliContext:
    active_roadmap_id: str | None = None
    active_roadmap_title: str | None = None
    user_preferences: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    @classmethod
    def from_json(cls, data: str) -> CliContext:
        try:
            raw = json.loads(data)
            return cls(**raw)
        except (json.JSONDecodeError, TypeError):
            return cls()

    def clear_active(self) -> None:
        self.active_roadmap_id = None
        self.active_roadmap_title = None


def _get_context_path() -> Path:
    """Return the path to the context JSON file."""
    return settings.cli_config_dir / "context.json"


def load_context() -> CliContext:
    """Load the CLI context from disk. Returns defaults if missing/corrupt."""
    path = _get_context_path()
    if not path.exists():
        return CliContext()

    try:
        return CliContext.from_json(path.read_text(encoding="utf-8"))
    except OSError as exc:
        logger.warning("Cannot read CLI context %s: %s", path, exc)
        return CliContext()


def save_context(ctx: CliContext) -> None:
    """Save the CLI context to disk."""
    settings.cli_config_dir.mkdir(parents=True, exist_ok=True)
    _get_context_path().write_text(ctx.to_json(), encoding="utf-8")


def require_context(func: Callable) -> Callable:
    """Decorator for CLI commands that require an active roadmap.

    Aborts execution if no roadmap is active; the command reads the id with
    ``load_context()``.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        ctx = load_context()
        if not ctx.active_roadmap_id:
            typer.echo("❌ No active roadmap selected.")
            typer.echo("Run 'roadmap new <topic>' or 'roadmap open <id>' first.")
            raise typer.Exit(code=1)
        return func(*args, **kwargs)

    return wrapper
