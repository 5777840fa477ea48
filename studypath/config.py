"""Centralised settings for StudyPath.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("STUDYPATH_WORKSPACE", Path.home() / ".studypath")
        )
    )
    storage_prefix: str = field(
        default_factory=lambda: os.environ.get("STUDYPATH_STORAGE_PREFIX", "studypath")
    )
    max_roadmaps: int = field(
        default_factory=lambda: int(os.environ.get("STUDYPATH_MAX_ROADMAPS", "10"))
    )
    # Roughly the 5 MB quota browsers give to localStorage.
    storage_max_bytes: int = field(
        default_factory=lambda: int(
            os.environ.get("STUDYPATH_STORAGE_MAX_BYTES", str(5 * 1024 * 1024))
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite key/value database file."""
        return self.workspace_dir / "studypath.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Roadmap generation model
    # ------------------------------------------------------------------
    llm_provider: str = field(
        default_factory=lambda: os.environ.get("LLM_PROVIDER", "ollama")
    )
    ollama_base_url: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
    )
    ollama_chat_model: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_CHAT_MODEL", "ministral-3:8b")
    )
    openai_chat_model: str = field(
        default_factory=lambda: os.environ.get("OPENAI_CHAT_MODEL", "gpt-4o-mini")
    )
    generation_max_retries: int = field(
        default_factory=lambda: int(os.environ.get("GENERATION_MAX_RETRIES", "2"))
    )
    generation_retry_base_delay: float = field(
        default_factory=lambda: float(os.environ.get("GENERATION_RETRY_BASE_DELAY", "1.0"))
    )

    # ------------------------------------------------------------------
    # Resource providers
    # ------------------------------------------------------------------
    youtube_api_key: str = field(
        default_factory=lambda: os.environ.get("YOUTUBE_API_KEY", "")
    )
    serper_api_key: str = field(
        default_factory=lambda: os.environ.get("SERPER_API_KEY", "")
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )

    # ------------------------------------------------------------------
    # Logging / CLI
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "WARNING").upper()
    )
    cli_config_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("STUDYPATH_CLI_DIR", Path.home() / ".studypath_cli")
        )
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str | None = None) -> None:
    """Apply ``settings.log_level`` (or *level*) to the root logger."""
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Module-level singleton, import this everywhere:
#   from studypath.config import settings
settings = Settings()
