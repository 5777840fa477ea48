"""StudyPath CLI: entry-point for roadmap operations.

Usage:
    python cli/main.py --help

Sub-command groups:
    roadmap   → generate, list, open, import/export and delete roadmaps
    learn     → walk the active roadmap and track progress
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that
# `from studypath.xxx import ...` works when the CLI is invoked as
# `python cli/main.py` from any working directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from typing import Optional

import typer

from studypath.config import configure_logging
from cli.commands.learn import learn_app
from cli.commands.roadmap import roadmap_app

app = typer.Typer(
    name="studypath",
    help="StudyPath: AI learning roadmaps in your terminal.",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Override LOG_LEVEL (DEBUG, INFO, WARNING …)."
    ),
) -> None:
    configure_logging(log_level.upper() if log_level else None)


app.add_typer(roadmap_app, name="roadmap")
app.add_typer(learn_app, name="learn")


if __name__ == "__main__":
    app()
