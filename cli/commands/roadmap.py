"""Roadmap library commands."""

import asyncio
from pathlib import Path
from typing import NoReturn

import typer

from studypath.db import RoadmapRepository, open_repository
from studypath.errors import StudyPathError
from studypath.generator import RoadmapGenerator
from studypath.roadmap.session import NEW_ROADMAP_ID, RoadmapSession
from cli.context import load_context, require_context, save_context

roadmap_app = typer.Typer(help="Manage saved roadmaps.")


def open_repo() -> RoadmapRepository:
    """Open the local store, exiting with a message if it cannot be used."""
    try:
        return open_repository()
    except StudyPathError as exc:
        fail(exc)


def fail(exc: Exception) -> NoReturn:
    typer.echo(f"❌ {exc}")
    raise typer.Exit(code=1)


@roadmap_app.command("new")
def roadmap_new(
    topic: str = typer.Argument(..., help="What you want to learn."),
) -> None:
    """Generate a roadmap for TOPIC and make it the active one."""
    repo = open_repo()
    try:
        typer.echo(f"🧠 Generating roadmap for {topic!r} …")
        session = asyncio.run(
            RoadmapSession.load_or_create(
                repo, NEW_ROADMAP_ID, topic=topic, generator=RoadmapGenerator()
            )
        )
    except StudyPathError as exc:
        fail(exc)
    finally:
        repo.close()

    roadmap = session.roadmap
    ctx = load_context()
    ctx.active_roadmap_id = roadmap.id
    ctx.active_roadmap_title = roadmap.title
    save_context(ctx)

    typer.echo(f"✅ Roadmap created: {roadmap.title} ({roadmap.id})")
    typer.echo(f"   {roadmap.node_count} topics")


@roadmap_app.command("list")
def roadmap_list() -> None:
    """List saved roadmaps, newest first."""
    repo = open_repo()
    try:
        entries = repo.list_metadata()
    finally:
        repo.close()

    if not entries:
        typer.echo("No roadmaps found.")
        return

    active_id = load_context().active_roadmap_id
    typer.echo("Roadmaps:")
    for meta in entries:
        marker = "*" if meta.id == active_id else " "
        typer.echo(
            f"{marker} {meta.title} \t{meta.completed_count}/{meta.total_resources} "
            f"\t[{meta.id}]"
        )


@roadmap_app.command("open")
def roadmap_open(
    roadmap_id: str = typer.Argument(..., help="Roadmap id."),
) -> None:
    """Make a saved roadmap the active one."""
    repo = open_repo()
    try:
        roadmap = repo.get(roadmap_id)
    finally:
        repo.close()

    if roadmap is None:
        typer.echo(f"❌ Roadmap '{roadmap_id}' not found.")
        raise typer.Exit(code=1)

    ctx = load_context()
    ctx.active_roadmap_id = roadmap.id
    ctx.active_roadmap_title = roadmap.title
    save_context(ctx)
    typer.echo(f"📂 Switched to roadmap: {roadmap.title}")


@roadmap_app.command("export")
@require_context
def roadmap_export(
    output: Path = typer.Option(None, "--output", "-o", help="Write to a file instead of stdout."),
) -> None:
    """Export the active roadmap as JSON."""
    ctx = load_context()
    repo = open_repo()
    try:
        data = repo.export_roadmap(ctx.active_roadmap_id)
    except StudyPathError as exc:
        fail(exc)
    finally:
        repo.close()

    if output:
        output.write_text(data, encoding="utf-8")
        typer.echo(f"✅ Exported to {output}")
    else:
        typer.echo(data)


@roadmap_app.command("import")
def roadmap_import(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Roadmap JSON file."),
) -> None:
    """Import a roadmap file under a new id and make it active."""
    repo = open_repo()
    try:
        result = repo.import_roadmap(path.read_text(encoding="utf-8"))
        roadmap = result.raise_for_status()
    except StudyPathError as exc:
        fail(exc)
    finally:
        repo.close()

    ctx = load_context()
    ctx.active_roadmap_id = roadmap.id
    ctx.active_roadmap_title = roadmap.title
    save_context(ctx)
    typer.echo(f"✅ Imported: {roadmap.title} ({roadmap.id})")


@roadmap_app.command("delete")
def roadmap_delete(
    roadmap_id: str = typer.Argument(..., help="Roadmap id."),
) -> None:
    """Delete a saved roadmap."""
    repo = open_repo()
    try:
        repo.delete(roadmap_id)
    except StudyPathError as exc:
        fail(exc)
    finally:
        repo.close()

    ctx = load_context()
    if ctx.active_roadmap_id == roadmap_id:
        ctx.clear_active()
        save_context(ctx)
    typer.echo(f"🗑️  Deleted roadmap {roadmap_id}")


@roadmap_app.command("clear")
def roadmap_clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete every saved roadmap."""
    if not yes:
        typer.confirm("Delete all saved roadmaps?", abort=True)
    repo = open_repo()
    try:
        repo.clear_all()
    except StudyPathError as exc:
        fail(exc)
    finally:
        repo.close()

    ctx = load_context()
    ctx.clear_active()
    save_context(ctx)
    typer.echo("🗑️  All roadmaps deleted.")


@roadmap_app.command("info")
def roadmap_info() -> None:
    """Show storage status."""
    repo = open_repo()
    try:
        info = repo.storage_info()
    finally:
        repo.close()

    typer.echo(f"Storage available : {'yes' if info.available else 'no'}")
    typer.echo(f"Roadmaps          : {info.roadmap_count}/{info.max_roadmaps}")
