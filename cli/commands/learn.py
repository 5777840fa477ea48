"""Commands that walk the active roadmap resource by resource."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import typer

from studypath.errors import StudyPathError
from studypath.resources import ResourceFetcher
from studypath.roadmap.progress import is_resource_complete
from studypath.roadmap.session import RoadmapSession
from cli.commands.roadmap import fail, open_repo
from cli.context import load_context, require_context
from cli.rendering import render_progress, render_resource, render_tree

learn_app = typer.Typer(help="Study the active roadmap.")

T = TypeVar("T")


def _with_session(action: Callable[[RoadmapSession], Awaitable[T]]) -> tuple[RoadmapSession, T]:
    """Open the active roadmap, run *action* on it and close the store."""
    ctx = load_context()
    repo = open_repo()

    async def _run() -> tuple[RoadmapSession, T]:
        session = await RoadmapSession.load_or_create(
            repo, ctx.active_roadmap_id, fetcher=ResourceFetcher()
        )
        return session, await action(session)

    try:
        return asyncio.run(_run())
    except StudyPathError as exc:
        fail(exc)
    finally:
        repo.close()


async def _noop(session: RoadmapSession) -> None:
    return None


def _echo_position(session: RoadmapSession) -> None:
    node = session.cursor.current_node
    if node is None:
        typer.echo("Not started yet. Run 'learn select <node-id>' to begin.")
        return

    typer.echo(f"\n📍 {node.label}  [{node.id}]")
    typer.echo(f"   {node.description}")
    if session.cursor.loading:
        typer.echo("   ⏳ Loading resources …")
        return
    if not node.resources_fetched:
        typer.echo("   Resources could not be loaded. Try again later.")
        return

    resources = node.resource_list
    if not resources:
        typer.echo("   No resources found for this topic.")
        return

    current = session.cursor.current_resource
    completed = session.roadmap.completed_resources
    for i, resource in enumerate(resources):
        pointer = "▶" if current is not None and resource.id == current.id else " "
        rendered = render_resource(
            resource, i, len(resources), is_resource_complete(completed, node.id, resource.id)
        )
        typer.echo(f" {pointer} " + rendered.replace("\n", "\n   "))


@learn_app.command("show")
@require_context
def learn_show() -> None:
    """Show the topic tree, the current topic and overall progress."""
    session, _ = _with_session(_noop)
    roadmap = session.roadmap
    current = session.cursor.current_node

    typer.echo(f"\n🗺️  {roadmap.title}")
    typer.echo("-" * 40)
    typer.echo(
        render_tree(
            session.topic_tree(),
            roadmap.completed_resources,
            current.id if current is not None else None,
        )
    )
    _echo_position(session)
    typer.echo("")
    typer.echo(render_progress(session.progress()))


@learn_app.command("select")
@require_context
def learn_select(
    node_id: str = typer.Argument(..., help="Id of the topic to jump to."),
) -> None:
    """Jump to the first resource of a topic."""

    async def _select(session: RoadmapSession) -> None:
        await session.select_node(node_id)

    session, _ = _with_session(_select)
    _echo_position(session)


@learn_app.command("next")
@require_context
def learn_next() -> None:
    """Move to the next resource (or the next topic)."""

    async def _advance(session: RoadmapSession) -> bool:
        return await session.advance()

    session, moved = _with_session(_advance)
    if not moved and session.position is not None:
        typer.echo("🏁 You are at the end of the roadmap.")
    _echo_position(session)


@learn_app.command("prev")
@require_context
def learn_prev() -> None:
    """Move to the previous resource (or the previous topic)."""

    async def _retreat(session: RoadmapSession) -> bool:
        return await session.retreat()

    session, moved = _with_session(_retreat)
    if not moved and session.position is not None:
        typer.echo("⏮️  You are at the start of the roadmap.")
    _echo_position(session)


@learn_app.command("done")
@require_context
def learn_done(
    resource_id: Optional[str] = typer.Option(None, "--resource", help="Resource id (default: current)."),
    node_id: Optional[str] = typer.Option(None, "--node", help="Topic id (default: current)."),
) -> None:
    """Toggle the completion mark of a resource."""
    if (resource_id is None) != (node_id is None):
        typer.echo("❌ Pass both --node and --resource, or neither.")
        raise typer.Exit(code=1)

    async def _toggle(session: RoadmapSession) -> bool:
        return session.toggle_resource_complete(resource_id=resource_id, node_id=node_id)

    session, now_complete = _with_session(_toggle)
    if now_complete:
        typer.echo("✅ Marked complete.")
    else:
        typer.echo("↩️  Marked not complete.")
    typer.echo(render_progress(session.progress()))


@learn_app.command("progress")
@require_context
def learn_progress() -> None:
    """Show completion statistics for the active roadmap."""
    session, _ = _with_session(_noop)
    stats = session.progress()
    typer.echo(f"🗺️  {session.roadmap.title}")
    typer.echo(render_progress(stats))
    typer.echo(f"Topics complete: {session.completed_nodes()}/{session.roadmap.node_count}")
