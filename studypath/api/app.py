"""FastAPI application factory.

Lifespan
--------
On startup the app configures logging and attaches the roadmap generator and
resource fetcher to ``app.state`` so routers (and tests) share one instance
of each.  The HTTP layer keeps no roadmap state of its own: persistence is
the client's job.

Routers
-------
    /generate-roadmap  POST: topic → validated roadmap
    /fetch-resources   POST: node title/topic → ranked resources
    /health            GET: liveness probe
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studypath.config import configure_logging
from studypath.generator import RoadmapGenerator
from studypath.resources import ResourceFetcher

from studypath.api.routers import health as health_router
from studypath.api.routers import resources as resources_router
from studypath.api.routers import roadmaps as roadmaps_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the collaborators unless a test already injected them."""
    configure_logging()
    if not hasattr(app.state, "generator"):
        app.state.generator = RoadmapGenerator()
    if not hasattr(app.state, "fetcher"):
        app.state.fetcher = ResourceFetcher()
    yield


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="StudyPath API",
        description=(
            "Stateless REST interface for StudyPath. Generates learning "
            "roadmaps with a LangChain chat model and fetches ranked videos, "
            "documentation and articles for individual roadmap topics."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(roadmaps_router.router, tags=["roadmaps"])
    app.include_router(resources_router.router, tags=["resources"])
    app.include_router(health_router.router, tags=["health"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn studypath.api.app:app --reload
app = create_app()
