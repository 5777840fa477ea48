"""Roadmap generation endpoint.

Routes
------
POST /generate-roadmap   {"topic": "..."} → {"success": true, "roadmap": {...}}
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from studypath.errors import GenerationFailed, InvalidTopic

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_BY_KIND = {
    GenerationFailed.RATE_LIMITED: 429,
    GenerationFailed.TIMEOUT: 408,
    GenerationFailed.CONTENT_POLICY: 400,
    GenerationFailed.FAILED: 500,
}


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class GenerateRoadmapRequest(BaseModel):
    topic: Optional[str] = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/generate-roadmap")
async def generate_roadmap(body: GenerateRoadmapRequest, request: Request) -> Any:
    """Generate a fresh roadmap for ``topic``.

    Status codes: 400 for a missing or invalid topic and for content-policy
    refusals, 429 when the model is rate limited, 408 on timeout and 500 for
    any other generation failure.
    """
    if not body.topic:
        return _error(400, "Topic is required")

    generator = request.app.state.generator
    try:
        roadmap = await generator.create_roadmap(body.topic)
    except InvalidTopic as exc:
        return _error(400, str(exc))
    except GenerationFailed as exc:
        logger.error("Failed to generate roadmap after retries: %s", exc)
        return _error(_STATUS_BY_KIND.get(exc.kind, 500), str(exc))

    data = roadmap.to_dict()
    data["nodeCount"] = roadmap.node_count
    return {"success": True, "roadmap": data}
