"""Liveness probe.

Routes
------
GET /health
"""

from __future__ import annotations

from fastapi import APIRouter

from studypath.config import settings

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "llm_provider": settings.llm_provider}
