"""Resource fetch endpoint.

Routes
------
POST /fetch-resources   {"nodeTitle", "nodeTopic"?, "nodeDescription"?}
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from studypath.errors import ResourceFetchFailed

logger = logging.getLogger(__name__)

router = APIRouter()


class FetchResourcesRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    node_title: Optional[str] = None
    node_topic: Optional[str] = None
    node_description: Optional[str] = None


@router.post("/fetch-resources")
async def fetch_resources(body: FetchResourcesRequest, request: Request) -> Any:
    """Return up to five resources for one roadmap topic.

    An empty list is a success.  500 (with ``partialResources: []``) only
    when every provider failed.
    """
    if not body.node_title:
        return JSONResponse(
            status_code=400, content={"success": False, "error": "nodeTitle is required"}
        )

    fetcher = request.app.state.fetcher
    try:
        resources = await fetcher.fetch_resources(
            body.node_title, body.node_topic, body.node_description
        )
    except ResourceFetchFailed as exc:
        logger.error("Resource fetch failed for %r: %s", body.node_title, exc)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Unable to fetch resources. Please try again later.",
                "partialResources": [],
            },
        )

    return {"success": True, "resources": [r.to_dict() for r in resources]}
