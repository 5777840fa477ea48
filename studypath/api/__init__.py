"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from studypath.api import app

    uvicorn studypath.api:app --reload
"""

from studypath.api.app import app

__all__ = ["app"]
