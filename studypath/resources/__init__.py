"""Learning-resource providers.

Public API::

    from studypath.resources import ResourceFetcher
    resources = await ResourceFetcher().fetch_resources("Closures", "JavaScript")
"""

from studypath.resources.fetcher import ResourceFetcher

__all__ = ["ResourceFetcher"]
