"""HTTP client module for aepgraph.

Provides :class:`ResourceClient`, a blocking client that drives the standard
methods of a finalized resource graph over :mod:`httpx`, and the URL helpers
it is built on.

Example::

    from aepgraph.client import ResourceClient

    with ResourceClient(api) as client:
        page = client.list("book", {"publisher": "acme"})
"""

from aepgraph.client.resource_client import (
    ResourceClient,
    build_collection_url,
    build_resource_url,
)

__all__ = ["ResourceClient", "build_collection_url", "build_resource_url"]
