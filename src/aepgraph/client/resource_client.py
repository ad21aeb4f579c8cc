"""Synchronous REST client driven by the resource graph.

:class:`ResourceClient` turns the standard methods of a
:class:`~aepgraph.models.Resource` into HTTP calls against the API's server.
It wraps :class:`httpx.Client` and layers on:

- **URL materialization** -- collection URLs are built from the resource
  pattern and caller-supplied parent parameters
  (:func:`build_collection_url`).
- **User-settable IDs** -- ``create`` appends ``?id=`` when the resource's
  create method accepts client-chosen identifiers.
- **Error mapping** -- HTTP errors and ``error`` members in response bodies
  become typed :mod:`aepgraph.exceptions`.

Requests are never retried.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

import httpx

from aepgraph.constants import (
    APPLICATION_JSON,
    FIELD_FORCE_NAME,
    FIELD_ID_NAME,
    FIELD_MAX_PAGE_SIZE_NAME,
    FIELD_PAGE_TOKEN_NAME,
    MERGE_PATCH_JSON,
)
from aepgraph.exceptions import (
    ApiError,
    ConnectionError_,
    InvalidUsageError,
    NotFoundError,
    ServerError,
)
from aepgraph.graph import get_resource, pattern_elems
from aepgraph.models import API, Resource
from aepgraph.parser.patterns import is_parameter, parameter_name

logger = logging.getLogger(__name__)

ResourceRef = Union[str, Resource]


def build_collection_url(
    api: API,
    resource: Resource,
    server_url: str,
    parameters: Optional[dict[str, str]] = None,
) -> str:
    """Materialize the collection URL of *resource*.

    Every pattern segment except the trailing identifier is used. Parameter
    segments are replaced with the matching entry of *parameters*; a value
    that is itself a resource path (``publishers/acme``) contributes only its
    last segment.

    Args:
        api: The graph owning *resource*.
        resource: The resource whose collection is addressed.
        server_url: Base URL; a trailing slash is ignored.
        parameters: Values for the parent path parameters.

    Returns:
        For example ``https://api.example.com/publishers/acme/books``.

    Raises:
        InvalidUsageError: If a parent parameter has no value.
    """
    parameters = parameters or {}
    elems = [server_url.rstrip("/")]
    for segment in pattern_elems(api, resource)[:-1]:
        if not is_parameter(segment):
            elems.append(segment)
            continue
        name = parameter_name(segment)
        if name not in parameters:
            raise InvalidUsageError(
                f"missing value for parameter {name!r} of resource {resource.singular}"
            )
        elems.append(str(parameters[name]).rsplit("/", 1)[-1])
    return "/".join(elems)


def build_resource_url(server_url: str, path: str) -> str:
    """Join *server_url* and a server-assigned resource *path*."""
    return f"{server_url.rstrip('/')}/{path.lstrip('/')}"


class ResourceClient:
    """Blocking client for the standard methods of a resource graph.

    Must be used as a context manager so that the underlying transport is
    opened and closed.

    Args:
        api: A finalized resource graph.
        timeout: Per-request timeout in seconds.
        transport: Optional :class:`httpx.BaseTransport` (tests pass
            :class:`httpx.MockTransport`).
        server_url: Overrides ``api.server_url``.

    Example::

        with ResourceClient(api) as client:
            book = client.create("book", {"title": "Dune"}, {"publisher": "acme"})
            client.delete(book["path"])
    """

    def __init__(
        self,
        api: API,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        server_url: Optional[str] = None,
    ) -> None:
        self._api = api
        self._timeout = timeout
        self._transport = transport
        self._server_url = server_url or api.server_url
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> ResourceClient:
        self._client = httpx.Client(
            timeout=self._timeout,
            follow_redirects=True,
            headers={"Accept": APPLICATION_JSON},
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Standard methods
    # ------------------------------------------------------------------ #

    def create(
        self,
        resource: ResourceRef,
        body: dict[str, Any],
        parameters: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """Create an instance of *resource* under the given parents.

        Raises:
            InvalidUsageError: If the resource takes a user-settable ID and
                *body* has no string ``id``, or a parent parameter is missing.
        """
        res = self._resource(resource)
        url = build_collection_url(self._api, res, self._server_url, parameters)
        params: dict[str, Any] = {}
        create = res.methods.create
        if create is not None and create.supports_user_settable_create:
            if FIELD_ID_NAME not in body:
                raise InvalidUsageError(f"id field not found in {body}")
            if not isinstance(body[FIELD_ID_NAME], str):
                raise InvalidUsageError(f"id field is not a string: {body[FIELD_ID_NAME]!r}")
            params[FIELD_ID_NAME] = body[FIELD_ID_NAME]
        return self._request("POST", url, params=params, json=body)

    def get(self, path: str) -> dict[str, Any]:
        """Fetch the resource at the server-assigned *path*."""
        return self._request("GET", build_resource_url(self._server_url, path))

    def list(
        self,
        resource: ResourceRef,
        parameters: Optional[dict[str, str]] = None,
        page_token: Optional[str] = None,
        max_page_size: Optional[int] = None,
    ) -> dict[str, Any]:
        """Fetch one page of *resource* instances."""
        res = self._resource(resource)
        url = build_collection_url(self._api, res, self._server_url, parameters)
        params: dict[str, Any] = {}
        if page_token:
            params[FIELD_PAGE_TOKEN_NAME] = page_token
        if max_page_size is not None:
            params[FIELD_MAX_PAGE_SIZE_NAME] = max_page_size
        return self._request("GET", url, params=params)

    def update(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """Apply a JSON merge patch to the resource at *path*."""
        return self._request(
            "PATCH",
            build_resource_url(self._server_url, path),
            json=body,
            headers={"Content-Type": MERGE_PATCH_JSON},
        )

    def delete(self, path: str, force: bool = False) -> dict[str, Any]:
        """Delete the resource at *path*; ``force`` cascades to children."""
        params = {FIELD_FORCE_NAME: "true"} if force else {}
        return self._request(
            "DELETE", build_resource_url(self._server_url, path), params=params
        )

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _resource(self, resource: ResourceRef) -> Resource:
        if isinstance(resource, Resource):
            return resource
        return get_resource(self._api, resource)

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Send one request and return the decoded JSON object body.

        Raises:
            NotFoundError: On 404.
            ServerError: On 5xx, or a non-JSON error response.
            ApiError: When the body carries an ``error`` member.
            ConnectionError_: On network / timeout errors.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

        logger.debug("%s %s", method, url)
        try:
            response = self._client.request(method, url, **kwargs)
        except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
            raise ConnectionError_(f"Connection failed: {exc}") from exc

        data = _decode(response)
        self._map_response_error(response, data)
        return data

    def _map_response_error(self, response: httpx.Response, data: dict[str, Any]) -> None:
        """Raise a typed exception for error statuses and error bodies."""
        status = response.status_code
        if status == 404:
            raise NotFoundError(_message(status, data, response))
        if status >= 500:
            raise ServerError(_message(status, data, response))
        if "error" in data:
            raise ApiError(
                f"returned errors, {data['error']}", status_code=status, detail=data["error"]
            )
        if status >= 400:
            raise ServerError(_message(status, data, response))


def _decode(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        if response.status_code >= 400:
            return {}
        raise ServerError(f"HTTP {response.status_code}: response is not JSON") from None
    if not isinstance(data, dict):
        raise ServerError(f"HTTP {response.status_code}: expected a JSON object")
    return data


def _message(status: int, data: dict[str, Any], response: httpx.Response) -> str:
    detail = data.get("message") or data.get("error") or data.get("detail") or ""
    if not detail and not data:
        detail = response.text[:200] if response.text else ""
    prefix = f"HTTP {status}"
    return f"{prefix}: {detail}" if detail else prefix
