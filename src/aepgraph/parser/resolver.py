"""Resolve schema ``$ref`` pointers to concrete schemas.

A reference is resolved one of two ways:

* **Local anchors** (``#/components/schemas/Pet``, ``#/definitions/Pet``) are
  looked up by their last pointer segment in the document's schema table.
  The table is ``components.schemas`` for OpenAPI 3 and ``definitions`` for
  Swagger 2.0, chosen by version autodetection.
* **Absolute URLs** (``http://``, ``https://``, ``file://``) are fetched,
  parsed as JSON or YAML, and resolved recursively. An optional fragment
  (``https://host/types.json#/definitions/Pet``) selects a sub-object of the
  fetched document. Fetched documents are memoized per URL for the lifetime
  of the :class:`SchemaResolver`, so a conversion run performs at most one
  fetch per distinct document.

Only the top-level reference chain is followed: properties of the resolved
schema keep their own ``$ref`` pointers. A chain that re-enters a reference
already being resolved raises :class:`~aepgraph.exceptions.CyclicReferenceError`.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote, urldefrag, urlparse

import httpx
from pydantic import ValidationError

from aepgraph.exceptions import (
    ConversionTimeoutError,
    CyclicReferenceError,
    DocumentLoadError,
    SchemaReferenceError,
)
from aepgraph.models import OpenAPI, Schema
from aepgraph.parser.loader import hint_from_suffix, parse_content

logger = logging.getLogger(__name__)

_REMOTE_SCHEMES = ("http://", "https://", "file://")


def ref_key(ref: str) -> str:
    """Return the component key a reference points at.

    ``#/components/schemas/Pet`` -> ``Pet``;
    ``https://example.com/schemas/pet.json`` -> ``pet``.
    """
    url, fragment = urldefrag(ref)
    if fragment:
        key = _unescape(fragment.rstrip("/").split("/")[-1])
    else:
        key = url.rstrip("/").split("/")[-1]
        for suffix in (".json", ".yaml", ".yml"):
            if key.lower().endswith(suffix):
                key = key[: -len(suffix)]
                break
    return key


def _unescape(segment: str) -> str:
    # RFC 6901 JSON Pointer escaping
    return segment.replace("~1", "/").replace("~0", "~")


class SchemaResolver:
    """Dereference schemas against one document.

    Args:
        document: The document whose schema table local anchors resolve
            against.
        timeout: Timeout in seconds for each remote fetch.
        deadline: Optional :func:`time.monotonic` timestamp after which no
            further fetch is attempted. Each fetch timeout is capped by the
            time remaining.

    Example::

        resolver = SchemaResolver(document)
        pet = resolver.resolve(Schema(ref="#/components/schemas/Pet"))
    """

    def __init__(
        self,
        document: OpenAPI,
        timeout: float = 30.0,
        deadline: Optional[float] = None,
    ) -> None:
        self._document = document
        self._timeout = timeout
        self._deadline = deadline
        self._fetched: dict[str, Any] = {}

    @property
    def fetch_count(self) -> int:
        """Number of distinct remote documents fetched so far."""
        return len(self._fetched)

    def resolve(self, schema: Schema) -> Schema:
        """Return *schema* with its reference chain followed to a concrete schema.

        Raises:
            SchemaReferenceError: If a reference cannot be resolved.
            CyclicReferenceError: If the reference chain loops.
            ConversionTimeoutError: If the deadline expires before a fetch.
        """
        chain: tuple[str, ...] = ()
        current = schema
        while current.ref:
            ref = current.ref
            if ref in chain:
                cycle = " -> ".join(chain + (ref,))
                raise CyclicReferenceError(f"cyclic schema reference: {cycle}")
            chain = chain + (ref,)
            current = self._lookup(ref)
        return current

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _lookup(self, ref: str) -> Schema:
        if ref.startswith("#"):
            return self._lookup_local(ref)
        if ref.startswith(_REMOTE_SCHEMES):
            return self._lookup_remote(ref)
        raise SchemaReferenceError(f"unsupported schema reference {ref!r}")

    def _lookup_local(self, ref: str) -> Schema:
        key = ref_key(ref)
        table = self._document.schema_table()
        if key not in table:
            raise SchemaReferenceError(f"schema {ref!r} not found")
        return table[key]

    def _lookup_remote(self, ref: str) -> Schema:
        url, fragment = urldefrag(ref)
        document = self._fetch(url)
        target: Any = document
        if fragment:
            for segment in fragment.strip("/").split("/"):
                segment = _unescape(segment)
                if not isinstance(target, dict) or segment not in target:
                    raise SchemaReferenceError(
                        f"cannot resolve {ref!r}: key {segment!r} not found"
                    )
                target = target[segment]
        if not isinstance(target, dict):
            raise SchemaReferenceError(f"reference {ref!r} does not point at a schema")
        try:
            return Schema.model_validate(target)
        except ValidationError as exc:
            raise SchemaReferenceError(f"invalid external schema {ref!r}: {exc}") from exc

    def _fetch(self, url: str) -> dict[str, Any]:
        if url in self._fetched:
            return self._fetched[url]

        timeout = self._remaining_timeout(url)
        logger.debug("fetching external schema document %s", url)
        if url.startswith("file://"):
            path = Path(unquote(urlparse(url).path))
            try:
                content = path.read_text(encoding="utf-8")
            except OSError as exc:
                raise SchemaReferenceError(
                    f"error fetching external schema {url!r}: {exc}"
                ) from exc
            hint = hint_from_suffix(path.suffix)
        else:
            try:
                response = httpx.get(url, timeout=timeout, follow_redirects=True)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise SchemaReferenceError(
                    f"error fetching external schema {url!r}: HTTP {exc.response.status_code}"
                ) from exc
            except httpx.RequestError as exc:
                raise SchemaReferenceError(
                    f"error fetching external schema {url!r}: {exc}"
                ) from exc
            content = response.text
            hint = hint_from_suffix(Path(urlparse(url).path).suffix)

        try:
            document = parse_content(content, hint=hint)
        except DocumentLoadError as exc:
            raise SchemaReferenceError(
                f"error parsing external schema {url!r}: {exc}"
            ) from exc

        self._fetched[url] = document
        return document

    def _remaining_timeout(self, url: str) -> float:
        if self._deadline is None:
            return self._timeout
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            raise ConversionTimeoutError(
                f"deadline exceeded before fetching external schema {url!r}"
            )
        return min(self._timeout, remaining)
