"""Load OpenAPI documents and resource models from a URL, local file, or stdin.

This module handles all I/O for fetching raw documents and converting them
into Python dictionaries. It supports both JSON and YAML with automatic
format detection, and detects whether a document is OpenAPI 3.x or
Swagger 2.0.

The public functions are:

* :func:`load_document` -- Load and parse a document from any supported source.
* :func:`parse_openapi` -- Validate a raw dict into an :class:`~aepgraph.models.OpenAPI`.
* :func:`detect_version` -- Return the document version marker.
* :func:`parse_content` -- Parse a string as JSON or YAML.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import httpx
import yaml
from pydantic import ValidationError

from aepgraph.constants import OAS2, OAS3
from aepgraph.exceptions import DocumentLoadError, DocumentStructureError
from aepgraph.models import OpenAPI


def load_document(source: str, timeout: float = 30.0) -> dict[str, Any]:
    """Load a document from URL, file path, or stdin ('-').

    Supports JSON and YAML formats.
    Auto-detects format from content/extension.

    Args:
        source: A URL (http/https), file path, or '-' for stdin.
        timeout: Timeout in seconds for URL sources.

    Returns:
        The parsed document as a dictionary.

    Raises:
        DocumentLoadError: If the source cannot be loaded or parsed.
    """
    if source == "-":
        return _load_from_stdin()
    elif source.startswith(("http://", "https://")):
        return _load_from_url(source, timeout)
    else:
        return _load_from_file(source)


def _load_from_stdin() -> dict[str, Any]:
    try:
        content = sys.stdin.read()
    except OSError as exc:
        raise DocumentLoadError(f"Failed to read from stdin: {exc}") from exc

    if not content.strip():
        raise DocumentLoadError("No input received from stdin")

    return parse_content(content, hint="stdin")


def _load_from_url(url: str, timeout: float) -> dict[str, Any]:
    """Fetch a document from URL. Supports JSON and YAML responses.

    Raises:
        DocumentLoadError: If the URL cannot be fetched or content cannot be parsed.
    """
    try:
        response = httpx.get(url, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise DocumentLoadError(
            f"HTTP {exc.response.status_code} fetching document from {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise DocumentLoadError(f"Failed to fetch document from {url}: {exc}") from exc

    return parse_content(response.text, hint=_hint_from_content_type(response))


def _hint_from_content_type(response: httpx.Response) -> str:
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        return "json"
    if "yaml" in content_type or "yml" in content_type:
        return "yaml"
    return ""


def _load_from_file(path: str) -> dict[str, Any]:
    """Load a document from a local file.

    Supports .json, .yaml, and .yml extensions. Falls back to content-based
    detection if the extension is not recognized.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise DocumentLoadError(f"Document not found: {path}")

    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DocumentLoadError(f"Failed to read {path}: {exc}") from exc

    if not content.strip():
        raise DocumentLoadError(f"Document is empty: {path}")

    return parse_content(content, hint=hint_from_suffix(file_path.suffix))


def hint_from_suffix(suffix: str) -> str:
    suffix = suffix.lower()
    if suffix == ".json":
        return "json"
    if suffix in (".yaml", ".yml"):
        return "yaml"
    return ""


def parse_content(content: str, hint: str = "") -> dict[str, Any]:
    """Parse content as JSON or YAML.

    Tries JSON first (unless hint is 'yaml'), then falls back to YAML.
    Valid JSON is also valid YAML, but JSON parsing is stricter and faster.

    Args:
        content: The raw string content.
        hint: Optional format hint ('json' or 'yaml').

    Returns:
        The parsed dictionary.

    Raises:
        DocumentLoadError: If the content cannot be parsed as either format.
    """
    json_error: Exception | None = None
    yaml_error: Exception | None = None

    if hint != "yaml":
        try:
            result = json.loads(content)
        except json.JSONDecodeError as exc:
            json_error = exc
            if hint == "json":
                raise DocumentLoadError(f"Invalid JSON: {exc}") from exc
        else:
            if not isinstance(result, dict):
                raise DocumentLoadError(
                    f"Document must be a JSON/YAML object (got {type(result).__name__})"
                )
            return result

    try:
        result = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        yaml_error = exc
    else:
        if not isinstance(result, dict):
            raise DocumentLoadError(
                "Document must be a JSON/YAML object (got "
                f"{type(result).__name__ if result is not None else 'empty document'})"
            )
        return result

    msg = "Failed to parse document as JSON or YAML"
    if json_error:
        msg += f"\n  JSON error: {json_error}"
    if yaml_error:
        msg += f"\n  YAML error: {yaml_error}"
    raise DocumentLoadError(msg)


def detect_version(document: dict[str, Any]) -> str:
    """Return :data:`~aepgraph.constants.OAS2` or :data:`~aepgraph.constants.OAS3`.

    Raises:
        DocumentStructureError: If neither a ``swagger: "2.0"`` nor an
            ``openapi`` marker is present.
    """
    swagger = document.get("swagger")
    if swagger is not None:
        if str(swagger).startswith("2"):
            return OAS2
        raise DocumentStructureError(f"Unsupported Swagger version: {swagger}")
    openapi_version = document.get("openapi")
    if openapi_version is None:
        raise DocumentStructureError(
            "unable to detect document version: add an 'openapi' or a 'swagger' field"
        )
    if not str(openapi_version).startswith("3"):
        raise DocumentStructureError(f"Unsupported OpenAPI version: {openapi_version}")
    return OAS3


def parse_openapi(document: dict[str, Any]) -> OpenAPI:
    """Validate a raw document into an :class:`~aepgraph.models.OpenAPI` model.

    Raises:
        DocumentStructureError: If the version is unrecognized or the
            document does not match the expected shape.
    """
    detect_version(document)
    try:
        return OpenAPI.model_validate(document)
    except ValidationError as exc:
        raise DocumentStructureError(f"Malformed OpenAPI document: {exc}") from exc
