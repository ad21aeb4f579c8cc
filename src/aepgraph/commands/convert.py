"""Conversion commands -- ``parse``, ``emit`` and ``normalize``.

* ``aepgraph parse SOURCE`` reads an OpenAPI 3.x or Swagger 2.0 document and
  writes the inferred resource graph as JSON.
* ``aepgraph emit SOURCE`` reads a resource graph (JSON or YAML) and writes
  the OpenAPI 3.1 document it describes.
* ``aepgraph normalize SOURCE`` chains both: OpenAPI in, OpenAPI 3.1 out.

``SOURCE`` is a file path, an ``http(s)`` URL, or ``-`` for stdin.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import typer

from aepgraph.config import resolve_config
from aepgraph.emitter import convert_to_openapi_dict
from aepgraph.exceptions import AepGraphError
from aepgraph.graph import dump_api, load_api
from aepgraph.models import API, ConversionConfig
from aepgraph.output import debug, error, get_output, info, success, suggest
from aepgraph.parser.builder import build_api
from aepgraph.parser.loader import load_document


def _abort(exc: AepGraphError) -> typer.Exit:
    error(str(exc))
    return typer.Exit(code=exc.exit_code)


def _deadline_at(config: ConversionConfig) -> Optional[float]:
    if config.deadline is None:
        return None
    return time.monotonic() + config.deadline


def is_openapi_document(document: dict[str, Any]) -> bool:
    """True for OpenAPI/Swagger documents, False for serialized resource graphs."""
    return "openapi" in document or "swagger" in document


def load_graph(
    source: str,
    config: ConversionConfig,
    include_operations: bool = False,
) -> API:
    """Load *source* and return its resource graph.

    OpenAPI and Swagger documents go through the graph builder; anything
    else is read as a serialized graph.
    """
    document = load_document(source, timeout=config.fetch_timeout)
    if not is_openapi_document(document):
        debug(f"Reading {source} as a resource graph")
        return load_api(document)

    debug(f"Building resource graph from {source}")
    return build_graph(document, config, include_operations)


def build_graph(
    document: dict[str, Any],
    config: ConversionConfig,
    include_operations: bool = False,
) -> API:
    """Run the graph builder on an OpenAPI or Swagger *document* with *config*."""
    return build_api(
        document,
        server_url=config.server_url,
        path_prefix=config.path_prefix,
        timeout=config.fetch_timeout,
        deadline=_deadline_at(config),
        include_operation_resource=include_operations,
    )


def _resolve(
    path_prefix: Optional[str],
    server_url: Optional[str],
    timeout: Optional[float],
    deadline: Optional[float],
) -> ConversionConfig:
    return resolve_config(
        cli_path_prefix=path_prefix,
        cli_server_url=server_url,
        cli_fetch_timeout=timeout,
        cli_deadline=deadline,
    )


# Shared option declarations
_SOURCE = typer.Argument(..., help="File path, URL, or '-' for stdin.")
_PATH_PREFIX = typer.Option(
    None, "--path-prefix", help="Only paths under this prefix are read; it is stripped."
)
_SERVER_URL = typer.Option(None, "--server-url", help="Server URL override.")
_TIMEOUT = typer.Option(None, "--timeout", help="Timeout in seconds per remote fetch.")
_DEADLINE = typer.Option(None, "--deadline", help="Seconds allowed for the whole conversion.")
_INCLUDE_OPERATIONS = typer.Option(
    False,
    "--include-operations",
    help="Add the 'operation' resource when any method is long-running.",
)


def parse_command(
    source: str = _SOURCE,
    path_prefix: Optional[str] = _PATH_PREFIX,
    server_url: Optional[str] = _SERVER_URL,
    timeout: Optional[float] = _TIMEOUT,
    deadline: Optional[float] = _DEADLINE,
    include_operations: bool = _INCLUDE_OPERATIONS,
) -> None:
    """Convert an OpenAPI document into a resource graph.

    Example::

        aepgraph parse openapi.yaml --path-prefix /v1
    """
    try:
        config = _resolve(path_prefix, server_url, timeout, deadline)
        document = load_document(source, timeout=config.fetch_timeout)
        api = build_graph(document, config, include_operations)
    except AepGraphError as exc:
        raise _abort(exc) from None

    get_output().print_document(dump_api(api), indent=config.indent)
    success(f"Found {len(api.resources)} resources in {source}")
    suggest("Run 'aepgraph emit' on the saved graph to produce OpenAPI 3.1")


def emit_command(
    source: str = _SOURCE,
    timeout: Optional[float] = _TIMEOUT,
) -> None:
    """Convert a resource graph (JSON or YAML) into an OpenAPI 3.1 document.

    Example::

        aepgraph emit bookstore.ir.json -o openapi.json
    """
    try:
        config = _resolve(None, None, timeout, None)
        api = load_api(load_document(source, timeout=config.fetch_timeout))
        document = convert_to_openapi_dict(api)
    except AepGraphError as exc:
        raise _abort(exc) from None

    get_output().print_document(document, indent=config.indent)


def normalize_command(
    source: str = _SOURCE,
    path_prefix: Optional[str] = _PATH_PREFIX,
    server_url: Optional[str] = _SERVER_URL,
    timeout: Optional[float] = _TIMEOUT,
    deadline: Optional[float] = _DEADLINE,
    include_operations: bool = _INCLUDE_OPERATIONS,
) -> None:
    """Rewrite an OpenAPI document in canonical resource-oriented form.

    Example::

        aepgraph normalize swagger.json --server-url https://api.example.com
    """
    try:
        config = _resolve(path_prefix, server_url, timeout, deadline)
        api = load_graph(source, config, include_operations)
        document = convert_to_openapi_dict(api)
    except AepGraphError as exc:
        raise _abort(exc) from None

    get_output().print_document(document, indent=config.indent)
    info(f"Normalized {len(document['paths'])} paths from {source}")
