"""Inspect commands -- examine the resource graph of a document.

Provides the ``aepgraph inspect`` sub-command group with read-only commands
for viewing what the graph builder inferred: the resources (with their
parents, patterns and methods) and the free-standing schemas. ``SOURCE`` may
be an OpenAPI document or a serialized resource graph.
"""

from __future__ import annotations

from typing import Optional

import typer

from aepgraph.commands.convert import _abort, _resolve, load_graph
from aepgraph.exceptions import AepGraphError
from aepgraph.graph import pattern
from aepgraph.models import API
from aepgraph.output import get_output


inspect_app = typer.Typer(no_args_is_help=True)


def _load(
    source: str,
    path_prefix: Optional[str],
    server_url: Optional[str],
) -> API:
    try:
        config = _resolve(path_prefix, server_url, None, None)
        return load_graph(source, config)
    except AepGraphError as exc:
        raise _abort(exc) from None


@inspect_app.command("resources")
def inspect_resources(
    source: str = typer.Argument(..., help="File path, URL, or '-' for stdin."),
    path_prefix: Optional[str] = typer.Option(None, "--path-prefix", help="Path prefix."),
    server_url: Optional[str] = typer.Option(None, "--server-url", help="Server URL override."),
) -> None:
    """List the resources of a document.

    Shows one row per resource with its plural, parents, canonical pattern,
    standard methods and custom methods.

    Example::

        aepgraph inspect resources openapi.yaml
    """
    api = _load(source, path_prefix, server_url)

    headers = ["Resource", "Plural", "Parents", "Pattern", "Methods", "Custom"]
    rows: list[list[str]] = []
    for resource in api.resources.values():
        rows.append([
            resource.singular,
            resource.plural,
            ", ".join(resource.parents) or "-",
            pattern(api, resource),
            ", ".join(resource.methods.present()) or "-",
            ", ".join(cm.name for cm in resource.custom_methods) or "-",
        ])

    get_output().print_table(
        headers, rows, title=f"{api.name} -- Resources ({len(rows)})"
    )


@inspect_app.command("schemas")
def inspect_schemas(
    source: str = typer.Argument(..., help="File path, URL, or '-' for stdin."),
    path_prefix: Optional[str] = typer.Option(None, "--path-prefix", help="Path prefix."),
    server_url: Optional[str] = typer.Option(None, "--server-url", help="Server URL override."),
) -> None:
    """List the free-standing schemas of a document.

    These are component schemas that no resource was inferred from. Shows
    their type and up to five property names.
    """
    api = _load(source, path_prefix, server_url)

    headers = ["Name", "Type", "Properties"]
    rows: list[list[str]] = []
    for name, schema in sorted(api.schemas.items()):
        props = list((schema.properties or {}).keys())
        shown = ", ".join(props[:5])
        if len(props) > 5:
            shown += f" (+{len(props) - 5} more)"
        rows.append([name, schema.type or "-", shown or "-"])

    get_output().print_table(
        headers, rows, title=f"{api.name} -- Schemas ({len(rows)})"
    )
