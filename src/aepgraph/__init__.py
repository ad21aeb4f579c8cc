"""aepgraph -- Infer a resource graph from OpenAPI documents and re-emit it.

This package reads an arbitrary OpenAPI 3.x or Swagger 2.0 document,
classifies its paths, dereferences its schemas, and builds a normalized
resource-oriented model (the :class:`~aepgraph.models.API`). The same model
can then be emitted back out as a clean OpenAPI 3.1 document.

Typical workflow::

    aepgraph parse openapi.yaml > api.json     # OpenAPI -> resource model
    aepgraph emit api.json > normalized.json   # resource model -> OpenAPI

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models for OpenAPI documents and the resource model.
    graph: Finalization and navigation of the resource graph.
    parser: Document loading, reference resolution, path classification and
        the resource graph builder.
    emitter: OpenAPI 3.1 generation from a finalized resource model.
    client: Generic HTTP client driven by resource patterns.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
