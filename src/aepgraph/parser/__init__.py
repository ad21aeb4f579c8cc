"""Document parsing -- load documents, resolve ``$ref`` pointers, classify paths.

This sub-package is the front half of the aepgraph pipeline: turning a raw
OpenAPI 3.x or Swagger 2.0 document (JSON or YAML, local file or remote URL)
into the inputs the graph builder consumes.

Typical usage::

    from aepgraph.parser import load_document
    from aepgraph.parser.builder import build_api

    raw = load_document("https://example.com/openapi.json")
    api = build_api(raw, path_prefix="/v1")

Sub-modules:

* :mod:`~aepgraph.parser.loader` -- I/O layer (URL, file, stdin) plus format
  and version detection.
* :mod:`~aepgraph.parser.resolver` -- ``$ref`` resolution with cycle
  detection and per-run fetch memoization.
* :mod:`~aepgraph.parser.patterns` -- path template classification.
* :mod:`~aepgraph.parser.builder` -- the resource graph builder.
"""

from aepgraph.parser.loader import detect_version, load_document, parse_openapi
from aepgraph.parser.patterns import PatternInfo, classify_path
from aepgraph.parser.resolver import SchemaResolver

__all__ = [
    "load_document",
    "detect_version",
    "parse_openapi",
    "classify_path",
    "PatternInfo",
    "SchemaResolver",
]
