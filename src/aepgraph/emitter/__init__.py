"""OpenAPI emission -- turn a finalized resource graph back into a document.

Typical usage::

    from aepgraph.emitter import convert_to_openapi_dict

    document = convert_to_openapi_dict(api)
"""

from aepgraph.emitter.openapi import (
    convert_to_openapi,
    convert_to_openapi_dict,
    convert_to_openapi_json,
    strip_field_numbers,
)

__all__ = [
    "convert_to_openapi",
    "convert_to_openapi_dict",
    "convert_to_openapi_json",
    "strip_field_numbers",
]
