"""Emit an OpenAPI 3.1 document from a finalized resource graph.

For every resource the emitter computes the collection path and the item
path -- reusing its explicit pattern, or synthesizing one path pair per
parent by walking the parent chain -- and writes one operation per standard
method:

========  ========  ================  ==========================================
Method    Verb      Path              Notes
========  ========  ================  ==========================================
List      GET       collection        ``max_page_size``/``page_token`` always;
                                      ``skip``/``filter`` when supported
Create    POST      collection        ``id`` query parameter when user-settable
Get       GET       item
Update    PATCH     item              ``application/merge-patch+json`` body
Delete    DELETE    item              ``force`` when the resource has children
Apply     PUT       item
custom    GET/POST  ``item:name``     request/response default to ``object``
========  ========  ================  ==========================================

A long-running method answers with the well-known Operation schema; its real
payload is recorded in ``x-aep-long-running-operation``. Field ordinals are
stripped from copies of every schema, so the input graph is never modified.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from aepgraph.cases import to_pascal, upper_first
from aepgraph.constants import (
    AEP_OPERATION_REF,
    APPLICATION_JSON,
    FIELD_FILTER_NAME,
    FIELD_FORCE_NAME,
    FIELD_ID_NAME,
    FIELD_MAX_PAGE_SIZE_NAME,
    FIELD_NEXT_PAGE_TOKEN_NAME,
    FIELD_PAGE_TOKEN_NAME,
    FIELD_RESULTS_NAME,
    FIELD_SKIP_NAME,
    FIELD_UNREACHABLE_NAME,
    MERGE_PATCH_JSON,
)
from aepgraph.exceptions import CyclicParentError
from aepgraph.graph import (
    children,
    collection_name,
    id_parameter,
    parent_resources,
    pattern_elems,
)
from aepgraph.models import (
    API,
    Components,
    Info,
    MediaType,
    OpenAPI,
    Operation,
    Parameter,
    PathItem,
    RequestBody,
    Resource,
    Response,
    Schema,
    Server,
    XAEPField,
    XAEPLongRunningOperation,
    XAEPLongRunningOperationResponse,
    XAEPResource,
    to_dict,
)
from aepgraph.parser.patterns import parameter_name

OPENAPI_VERSION = "3.1.0"
DEFAULT_INFO_VERSION = "version not set"


@dataclass
class _PathBase:
    """A parent path prefix and the path parameters it declares."""

    prefix: str = ""
    params: list[Parameter] = field(default_factory=list)


def convert_to_openapi(api: API) -> OpenAPI:
    """Build the OpenAPI 3.1 model of *api*.

    Raises:
        ResourceLinkageError: If a parent cannot be resolved.
        CyclicParentError: If the parent chain loops.
    """
    paths: dict[str, PathItem] = {}
    schemas: dict[str, Schema] = {}

    for resource in api.resources.values():
        patterns = _emit_resource(api, resource, paths)
        schema = strip_field_numbers(resource.schema_ or Schema(type="object"))
        schema.x_aep_resource = XAEPResource(
            singular=resource.singular,
            plural=resource.plural,
            patterns=patterns,
            parents=list(resource.parents),
            type=f"{api.name}/{resource.singular}",
        )
        schemas[resource.singular] = schema

    for key, schema in api.schemas.items():
        if key in schemas:
            continue
        schemas[key] = strip_field_numbers(schema)

    return OpenAPI(
        openapi=OPENAPI_VERSION,
        servers=[Server(url=api.server_url)],
        info=Info(
            title=api.name,
            version=DEFAULT_INFO_VERSION,
            description=f"An API for {api.name}",
            contact=api.contact.model_copy() if api.contact is not None else None,
        ),
        paths=paths,
        components=Components(schemas=schemas),
    )


def convert_to_openapi_dict(api: API) -> dict[str, Any]:
    return to_dict(convert_to_openapi(api))


def convert_to_openapi_json(api: API, indent: Optional[int] = 2) -> str:
    return json.dumps(convert_to_openapi_dict(api), indent=indent, ensure_ascii=False)


def strip_field_numbers(schema: Schema) -> Schema:
    """Return a copy of *schema* without any ``x-aep-field.field_number``.

    Other members of ``x-aep-field`` are kept; an annotation left empty is
    removed. Properties, array items and ``additionalProperties`` schemas are
    processed recursively.
    """
    copy = schema.model_copy(deep=True)
    _strip(copy)
    return copy


def _strip(schema: Schema) -> None:
    if schema.x_aep_field is not None:
        schema.x_aep_field.field_number = None
        if schema.x_aep_field.is_empty():
            schema.x_aep_field = None
    for prop in (schema.properties or {}).values():
        _strip(prop)
    if schema.items is not None:
        _strip(schema.items)
    if isinstance(schema.additional_properties, Schema):
        _strip(schema.additional_properties)


# ------------------------------------------------------------------ #
# Paths
# ------------------------------------------------------------------ #


def _path_shapes(
    api: API, resource: Resource, visiting: tuple[str, ...] = ()
) -> tuple[str, str, list[_PathBase]]:
    """Return ``(collection, id parameter, parent bases)`` for *resource*."""
    if resource.patterns:
        elems = pattern_elems(api, resource)
        params = [_path_param(parameter_name(e)) for e in elems[1:-2:2]]
        prefix = "/" + "/".join(elems[:-2]) if len(elems) > 2 else ""
        return elems[-2], parameter_name(elems[-1]), [_PathBase(prefix, params)]

    if resource.singular in visiting:
        cycle = " -> ".join(visiting + (resource.singular,))
        raise CyclicParentError(f"cyclic parent relationship: {cycle}")

    collection = collection_name(api, resource)
    id_name = id_parameter(resource)
    if not resource.parents:
        return collection, id_name, [_PathBase()]

    bases = []
    for parent in parent_resources(api, resource):
        p_collection, p_id, p_bases = _path_shapes(
            api, parent, visiting + (resource.singular,)
        )
        reference = _path_param(p_id, resource_reference=parent.singular)
        for base in p_bases:
            bases.append(
                _PathBase(
                    prefix=f"{base.prefix}/{p_collection}/{{{p_id}}}",
                    params=base.params + [reference],
                )
            )
    return collection, id_name, bases


def _emit_resource(api: API, resource: Resource, paths: dict[str, PathItem]) -> list[str]:
    """Add the operations of *resource* to *paths*; return its item patterns."""
    collection, id_name, bases = _path_shapes(api, resource)
    name = to_pascal(resource.singular)
    resource_ref = Schema(ref=f"#/components/schemas/{resource.singular}")
    methods = resource.methods
    has_children = bool(children(api, resource))
    patterns: list[str] = []

    for base in bases:
        collection_path = f"{base.prefix}/{collection}"
        item_path = f"{collection_path}/{{{id_name}}}"
        patterns.append(item_path[1:])
        item_params = base.params + [_path_param(id_name)]

        if methods.list_ is not None:
            params = base.params + [
                _query_param(FIELD_MAX_PAGE_SIZE_NAME, "integer"),
                _query_param(FIELD_PAGE_TOKEN_NAME, "string"),
            ]
            if methods.list_.supports_skip:
                params.append(_query_param(FIELD_SKIP_NAME, "integer"))
            if methods.list_.supports_filter:
                params.append(_query_param(FIELD_FILTER_NAME, "string"))
            properties = {
                FIELD_RESULTS_NAME: Schema(type="array", items=resource_ref.model_copy()),
                FIELD_NEXT_PAGE_TOKEN_NAME: Schema(type="string"),
            }
            if methods.list_.has_unreachable_resources:
                properties[FIELD_UNREACHABLE_NAME] = Schema(
                    type="array", items=Schema(type="string")
                )
            op = Operation(
                operation_id=f"List{name}",
                description=f"List method for {resource.singular}",
                parameters=params,
                responses={"200": _json_response(Schema(type="object", properties=properties))},
            )
            _add(paths, collection_path, "get", op)

        if methods.create is not None:
            params = list(base.params)
            if methods.create.supports_user_settable_create:
                params.append(_query_param(FIELD_ID_NAME, "string"))
            op = Operation(
                operation_id=f"Create{name}",
                description=f"Create method for {resource.singular}",
                parameters=params,
                request_body=_json_body(resource_ref),
                responses={"200": _json_response(resource_ref)},
            )
            if methods.create.is_long_running:
                _make_long_running(op, resource_ref)
            _add(paths, collection_path, "post", op)

        if methods.get is not None:
            op = Operation(
                operation_id=f"Get{name}",
                description=f"Get method for {resource.singular}",
                parameters=list(item_params),
                responses={"200": _json_response(resource_ref)},
            )
            _add(paths, item_path, "get", op)

        if methods.update is not None:
            op = Operation(
                operation_id=f"Update{name}",
                description=f"Update method for {resource.singular}",
                parameters=list(item_params),
                request_body=_json_body(resource_ref, MERGE_PATCH_JSON),
                responses={"200": _json_response(resource_ref)},
            )
            if methods.update.is_long_running:
                _make_long_running(op, resource_ref)
            _add(paths, item_path, "patch", op)

        if methods.delete is not None:
            params = list(item_params)
            if has_children:
                params.append(_query_param(FIELD_FORCE_NAME, "boolean"))
            op = Operation(
                operation_id=f"Delete{name}",
                description=f"Delete method for {resource.singular}",
                parameters=params,
                responses={"204": Response(description="Successful response")},
            )
            if methods.delete.is_long_running:
                _make_long_running(op, Schema())
            _add(paths, item_path, "delete", op)

        if methods.apply is not None:
            op = Operation(
                operation_id=f"Apply{name}",
                description=f"Apply method for {resource.singular}",
                parameters=list(item_params),
                request_body=_json_body(resource_ref),
                responses={"200": _json_response(resource_ref)},
            )
            if methods.apply.is_long_running:
                _make_long_running(op, resource_ref)
            _add(paths, item_path, "put", op)

        for custom in resource.custom_methods:
            response = strip_field_numbers(custom.response or Schema(type="object"))
            op = Operation(
                operation_id=f"{upper_first(to_pascal(custom.name))}{name}",
                description=f"Custom method {custom.name} for {resource.singular}",
                parameters=list(item_params),
                responses={"200": _json_response(response)},
            )
            verb = "post" if custom.method.upper() == "POST" else "get"
            if verb == "post":
                request = strip_field_numbers(custom.request or Schema(type="object"))
                op.request_body = _json_body(request)
            if custom.is_long_running:
                _make_long_running(op, response)
            _add(paths, f"{item_path}:{custom.name}", verb, op)

    return patterns


def _add(paths: dict[str, PathItem], path: str, verb: str, op: Operation) -> None:
    item = paths.setdefault(path, PathItem())
    item.set_operation(verb, op)


def _path_param(name: str, resource_reference: Optional[str] = None) -> Parameter:
    param = Parameter(name=name, in_="path", required=True, schema=Schema(type="string"))
    if resource_reference is not None:
        param.x_aep_field = XAEPField(resource_reference=[resource_reference])
    return param


def _query_param(name: str, schema_type: str) -> Parameter:
    return Parameter(name=name, in_="query", required=False, schema=Schema(type=schema_type))


def _json_response(schema: Schema) -> Response:
    return Response(
        description="Successful response",
        content={APPLICATION_JSON: MediaType(schema=schema.model_copy(deep=True))},
    )


def _json_body(schema: Schema, content_type: str = APPLICATION_JSON) -> RequestBody:
    return RequestBody(
        required=True,
        content={content_type: MediaType(schema=schema.model_copy(deep=True))},
    )


def _make_long_running(op: Operation, payload: Schema) -> None:
    op.x_aep_long_running_operation = XAEPLongRunningOperation(
        response=XAEPLongRunningOperationResponse(schema=payload.model_copy(deep=True))
    )
    op.responses = {
        "200": Response(
            description="Long-running operation response",
            content={APPLICATION_JSON: MediaType(schema=Schema(ref=AEP_OPERATION_REF))},
        )
    }
