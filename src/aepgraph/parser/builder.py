"""Build a resource graph from an OpenAPI or Swagger document.

The builder walks every path of the document, classifies it with
:func:`~aepgraph.parser.patterns.classify_path`, and reads the standard
methods each path implies:

* **collection paths** (``/books``) -- ``POST`` is Create, ``GET`` is List;
* **item paths** (``/books/{book}``) -- ``GET`` is Get, ``PATCH`` is Update,
  ``PUT`` is Apply, ``DELETE`` is Delete;
* **custom-method paths** (``/books/{book}:archive``) -- ``GET``/``POST``
  custom methods, attached to their resource once the graph is linked.

Each path contributes a representative schema (the Get/Update/Apply/Create
response, a long-running operation's declared payload, or the List items).
Its ``$ref`` key, or its ``x-aep-resource`` annotation when present, gives
the resource its singular name. Resources are memoized by singular, so every
path that returns the same schema folds into one record.

The single public entry point is :func:`build_api`.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional, Union

from aepgraph.cases import kebab_to_snake, pascal_to_kebab, snake_to_kebab
from aepgraph.constants import (
    APPLICATION_JSON,
    FIELD_FILTER_NAME,
    FIELD_ID_NAME,
    FIELD_RESULTS_NAME,
    FIELD_SKIP_NAME,
    FIELD_UNREACHABLE_NAME,
    OAS2,
)
from aepgraph.exceptions import (
    ConversionTimeoutError,
    CyclicParentError,
    DocumentStructureError,
    SchemaReferenceError,
)
from aepgraph.graph import (
    ExplicitNaming,
    InferredNaming,
    ensure_operation_resource,
    finalize_api,
    make_resource,
    pattern,
)
from aepgraph.models import (
    API,
    ApplyMethod,
    CreateMethod,
    CustomMethod,
    DeleteMethod,
    GetMethod,
    ListMethod,
    Methods,
    OpenAPI,
    Operation,
    Parameter,
    PathItem,
    Resource,
    Response,
    Schema,
    UpdateMethod,
)
from aepgraph.parser.loader import parse_openapi
from aepgraph.parser.patterns import PatternInfo, classify_path, parameter_name
from aepgraph.parser.resolver import SchemaResolver, ref_key

logger = logging.getLogger(__name__)

_SUCCESS_CODES = ("200", "201")


def build_api(
    document: Union[dict[str, Any], OpenAPI],
    server_url: str = "",
    path_prefix: str = "",
    *,
    resolver: Optional[SchemaResolver] = None,
    timeout: float = 30.0,
    deadline: Optional[float] = None,
    include_operation_resource: bool = False,
) -> API:
    """Infer and finalize the resource graph of *document*.

    Args:
        document: A raw document dict or a validated
            :class:`~aepgraph.models.OpenAPI` model.
        server_url: Server URL override. When empty, the first declared
            server (Swagger 2.0: ``schemes``/``host``/``basePath``) followed
            by *path_prefix* is used.
        path_prefix: Prefix stripped from every path. Paths that do not
            start with it are skipped.
        resolver: Resolver to dereference schemas with. A new one bound to
            *document* is created when omitted.
        timeout: Per-fetch timeout for remote references.
        deadline: Optional :func:`time.monotonic` timestamp bounding the
            whole conversion.
        include_operation_resource: Register the ``operation`` resource when
            any method is long-running.

    Returns:
        The finalized :class:`~aepgraph.models.API`.

    Raises:
        DocumentStructureError: Unrecognized version or no server URL.
        SchemaReferenceError: A schema reference cannot be resolved.
        ResourceLinkageError: An annotated parent does not exist.
        NamingConventionError: A resource name breaks the naming rule.
        ConversionTimeoutError: The deadline expired.
    """
    if isinstance(document, dict):
        document = parse_openapi(document)
    elif not document.oas_version():
        raise DocumentStructureError(
            "unable to detect document version: add an 'openapi' or a 'swagger' field"
        )

    logger.debug("parsing openapi with path prefix %r", path_prefix)
    resolved_server_url = _server_url(document, server_url, path_prefix)
    if resolver is None:
        resolver = SchemaResolver(document, timeout=timeout, deadline=deadline)

    builder = _GraphBuilder(document, resolver, deadline)
    builder.walk(path_prefix)

    contact = document.info.contact
    api = API(
        name=document.info.title,
        server_url=resolved_server_url,
        contact=contact if contact is not None and not contact.is_empty() else None,
        resources=builder.resources,
        schemas=builder.free_standing_schemas(),
    )
    finalize_api(api)
    builder.attach_pending(api)
    # custom methods count as long-running only once attached
    if include_operation_resource and ensure_operation_resource(api):
        finalize_api(api)
    return api


def _server_url(document: OpenAPI, override: str, path_prefix: str) -> str:
    if override:
        return override
    if document.oas_version() == OAS2:
        if document.host:
            scheme = (document.schemes or ["https"])[0]
            return f"{scheme}://{document.host}{document.base_path or ''}{path_prefix}"
    else:
        for server in document.servers or []:
            if server.url:
                return server.url + path_prefix
    raise DocumentStructureError("no server URL found in openapi, and none was provided")


class _GraphBuilder:
    """Mutable state of one build: the resource table and pending methods."""

    def __init__(
        self,
        document: OpenAPI,
        resolver: SchemaResolver,
        deadline: Optional[float],
    ) -> None:
        self._document = document
        self._resolver = resolver
        self._deadline = deadline
        self.resources: dict[str, Resource] = {}
        # singular -> schema key it was first registered from
        self._sources: dict[str, Optional[str]] = {}
        self._in_progress: list[str] = []
        # resources whose pattern was derived from a collection path
        self._derived_patterns: set[str] = set()
        self._custom_methods: dict[str, list[CustomMethod]] = {}
        # item-path methods seen without a representative schema
        self._orphan_methods: dict[str, Methods] = {}

    # ------------------------------------------------------------------ #
    # Path walk
    # ------------------------------------------------------------------ #

    def walk(self, path_prefix: str) -> None:
        for raw_path, item in self._document.paths.items():
            self._check_deadline(raw_path)
            if not raw_path.startswith(path_prefix):
                logger.debug("path %s does not start with prefix %r, skipping", raw_path, path_prefix)
                continue
            path = raw_path[len(path_prefix):]
            info = classify_path(path)
            if info is None:
                logger.debug("path %s is not a resource pattern, skipping", path)
                continue

            if info.custom_method_name:
                if info.is_resource_pattern:
                    self._read_custom_methods(info, item)
                else:
                    logger.debug(
                        "custom method %s on collection path %s is not supported, skipping",
                        info.custom_method_name,
                        path,
                    )
                continue

            if info.is_resource_pattern:
                methods, candidates = self._read_item_path(item)
            else:
                methods, candidates = self._read_collection_path(path, item)
            self._fold(info, methods, candidates)

    def _check_deadline(self, path: str) -> None:
        if self._deadline is not None and time.monotonic() > self._deadline:
            raise ConversionTimeoutError(f"conversion deadline exceeded at path {path}")

    def _read_item_path(self, item: PathItem) -> tuple[Methods, list[Schema]]:
        methods = Methods()
        candidates: list[Optional[Schema]] = []
        lro_payloads: list[Optional[Schema]] = []

        if item.get is not None:
            response = self._success_response(item.get, codes=("200",))
            if response is not None:
                methods.get = GetMethod()
                candidates.append(self._response_schema(response))

        if item.patch is not None:
            schema, is_lro = self._method_payload(item.patch, codes=("200",))
            if is_lro or self._success_response(item.patch, ("200",)) is not None:
                methods.update = UpdateMethod(is_long_running=is_lro)
                (lro_payloads if is_lro else candidates).append(schema)

        if item.put is not None:
            schema, is_lro = self._method_payload(item.put, codes=("200",))
            if is_lro or self._success_response(item.put, ("200",)) is not None:
                methods.apply = ApplyMethod(is_long_running=is_lro)
                (lro_payloads if is_lro else candidates).append(schema)

        if item.delete is not None:
            _, is_lro = self._method_payload(item.delete, codes=_SUCCESS_CODES)
            methods.delete = DeleteMethod(is_long_running=is_lro)

        return methods, [s for s in lro_payloads + candidates if s is not None]

    def _read_collection_path(self, path: str, item: PathItem) -> tuple[Methods, list[Schema]]:
        methods = Methods()
        candidates: list[Schema] = []

        if item.post is not None:
            schema, is_lro = self._method_payload(item.post, codes=_SUCCESS_CODES)
            if is_lro or self._success_response(item.post, _SUCCESS_CODES) is not None:
                params = self._parameters(item, item.post)
                methods.create = CreateMethod(
                    supports_user_settable_create=any(
                        p.name == FIELD_ID_NAME and p.in_ in (None, "query") for p in params
                    ),
                    is_long_running=is_lro,
                )
                if schema is not None:
                    candidates.append(schema)

        if item.get is not None:
            response = self._success_response(item.get, codes=("200",))
            if response is not None:
                items, unreachable = self._list_items(path, response)
                if items is not None:
                    query = {
                        p.name
                        for p in self._parameters(item, item.get)
                        if p.in_ in (None, "query")
                    }
                    methods.list_ = ListMethod(
                        supports_skip=FIELD_SKIP_NAME in query,
                        supports_filter=FIELD_FILTER_NAME in query,
                        has_unreachable_resources=unreachable or FIELD_UNREACHABLE_NAME in query,
                    )
                    candidates.append(items)

        return methods, candidates

    def _list_items(self, path: str, response: Response) -> tuple[Optional[Schema], bool]:
        """Return the list item schema and whether ``unreachable`` is reported."""
        schema = self._response_schema(response)
        if schema is None:
            logger.warning("resource %s has a LIST method without a response schema", path)
            return None, False
        resolved = self._resolver.resolve(schema)
        unreachable = FIELD_UNREACHABLE_NAME in (resolved.properties or {})
        array_props: list[tuple[str, Schema]] = []
        for name, prop in (resolved.properties or {}).items():
            concrete = self._resolver.resolve(prop)
            if concrete.type == "array" and concrete.items is not None:
                array_props.append((name, concrete))
        if not array_props:
            logger.warning(
                "resource %s has a LIST method with a response schema, but no "
                "property of the response is an array",
                path,
            )
            return None, False
        for name, prop in array_props:
            if name == FIELD_RESULTS_NAME:
                return prop.items, unreachable
        return array_props[0][1].items, unreachable

    def _read_custom_methods(self, info: PatternInfo, item: PathItem) -> None:
        group = self._custom_methods.setdefault(info.pattern, [])
        for verb in ("post", "get"):
            op: Optional[Operation] = getattr(item, verb)
            if op is None:
                continue
            payload, is_lro = self._method_payload(op, codes=_SUCCESS_CODES)
            if not is_lro and self._success_response(op, _SUCCESS_CODES) is None:
                continue
            request: Optional[Schema] = None
            if verb == "post":
                body = self._request_schema(item, op)
                if body is not None:
                    request = self._resolver.resolve(body).model_copy(deep=True)
            response = None
            if payload is not None:
                response = self._resolver.resolve(payload).model_copy(deep=True)
            group.append(
                CustomMethod(
                    name=info.custom_method_name,
                    method=verb.upper(),
                    request=request,
                    response=response,
                    is_long_running=is_lro,
                )
            )

    # ------------------------------------------------------------------ #
    # Resource registration
    # ------------------------------------------------------------------ #

    def _fold(self, info: PatternInfo, methods: Methods, candidates: list[Schema]) -> None:
        identity = None
        for candidate in candidates:
            identity = self._identify(candidate)
            if identity is not None:
                break
        if identity is None:
            if info.is_resource_pattern and methods.present():
                pending = self._orphan_methods.setdefault(info.pattern, Methods())
                pending.merge(methods)
            logger.debug("no resource schema found for path /%s", info.pattern)
            return

        singular, key, schema = identity
        segments = list(info.segments)
        if not info.is_resource_pattern:
            segments.append(_id_segment(singular, segments))
        resource = self._get_or_populate(singular, key, schema, segments, info.is_resource_pattern)
        resource.methods.merge(methods)

        if info.is_resource_pattern and singular in self._derived_patterns:
            resource.patterns = [info.pattern]
            self._derived_patterns.discard(singular)

    def _identify(self, schema: Schema) -> Optional[tuple[str, Optional[str], Schema]]:
        key = ref_key(schema.ref) if schema.ref else None
        resolved = self._resolver.resolve(schema)
        annotation = resolved.x_aep_resource
        if annotation is not None and annotation.singular:
            return annotation.singular, key, resolved
        if key:
            return pascal_to_kebab(key), key, resolved
        return None

    def _get_or_populate(
        self,
        singular: str,
        key: Optional[str],
        schema: Schema,
        segments: list[str],
        from_item_path: bool,
    ) -> Resource:
        if singular in self.resources:
            source = self._sources.get(singular)
            if key and source and key != source:
                logger.warning(
                    "resource %r is already registered from schema %r; ignoring schema %r",
                    singular,
                    source,
                    key,
                )
            return self.resources[singular]
        if singular in self._in_progress:
            cycle = " -> ".join(self._in_progress + [singular])
            raise CyclicParentError(f"cyclic parent relationship: {cycle}")

        self._in_progress.append(singular)
        try:
            annotation = schema.x_aep_resource
            if annotation is not None and annotation.singular:
                for parent in annotation.parents:
                    self._populate_parent(singular, parent)
                naming = ExplicitNaming(annotation, tuple(segments))
                uses_path_pattern = not annotation.patterns
            else:
                naming = InferredNaming(singular, tuple(segments))
                uses_path_pattern = True
            resource = make_resource(naming, schema)
        finally:
            self._in_progress.pop()

        self.resources[singular] = resource
        self._sources[singular] = key
        # parents registered through an annotation adopt their first item path too
        if uses_path_pattern and not from_item_path:
            self._derived_patterns.add(singular)
        logger.debug("registered resource %s", singular)
        return resource

    def _populate_parent(self, child: str, parent: str) -> None:
        if parent in self.resources:
            return
        if parent in self._in_progress:
            cycle = " -> ".join(self._in_progress + [parent])
            raise CyclicParentError(f"cyclic parent relationship: {cycle}")
        found = self._find_schema(parent)
        if found is None:
            # reported as a linkage error once the graph is finalized
            logger.debug("parent %s of resource %s has no schema in the document", parent, child)
            return
        key, schema = found
        resolved = self._resolver.resolve(schema)
        self._get_or_populate(parent, key, resolved, [], from_item_path=False)

    def _find_schema(self, singular: str) -> Optional[tuple[str, Schema]]:
        table = self._document.schema_table()
        if singular in table:
            return singular, table[singular]
        for key, schema in table.items():
            annotation = schema.x_aep_resource
            if annotation is not None and annotation.singular == singular:
                return key, schema
        for key, schema in table.items():
            if pascal_to_kebab(key) == singular:
                return key, schema
        return None

    # ------------------------------------------------------------------ #
    # Post-walk
    # ------------------------------------------------------------------ #

    def free_standing_schemas(self) -> dict[str, Schema]:
        """Component schemas that no resource was registered from."""
        consumed = set(self.resources)
        consumed.update(key for key in self._sources.values() if key)
        return {
            key: schema.model_copy(deep=True)
            for key, schema in self._document.schema_table().items()
            if key not in consumed
        }

    def attach_pending(self, api: API) -> None:
        """Attach custom methods and orphan item methods by exact pattern match."""
        by_pattern: dict[str, Resource] = {}
        for resource in api.resources.values():
            by_pattern.setdefault(pattern(api, resource), resource)

        for key, group in self._custom_methods.items():
            if not group:
                continue
            resource = by_pattern.get(key)
            if resource is None:
                logger.warning("custom methods with pattern %r have no resource associated with it", key)
                continue
            resource.custom_methods.extend(group)

        for key, methods in self._orphan_methods.items():
            resource = by_pattern.get(key)
            if resource is None:
                logger.debug("methods on /%s have no resource associated with them", key)
                continue
            for field_name in Methods.model_fields:
                found = getattr(methods, field_name)
                if found is not None and getattr(resource.methods, field_name) is None:
                    setattr(resource.methods, field_name, found)

    # ------------------------------------------------------------------ #
    # Operation helpers
    # ------------------------------------------------------------------ #

    def _parameters(self, item: PathItem, op: Operation) -> list[Parameter]:
        """Merge path-level and operation-level parameters (operation wins)."""
        merged: dict[tuple[str, Optional[str]], Parameter] = {}
        for param in list(item.parameters or []) + list(op.parameters or []):
            resolved = self._resolve_parameter(param)
            merged[(resolved.name, resolved.in_)] = resolved
        return list(merged.values())

    def _resolve_parameter(self, param: Parameter) -> Parameter:
        if not param.ref:
            return param
        key = ref_key(param.ref)
        table = self._document.parameter_table()
        if key not in table:
            raise SchemaReferenceError(f"parameter {param.ref!r} not found")
        return table[key]

    def _success_response(self, op: Operation, codes: tuple[str, ...]) -> Optional[Response]:
        for code in codes:
            response = op.responses.get(code)
            if response is not None:
                return self._resolve_response(response)
        return None

    def _resolve_response(self, response: Response) -> Response:
        if not response.ref:
            return response
        key = ref_key(response.ref)
        table = self._document.response_table()
        if key not in table:
            raise SchemaReferenceError(f"response {response.ref!r} not found")
        return table[key]

    def _method_payload(
        self, op: Operation, codes: tuple[str, ...]
    ) -> tuple[Optional[Schema], bool]:
        """Return the payload schema of *op* and whether it is long-running."""
        lro = op.x_aep_long_running_operation
        if lro is not None:
            return lro.response.schema_, True
        response = self._success_response(op, codes)
        if response is None:
            return None, False
        return self._response_schema(response), False

    @staticmethod
    def _response_schema(response: Response) -> Optional[Schema]:
        if response.content:
            return _media_schema(response.content)
        return response.schema_

    def _request_schema(self, item: PathItem, op: Operation) -> Optional[Schema]:
        body = op.request_body
        if body is not None:
            if body.ref:
                key = ref_key(body.ref)
                table = self._document.request_body_table()
                if key not in table:
                    raise SchemaReferenceError(f"request body {body.ref!r} not found")
                body = table[key]
            return _media_schema(body.content)
        for param in self._parameters(item, op):
            if param.in_ == "body" and param.schema_ is not None:
                return param.schema_
        return None


def _media_schema(content: dict[str, Any]) -> Optional[Schema]:
    media = content.get(APPLICATION_JSON)
    if media is not None and media.schema_ is not None:
        return media.schema_
    for media in content.values():
        if media.schema_ is not None:
            return media.schema_
    return None


def _id_segment(singular: str, segments: list[str]) -> str:
    """Derive the ``{param}`` segment closing a collection path.

    A leading token naming the immediate parent is dropped, so
    ``book-edition`` under ``books/{book}/editions`` yields ``{edition}``.
    """
    name = singular
    if len(segments) >= 3:
        parent_param = parameter_name(segments[-2])
        if parent_param.endswith("_id"):
            parent_param = parent_param[: -len("_id")]
        parent_collection = segments[-3]
        if parent_collection.endswith("s"):
            parent_collection = parent_collection[:-1]
        for token in (snake_to_kebab(parent_param), snake_to_kebab(parent_collection)):
            if token and name.startswith(token + "-"):
                name = name[len(token) + 1 :]
                break
    return "{%s}" % kebab_to_snake(name)
