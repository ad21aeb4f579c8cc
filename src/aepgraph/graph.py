"""Construction, finalization and navigation of the resource graph.

Parent links are stored as singular names on each
:class:`~aepgraph.models.Resource` and resolved through the owning
:class:`~aepgraph.models.API` when needed. Children are a derived index
(``API.children``) rebuilt by :func:`link_resources`, never maintained by
hand.

Both ways of creating a resource (from an explicit ``x-aep-resource``
annotation, or inferred from a path and a schema key) go through
:func:`make_resource`, which takes a tagged naming source so the same
invariants apply to both.

:func:`finalize_api` runs once after a graph is assembled, whether by the
graph builder or by :func:`load_api`:

1. every resource key matches :data:`~aepgraph.constants.RESOURCE_NAME_PATTERN`;
2. explicit patterns alternate literals and parameters;
3. every parent resolves (:class:`~aepgraph.exceptions.ResourceLinkageError`
   otherwise) and parent chains are acyclic;
4. each resource schema carries the server-assigned ``path`` field;
5. each collection name is non-empty.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import ValidationError

from aepgraph.cases import kebab_to_snake, pluralize, snake_to_kebab
from aepgraph.constants import (
    AEP_PROBLEMS_REF,
    FIELD_PATH_DESCRIPTION,
    FIELD_PATH_NAME,
    FIELD_PATH_NUMBER,
    OPERATION_RESOURCE_SINGULAR,
    RESOURCE_NAME_PATTERN,
)
from aepgraph.exceptions import (
    CyclicParentError,
    DocumentStructureError,
    NamingConventionError,
    ResourceLinkageError,
)
from aepgraph.models import (
    API,
    CustomMethod,
    GetMethod,
    Methods,
    Resource,
    Schema,
    XAEPField,
    XAEPResource,
    to_dict,
)
from aepgraph.parser.patterns import check_pattern

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(RESOURCE_NAME_PATTERN)


# ------------------------------------------------------------------ #
# Construction
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class ExplicitNaming:
    """Naming taken verbatim from an ``x-aep-resource`` annotation.

    ``fallback_pattern`` is used when the annotation declares no patterns.
    """

    annotation: XAEPResource
    fallback_pattern: tuple[str, ...] = ()


@dataclass(frozen=True)
class InferredNaming:
    """Naming inferred from a schema key and the path it was found on."""

    singular: str
    pattern: tuple[str, ...] = field(default_factory=tuple)


NamingSource = Union[ExplicitNaming, InferredNaming]


def make_resource(naming: NamingSource, schema: Optional[Schema]) -> Resource:
    """Build a :class:`~aepgraph.models.Resource` from a naming source.

    Raises:
        NamingConventionError: If no singular name can be derived.
        DocumentStructureError: If the pattern breaks segment parity.
    """
    if isinstance(naming, ExplicitNaming):
        annotation = naming.annotation
        singular = annotation.singular
        plural = annotation.plural or pluralize(singular)
        parents = list(annotation.parents)
        if annotation.patterns:
            patterns = [annotation.patterns[0].lstrip("/")]
        elif naming.fallback_pattern:
            patterns = ["/".join(naming.fallback_pattern)]
        else:
            patterns = []
    else:
        singular = naming.singular
        plural = pluralize(singular)
        parents = []
        patterns = ["/".join(naming.pattern)] if naming.pattern else []

    if not singular:
        raise NamingConventionError("resource has an empty singular name")
    for pattern in patterns:
        _check_resource_pattern(singular, pattern)

    return Resource(
        singular=singular,
        plural=plural,
        parents=parents,
        patterns=patterns,
        schema=schema.model_copy(deep=True) if schema is not None else Schema(type="object"),
    )


def _check_resource_pattern(singular: str, pattern: str) -> list[str]:
    try:
        return check_pattern(pattern)
    except ValueError as exc:
        raise DocumentStructureError(f"resource {singular!r}: {exc}") from exc


# ------------------------------------------------------------------ #
# Navigation
# ------------------------------------------------------------------ #


def get_resource(api: API, singular: str) -> Resource:
    try:
        return api.resources[singular]
    except KeyError:
        raise ResourceLinkageError(f"resource {singular!r} not found") from None


def parent_resources(api: API, resource: Resource) -> list[Resource]:
    """Resolve the declared parents of *resource* in order."""
    result = []
    for parent in resource.parents:
        if parent not in api.resources:
            raise ResourceLinkageError(
                f"parent resource {parent} not found for resource {resource.singular}"
            )
        result.append(api.resources[parent])
    return result


def children(api: API, resource: Resource) -> list[Resource]:
    """Resources that declare *resource* as a parent (requires :func:`link_resources`)."""
    return [api.resources[c] for c in api.children.get(resource.singular, [])]


def collection_name(api: API, resource: Resource) -> str:
    """Return the URL collection segment for *resource*.

    The plural is kebab-cased and a leading ``<parent>-`` prefix is dropped,
    so ``book-editions`` under ``book`` becomes ``editions``.
    """
    name = resource.plural
    if resource.parents:
        parent = parent_resources(api, resource)[0].singular
        if name.startswith(parent + "-"):
            name = name[len(parent) + 1 :]
    name = snake_to_kebab(name)
    if not name:
        raise NamingConventionError(
            f"resource {resource.singular!r} has an empty collection name"
        )
    return name


def id_parameter(resource: Resource) -> str:
    """The path variable naming one instance: ``book-edition`` -> ``book_edition``."""
    return kebab_to_snake(resource.singular)


def pattern_elems(api: API, resource: Resource) -> list[str]:
    """Return the segments of the canonical pattern of *resource*.

    An explicit pattern wins; otherwise the pattern of the first parent is
    extended with ``[collection, "{singular}"]``.
    """
    return _pattern_elems(api, resource, ())


def _pattern_elems(api: API, resource: Resource, visiting: tuple[str, ...]) -> list[str]:
    if resource.patterns:
        return resource.patterns[0].lstrip("/").split("/")
    if resource.singular in visiting:
        cycle = " -> ".join(visiting + (resource.singular,))
        raise CyclicParentError(f"cyclic parent relationship: {cycle}")
    elems = [collection_name(api, resource), "{%s}" % id_parameter(resource)]
    if resource.parents:
        parent = parent_resources(api, resource)[0]
        elems = _pattern_elems(api, parent, visiting + (resource.singular,)) + elems
    return elems


def pattern(api: API, resource: Resource) -> str:
    """The canonical pattern string, e.g. ``publishers/{publisher}/books/{book}``."""
    return "/".join(pattern_elems(api, resource))


# ------------------------------------------------------------------ #
# Finalization
# ------------------------------------------------------------------ #


def validate_naming(api: API) -> None:
    """Check every resource key against the naming rule.

    Raises:
        NamingConventionError: Naming the first offending key.
    """
    seen: dict[str, str] = {}
    for key, resource in api.resources.items():
        if not _NAME_RE.match(key):
            raise NamingConventionError(
                f"resource name {key} does not match the regex {RESOURCE_NAME_PATTERN}"
            )
        if resource.singular != key:
            raise NamingConventionError(
                f"resource key {key} does not match its singular name {resource.singular}"
            )
        folded = key.replace("_", "-")
        if folded in seen:
            raise NamingConventionError(
                f"resource names {seen[folded]} and {key} collide"
            )
        seen[folded] = key


def validate_patterns(api: API) -> None:
    for resource in api.resources.values():
        for explicit in resource.patterns:
            _check_resource_pattern(resource.singular, explicit)


def link_resources(api: API) -> None:
    """Resolve parents and rebuild the ``children`` index.

    Raises:
        ResourceLinkageError: If a parent is not in the resource table.
        CyclicParentError: If parent relationships form a cycle.
    """
    index: dict[str, list[str]] = {key: [] for key in api.resources}
    for resource in api.resources.values():
        for parent in parent_resources(api, resource):
            index[parent.singular].append(resource.singular)
    api.children = index

    done: set[str] = set()
    for key in api.resources:
        _check_acyclic(api, key, (), done)


def _check_acyclic(api: API, key: str, visiting: tuple[str, ...], done: set[str]) -> None:
    if key in done:
        return
    if key in visiting:
        cycle = " -> ".join(visiting + (key,))
        raise CyclicParentError(f"cyclic parent relationship: {cycle}")
    for parent in api.resources[key].parents:
        _check_acyclic(api, parent, visiting + (key,), done)
    done.add(key)


def path_field() -> Schema:
    """The server-assigned identifier property injected into resource schemas."""
    return Schema(
        type="string",
        description=FIELD_PATH_DESCRIPTION,
        read_only=True,
        x_aep_field=XAEPField(field_number=FIELD_PATH_NUMBER),
    )


def add_implicit_fields(api: API) -> None:
    for resource in api.resources.values():
        if resource.schema_ is None:
            resource.schema_ = Schema(type="object")
        if resource.schema_.properties is None:
            resource.schema_.properties = {}
        if FIELD_PATH_NAME not in resource.schema_.properties:
            resource.schema_.properties[FIELD_PATH_NAME] = path_field()


def finalize_api(api: API) -> API:
    """Validate and link *api* in place, returning it for chaining."""
    validate_naming(api)
    validate_patterns(api)
    link_resources(api)
    add_implicit_fields(api)
    for resource in api.resources.values():
        collection_name(api, resource)
    return api


def load_api(data: dict[str, Any]) -> API:
    """Deserialize a resource model and finalize it.

    Raises:
        DocumentStructureError: If *data* is not a valid resource model.
    """
    try:
        api = API.model_validate(data)
    except ValidationError as exc:
        raise DocumentStructureError(f"error unmarshalling API: {exc}") from exc
    return finalize_api(api)


def dump_api(api: API) -> dict[str, Any]:
    return to_dict(api)


# ------------------------------------------------------------------ #
# Long-running operations
# ------------------------------------------------------------------ #


def operation_schema() -> Schema:
    """The schema of a long-running Operation resource."""
    return Schema.model_validate(
        {
            "type": "object",
            "x-aep-proto-message-name": "aep.api.Operation",
            "required": ["name", "done"],
            "properties": {
                "path": {
                    "type": "string",
                    "description": "The server-assigned path of the operation, "
                    "which is unique within the service.",
                },
                "metadata": {
                    "type": "object",
                    "description": "Service-specific metadata associated with the operation.",
                    "additionalProperties": True,
                },
                "done": {
                    "type": "boolean",
                    "description": "If the value is false, it means the operation is "
                    "still in progress. If true, the operation is completed.",
                },
                "error": {"$ref": AEP_PROBLEMS_REF},
                "response": {
                    "type": "object",
                    "description": "The normal response of the operation in case of success.",
                    "additionalProperties": True,
                },
            },
        }
    )


def operation_resource(
    methods: Optional[Methods] = None,
    custom_methods: Optional[list[CustomMethod]] = None,
) -> Resource:
    """Return an ``operation`` resource (Get only unless *methods* is given)."""
    return Resource(
        singular=OPERATION_RESOURCE_SINGULAR,
        plural=pluralize(OPERATION_RESOURCE_SINGULAR),
        schema=operation_schema(),
        methods=methods if methods is not None else Methods(get=GetMethod()),
        custom_methods=custom_methods or [],
    )


def has_long_running_methods(api: API) -> bool:
    for resource in api.resources.values():
        m = resource.methods
        for method in (m.create, m.update, m.delete, m.apply):
            if method is not None and method.is_long_running:
                return True
        if any(cm.is_long_running for cm in resource.custom_methods):
            return True
    return False


def ensure_operation_resource(api: API) -> bool:
    """Register the ``operation`` resource when any method is long-running.

    Returns:
        True if the resource was added.
    """
    if OPERATION_RESOURCE_SINGULAR in api.resources or not has_long_running_methods(api):
        return False
    api.resources[OPERATION_RESOURCE_SINGULAR] = operation_resource()
    logger.debug("registered the operation resource for long-running methods")
    return True
