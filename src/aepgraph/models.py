"""Canonical Pydantic models shared across all aepgraph modules.

This is the single source of truth for data shapes in the project. The models
fall into three groups:

**Document models** -- the subset of OpenAPI 3.x / Swagger 2.0 that the graph
builder reads and the emitter writes:
    :class:`Schema`, :class:`XAEPResource`, :class:`XAEPField`,
    :class:`Parameter`, :class:`RequestBody`, :class:`Response`,
    :class:`Operation`, :class:`PathItem`, :class:`Components` and
    :class:`OpenAPI`.

**Resource model** -- the normalized, resource-oriented view of an API:
    :class:`API`, :class:`Resource`, :class:`Methods` (with one descriptor per
    standard method) and :class:`CustomMethod`.

**Configuration models**:
    :class:`ConversionConfig`.

All document models use ``extra="allow"`` so that keywords this package does
not interpret (``enum``, ``format``, ``tags``, ...) survive a load/dump cycle.
Serialise with :func:`to_dict`, which applies aliases and drops unset
optional members.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from aepgraph.constants import OAS2, OAS3

logger = logging.getLogger(__name__)


def to_dict(model: BaseModel) -> dict[str, Any]:
    """Dump *model* as a JSON-compatible dict using wire aliases."""
    return model.model_dump(by_alias=True, exclude_none=True, mode="json")


# --- Extensions ---


class XAEPField(BaseModel):
    """The ``x-aep-field`` annotation attached to a schema property.

    ``field_number`` is a stable ordinal consumed by protobuf generators. It
    is internal bookkeeping and is stripped from every emitted document.
    """

    model_config = ConfigDict(extra="allow")

    field_number: Optional[int] = None
    behavior: Optional[list[str]] = None
    resource_reference: Optional[list[str]] = None
    resource_reference_child_type: Optional[list[str]] = None

    def is_empty(self) -> bool:
        return (
            self.field_number is None
            and self.behavior is None
            and self.resource_reference is None
            and self.resource_reference_child_type is None
            and not self.model_extra
        )


class XAEPResource(BaseModel):
    """The ``x-aep-resource`` annotation declaring a schema as a resource."""

    model_config = ConfigDict(extra="allow")

    singular: str = ""
    plural: str = ""
    patterns: list[str] = Field(default_factory=list)
    parents: list[str] = Field(default_factory=list)
    type: Optional[str] = None


# --- Schema ---


class Schema(BaseModel):
    """A JSON Schema object as it appears in OpenAPI documents.

    Only the keywords the resource model depends on are declared; everything
    else is kept in ``model_extra``. OpenAPI 3.1 type arrays such as
    ``["string", "null"]`` collapse to their first non-null entry, and a
    ``$ref`` always takes precedence over a sibling ``type``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: Optional[str] = None
    ref: Optional[str] = Field(default=None, alias="$ref")
    description: Optional[str] = None
    properties: Optional[dict[str, Schema]] = None
    items: Optional[Schema] = None
    required: Optional[list[str]] = None
    read_only: Optional[bool] = Field(default=None, alias="readOnly")
    additional_properties: Optional[Union[bool, Schema]] = Field(
        default=None, alias="additionalProperties"
    )
    x_aep_resource: Optional[XAEPResource] = Field(default=None, alias="x-aep-resource")
    x_aep_field: Optional[XAEPField] = Field(default=None, alias="x-aep-field")
    x_aep_proto_message_name: Optional[str] = Field(
        default=None, alias="x-aep-proto-message-name"
    )

    @model_validator(mode="before")
    @classmethod
    def normalize_type(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        schema_type = data.get("type")
        if isinstance(schema_type, list):
            concrete = [t for t in schema_type if t != "null"]
            data = {**data, "type": concrete[0] if concrete else None}
        ref = data.get("$ref", data.get("ref"))
        if ref and data.get("type"):
            logger.debug("dropping type %r alongside $ref %s", data["type"], ref)
            data = {k: v for k, v in data.items() if k != "type"}
        return data


# --- Document ---


class Contact(BaseModel):
    """Contact details for the API owner."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    email: Optional[str] = None
    url: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.name or self.email or self.url)


class Info(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str = ""
    version: Optional[str] = None
    description: Optional[str] = None
    contact: Optional[Contact] = None

    @field_validator("version", mode="before")
    @classmethod
    def stringify_version(cls, value: Any) -> Any:
        return None if value is None else str(value)


class Server(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: str = ""
    description: Optional[str] = None


class MediaType(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_: Optional[Schema] = Field(default=None, alias="schema")


class Parameter(BaseModel):
    """An operation or path-level parameter.

    Swagger 2.0 body parameters carry their payload in ``schema``; inline
    Swagger 2.0 types (``type: string``) are kept in ``model_extra``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = ""
    in_: Optional[str] = Field(default=None, alias="in")
    required: Optional[bool] = None
    description: Optional[str] = None
    schema_: Optional[Schema] = Field(default=None, alias="schema")
    ref: Optional[str] = Field(default=None, alias="$ref")
    x_aep_field: Optional[XAEPField] = Field(default=None, alias="x-aep-field")


class RequestBody(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    description: Optional[str] = None
    required: Optional[bool] = None
    content: dict[str, MediaType] = Field(default_factory=dict)
    ref: Optional[str] = Field(default=None, alias="$ref")


class Response(BaseModel):
    """An operation response. ``schema`` is only used by Swagger 2.0."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    description: Optional[str] = None
    content: Optional[dict[str, MediaType]] = None
    schema_: Optional[Schema] = Field(default=None, alias="schema")
    ref: Optional[str] = Field(default=None, alias="$ref")


class XAEPLongRunningOperationResponse(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_: Optional[Schema] = Field(default=None, alias="schema")


class XAEPLongRunningOperation(BaseModel):
    """The ``x-aep-long-running-operation`` marker on an operation.

    The literal success response of such an operation is a generic Operation
    envelope; ``response.schema`` names the real payload.
    """

    model_config = ConfigDict(extra="allow")

    response: XAEPLongRunningOperationResponse = Field(
        default_factory=XAEPLongRunningOperationResponse
    )


class Operation(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    operation_id: Optional[str] = Field(default=None, alias="operationId")
    summary: Optional[str] = None
    description: Optional[str] = None
    parameters: Optional[list[Parameter]] = None
    request_body: Optional[RequestBody] = Field(default=None, alias="requestBody")
    responses: dict[str, Response] = Field(default_factory=dict)
    x_aep_long_running_operation: Optional[XAEPLongRunningOperation] = Field(
        default=None, alias="x-aep-long-running-operation"
    )

    @field_validator("responses", mode="before")
    @classmethod
    def stringify_status_codes(cls, value: Any) -> Any:
        # YAML reads unquoted status codes as integers
        if isinstance(value, dict):
            return {str(k): v for k, v in value.items()}
        return value


HTTP_METHODS = ("get", "put", "post", "patch", "delete")


class PathItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    get: Optional[Operation] = None
    put: Optional[Operation] = None
    post: Optional[Operation] = None
    patch: Optional[Operation] = None
    delete: Optional[Operation] = None
    parameters: Optional[list[Parameter]] = None

    def operations(self) -> dict[str, Operation]:
        """Return the declared operations keyed by lower-case HTTP verb."""
        result: dict[str, Operation] = {}
        for verb in HTTP_METHODS:
            op = getattr(self, verb)
            if op is not None:
                result[verb] = op
        return result

    def set_operation(self, verb: str, operation: Operation) -> None:
        if verb not in HTTP_METHODS:
            raise ValueError(f"unsupported HTTP method: {verb}")
        setattr(self, verb, operation)


class Components(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schemas: dict[str, Schema] = Field(default_factory=dict)
    parameters: Optional[dict[str, Parameter]] = None
    responses: Optional[dict[str, Response]] = None
    request_bodies: Optional[dict[str, RequestBody]] = Field(
        default=None, alias="requestBodies"
    )


class OpenAPI(BaseModel):
    """An OpenAPI 3.x or Swagger 2.0 document.

    Version detection follows the top-level marker: ``swagger: "2.0"`` selects
    Swagger 2.0 (schemas under ``definitions``), an ``openapi`` field selects
    OpenAPI 3 (schemas under ``components.schemas``).
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    openapi: Optional[str] = None
    swagger: Optional[str] = None
    info: Info = Field(default_factory=Info)
    servers: Optional[list[Server]] = None
    paths: dict[str, PathItem] = Field(default_factory=dict)
    components: Optional[Components] = None
    # Swagger 2.0 only
    definitions: Optional[dict[str, Schema]] = None
    parameters: Optional[dict[str, Parameter]] = None
    responses: Optional[dict[str, Response]] = None
    host: Optional[str] = None
    base_path: Optional[str] = Field(default=None, alias="basePath")
    schemes: Optional[list[str]] = None

    @field_validator("openapi", "swagger", mode="before")
    @classmethod
    def stringify_marker(cls, value: Any) -> Any:
        # `swagger: 2.0` parses as a float in YAML
        return None if value is None else str(value)

    def oas_version(self) -> str:
        """Return :data:`OAS2`, :data:`OAS3`, or ``""`` when undetectable."""
        if self.swagger is not None and str(self.swagger).startswith("2"):
            return OAS2
        if self.openapi:
            return OAS3
        return ""

    def schema_table(self) -> dict[str, Schema]:
        """The component table local ``$ref`` pointers resolve against."""
        if self.oas_version() == OAS2:
            return self.definitions or {}
        if self.components is None:
            return {}
        return self.components.schemas

    def parameter_table(self) -> dict[str, Parameter]:
        if self.oas_version() == OAS2:
            return self.parameters or {}
        if self.components is None:
            return {}
        return self.components.parameters or {}

    def response_table(self) -> dict[str, Response]:
        if self.oas_version() == OAS2:
            return self.responses or {}
        if self.components is None:
            return {}
        return self.components.responses or {}

    def request_body_table(self) -> dict[str, RequestBody]:
        if self.components is None:
            return {}
        return self.components.request_bodies or {}


# --- Resource model ---


class GetMethod(BaseModel):
    pass


class ListMethod(BaseModel):
    has_unreachable_resources: bool = False
    supports_filter: bool = False
    supports_skip: bool = False


class CreateMethod(BaseModel):
    supports_user_settable_create: bool = False
    is_long_running: bool = False


class UpdateMethod(BaseModel):
    is_long_running: bool = False


class DeleteMethod(BaseModel):
    is_long_running: bool = False


class ApplyMethod(BaseModel):
    is_long_running: bool = False


class Methods(BaseModel):
    """The standard methods a resource supports. Unset means unsupported."""

    model_config = {"populate_by_name": True}

    get: Optional[GetMethod] = None
    list_: Optional[ListMethod] = Field(default=None, alias="list")
    apply: Optional[ApplyMethod] = None
    create: Optional[CreateMethod] = None
    update: Optional[UpdateMethod] = None
    delete: Optional[DeleteMethod] = None

    def merge(self, other: Methods) -> None:
        """Copy every method set on *other* into this instance."""
        for field_name in type(self).model_fields:
            value = getattr(other, field_name)
            if value is not None:
                setattr(self, field_name, value)

    def present(self) -> list[str]:
        """Names of the supported methods, in declaration order."""
        names = []
        for field_name, field in type(self).model_fields.items():
            if getattr(self, field_name) is not None:
                names.append(field.alias or field_name)
        return names


class CustomMethod(BaseModel):
    """A non-standard method addressed as ``{itemPath}:{name}``."""

    name: str
    method: str = "POST"
    request: Optional[Schema] = None
    response: Optional[Schema] = None
    is_long_running: bool = False


class Resource(BaseModel):
    """A named, addressable entity type.

    ``parents`` holds singular names; they are resolved through the owning
    :class:`API` at use time (see :mod:`aepgraph.graph`). ``patterns`` holds
    explicit pattern strings without a leading slash; when empty, the pattern
    is synthesized from the parent chain.
    """

    model_config = {"populate_by_name": True}

    singular: str
    plural: str
    parents: list[str] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)
    schema_: Optional[Schema] = Field(default=None, alias="schema")
    methods: Methods = Field(default_factory=Methods)
    custom_methods: list[CustomMethod] = Field(default_factory=list)


class API(BaseModel):
    """A finalized resource graph.

    ``children`` is a derived index (parent singular -> child singulars)
    rebuilt by :func:`aepgraph.graph.link_resources`; it is never serialised.
    """

    name: str = ""
    server_url: str = ""
    contact: Optional[Contact] = None
    schemas: dict[str, Schema] = Field(default_factory=dict)
    resources: dict[str, Resource] = Field(default_factory=dict)
    children: dict[str, list[str]] = Field(default_factory=dict, exclude=True)


# --- Configuration ---


class ConversionConfig(BaseModel):
    """Effective settings for one conversion run.

    Resolved by :func:`aepgraph.config.resolve_config` from CLI flags,
    environment variables, ``./aepgraph.json`` and the user config file.
    """

    path_prefix: str = Field(default="", description="Prefix stripped from every path")
    server_url: str = Field(default="", description="Server URL override")
    fetch_timeout: float = Field(
        default=30.0, gt=0, description="Timeout in seconds for each remote $ref fetch"
    )
    deadline: Optional[float] = Field(
        default=None, gt=0, description="Seconds allowed for the whole conversion"
    )
    indent: int = Field(default=2, ge=0, description="JSON indent for emitted documents")


Schema.model_rebuild()
