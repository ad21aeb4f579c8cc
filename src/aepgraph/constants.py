"""Well-known field names and reference URLs.

These values are part of the wire contract of resource-oriented APIs and are
shared by the graph builder, the emitter and the REST client.
"""

AEP_OPERATION_REF = "https://aep.dev/json-schema/type/operation.json"
AEP_PROBLEMS_REF = "https://aep.dev/json-schema/type/problems.json"

# Server-assigned identifier injected into every resource schema
FIELD_PATH_NAME = "path"
FIELD_PATH_NUMBER = 10018
FIELD_PATH_DESCRIPTION = (
    "The server-assigned path of the resource, which is unique within the service."
)

# Query / response field names
FIELD_ID_NAME = "id"
FIELD_SKIP_NAME = "skip"
FIELD_FILTER_NAME = "filter"
FIELD_UNREACHABLE_NAME = "unreachable"
FIELD_MAX_PAGE_SIZE_NAME = "max_page_size"
FIELD_PAGE_TOKEN_NAME = "page_token"
FIELD_NEXT_PAGE_TOKEN_NAME = "next_page_token"
FIELD_RESULTS_NAME = "results"
FIELD_FORCE_NAME = "force"

# Content types
APPLICATION_JSON = "application/json"
MERGE_PATCH_JSON = "application/merge-patch+json"

# Document versions as reported by OpenAPI.oas_version()
OAS2 = "2.0"
OAS3 = "3.0"

OPERATION_RESOURCE_SINGULAR = "operation"

# Resource keys: lower-case tokens optionally joined by '-' or '_'
RESOURCE_NAME_PATTERN = r"^[a-z][a-z0-9]*([-_][a-z0-9]+)*$"
