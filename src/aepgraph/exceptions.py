"""Exception hierarchy for aepgraph.

All exceptions inherit from :class:`AepGraphError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`aepgraph.exit_codes`.
The top-level error handler in :func:`aepgraph.app.main` catches
``AepGraphError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    AepGraphError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- NotFoundError            (exit 4)
    +-- ServerError              (exit 5)
    +-- ApiError                 (exit 5)
    +-- ConnectionError_         (exit 6)
    +-- DocumentLoadError        (exit 7)
    +-- DocumentStructureError   (exit 7)
    +-- SchemaReferenceError     (exit 8)
    |   +-- CyclicReferenceError
    +-- ResourceLinkageError     (exit 9)
    |   +-- CyclicParentError
    +-- NamingConventionError    (exit 9)
    +-- ConversionTimeoutError   (exit 124)
    +-- ConfigError              (exit 1)
"""

from aepgraph.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_DOCUMENT_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_GRAPH_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_REFERENCE_ERROR,
    EXIT_SERVER_ERROR,
    EXIT_TIMEOUT,
)


class AepGraphError(Exception):
    """Base exception for all aepgraph errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`aepgraph.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(AepGraphError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class NotFoundError(AepGraphError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(AepGraphError):
    """Raised when the API returns an HTTP error status without a structured error body."""

    exit_code = EXIT_SERVER_ERROR


class ApiError(AepGraphError):
    """Raised when a response body carries an ``error`` member.

    Args:
        message: Human-readable error description.
        status_code: HTTP status of the failing response.
        detail: The decoded ``error`` member.
    """

    exit_code = EXIT_SERVER_ERROR

    def __init__(self, message: str, status_code: int = 0, detail: object = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class ConnectionError_(AepGraphError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class DocumentLoadError(AepGraphError):
    """Raised when a document cannot be read, fetched, or parsed as JSON/YAML."""

    exit_code = EXIT_DOCUMENT_ERROR


class DocumentStructureError(AepGraphError):
    """Raised when a document is readable but structurally unusable.

    Covers unrecognized document versions, a missing server URL, malformed
    resource models and resource patterns that break segment parity.
    """

    exit_code = EXIT_DOCUMENT_ERROR


class SchemaReferenceError(AepGraphError):
    """Raised when a schema ``$ref`` cannot be resolved."""

    exit_code = EXIT_REFERENCE_ERROR


class CyclicReferenceError(SchemaReferenceError):
    """Raised when a ``$ref`` chain leads back to a reference already being resolved."""


class ResourceLinkageError(AepGraphError):
    """Raised when a resource names a parent that does not exist."""

    exit_code = EXIT_GRAPH_ERROR


class CyclicParentError(ResourceLinkageError):
    """Raised when parent relationships form a cycle."""


class NamingConventionError(AepGraphError):
    """Raised when a resource or collection name violates the naming rules."""

    exit_code = EXIT_GRAPH_ERROR


class ConversionTimeoutError(AepGraphError):
    """Raised when a conversion runs past its caller-supplied deadline."""

    exit_code = EXIT_TIMEOUT


class ConfigError(AepGraphError):
    """Raised for configuration problems (invalid JSON, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
