"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~aepgraph.exceptions.AepGraphError` subclass.
External tooling (CI scripts, shell wrappers) can inspect the exit code to
determine the failure class without parsing stderr.

Example::

    $ aepgraph parse openapi.yaml
    $ echo $?
    8   # EXIT_REFERENCE_ERROR -- a $ref could not be resolved
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_DOCUMENT_ERROR = 7
"""The input document could not be loaded or is structurally invalid."""

EXIT_REFERENCE_ERROR = 8
"""A schema reference could not be resolved or forms a cycle."""

EXIT_GRAPH_ERROR = 9
"""The resource graph is inconsistent (missing parent, cycle, naming violation)."""

EXIT_TIMEOUT = 124
"""The conversion exceeded its deadline."""
