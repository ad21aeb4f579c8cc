"""Classify URL path templates as collection, resource, or custom-method paths.

A resource-shaped path alternates literal collection segments and
brace-wrapped parameters, starting with a literal::

    /publishers                              collection
    /publishers/{publisher}                  resource
    /publishers/{publisher}/books            collection
    /publishers/{publisher}/books/{book}     resource
    /publishers/{publisher}:archive          resource + custom method

Anything else (two parameters in a row, empty segments, a leading parameter)
is not resource-shaped and :func:`classify_path` returns ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PatternInfo:
    """Classification of one path template.

    Attributes:
        segments: Path segments without the leading empty segment and
            without the custom-method suffix.
        custom_method_name: The ``:name`` suffix, or ``""``.
    """

    segments: tuple[str, ...] = field(default_factory=tuple)
    custom_method_name: str = ""

    @property
    def is_resource_pattern(self) -> bool:
        """True for an individually addressable resource (even segment count)."""
        return len(self.segments) % 2 == 0

    @property
    def pattern(self) -> str:
        """The segments joined with ``/`` (no leading slash, no suffix)."""
        return "/".join(self.segments)


def is_parameter(segment: str) -> bool:
    return len(segment) > 2 and segment.startswith("{") and segment.endswith("}")


def parameter_name(segment: str) -> str:
    """``{book}`` -> ``book``."""
    return segment[1:-1] if is_parameter(segment) else segment


def classify_path(path: str) -> PatternInfo | None:
    """Classify *path* (prefix already stripped).

    Returns:
        A :class:`PatternInfo`, or ``None`` when the path is not resource
        shaped. Non-resource paths are skipped by callers, never errors.
    """
    custom_method_name = ""
    if ":" in path:
        path, custom_method_name = path.split(":", 1)
        if not custom_method_name:
            return None

    segments = path.split("/")
    if segments and segments[0] == "":
        segments = segments[1:]
    if not segments:
        return None

    for i, segment in enumerate(segments):
        if not segment:
            return None
        if is_parameter(segment) != (i % 2 == 1):
            return None
        if i % 2 == 0 and ("{" in segment or "}" in segment):
            return None

    return PatternInfo(segments=tuple(segments), custom_method_name=custom_method_name)


def check_pattern(pattern: str) -> list[str]:
    """Split an explicit pattern string and verify segment parity.

    Returns:
        The pattern segments.

    Raises:
        ValueError: If the pattern is not an alternating, even-length
            sequence of literals and parameters.
    """
    info = classify_path("/" + pattern.lstrip("/"))
    if info is None or info.custom_method_name or not info.is_resource_pattern:
        raise ValueError(
            f"pattern {pattern!r} must alternate collection segments and "
            "{parameter} segments and end with a parameter"
        )
    return list(info.segments)
