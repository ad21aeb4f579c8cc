"""Case conversion and pluralization helpers for resource names.

Resource singulars are kebab-case (``book-edition``), path variables are
snake_case (``{book_edition}``), and operation IDs are PascalCase
(``GetBookEdition``). Schema component keys found in the wild are usually
PascalCase, sometimes with acronyms (``UtilityAPIResponse``).
"""

from __future__ import annotations


def pascal_to_kebab(value: str) -> str:
    """Convert a PascalCase (or camelCase) identifier to kebab-case.

    Runs of capitals are treated as acronyms and kept together, so
    ``UtilityAPIResponse`` becomes ``utility-api-response``.
    """
    delimiters: list[int] = []
    previous_upper = False
    in_acronym = False
    for i, char in enumerate(value):
        if "A" <= char <= "Z":
            if previous_upper and not in_acronym:
                in_acronym = True
                delimiters.append(i - 1)
            previous_upper = True
        else:
            if previous_upper:
                delimiters.append(i - 1)
            in_acronym = False
            previous_upper = False

    parts: list[str] = []
    start = 0
    for index in delimiters:
        if index != start:
            parts.append(value[start:index])
            start = index
    parts.append(value[start:])
    return "-".join(parts).lower()


def kebab_to_snake(value: str) -> str:
    return value.replace("-", "_")


def snake_to_kebab(value: str) -> str:
    return value.replace("_", "-")


def upper_first(value: str) -> str:
    """Upper-case the first character, leaving the rest untouched."""
    if not value:
        return value
    return value[0].upper() + value[1:]


def _join_capitalized(parts: list[str]) -> str:
    return "".join(upper_first(p) for p in parts if p)


def snake_to_pascal(value: str) -> str:
    return _join_capitalized(value.split("_"))


def to_pascal(value: str) -> str:
    """PascalCase a kebab-case or snake_case name (``book-edition`` -> ``BookEdition``)."""
    return snake_to_pascal(kebab_to_snake(value))


def pluralize(singular: str) -> str:
    """Best-effort English plural of a kebab-case singular.

    Only the last token is inflected: ``book-edition`` -> ``book-editions``,
    ``policy`` -> ``policies``, ``box`` -> ``boxes``.
    """
    if not singular:
        return singular
    lowered = singular.lower()
    if lowered.endswith("y") and len(lowered) > 1 and lowered[-2] not in "aeiou":
        return singular[:-1] + "ies"
    if lowered.endswith(("s", "x", "z", "ch", "sh")):
        return singular + "es"
    return singular + "s"
