"""Semantic equality between actual and expected resources.

Only fields declared comparable take part: resources mark dependency
references and provider bookkeeping with ``field(compare=False)`` so they
never cause spurious drift. Tag mappings compare by content, so insertion
order is irrelevant.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

logger = logging.getLogger(__name__)


class ComparisonError(Exception):
    """Raised when two values cannot be meaningfully compared."""

    pass


def _comparable_fields(value: Any) -> tuple[dataclasses.Field[Any], ...]:
    return tuple(f for f in dataclasses.fields(value) if f.compare)


def _check_comparable(actual: Any, expected: Any) -> None:
    if actual is None or expected is None:
        raise ComparisonError("Cannot compare against a missing resource")
    if type(actual) is not type(expected):
        raise ComparisonError(
            f"Cannot compare {type(actual).__name__} with {type(expected).__name__}"
        )
    if not dataclasses.is_dataclass(actual):
        raise ComparisonError(f"{type(actual).__name__} is not a resource dataclass")


def differences(actual: Any, expected: Any) -> list[str]:
    """Return the names of comparable fields whose values differ.

    Raises:
        ComparisonError: If either value is missing or the kinds differ.
    """
    _check_comparable(actual, expected)
    return [
        f.name
        for f in _comparable_fields(actual)
        if getattr(actual, f.name) != getattr(expected, f.name)
    ]


def is_equal(actual: Any, expected: Any) -> bool:
    """Check whether two resources of the same kind are semantically equal.

    Raises:
        ComparisonError: If either value is missing or the kinds differ.
    """
    diff = differences(actual, expected)
    if diff:
        logger.debug(
            "Resources differ",
            extra={"resource_kind": type(actual).__name__, "fields": diff},
        )
    return not diff
