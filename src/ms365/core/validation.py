"""Argument validation helpers."""

from collections.abc import Iterable
from typing import Any

from ms365.core.errors import ValidationError


def assert_exactly_one(candidates: Iterable[Any], message: str) -> None:
    """Require exactly one of several optional identifiers to be supplied.

    Used by the by-name/by-URL/by-ID entry points. Zero supplied and two or
    more supplied are both rejected with the same message.

    Args:
        candidates: The optional values; None means "not supplied"
        message: Error message to raise with

    Raises:
        ValidationError: Unless exactly one candidate is not None
    """
    supplied = sum(1 for value in candidates if value is not None)
    if supplied != 1:
        raise ValidationError(message)
