"""Name-based lookup of sites, teams and channels.

Display names are not unique server-side. A name lookup asks the server to
filter on exact equality, waits for the complete result set, and then insists
on exactly one match.
"""

from collections.abc import Callable
from typing import TypeVar

from ms365.core.errors import AmbiguousNameError, NotFoundError
from ms365.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def display_name_filter(name: str) -> str:
    """Build an OData filter for an exact display-name match.

    Quotes in name are not escaped; callers pass names they trust.
    """
    return f"displayName eq '{name}'"


def find_one_by_name(lister: Callable[..., list[T]], name: str, kind: str = "Object") -> T:
    """Resolve a display name to exactly one object.

    Args:
        lister: Called as lister(filter=...); must return every matching
            object across all result pages
        name: Display name to look for
        kind: Label for error messages ("Site", "Team", ...)

    Returns:
        The single matching object

    Raises:
        NotFoundError: If nothing has that name
        AmbiguousNameError: If several objects have that name
    """
    matches = lister(filter=display_name_filter(name))

    if not matches:
        raise NotFoundError(f"{kind} '{name}' not found", name=name)
    if len(matches) > 1:
        raise AmbiguousNameError(
            f"{kind} name '{name}' is not unique ({len(matches)} matches); look it up by ID instead",
            name=name,
            count=len(matches),
        )

    logger.debug("Name resolved", kind=kind, name=name)
    return matches[0]
