"""Base class for objects mirroring Microsoft Graph resources.

Every resource object (drive, site, team, user, ...) holds a reference to the
GraphClient it was fetched with and a snapshot of its last-known properties.
Objects are created per call and never cached.
"""

from typing import TYPE_CHECKING, Any, TypeVar

from ms365.core.logging import get_logger

if TYPE_CHECKING:
    from ms365.graph.client import GraphClient

logger = get_logger(__name__)

T = TypeVar("T", bound="GraphObject")


class GraphObject:
    """A remote Graph resource.

    Subclasses set `collection` to the top-level Graph collection they live in
    (e.g. "drives"), which gives the default object path "<collection>/<id>".

    Attributes:
        client: GraphClient used for all calls made through this object
        properties: Last-known properties from the Graph API
        path: Graph path addressing this object
    """

    collection: str = ""

    def __init__(self, client: "GraphClient", properties: dict[str, Any], path: str | None = None):
        self.client = client
        self.properties = properties
        self.path = path or f"{self.collection}/{self.id}"

    @property
    def id(self) -> str:
        return self.properties.get("id", "")

    @property
    def name(self) -> str:
        """Display name, falling back to the item name used by drive items."""
        return self.properties.get("displayName") or self.properties.get("name", "")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} id={self.id!r}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GraphObject):
            return NotImplemented
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))

    def do_operation(
        self,
        op: str = "",
        params: dict[str, Any] | None = None,
        method: str = "GET",
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Call an endpoint relative to this object's path."""
        endpoint = f"{self.path}/{op}" if op else self.path
        return self.client.request(method, endpoint, params=params, json=json)

    def sync_fields(self: T) -> T:
        """Re-fetch this object's properties from the server and return self."""
        self.properties = self.do_operation()
        logger.debug("Fields synced", kind=type(self).__name__, id=self.id)
        return self

    def _list(
        self,
        op: str,
        cls: type[T],
        filter: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> list[T]:
        """List a collection under this object and wrap every item as cls."""
        params = dict(params) if params else {}
        if filter is not None:
            params["$filter"] = filter
        items = self.client.paginate(f"{self.path}/{op}", params=params)
        return [cls(self.client, item) for item in items]
