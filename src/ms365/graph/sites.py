"""SharePoint site objects."""

from ms365.graph.drives import Drive
from ms365.graph.objects import GraphObject


class Site(GraphObject):
    """A SharePoint site, which owns one or more document libraries."""

    collection = "sites"

    @property
    def web_url(self) -> str:
        return self.properties.get("webUrl", "")

    def get_drive(self, drive_id: str | None = None) -> Drive:
        """Get the site's default document library, or another one by ID."""
        op = "drive" if drive_id is None else f"drives/{drive_id}"
        return Drive(self.client, self.do_operation(op))

    def list_drives(self) -> list[Drive]:
        """List the site's document libraries."""
        return self._list("drives", Drive)

    def list_subsites(self) -> list["Site"]:
        return self._list("sites", Site)
