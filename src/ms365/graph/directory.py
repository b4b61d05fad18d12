"""Directory objects: users and Microsoft 365 groups.

These carry the drive/site/team accessors that apply to them, declared through
the capability protocols in ms365.graph.capabilities.

Usage:
    me = client.get_user()
    me.get_drive().list_items()
    me.list_teams(filter="displayName eq 'Engineering'")

    group = client.get_group("group-id")
    group.get_sharepoint_site()
"""

from ms365.core.logging import get_logger
from ms365.graph.capabilities import DriveOwner, SiteOwner, TeamOwner
from ms365.graph.drives import Drive
from ms365.graph.objects import GraphObject
from ms365.graph.sites import Site
from ms365.graph.teams import Team

logger = get_logger(__name__)


def _get_owned_drive(owner: GraphObject, drive_id: str | None) -> Drive:
    op = "drive" if drive_id is None else f"drives/{drive_id}"
    return Drive(owner.client, owner.do_operation(op))


class User(GraphObject, DriveOwner, SiteOwner, TeamOwner):
    """A directory user; the signed-in user has path 'me'."""

    collection = "users"

    def get_drive(self, drive_id: str | None = None) -> Drive:
        """Get the user's OneDrive, or another drive they can reach by ID."""
        return _get_owned_drive(self, drive_id)

    def list_drives(self) -> list[Drive]:
        return self._list("drives", Drive)

    def list_sharepoint_sites(self, filter: str | None = None) -> list[Site]:
        """List the sites the user follows.

        The followedSites payload omits several site fields, so each site is
        re-fetched before being returned.

        Args:
            filter: Optional OData filter expression
        """
        sites = self._list("followedSites", Site, filter=filter)
        logger.debug("Followed sites listed", count=len(sites), filtered=filter is not None)
        return [site.sync_fields() for site in sites]

    def list_teams(self, filter: str | None = None) -> list[Team]:
        """List the teams the user is a member of, each re-fetched in full.

        Args:
            filter: Optional OData filter expression
        """
        teams = self._list("joinedTeams", Team, filter=filter)
        logger.debug("Joined teams listed", count=len(teams), filtered=filter is not None)
        return [team.sync_fields() for team in teams]


class Group(GraphObject, DriveOwner):
    """A Microsoft 365 group, which may back a SharePoint site and a team."""

    collection = "groups"

    def get_drive(self, drive_id: str | None = None) -> Drive:
        """Get the group's shared document library, or one of its drives by ID."""
        return _get_owned_drive(self, drive_id)

    def list_drives(self) -> list[Drive]:
        return self._list("drives", Drive)

    def get_sharepoint_site(self) -> Site:
        """Get the root SharePoint site associated with the group."""
        return Site(self.client, self.do_operation("sites/root"))

    def get_team(self) -> Team:
        """Get the team for this group.

        Raises:
            NotFoundError: If the group has not been team-enabled
        """
        return Team(self.client, self.client.get(f"teams/{self.id}"))
