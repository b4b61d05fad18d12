"""Capability interfaces for objects that own Microsoft 365 resources.

Users and groups own drives, sites and teams in different ways. Rather than
sharing one base class, each concrete type implements the protocols that
apply to it:

    DriveOwner: User, Group, Site, Team
    SiteOwner:  User (followed sites)
    TeamOwner:  User (joined teams)

Group exposes get_sharepoint_site() and get_team() too, for the single site
and team attached to it.
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ms365.graph.drives import Drive
    from ms365.graph.sites import Site
    from ms365.graph.teams import Team


@runtime_checkable
class DriveOwner(Protocol):
    """Something with a default drive and possibly more."""

    def get_drive(self, drive_id: str | None = None) -> "Drive": ...

    def list_drives(self) -> list["Drive"]: ...


@runtime_checkable
class SiteOwner(Protocol):
    """Something that can list the SharePoint sites visible to it."""

    def list_sharepoint_sites(self, filter: str | None = None) -> list["Site"]: ...


@runtime_checkable
class TeamOwner(Protocol):
    """Something that can list the teams it belongs to."""

    def list_teams(self, filter: str | None = None) -> list["Team"]: ...
