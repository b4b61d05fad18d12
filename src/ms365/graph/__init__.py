"""Microsoft Graph API client and resource objects.

Provides:
- GraphClient: the authenticated session with retry, pagination and error mapping
- Resource objects for drives, drive items, sites, teams, channels and messages
- Directory objects (User, Group) implementing the DriveOwner, SiteOwner and
  TeamOwner capability interfaces

Usage:
    from ms365.auth import GraphAuth
    from ms365.graph import GraphClient

    auth = GraphAuth(client_id, tenant, scopes, cache_path)
    auth.login()
    client = GraphClient(auth)

    me = client.get_user()
    me.get_drive().list_items()
"""

from ms365.graph.capabilities import DriveOwner, SiteOwner, TeamOwner
from ms365.graph.client import GraphClient
from ms365.graph.directory import Group, User
from ms365.graph.drives import Drive, DriveItem
from ms365.graph.objects import GraphObject
from ms365.graph.sites import Site
from ms365.graph.teams import Channel, ChatMessage, Team

__all__ = [
    "Channel",
    "ChatMessage",
    "Drive",
    "DriveItem",
    "DriveOwner",
    "GraphClient",
    "GraphObject",
    "Group",
    "Site",
    "SiteOwner",
    "Team",
    "TeamOwner",
    "User",
]
