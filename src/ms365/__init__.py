"""Client library for Microsoft 365 collaboration services over Microsoft Graph.

Usage:
    from ms365 import get_business_onedrive, get_sharepoint_site, get_team

    drive = get_business_onedrive(tenant="contoso")
    drive.list_items()

    site = get_sharepoint_site(site_url="https://contoso.sharepoint.com/sites/eng")
    team = get_team("Engineering")
"""

from ms365.client import (
    ClientFactory,
    get_business_onedrive,
    get_personal_onedrive,
    get_sharepoint_site,
    get_team,
    list_sharepoint_sites,
    list_teams,
)
from ms365.core.errors import (
    AmbiguousNameError,
    AuthenticationError,
    Ms365Error,
    NotFoundError,
    RemoteError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "AmbiguousNameError",
    "AuthenticationError",
    "ClientFactory",
    "Ms365Error",
    "NotFoundError",
    "RemoteError",
    "ValidationError",
    "get_business_onedrive",
    "get_personal_onedrive",
    "get_sharepoint_site",
    "get_team",
    "list_sharepoint_sites",
    "list_teams",
]
