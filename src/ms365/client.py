"""Login clients for Microsoft 365 services.

Each entry point logs in (reusing a cached session when the same parameters
were used before) and returns a resource object:

    get_personal_onedrive()               -> Drive
    get_business_onedrive(tenant=...)     -> Drive
    get_sharepoint_site(site_name=...)    -> Site     (or site_url= / site_id=)
    list_sharepoint_sites()               -> list[Site]
    get_team(team_name=...)               -> Team     (or team_id=)
    list_teams()                          -> list[Team]

Defaults come from configuration: the tenant from CLIMICROSOFT365_TENANT
(else "common") and the app ID from CLIMICROSOFT365_AADAPPID (else a built-in
one; MS365_USE_CLI_APP_ID selects the CLI for Microsoft 365 app). Extra
keyword arguments are login options, e.g. auth_type="device_code" where no
browser is available.

Usage:
    from ms365 import get_sharepoint_site, get_team

    site = get_sharepoint_site("Engineering", tenant="contoso")
    site.get_drive().list_items()

    team = get_team(team_name="Engineering", auth_type="device_code")
    team.list_channels()

For isolated state (tests, multiple configurations in one process) use a
ClientFactory directly:

    factory = ClientFactory(config=my_config)
    factory.get_business_onedrive()
"""

import threading
from collections.abc import Sequence
from typing import Any

from ms365.auth.login import DEFAULT_APP_ID, LoginCache, LoginResolver, choose_app
from ms365.config import get_config
from ms365.config_schema import CONSUMERS_TENANT, AppConfig
from ms365.core.logging import get_logger
from ms365.core.validation import assert_exactly_one
from ms365.graph.client import GraphClient
from ms365.graph.drives import Drive
from ms365.graph.sites import Site
from ms365.graph.teams import Team
from ms365.lookup import find_one_by_name

logger = get_logger(__name__)

PERSONAL_SCOPES = ("Files.ReadWrite.All", "User.Read")


class ClientFactory:
    """Owns a login cache and the configuration used to fill in defaults.

    Attributes:
        config: Configuration supplying default tenant, app and scopes
        cache: Login cache shared by every call made through this factory
    """

    def __init__(self, config: AppConfig | None = None, cache: LoginCache | None = None):
        self.config = config or get_config()
        if cache is None:
            cache = LoginCache(
                LoginResolver(
                    token_cache_path=self.config.auth.token_cache_path,
                    auth_type=self.config.auth.auth_type,
                    graph_config=self.config.graph,
                )
            )
        self.cache = cache

    def login(self, tenant: str, app: str, scopes: str | Sequence[str], **extra_options: Any) -> GraphClient:
        """Get a logged-in session for exactly these parameters."""
        return self.cache.get_or_create(tenant, app, scopes, extra_options)

    def _business_login(
        self,
        tenant: str | None,
        app: str | None,
        scopes: str | Sequence[str] | None,
        extra_options: dict[str, Any],
    ) -> GraphClient:
        auth = self.config.auth
        tenant = tenant or auth.tenant
        app = choose_app(app if app is not None else auth.app_id, auth.use_cli_app_id)
        scopes = scopes if scopes is not None else auth.scopes
        return self.login(tenant, app, scopes, **extra_options)

    def get_personal_onedrive(
        self,
        app: str | None = None,
        scopes: str | Sequence[str] = PERSONAL_SCOPES,
        **extra_options: Any,
    ) -> Drive:
        """Get the signed-in user's personal OneDrive (Microsoft account)."""
        client = self.login(CONSUMERS_TENANT, app or DEFAULT_APP_ID, scopes, **extra_options)
        return client.get_user().get_drive()

    def get_business_onedrive(
        self,
        tenant: str | None = None,
        app: str | None = None,
        scopes: str | Sequence[str] | None = None,
        **extra_options: Any,
    ) -> Drive:
        """Get the signed-in user's OneDrive for Business."""
        client = self._business_login(tenant, app, scopes, extra_options)
        return client.get_user().get_drive()

    def get_sharepoint_site(
        self,
        site_name: str | None = None,
        site_url: str | None = None,
        site_id: str | None = None,
        tenant: str | None = None,
        app: str | None = None,
        scopes: str | Sequence[str] | None = None,
        **extra_options: Any,
    ) -> Site:
        """Get a SharePoint site by name, web URL or ID.

        A name is matched exactly against the sites the user follows.

        Raises:
            ValidationError: Unless exactly one of site_name, site_url, site_id is given
            NotFoundError: If no site matches
            AmbiguousNameError: If several followed sites share the name
        """
        assert_exactly_one(
            [site_name, site_url, site_id],
            "Supply exactly one of site name, URL or ID",
        )
        client = self._business_login(tenant, app, scopes, extra_options)

        if site_name is not None:
            return find_one_by_name(client.get_user().list_sharepoint_sites, site_name, kind="Site")
        return client.get_sharepoint_site(site_url=site_url, site_id=site_id)

    def list_sharepoint_sites(
        self,
        tenant: str | None = None,
        app: str | None = None,
        scopes: str | Sequence[str] | None = None,
        **extra_options: Any,
    ) -> list[Site]:
        """List the SharePoint sites the signed-in user follows."""
        client = self._business_login(tenant, app, scopes, extra_options)
        return client.get_user().list_sharepoint_sites()

    def get_team(
        self,
        team_name: str | None = None,
        team_id: str | None = None,
        tenant: str | None = None,
        app: str | None = None,
        scopes: str | Sequence[str] | None = None,
        **extra_options: Any,
    ) -> Team:
        """Get a team by name or ID.

        A name is matched exactly against the teams the user has joined.

        Raises:
            ValidationError: Unless exactly one of team_name, team_id is given
            NotFoundError: If no team matches
            AmbiguousNameError: If several joined teams share the name
        """
        assert_exactly_one([team_name, team_id], "Supply exactly one of team name or ID")
        client = self._business_login(tenant, app, scopes, extra_options)

        if team_name is not None:
            return find_one_by_name(client.get_user().list_teams, team_name, kind="Team")
        return client.get_team(team_id)

    def list_teams(
        self,
        tenant: str | None = None,
        app: str | None = None,
        scopes: str | Sequence[str] | None = None,
        **extra_options: Any,
    ) -> list[Team]:
        """List the teams the signed-in user has joined."""
        client = self._business_login(tenant, app, scopes, extra_options)
        return client.get_user().list_teams()


_factory_lock = threading.Lock()
_default_factory: ClientFactory | None = None


def get_default_factory() -> ClientFactory:
    """Get the process-wide factory used by the module-level functions."""
    global _default_factory
    with _factory_lock:
        if _default_factory is None:
            _default_factory = ClientFactory()
        return _default_factory


def reset_default_factory() -> None:
    """Drop the process-wide factory and its cached logins."""
    global _default_factory
    with _factory_lock:
        _default_factory = None


def get_personal_onedrive(app: str | None = None, scopes: str | Sequence[str] = PERSONAL_SCOPES, **extra_options: Any) -> Drive:
    return get_default_factory().get_personal_onedrive(app=app, scopes=scopes, **extra_options)


def get_business_onedrive(
    tenant: str | None = None,
    app: str | None = None,
    scopes: str | Sequence[str] | None = None,
    **extra_options: Any,
) -> Drive:
    return get_default_factory().get_business_onedrive(tenant=tenant, app=app, scopes=scopes, **extra_options)


def get_sharepoint_site(
    site_name: str | None = None,
    site_url: str | None = None,
    site_id: str | None = None,
    tenant: str | None = None,
    app: str | None = None,
    scopes: str | Sequence[str] | None = None,
    **extra_options: Any,
) -> Site:
    assert_exactly_one(
        [site_name, site_url, site_id],
        "Supply exactly one of site name, URL or ID",
    )
    return get_default_factory().get_sharepoint_site(
        site_name=site_name,
        site_url=site_url,
        site_id=site_id,
        tenant=tenant,
        app=app,
        scopes=scopes,
        **extra_options,
    )


def list_sharepoint_sites(
    tenant: str | None = None,
    app: str | None = None,
    scopes: str | Sequence[str] | None = None,
    **extra_options: Any,
) -> list[Site]:
    return get_default_factory().list_sharepoint_sites(tenant=tenant, app=app, scopes=scopes, **extra_options)


def get_team(
    team_name: str | None = None,
    team_id: str | None = None,
    tenant: str | None = None,
    app: str | None = None,
    scopes: str | Sequence[str] | None = None,
    **extra_options: Any,
) -> Team:
    assert_exactly_one([team_name, team_id], "Supply exactly one of team name or ID")
    return get_default_factory().get_team(
        team_name=team_name,
        team_id=team_id,
        tenant=tenant,
        app=app,
        scopes=scopes,
        **extra_options,
    )


def list_teams(
    tenant: str | None = None,
    app: str | None = None,
    scopes: str | Sequence[str] | None = None,
    **extra_options: Any,
) -> list[Team]:
    return get_default_factory().list_teams(tenant=tenant, app=app, scopes=scopes, **extra_options)
