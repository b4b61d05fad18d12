"""Authentication module for Microsoft Graph API.

Provides MSAL-based authentication (interactive browser or device code flow).
The login cache that reuses sessions across calls lives in ms365.auth.login.

Usage:
    from ms365.auth import GraphAuth

    auth = GraphAuth(
        client_id="your-client-id",
        tenant="mycompany",
        scopes=[".default"],
        token_cache_path="~/.ms365/token_cache.json",
    )

    token = auth.get_access_token()
"""

from ms365.auth.msal_auth import GraphAuth

__all__ = ["GraphAuth"]
