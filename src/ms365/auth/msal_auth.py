"""MSAL authentication for Microsoft Graph API.

Handles OAuth2 authentication for a public client application. Two full login
flows are supported:
- interactive: opens a browser and listens on a localhost redirect
- device_code: prints a URL and code to enter on any device

Key features:
- Token cache persistence (file-based, with restricted permissions)
- Silent token restore from the cache (no user interaction)
- Automatic token refresh via MSAL

Usage:
    from ms365.auth.msal_auth import GraphAuth

    auth = GraphAuth(
        client_id="d44a05d5-c6a5-4bbb-82d2-443123722380",
        tenant="mycompany",
        scopes=[".default"],
        token_cache_path="~/.ms365/token_cache.json",
    )

    # Fails with AuthenticationError if nothing usable is cached
    token = auth.restore()

    # Runs a full login
    token = auth.login(auth_type="device_code")
"""

import os
import random
import stat
import threading
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import msal
import requests
from rich.console import Console
from rich.panel import Panel

from ms365.core.errors import AuthenticationError
from ms365.core.logging import get_logger

logger = get_logger(__name__)
console = Console(stderr=True)

GRAPH_RESOURCE = "https://graph.microsoft.com"
LOGIN_AUTHORITY = "https://login.microsoftonline.com"

# Redirect port registered for the built-in app ID (http://localhost:1410)
DEFAULT_REDIRECT_PORT = 1410

MSAL_MAX_RETRIES = 3
MSAL_RETRY_DELAYS = [1.0, 2.0, 4.0]

AUTH_TYPES = ("interactive", "device_code")


def normalize_scopes(scopes: Sequence[str]) -> list[str]:
    """Qualify bare '.default' scopes with the Graph resource.

    MSAL accepts Graph permission names like 'User.Read' as-is but needs the
    resource prefix on '.default'.
    """
    return [f"{GRAPH_RESOURCE}/.default" if scope == ".default" else scope for scope in scopes]


# One in-memory token cache per cache file, shared by every GraphAuth using it
_shared_caches: dict[Path, tuple[msal.SerializableTokenCache, threading.Lock]] = {}
_shared_caches_lock = threading.Lock()


def _load_token_cache(path: Path) -> msal.SerializableTokenCache:
    """Create a token cache holding the contents of path, if it exists."""
    cache = msal.SerializableTokenCache()
    if path.exists():
        try:
            cache.deserialize(path.read_text())
            logger.debug("Token cache loaded", path=str(path))
        except (OSError, ValueError) as e:
            logger.warning(
                "Failed to load token cache, will re-authenticate",
                path=str(path),
                error=str(e),
            )
    return cache


def get_shared_token_cache(path: Path) -> tuple[msal.SerializableTokenCache, threading.Lock]:
    """Get the process-wide token cache for a cache file, and the lock guarding its writes.

    Every login for any tenant or app that uses the same file shares one
    cache, so saving it never drops another login's tokens.
    """
    key = path.expanduser().resolve()
    with _shared_caches_lock:
        entry = _shared_caches.get(key)
        if entry is None:
            entry = (_load_token_cache(key), threading.Lock())
            _shared_caches[key] = entry
        return entry


def reset_shared_token_caches() -> None:
    """Forget the in-memory token caches so files are re-read. Primarily for testing."""
    with _shared_caches_lock:
        _shared_caches.clear()


class GraphAuth:
    """MSAL token handling for one (tenant, app, scopes) combination.

    Attributes:
        client_id: Azure AD application (client) ID
        tenant: Azure AD tenant name/ID, 'common' or 'consumers'
        scopes: Normalised Microsoft Graph scopes
        token_cache_path: Path to the token cache file
        auth_type: Full-login flow used by login() and by get_access_token()
        login_options: Extra options passed verbatim to the MSAL login call

    Security notes:
        - Token cache file is created with mode 600 (owner read/write only)
        - Refresh tokens in the cache are sensitive and should be protected
    """

    def __init__(
        self,
        client_id: str,
        tenant: str,
        scopes: Sequence[str],
        token_cache_path: str | Path,
        auth_type: str = "interactive",
        login_options: dict[str, Any] | None = None,
    ):
        """Initialize the authentication handler.

        Args:
            auth_type: Flow to use when a full login is needed later
            login_options: Options for that full login

        Raises:
            ValueError: If client_id is empty
        """
        if not client_id or not client_id.strip():
            raise ValueError(
                "client_id is required. Pass an app registration ID, set "
                "CLIMICROSOFT365_AADAPPID, or leave it unset to use the built-in app."
            )

        self.client_id = client_id
        self.tenant = tenant
        self.scopes = normalize_scopes(scopes)
        self.token_cache_path = Path(token_cache_path).expanduser()
        self.auth_type = auth_type
        self.login_options: dict[str, Any] = dict(login_options or {})
        self.cache, self._cache_lock = get_shared_token_cache(self.token_cache_path)

        self.app = msal.PublicClientApplication(
            client_id=self.client_id,
            authority=f"{LOGIN_AUTHORITY}/{tenant}",
            token_cache=self.cache,
        )

        logger.debug(
            "GraphAuth initialized",
            client_id=client_id[:8] + "...",
            tenant=tenant,
            scopes=self.scopes,
        )

    def _acquire_silent(self) -> tuple[str | None, str]:
        """Try the cache without user interaction.

        Returns:
            (access token or None, reason when there is no token)
        """
        accounts = self.app.get_accounts()
        if not accounts:
            return None, (
                f"No cached credentials for tenant '{self.tenant}' and app "
                f"'{self.client_id[:8]}...'. A full login is required."
            )

        result = self._with_retry(
            "Silent token acquisition",
            lambda: self.app.acquire_token_silent(scopes=self.scopes, account=accounts[0]),
        )
        if not result or "access_token" not in result:
            error = (result or {}).get("error_description", "no token in cache")
            return None, f"Cached credentials could not be used: {error}"

        self._save_cache()
        logger.debug(
            "Token restored from cache",
            username=accounts[0].get("username", "unknown"),
        )
        return result["access_token"], ""

    def restore(self) -> str:
        """Get an access token from the persisted cache without user interaction.

        Returns:
            Access token string

        Raises:
            AuthenticationError: If no cached account or usable token exists
        """
        token, reason = self._acquire_silent()
        if token is None:
            raise AuthenticationError(reason)
        return token

    def login(self, auth_type: str = "interactive", **options: Any) -> str:
        """Run a full login and remember how it was done.

        Args:
            auth_type: 'interactive' (browser) or 'device_code'
            **options: Passed verbatim to the MSAL acquisition call, e.g.
                port, login_hint, prompt or timeout

        Returns:
            Access token string

        Raises:
            AuthenticationError: If the login fails
        """
        if auth_type not in AUTH_TYPES:
            raise AuthenticationError(
                f"Unknown auth_type '{auth_type}'. Use one of: {', '.join(AUTH_TYPES)}"
            )

        self.auth_type = auth_type
        self.login_options = dict(options)

        logger.info("Starting full login", auth_type=auth_type, tenant=self.tenant)
        if auth_type == "device_code":
            result = self._device_code_flow(**options)
        else:
            result = self._interactive_flow(**options)

        token = self._check_result(result)
        self._save_cache()
        logger.info(
            "Authentication successful",
            username=result.get("id_token_claims", {}).get("preferred_username", "unknown"),
        )
        return token

    def get_access_token(self) -> str:
        """Get a valid access token, refreshing or re-authenticating as needed.

        Tries the cache first (MSAL refreshes expired access tokens there), then
        runs a full login with the flow and options this session was created with.

        Raises:
            AuthenticationError: If authentication fails after all attempts
        """
        token, reason = self._acquire_silent()
        if token is not None:
            return token

        logger.debug("Silent acquisition failed", reason=reason, auth_type=self.auth_type)
        return self.login(self.auth_type, **self.login_options)

    def _interactive_flow(self, **options: Any) -> dict:
        options.setdefault("port", DEFAULT_REDIRECT_PORT)
        return self._with_retry(
            "Interactive login",
            lambda: self.app.acquire_token_interactive(scopes=self.scopes, **options),
        )

    def _device_code_flow(self, **options: Any) -> dict:
        """Run the device code flow.

        Displays the verification URL and code, then blocks until the user
        completes sign-in or the code expires.
        """
        flow = self._with_retry(
            "Device flow initiation",
            lambda: self.app.initiate_device_flow(scopes=self.scopes),
        )
        if not flow or "user_code" not in flow:
            error_msg = (flow or {}).get("error_description", "Unknown error during flow initiation")
            logger.error("Device code flow initiation failed", error=error_msg)
            raise AuthenticationError(
                f"Failed to initiate device code flow: {error_msg}. "
                "Check that 'Allow public client flows' is enabled for the app registration."
            )

        self._display_auth_prompt(
            verification_uri=flow["verification_uri"],
            user_code=flow["user_code"],
        )
        return self._with_retry(
            "Device code token acquisition",
            lambda: self.app.acquire_token_by_device_flow(flow, **options),
        )

    def _check_result(self, result: dict | None) -> str:
        """Turn an MSAL result dict into a token or a helpful AuthenticationError."""
        if result and "access_token" in result:
            return result["access_token"]

        result = result or {}
        error = result.get("error", "unknown_error")
        error_desc = result.get("error_description", "Authentication failed")

        if error == "authorization_pending":
            logger.error("Authentication timed out waiting for user")
            raise AuthenticationError(
                "Authentication timed out. Please try again and complete the "
                "sign-in process within the time limit."
            )
        if error in ("authorization_declined", "access_denied"):
            logger.error("User declined authentication")
            raise AuthenticationError(
                "Authentication was declined. Please try again and accept "
                "the permission request."
            )
        if "AADSTS7000218" in error_desc:
            raise AuthenticationError(
                "Device code flow is not enabled for this application. "
                "Set 'Allow public client flows' to Yes in the app registration."
            )
        if "AADSTS50011" in error_desc:
            raise AuthenticationError(
                "The redirect URI does not match the app registration. Register "
                f"http://localhost:{DEFAULT_REDIRECT_PORT} as a native redirect URI, "
                "or pass port=... to match the one you registered."
            )

        logger.error("Login failed", error=error, description=error_desc)
        raise AuthenticationError(f"Authentication failed: {error_desc}")

    def _with_retry(self, what: str, operation: Callable[[], Any]) -> Any:
        """Run an MSAL operation, retrying transient network errors.

        Only network errors are retried, never user-interaction errors like a
        declined consent.

        Raises:
            AuthenticationError: If all retries fail
        """
        last_error: Exception | None = None

        for attempt in range(MSAL_MAX_RETRIES):
            try:
                return operation()
            except requests.exceptions.RequestException as e:
                last_error = e
                if attempt < MSAL_MAX_RETRIES - 1:
                    delay = MSAL_RETRY_DELAYS[attempt]
                    jitter = delay * 0.2 * (2 * random.random() - 1)
                    logger.warning(
                        f"{what} failed, retrying",
                        attempt=attempt + 1,
                        max_retries=MSAL_MAX_RETRIES,
                        delay=delay + jitter,
                        error=str(e),
                    )
                    time.sleep(delay + jitter)

        raise AuthenticationError(
            f"{what} failed after {MSAL_MAX_RETRIES} attempts: {last_error}. "
            "Check your network connection and try again."
        ) from last_error

    def _display_auth_prompt(self, verification_uri: str, user_code: str) -> None:
        panel_content = (
            f"To authenticate, open a browser and go to:\n\n"
            f"  [bold blue]{verification_uri}[/bold blue]\n\n"
            f"Enter this code: [bold green]{user_code}[/bold green]\n\n"
            f"Waiting for authentication..."
        )

        console.print()
        console.print(
            Panel(
                panel_content,
                title="Microsoft 365 Authentication Required",
                border_style="bright_blue",
            )
        )
        console.print()

    def _save_cache(self) -> None:
        """Save the shared token cache to disk with mode 600.

        The cache holds the tokens of every login using this file, so the
        write never drops another tenant's or app's credentials.
        """
        with self._cache_lock:
            if not self.cache.has_state_changed:
                return
            try:
                self.token_cache_path.parent.mkdir(parents=True, exist_ok=True)
                self.token_cache_path.write_text(self.cache.serialize())
                os.chmod(self.token_cache_path, stat.S_IRUSR | stat.S_IWUSR)
            except OSError as e:
                # Don't raise - the token will just need to be re-acquired next time
                logger.error(
                    "Failed to save token cache",
                    path=str(self.token_cache_path),
                    error=str(e),
                )
                return
        logger.debug("Token cache saved", path=str(self.token_cache_path))

    def get_accounts(self) -> list[dict]:
        """Get the list of cached accounts for this app."""
        return self.app.get_accounts()

    def clear_cache(self) -> None:
        """Remove this app's cached accounts and persist the change."""
        for account in self.app.get_accounts():
            self.app.remove_account(account)
        self._save_cache()
        logger.info("Cached accounts removed", client_id=self.client_id[:8] + "...")
