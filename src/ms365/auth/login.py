"""Login session caching and resolution.

A login is identified by (tenant, app, scopes, extra options). The first
request for a given combination tries to restore credentials from the
persisted MSAL token cache and, if that fails for any reason, runs a full
login. The resulting GraphClient is kept in a LoginCache and handed back to
every later request with the same parameters.

Usage:
    from ms365.auth.login import LoginCache, LoginResolver

    cache = LoginCache(LoginResolver(token_cache_path="~/.ms365/token_cache.json"))
    client = cache.get_or_create("mycompany", app_id, [".default"], {"auth_type": "device_code"})
"""

import hashlib
import json
import threading
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from ms365.auth.msal_auth import GraphAuth
from ms365.config_schema import DEFAULT_TOKEN_CACHE_PATH, GraphConfig
from ms365.core.errors import AuthenticationError
from ms365.core.logging import get_logger
from ms365.graph.client import GraphClient

logger = get_logger(__name__)

# App registration owned by this package
DEFAULT_APP_ID = "d44a05d5-c6a5-4bbb-82d2-443123722380"

# App registration used by the CLI for Microsoft 365
CLI_APP_ID = "31359c7f-bd7e-475c-86db-fdb8c937548e"


def choose_app(app: str | None, use_cli_app_id: bool | None = None) -> str:
    """Pick the app registration ID to authenticate with.

    Args:
        app: Explicit app ID; None or "" means "use a built-in one"
        use_cli_app_id: Prefer the CLI for Microsoft 365 app ID over this
            package's own. None reads the configured process-wide flag.

    Returns:
        The app ID, unvalidated
    """
    if app:
        return app

    if use_cli_app_id is None:
        from ms365.config import get_config

        use_cli_app_id = get_config().auth.use_cli_app_id

    return CLI_APP_ID if use_cli_app_id else DEFAULT_APP_ID


def _scope_list(scopes: str | Sequence[str]) -> list[str]:
    return [scopes] if isinstance(scopes, str) else list(scopes)


def make_login_key(
    tenant: str,
    app: str,
    scopes: str | Sequence[str],
    extra_options: Mapping[str, Any] | None = None,
) -> str:
    """Digest the login parameters into a cache key.

    Scope order is significant. Extra options are keyed by name, so their
    order is not.
    """
    payload = json.dumps(
        [tenant, app, _scope_list(scopes), dict(extra_options or {})],
        sort_keys=True,
        default=repr,
    )
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


class LoginResolver:
    """Produces a logged-in GraphClient: cached credentials first, full login second.

    Attributes:
        token_cache_path: MSAL token cache file shared by all logins
        auth_type: Full-login flow used when the caller doesn't pass auth_type
        graph_config: HTTP client settings for the sessions it creates
    """

    def __init__(
        self,
        token_cache_path: str | Path = DEFAULT_TOKEN_CACHE_PATH,
        auth_type: str = "interactive",
        graph_config: GraphConfig | None = None,
    ):
        self.token_cache_path = token_cache_path
        self.auth_type = auth_type
        self.graph_config = graph_config or GraphConfig()

    def _make_client(self, auth: GraphAuth) -> GraphClient:
        return GraphClient(
            auth,
            base_url=self.graph_config.base_url,
            max_retries=self.graph_config.max_retries,
            timeout=self.graph_config.timeout,
        )

    def _login_options(self, extra_options: Mapping[str, Any] | None) -> tuple[str, dict[str, Any]]:
        options = dict(extra_options or {})
        return options.pop("auth_type", self.auth_type), options

    def restore_cached_login(
        self,
        tenant: str,
        app: str,
        scopes: Sequence[str],
        extra_options: Mapping[str, Any] | None = None,
    ) -> GraphClient:
        """Build a session from persisted credentials, without user interaction.

        The session remembers the login flow and options it was asked for, and
        uses them if its credentials later need a full login.

        Raises:
            AuthenticationError: If no usable credentials are cached
        """
        auth_type, options = self._login_options(extra_options)
        auth = GraphAuth(app, tenant, scopes, self.token_cache_path, auth_type=auth_type, login_options=options)
        auth.restore()
        return self._make_client(auth)

    def create_login(self, tenant: str, app: str, scopes: Sequence[str], **extra_options: Any) -> GraphClient:
        """Run a full login and build a session from it.

        Raises:
            AuthenticationError: If the login fails
        """
        auth = GraphAuth(app, tenant, scopes, self.token_cache_path)
        auth_type, options = self._login_options(extra_options)
        auth.login(auth_type, **options)
        return self._make_client(auth)

    def resolve(
        self,
        tenant: str,
        app: str,
        scopes: str | Sequence[str],
        extra_options: Mapping[str, Any] | None = None,
    ) -> GraphClient:
        """Return a logged-in session, never a partially initialised one.

        A failed restore is not an error: it just means a full login is needed.

        Raises:
            AuthenticationError: If the full login fails
        """
        scopes = _scope_list(scopes)

        try:
            client = self.restore_cached_login(tenant, app, scopes, extra_options)
            logger.debug("Login restored from token cache", tenant=tenant)
            return client
        except Exception as e:
            logger.debug("No usable cached login, running full login", tenant=tenant, error=str(e))

        try:
            return self.create_login(tenant, app, scopes, **dict(extra_options or {}))
        except AuthenticationError:
            raise
        except Exception as e:
            logger.error("Full login failed", tenant=tenant, error=str(e))
            raise AuthenticationError(f"Login to tenant '{tenant}' failed: {e}") from e


class LoginCache:
    """Thread-safe map from login parameters to logged-in sessions.

    Concurrent requests for a key that hasn't been seen yet collapse into one
    login; every caller gets the same session object. A per-key lock exists
    only while some caller is inside get_or_create() for that key.

    Attributes:
        resolver: Creates sessions on a cache miss
        session_type: Entries not of this type are treated as missing
    """

    def __init__(self, resolver: LoginResolver | None = None, session_type: type = GraphClient):
        self.resolver = resolver or LoginResolver()
        self.session_type = session_type
        self._sessions: dict[str, Any] = {}
        # key -> (lock, number of callers holding or waiting for it)
        self._key_locks: dict[str, tuple[threading.Lock, int]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._sessions

    def _acquire_key_lock(self, key: str) -> threading.Lock:
        with self._lock:
            key_lock, users = self._key_locks.get(key, (None, 0))
            if key_lock is None:
                key_lock = threading.Lock()
            self._key_locks[key] = (key_lock, users + 1)
        return key_lock

    def _release_key_lock(self, key: str) -> None:
        with self._lock:
            key_lock, users = self._key_locks[key]
            if users == 1:
                del self._key_locks[key]
            else:
                self._key_locks[key] = (key_lock, users - 1)

    def get_or_create(
        self,
        tenant: str,
        app: str,
        scopes: str | Sequence[str],
        extra_options: Mapping[str, Any] | None = None,
    ) -> GraphClient:
        """Return the cached session for these parameters, logging in on first use.

        No freshness check happens here; token refresh is handled by MSAL
        underneath the session.

        Raises:
            AuthenticationError: If a login was needed and failed
        """
        key = make_login_key(tenant, app, scopes, extra_options)
        key_lock = self._acquire_key_lock(key)
        try:
            with key_lock:
                with self._lock:
                    session = self._sessions.get(key)
                if isinstance(session, self.session_type):
                    logger.debug("Login cache hit", tenant=tenant, key=key[:8])
                    return session

                logger.debug("Login cache miss", tenant=tenant, key=key[:8])
                session = self.resolver.resolve(tenant, app, scopes, extra_options)
                with self._lock:
                    self._sessions[key] = session
                return session
        finally:
            self._release_key_lock(key)

    def invalidate(self, key: str) -> bool:
        """Drop one cached session. Returns True if there was one."""
        with self._lock:
            return self._sessions.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every cached session. Logins in progress still finish and are cached."""
        with self._lock:
            self._sessions.clear()
