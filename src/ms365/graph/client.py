"""Base Microsoft Graph API client with retry logic and error handling.

A GraphClient is the authenticated session that every resource object holds a
reference to. It provides:
- Automatic retry with exponential backoff for transient errors
- Handling of rate limits (429 responses, honouring Retry-After)
- Pagination that follows @odata.nextLink to the end of a collection
- Mapping of Graph error payloads onto ms365 exceptions
- Top-level accessors for drives, sites, teams, users and groups

Usage:
    from ms365.auth.msal_auth import GraphAuth
    from ms365.graph.client import GraphClient

    auth = GraphAuth(client_id, tenant, scopes, cache_path)
    client = GraphClient(auth)

    me = client.get("/me")
    site = client.get_sharepoint_site(site_url="https://contoso.sharepoint.com/sites/eng")
"""

import random
import time
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import requests

from ms365.auth.msal_auth import GraphAuth
from ms365.core.errors import (
    AuthenticationError,
    NotFoundError,
    RateLimitExceeded,
    RemoteError,
)
from ms365.core.logging import get_logger
from ms365.core.validation import assert_exactly_one
from ms365.graph.directory import Group, User
from ms365.graph.drives import Drive
from ms365.graph.sites import Site
from ms365.graph.teams import Team

logger = get_logger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAYS = [1.0, 2.0, 4.0]
DEFAULT_TIMEOUT = 30.0

# Download buffer size
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


def site_path_from_url(site_url: str) -> str:
    """Build the Graph path addressing a SharePoint site by its web URL.

    https://contoso.sharepoint.com/sites/eng -> sites/contoso.sharepoint.com:/sites/eng
    https://contoso.sharepoint.com           -> sites/contoso.sharepoint.com
    """
    parsed = urlparse(site_url)
    if not parsed.netloc:
        parsed = urlparse(f"https://{site_url}")
    path = parsed.path.strip("/")
    if not path:
        return f"sites/{parsed.netloc}"
    return f"sites/{parsed.netloc}:/{path}"


class GraphClient:
    """Microsoft Graph API client with retry logic and error handling.

    Attributes:
        auth: GraphAuth instance for token management
        tenant: Tenant the session was logged in against
        app_id: App registration ID used to authenticate
        scopes: Scopes requested at login
        base_url: Microsoft Graph API base URL
        max_retries: Maximum number of retry attempts
        retry_delays: List of delay times (seconds) for each retry
        timeout: Default per-request timeout in seconds

    Example:
        client = GraphClient(auth)

        user = client.get("/me")

        sites = client.paginate(
            "/me/followedSites",
            params={"$filter": "displayName eq 'Engineering'"},
        )
    """

    def __init__(
        self,
        auth: GraphAuth,
        base_url: str = GRAPH_BASE_URL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delays: list[float] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.auth = auth
        self.tenant = auth.tenant
        self.app_id = auth.client_id
        self.scopes = list(auth.scopes)
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_delays = retry_delays or DEFAULT_RETRY_DELAYS
        self.timeout = timeout

        self.session = requests.Session()

        logger.debug(
            "GraphClient initialized",
            base_url=self.base_url,
            tenant=self.tenant,
            max_retries=self.max_retries,
        )

    def __repr__(self) -> str:
        return f"<GraphClient tenant={self.tenant!r} app={self.app_id[:8]}...>"

    def _get_headers(self) -> dict[str, str]:
        """Get request headers with the current access token.

        Raises:
            AuthenticationError: If token cannot be acquired
        """
        try:
            token = self.auth.get_access_token()
        except AuthenticationError:
            raise
        except Exception as e:
            logger.error("Failed to get access token", error=str(e))
            raise AuthenticationError(f"Cannot authenticate with Microsoft Graph: {e}") from e

        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    def _make_url(self, endpoint: str) -> str:
        """Construct the full URL for an endpoint.

        Absolute URLs (@odata.nextLink, upload session URLs) pass through.
        """
        if endpoint.startswith("http"):
            return endpoint
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint
        return self.base_url + endpoint

    def _handle_error_response(self, response: requests.Response, method: str, endpoint: str) -> None:
        """Raise the ms365 exception matching a Graph error response.

        Raises:
            NotFoundError: For 404
            RateLimitExceeded: For 429
            RemoteError: For anything else
        """
        try:
            error_info = response.json().get("error", {})
            error_code = error_info.get("code", "unknown")
            error_message = error_info.get("message", response.text)
        except ValueError:
            error_code = "unknown"
            error_message = response.text or f"HTTP {response.status_code}"

        logger.error(
            "Graph API error",
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message[:200],
        )

        if response.status_code == 404:
            raise NotFoundError(
                f"Resource not found (404): {error_message}. "
                f"The endpoint '{endpoint}' may be incorrect or the resource doesn't exist.",
                name=endpoint,
            )
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitExceeded(
                f"Rate limit exceeded (429). Retry after: {retry_after or 'unknown'} seconds.",
                retry_after=retry_after,
            )
        if response.status_code == 401:
            raise RemoteError(
                f"Authentication failed (401): {error_message}. "
                "Your access token may have expired or been revoked; log in again.",
                status_code=401,
                error_code=error_code,
            )
        if response.status_code == 403:
            raise RemoteError(
                f"Permission denied (403): {error_message}. "
                "Check that the required Graph permissions are consented for this app.",
                status_code=403,
                error_code=error_code,
            )
        raise RemoteError(
            f"Graph API error ({response.status_code}): {error_message}",
            status_code=response.status_code,
            error_code=error_code,
        )

    def _should_retry(self, response: requests.Response, attempt: int) -> bool:
        if attempt >= self.max_retries:
            return False
        return response.status_code == 429 or 500 <= response.status_code < 600

    def _get_retry_delay(self, response: requests.Response | None, attempt: int) -> float:
        """Get the delay before retrying, with ±20% jitter.

        For 429 responses a numeric Retry-After header wins over the backoff table.
        """
        if response is not None and response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            if retry_after:
                try:
                    base_delay = float(retry_after)
                    return base_delay + base_delay * 0.2 * (2 * random.random() - 1)
                except ValueError:
                    pass

        base_delay = self.retry_delays[min(attempt, len(self.retry_delays) - 1)]
        return base_delay + base_delay * 0.2 * (2 * random.random() - 1)

    def _send(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        data: bytes | None = None,
        extra_headers: dict[str, str] | None = None,
        authenticate: bool = True,
        stream: bool = False,
        timeout: float | None = None,
    ) -> requests.Response:
        """Send a request with retries and return the successful response.

        Raises:
            NotFoundError: For 404 responses
            RateLimitExceeded: When 429s persist through all retries
            RemoteError: For other API errors and exhausted transport retries
            AuthenticationError: When authentication fails
        """
        url = self._make_url(endpoint)
        timeout = timeout or self.timeout
        last_response = None

        for attempt in range(self.max_retries + 1):
            headers = self._get_headers() if authenticate else {}
            if extra_headers:
                headers.update(extra_headers)

            logger.debug(
                "Graph API request",
                method=method,
                endpoint=endpoint,
                attempt=attempt + 1,
                params=list(params.keys()) if params else None,
            )

            try:
                response = self.session.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params,
                    json=json,
                    data=data,
                    timeout=timeout,
                    stream=stream,
                )
            except requests.exceptions.Timeout:
                if attempt < self.max_retries:
                    delay = self._get_retry_delay(None, attempt)
                    logger.warning(
                        "Graph API request timed out, retrying",
                        method=method,
                        endpoint=endpoint,
                        attempt=attempt + 1,
                        delay=delay,
                    )
                    time.sleep(delay)
                    continue
                raise RemoteError(
                    f"Request to {endpoint} timed out after {timeout}s and {self.max_retries} retries. "
                    "Microsoft Graph may be experiencing issues.",
                ) from None
            except requests.exceptions.ConnectionError as e:
                if attempt < self.max_retries:
                    delay = self._get_retry_delay(None, attempt)
                    logger.warning(
                        "Graph API connection error, retrying",
                        method=method,
                        endpoint=endpoint,
                        attempt=attempt + 1,
                        error=str(e),
                        delay=delay,
                    )
                    time.sleep(delay)
                    continue
                raise RemoteError(
                    f"Connection to Microsoft Graph failed: {e}. "
                    "Check your internet connection and try again.",
                ) from e

            last_response = response
            if response.status_code < 400:
                return response

            if self._should_retry(response, attempt):
                delay = self._get_retry_delay(response, attempt)
                logger.warning(
                    "Retrying Graph API request",
                    method=method,
                    endpoint=endpoint,
                    status_code=response.status_code,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    delay=delay,
                )
                time.sleep(delay)
                continue

            self._handle_error_response(response, method, endpoint)

        if last_response is not None:
            self._handle_error_response(last_response, method, endpoint)
        raise RemoteError(f"Request to {endpoint} failed after {self.max_retries} retries")

    def request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        data: bytes | None = None,
        extra_headers: dict[str, str] | None = None,
        authenticate: bool = True,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Make a request to the Graph API and return the parsed JSON body.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE)
            endpoint: API endpoint path or absolute URL
            params: URL query parameters (OData options like $filter)
            json: JSON body for POST/PATCH requests
            data: Raw body for content uploads
            extra_headers: Additional headers (e.g. Content-Range)
            authenticate: Send the bearer token (False for pre-authorised upload URLs)
            timeout: Request timeout in seconds (default: client timeout)

        Returns:
            Parsed JSON response, or {} for empty responses
        """
        response = self._send(
            method,
            endpoint,
            params=params,
            json=json,
            data=data,
            extra_headers=extra_headers,
            authenticate=authenticate,
            timeout=timeout,
        )
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make a GET request to the Graph API."""
        return self.request("GET", endpoint, params=params)

    def download(self, endpoint: str, dest: str | Path | None = None) -> bytes | None:
        """Download raw content, e.g. a drive item's /content.

        An interrupted download removes the partially written file.

        Args:
            endpoint: Content endpoint path
            dest: File to stream into; if None, the bytes are returned

        Returns:
            The content when dest is None, otherwise None

        Raises:
            RemoteError: If the transfer breaks off part way
        """
        response = self._send("GET", endpoint, stream=dest is not None)
        try:
            if dest is None:
                return response.content

            dest_path = Path(dest)
            try:
                with open(dest_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
            except requests.exceptions.RequestException as e:
                dest_path.unlink(missing_ok=True)
                logger.error("Download interrupted", endpoint=endpoint, dest=str(dest_path), error=str(e))
                raise RemoteError(f"Download of {endpoint} was interrupted: {e}") from e
            except OSError:
                dest_path.unlink(missing_ok=True)
                raise
        finally:
            response.close()

        logger.debug("Download complete", endpoint=endpoint, dest=str(dest_path))
        return None

    def paginate(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        page_size: int | None = None,
        max_pages: int | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch every page of a collection and return all items.

        Follows @odata.nextLink until the server stops returning one, so the
        result is always the fully materialised collection unless max_pages
        cuts it short.

        Args:
            endpoint: API endpoint path
            params: Initial query parameters
            page_size: Optional $top value (not every endpoint accepts it)
            max_pages: Maximum number of pages to fetch (None for unlimited)

        Returns:
            List of all items across all pages
        """
        all_items: list[dict[str, Any]] = []
        params = dict(params) if params else {}
        if page_size and "$top" not in params:
            params["$top"] = page_size

        next_url: str | None = None
        page_count = 0

        while True:
            if max_pages and page_count >= max_pages:
                logger.debug(
                    "Pagination stopped at max_pages",
                    max_pages=max_pages,
                    items_collected=len(all_items),
                )
                break

            # The nextLink already carries the query options
            if next_url is None:
                response = self.get(endpoint, params=params or None)
            else:
                response = self.get(next_url)

            items = response.get("value", [])
            all_items.extend(items)
            page_count += 1

            logger.debug(
                "Pagination page fetched",
                page=page_count,
                items_on_page=len(items),
                total_items=len(all_items),
            )

            next_url = response.get("@odata.nextLink")
            if not next_url:
                break

        logger.debug(
            "Pagination complete",
            endpoint=endpoint,
            total_pages=page_count,
            total_items=len(all_items),
        )
        return all_items

    # ------------------------------------------------------------------
    # Top-level resource accessors
    # ------------------------------------------------------------------

    def get_user(self, user_id: str | None = None) -> User:
        """Get the signed-in user, or another user by ID or principal name."""
        path = "me" if user_id is None else f"users/{user_id}"
        return User(self, self.get(path), path=path)

    def get_group(self, group_id: str) -> Group:
        """Get a Microsoft 365 group by ID."""
        return Group(self, self.get(f"groups/{group_id}"))

    def get_drive(self, drive_id: str) -> Drive:
        """Get a drive (OneDrive or document library) by ID.

        Raises:
            NotFoundError: If no drive has that ID
        """
        return Drive(self, self.get(f"drives/{drive_id}"))

    def get_sharepoint_site(self, site_url: str | None = None, site_id: str | None = None) -> Site:
        """Get a SharePoint site from its web URL or its ID.

        Raises:
            ValidationError: Unless exactly one of site_url, site_id is given
            NotFoundError: If the site doesn't exist
        """
        assert_exactly_one([site_url, site_id], "Supply exactly one of site URL or ID")
        path = site_path_from_url(site_url) if site_url is not None else f"sites/{site_id}"
        return Site(self, self.get(path))

    def get_team(self, team_id: str) -> Team:
        """Get a team by ID.

        Raises:
            NotFoundError: If the team doesn't exist or isn't visible to the user
        """
        return Team(self, self.get(f"teams/{team_id}"))
