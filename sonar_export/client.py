"""SonarQube API client.

Usage:
    client = SonarClient(url="https://sonar.example.com", token="squ_xxx")
    issues = client.fetch_issues("my-project")     # list[IssueRecord]
"""

import logging
import warnings
from typing import Any

import requests

from sonar_export.models import FetchState, IssueRecord

logger = logging.getLogger(__name__)

ISSUES_ENDPOINT = "/api/issues/search"
PAGE_SIZE = 500
MAX_PAGES = 20


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class SonarClientError(Exception):
    """Base exception for all client errors."""


class AuthenticationError(SonarClientError):
    """Raised on HTTP 401 — invalid or expired token."""


class AuthorizationError(SonarClientError):
    """Raised on HTTP 403 — token lacks 'Browse' permission on the project."""


class NotFoundError(SonarClientError):
    """Raised on HTTP 404 — project or resource not found."""


class NetworkError(SonarClientError):
    """Raised on connection timeout or unreachable server."""


class MalformedResponseError(SonarClientError):
    """Raised when the server answers 2xx with a body we cannot use."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class SonarClient:
    """Thin wrapper around the SonarQube issue search API."""

    def __init__(
        self,
        url: str,
        token: str,
        timeout: int = 30,
        page_size: int = PAGE_SIZE,
        max_pages: int = MAX_PAGES,
    ) -> None:
        if not url or not url.strip():
            raise ValueError("SonarQube URL must not be empty")
        if not token:
            raise ValueError("SonarQube token must not be empty")
        self.base_url = url.strip().rstrip("/")
        self.page_size = page_size
        self.max_pages = max_pages
        self._timeout = timeout
        self._session = requests.Session()
        # SonarQube auth: token as username, empty password
        self._session.auth = (token, "")

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def fetch_issues(self, project_key: str) -> list[IssueRecord]:
        """Fetch every issue of *project_key*, in server order.

        Pages are requested one after the other until a page comes back
        empty, the reported total is reached, or a page is shorter than
        ``page_size``. At most ``max_pages`` pages are requested; when that
        ceiling is hit the issues gathered so far are returned.

        Any error aborts the whole fetch; partial results are never returned.

        Raises:
            AuthenticationError:    HTTP 401
            AuthorizationError:     HTTP 403
            NotFoundError:          HTTP 404
            SonarClientError:       Any other non-2xx response
            NetworkError:           Timeout or connection failure
            MalformedResponseError: Body is not a JSON object with an issues list
            DataShapeError:         An issue has no line range
        """
        if not project_key:
            raise ValueError("Project key must not be empty")

        state = FetchState(page_size=self.page_size)
        total: int | None = None

        while state.has_more and state.page <= self.max_pages:
            params = {"componentKeys": project_key, "p": state.page, "ps": state.page_size}
            data = self._request(ISSUES_ENDPOINT, params)

            raw_issues = data.get("issues")
            if not isinstance(raw_issues, list):
                raise MalformedResponseError(
                    f"Response from {self.base_url}{ISSUES_ENDPOINT} has no 'issues' list"
                )
            total = _reported_total(data)
            logger.debug(
                "Fetched page %d of %s: %d issues (total=%s)",
                state.page, project_key, len(raw_issues), total,
            )

            if not raw_issues:
                state.has_more = False
                break

            state.issues.extend(IssueRecord.from_api(raw) for raw in raw_issues)

            if total and len(state.issues) >= total:
                state.has_more = False
            elif len(raw_issues) < state.page_size:
                state.has_more = False
            else:
                state.page += 1

        if state.has_more:
            logger.warning(
                "Stopped after %d pages for %s (%d issues fetched)",
                self.max_pages, project_key, len(state.issues),
            )
            if total and total > len(state.issues):
                warnings.warn(
                    f"Project '{project_key}' reports {total} issues but the export is capped "
                    f"at {self.max_pages} pages of {self.page_size}; "
                    f"only {len(state.issues)} were fetched.",
                    UserWarning,
                    stacklevel=2,
                )

        return state.issues

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _request(self, endpoint: str, params: dict[str, Any]) -> dict:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except requests.exceptions.Timeout as exc:
            raise NetworkError(
                f"Request timed out after {self._timeout}s while contacting '{url}'"
            ) from exc
        except requests.exceptions.SSLError as exc:
            raise NetworkError(
                f"TLS handshake with '{self.base_url}' failed: {exc}"
            ) from exc
        except requests.exceptions.ConnectionError as exc:
            raise NetworkError(
                f"Unable to reach SonarQube server at '{self.base_url}'"
            ) from exc

        if response.status_code == 401:
            raise AuthenticationError(
                "Authentication failed — check that your token is valid and not expired."
            )
        if response.status_code == 403:
            raise AuthorizationError(
                f"Access denied to {url}: the token needs 'Browse' permission on the project."
            )
        if response.status_code == 404:
            raise NotFoundError(
                f"Resource not found: {url}"
            )
        if not response.ok:
            raise SonarClientError(
                f"Unexpected response {response.status_code} from {url}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"Response from {url} is not valid JSON") from exc
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Response from {url} is not a JSON object")
        return data


def _reported_total(data: dict) -> int | None:
    """Total issue count, from ``total`` or the newer ``paging.total``."""
    total = data.get("total")
    if total is None:
        paging = data.get("paging")
        total = paging.get("total") if isinstance(paging, dict) else None
    return total if isinstance(total, int) else None
