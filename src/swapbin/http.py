"""Page fetching for partner transaction endpoints.

One call performs one blocking GET and returns the decoded top-level JSON
array. Anything that prevents handing back a list of raw records is reported
as :class:`FetchFailure` so the sync engine can stop the run cleanly.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

import requests

logger = logging.getLogger(__name__)


class FetchFailure(Exception):
    """A page could not be fetched or decoded into a JSON array."""

    def __init__(self, url: str, reason: str):
        """Record the failing URL alongside the reason."""
        # The URL can embed an API key, so it stays out of the message
        super().__init__(reason)
        self.url = url
        self.reason = reason


PageFetcher = Callable[[str, Mapping[str, str]], list[Any]]


def fetch_json_page(
    session: requests.Session,
    url: str,
    headers: Mapping[str, str] | None = None,
    timeout: float = 30.0,
) -> list[Any]:
    """Fetch one page and return its top-level JSON array.

    Args:
        session: HTTP session owned by the current sync run
        url: Fully built page URL including limit/offset parameters
        headers: Extra request headers (e.g. Authorization)
        timeout: Request timeout in seconds

    Returns:
        list: Raw, unvalidated records

    Raises:
        FetchFailure: On transport errors, HTTP error statuses, undecodable
            bodies or a top-level value that is not an array
    """
    try:
        response = session.get(url, headers=dict(headers or {}), timeout=timeout)
        response.raise_for_status()
    except requests.HTTPError as e:
        # requests includes the URL in its messages, so only the status is kept
        status = e.response.status_code if e.response is not None else "error"
        raise FetchFailure(url, f"HTTP {status}") from e
    except requests.RequestException as e:
        raise FetchFailure(url, f"request failed: {type(e).__name__}") from e

    try:
        payload: Any = response.json()
    except ValueError as e:
        raise FetchFailure(url, f"invalid JSON body: {e}") from e

    if not isinstance(payload, list):
        raise FetchFailure(
            url, f"expected a JSON array, got {type(payload).__name__}"
        )

    logger.debug(f"Fetched {len(payload)} records")
    return payload


def session_fetcher(session: requests.Session, timeout: float) -> PageFetcher:
    """Bind a session and timeout into a ``(url, headers) -> records`` fetcher."""

    def fetch(url: str, headers: Mapping[str, str]) -> list[Any]:
        return fetch_json_page(session, url, headers=headers, timeout=timeout)

    return fetch
