"""
HTTP client for driving the DAV server under test.
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from requests.exceptions import ConnectionError, Timeout
from urllib3.util.retry import Retry

from .exceptions import DAVConnectionError, DAVHTTPError, DAVTimeoutError
from .models import DAVResponse

logger = logging.getLogger(__name__)

DAV_METHODS = [
    "HEAD",
    "GET",
    "PUT",
    "POST",
    "DELETE",
    "OPTIONS",
    "PROPFIND",
    "PROPPATCH",
    "REPORT",
    "MKCOL",
    "MKCALENDAR",
    "COPY",
    "MOVE",
    "ACL",
]


class DAVClient:
    """
    HTTP client for a WebDAV/CalDAV server.

    Unlike a regular API client it never treats an HTTP error status as an
    exception: the status is part of what the verifiers judge.
    """

    def __init__(
        self,
        base_url: str,
        timeout: int = 10,
        username: Optional[str] = None,
        password: Optional[str] = None,
        max_retries: int = 3,
    ):
        """
        Initialize DAV client.

        Args:
            base_url: Base URL of the server (e.g., "http://localhost:8008")
            timeout: Request timeout in seconds
            username: Optional basic auth user
            password: Optional basic auth password
            max_retries: Maximum number of retries for transient errors
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http_trace = False

        self.session = requests.Session()

        # Retry only on gateway-level failures; a 500 from the server itself
        # is a verdict, not a transient error.
        server_error_retry = Retry(
            total=max_retries,
            backoff_factor=0.5,
            status_forcelist=[502, 503, 504],
            allowed_methods=DAV_METHODS,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=server_error_retry)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        if username:
            self.session.auth = (username, password or "")

    def _url(self, uri: str) -> str:
        if uri.startswith("http://") or uri.startswith("https://"):
            return uri
        return urljoin(self.base_url + "/", uri.lstrip("/"))

    def request(
        self,
        method: str,
        uri: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
    ) -> DAVResponse:
        """
        Send one request and return the response whatever its status.

        Args:
            method: HTTP or WebDAV method
            uri: Absolute URL or path relative to base_url
            headers: Optional request headers
            body: Optional request body

        Returns:
            DAVResponse with status, headers, body and timing

        Raises:
            DAVConnectionError: On connection errors
            DAVTimeoutError: On timeout
        """
        url = self._url(uri)
        logger.debug("Making %s request to %s", method, url)
        if self.http_trace:
            logger.info(">>>> %s %s\n%s\n\n%s", method, url, dict(headers or {}), body or "")

        start_time = time.time()
        try:
            response = self.session.request(
                method=method,
                url=url,
                headers=dict(headers or {}),
                data=body.encode("utf-8") if body is not None else None,
                timeout=self.timeout,
                allow_redirects=False,
            )
        except Timeout as e:
            logger.warning("Request to %s timed out after %ss", url, self.timeout)
            raise DAVTimeoutError(url, self.timeout) from e
        except ConnectionError as e:
            logger.error("Connection failed to %s: %s", url, e)
            raise DAVConnectionError(url, e) from e
        except requests.RequestException as e:
            logger.error("Request failed for %s: %s", url, e)
            raise DAVConnectionError(url, e) from e

        duration_ms = (time.time() - start_time) * 1000
        result = DAVResponse(
            uri=uri,
            status=response.status_code,
            headers=response.headers,
            body=response.text or "",
            duration_ms=duration_ms,
        )
        if self.http_trace:
            logger.info(
                "<<<< %d %s\n%s\n\n%s", result.status, url, dict(result.headers), result.body
            )
        return result

    def probe(self, uri: str = "/") -> DAVResponse:
        """
        Send OPTIONS to check the server is reachable.

        Raises:
            DAVConnectionError: On connection errors
            DAVTimeoutError: On timeout
            DAVHTTPError: If the server answers with an error status
        """
        response = self.request("OPTIONS", uri)
        if response.status >= 400:
            raise DAVHTTPError(response.status, self._url(uri), response.body)
        return response

    @contextmanager
    def tracing(self, enabled: bool = True) -> Iterator["DAVClient"]:
        """Log full requests and responses while the block runs."""
        previous = self.http_trace
        self.http_trace = previous or enabled
        try:
            yield self
        finally:
            self.http_trace = previous

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()

    def __enter__(self) -> "DAVClient":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.close()
