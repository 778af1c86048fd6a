"""
Custom exceptions for DAV test framework.
"""


class DAVTestError(Exception):
    """Base exception for DAV test framework errors."""

    pass


class ConfigurationError(DAVTestError):
    """Raised when configuration or a suite definition is invalid or cannot be loaded."""

    pass


class DAVConnectionError(DAVTestError):
    """Raised when unable to connect to the server under test."""

    def __init__(self, url: str, original_error: Exception):
        self.url = url
        self.original_error = original_error
        super().__init__(f"Failed to connect to server at {url}: {original_error}")


class DAVTimeoutError(DAVTestError):
    """Raised when a request to the server under test times out."""

    def __init__(self, url: str, timeout: float):
        self.url = url
        self.timeout = timeout
        super().__init__(f"Request to {url} timed out after {timeout} seconds")


class DAVHTTPError(DAVTestError):
    """Raised when a connectivity probe gets an HTTP error status."""

    def __init__(self, status_code: int, url: str, response_body: str):
        self.status_code = status_code
        self.url = url
        # Truncate response body to avoid flooding the console
        self.response_body = response_body[:200] if response_body else ""
        super().__init__(f"Server returned HTTP {status_code} for {url}")
