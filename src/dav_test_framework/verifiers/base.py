"""
Base classes for response verifiers.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Mapping, Optional

from ..filters import FilterDirective, parse_filters, resolve_filters
from ..models import KeyedAttributes, VerifyResult
from ..serverinfo import ServerInfo

logger = logging.getLogger(__name__)


class Verifier(ABC):
    """
    Judges one response.

    Subclasses implement ``_verify``; callers use ``verify``, which never
    raises: any exception becomes a failed VerifyResult.
    """

    name = ""

    def __init__(self, server: ServerInfo):
        self.server = server

    def feature_supported(self, feature: str) -> bool:
        return self.server.feature_supported(feature)

    def verify(
        self,
        uri: str,
        response_headers: Mapping[str, str],
        status: int,
        body: str,
        args: KeyedAttributes,
        fixture_path: Optional[str] = None,
    ) -> VerifyResult:
        """
        Verify a response.

        Args:
            uri: Request URI the response belongs to
            response_headers: Response headers
            status: HTTP status code
            body: Response body
            args: Verifier arguments
            fixture_path: Expected-data file, overriding args "filepath"

        Returns:
            VerifyResult; ok with no text when the response passes
        """
        try:
            return self._verify(uri, response_headers, status, body, args, fixture_path)
        except Exception as e:
            logger.exception("Verifier %s raised for %s", self.name, uri)
            return VerifyResult.failure(f"        Verifier {self.name} failed: {e}")

    @abstractmethod
    def _verify(
        self,
        uri: str,
        response_headers: Mapping[str, str],
        status: int,
        body: str,
        args: KeyedAttributes,
        fixture_path: Optional[str],
    ) -> VerifyResult:
        pass


class FileDataMatch(Verifier):
    """
    Compares the response body with an expected-data file.

    The pipeline is: check status, build the active filters, then hand both
    bodies to ``compare``.
    """

    default_status = (200,)

    def expected_status(self, args: KeyedAttributes) -> List[int]:
        return args.get_ints("status", *self.default_status)

    def default_filters(self) -> List[FilterDirective]:
        """Environment-supplied filters merged into every comparison."""
        return []

    def active_filters(self, args: KeyedAttributes) -> List[FilterDirective]:
        """Fresh filter list for one call: node filters plus defaults, negations applied."""
        return resolve_filters(self.default_filters(), parse_filters(args.get("filter")))

    def _verify(
        self,
        uri: str,
        response_headers: Mapping[str, str],
        status: int,
        body: str,
        args: KeyedAttributes,
        fixture_path: Optional[str],
    ) -> VerifyResult:
        expected = self.expected_status(args)
        if status not in expected:
            return VerifyResult.failure(
                f"        HTTP Status Code Wrong: {status} (expected {', '.join(map(str, expected))})"
            )

        path = fixture_path or args.get_only("filepath")
        if not path:
            return VerifyResult.failure("        No file to compare response to")

        try:
            data = self.server.read_data(path)
        except OSError as e:
            return VerifyResult.failure(f"        Could not read data file {path}: {e}")

        try:
            filters = self.active_filters(args)
        except ValueError as e:
            return VerifyResult.failure(f"        Invalid filter: {e}")

        return self.compare(uri, response_headers, status, body, args, path, filters, data)

    @abstractmethod
    def compare(
        self,
        uri: str,
        response_headers: Mapping[str, str],
        status: int,
        body: str,
        args: KeyedAttributes,
        fixture_path: str,
        filters: List[FilterDirective],
        data: str,
    ) -> VerifyResult:
        """
        Compare the response body with the expected data.

        Args:
            uri: Request URI
            response_headers: Response headers
            status: HTTP status code, already validated
            body: Response body
            args: Verifier arguments
            fixture_path: Path of the expected-data file
            filters: Active drop directives for this call
            data: Expected data with substitutions applied

        Returns:
            VerifyResult for the comparison
        """
        pass
