"""
Verifiers that need no expected-data file.
"""

from typing import List, Mapping, Optional

from ..models import KeyedAttributes, VerifyResult
from .base import Verifier


def _status_matches(status: int, pattern: str) -> bool:
    """Match a status against "207" or a class pattern such as "2xx"."""
    pattern = pattern.strip().lower()
    if pattern.endswith("xx") and len(pattern) == 3:
        return str(status).startswith(pattern[0])
    return str(status) == pattern


class StatusCode(Verifier):
    """Checks the status code against a list of codes or classes (default 2xx)."""

    name = "statusCode"

    def _verify(
        self,
        uri: str,
        response_headers: Mapping[str, str],
        status: int,
        body: str,
        args: KeyedAttributes,
        fixture_path: Optional[str],
    ) -> VerifyResult:
        patterns: List[str] = [str(s) for s in args.get("status")] or ["2xx"]
        if any(_status_matches(status, p) for p in patterns):
            return VerifyResult()
        return VerifyResult.failure(
            f"        HTTP Status Code Wrong: {status} (expected {', '.join(patterns)})"
        )


class DataString(Verifier):
    """Checks the body contains, or does not contain, literal strings."""

    name = "dataString"

    def _verify(
        self,
        uri: str,
        response_headers: Mapping[str, str],
        status: int,
        body: str,
        args: KeyedAttributes,
        fixture_path: Optional[str],
    ) -> VerifyResult:
        result = VerifyResult()
        for text in args.get("contains"):
            expected = self.server.subs(str(text))
            if expected not in body:
                result.append(f"        Response data does not contain \"{expected}\"")
        for text in args.get("notcontains"):
            unexpected = self.server.subs(str(text))
            if unexpected in body:
                result.append(f"        Response data incorrectly contains \"{unexpected}\"")
        return result
