"""
Response verifiers for DAV test framework.
"""

from typing import Dict, Type

from ..serverinfo import ServerInfo
from .base import FileDataMatch, Verifier
from .calendar_data import CalendarDataMatch
from .simple import DataString, StatusCode
from .xml_data import XmlDataMatch

VERIFIERS: Dict[str, Type[Verifier]] = {
    cls.name: cls for cls in (CalendarDataMatch, XmlDataMatch, StatusCode, DataString)
}


def create_verifier(name: str, server: ServerInfo) -> Verifier:
    """
    Instantiate a registered verifier.

    Raises:
        KeyError: If no verifier is registered under name
    """
    try:
        cls = VERIFIERS[name]
    except KeyError:
        raise KeyError(f"Unknown verifier '{name}'. Available: {', '.join(sorted(VERIFIERS))}")
    return cls(server)


__all__ = [
    "VERIFIERS",
    "CalendarDataMatch",
    "DataString",
    "FileDataMatch",
    "StatusCode",
    "Verifier",
    "XmlDataMatch",
    "create_verifier",
]
