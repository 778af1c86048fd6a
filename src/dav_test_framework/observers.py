"""
Observers receiving run lifecycle notifications.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import click

from .models import KeyedAttributes

logger = logging.getLogger(__name__)

MESSAGES = (
    "start",
    "load",
    "testProgress",
    "trace",
    "testFile",
    "testSuite",
    "testResult",
    "finish",
)


class ResultsObserver(ABC):
    """Receives fire-and-forget notifications from the RunManager."""

    @abstractmethod
    def process(self, message: str, payload: Optional[KeyedAttributes]) -> None:
        """
        Handle one notification.

        Args:
            message: One of MESSAGES
            payload: Message attributes, None for start and finish
        """
        pass


class TraceObserver(ResultsObserver):
    """Echoes progress in the classic text layout."""

    def __init__(self, echo: Callable[[str], None] = click.echo):
        self.echo = echo

    def process(self, message: str, payload: Optional[KeyedAttributes]) -> None:
        if payload is None:
            if message == "start":
                self.echo("Starting tests")
            elif message == "finish":
                self.echo("Finished tests")
            return

        if message == "trace":
            self.echo(payload.get_only("message", ""))
        elif message == "load":
            name = payload.get_only("name")
            if name:
                current = payload.get_only("current")
                total = payload.get_only("total")
                self.echo(f"Loading {current} of {total}: {name}")
        elif message == "testFile":
            self.echo(f"{payload.get_only('name')}:")
        elif message == "testSuite":
            line = f"  Suite: {payload.get_only('name')}"
            details = payload.get_only("details")
            if details:
                line = f"{line}\n{details}"
            self.echo(line)
        elif message == "testResult":
            result = payload.get_only("result", "")
            self.echo(f"    {payload.get_only('name')}: {str(result).upper()}")
            details = payload.get_only("details")
            if details and result != "ok":
                self.echo(details)


class LogObserver(ResultsObserver):
    """Forwards every notification to the logging system."""

    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    def process(self, message: str, payload: Optional[KeyedAttributes]) -> None:
        logger.log(self.level, "%s %s", message, payload.to_dict() if payload else {})
