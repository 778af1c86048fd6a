"""
Base class for report generators.
"""

from abc import ABC, abstractmethod

from ..models import RunSummary


class ReportGenerator(ABC):
    """Base class for generating run reports."""

    @abstractmethod
    def generate(self, summary: RunSummary) -> str:
        """
        Generate a report from a run summary.

        Args:
            summary: RunSummary with file, suite and node outcomes

        Returns:
            Report as a string
        """
        pass
