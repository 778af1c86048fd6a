"""
Console reporter for run results.
"""

import os
import sys

from ..models import ResultKind, RunSummary
from ..results import failed_results
from .base import ReportGenerator


def _supports_color() -> bool:
    """Return True if the output stream likely supports ANSI colours."""
    # Explicit opt-in / opt-out via environment variable
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    # Non-TTY output (e.g. piped to a file) should not use colour
    if not hasattr(sys.stdout, "isatty") or not sys.stdout.isatty():
        return False
    return sys.platform != "win32"


class ConsoleReporter(ReportGenerator):
    """Generate colored console output for run results."""

    def __init__(self) -> None:
        color = _supports_color()
        self.GREEN = "\033[92m" if color else ""
        self.RED = "\033[91m" if color else ""
        self.YELLOW = "\033[93m" if color else ""
        self.RESET = "\033[0m" if color else ""
        self.BOLD = "\033[1m" if color else ""

    def generate(self, summary: RunSummary) -> str:
        """Generate console report."""
        counters = summary.counters
        lines = []

        lines.append(f"\n{self.BOLD}DAV Conformance Results{self.RESET}")
        lines.append("=" * 60)

        lines.append(f"\n{self.BOLD}Summary:{self.RESET}")
        lines.append(f"  Total Tests: {counters.total}")
        lines.append(f"  {self.GREEN}Passed: {counters.ok}{self.RESET}")
        lines.append(f"  {self.RED}Failed: {counters.failed}{self.RESET}")
        lines.append(f"  {self.RED}Errors: {counters.error}{self.RESET}")
        lines.append(f"  {self.YELLOW}Ignored: {counters.ignored}{self.RESET}")
        lines.append(f"  Duration: {summary.duration_seconds:.2f}s")

        if summary.aborted:
            lines.append(f"\n{self.RED}{self.BOLD}✗ RUN ABORTED: {summary.abort_reason}{self.RESET}")
        elif summary.success:
            lines.append(f"\n{self.GREEN}{self.BOLD}✓ ALL TESTS PASSED{self.RESET}")
        else:
            lines.append(f"\n{self.RED}{self.BOLD}✗ TESTS FAILED{self.RESET}")

        failures = failed_results(summary)
        if failures:
            lines.append(f"\n{self.BOLD}Failed Tests:{self.RESET}")
            for file_outcome, suite, node in failures:
                lines.append(
                    f"\n  {self.RED}✗ {file_outcome.name} | {suite.name} | {node.name}{self.RESET}"
                )
                if node.details:
                    lines.append(node.details)

        # Per-suite overview (if not too many)
        suites = [(f, s) for f in summary.files for s in f.suites]
        if len(suites) <= 50:
            lines.append(f"\n{self.BOLD}Suites:{self.RESET}")
            for file_outcome, suite in suites:
                if suite.result == ResultKind.OK:
                    symbol = f"{self.GREEN}✓{self.RESET}"
                elif suite.result == ResultKind.IGNORED:
                    symbol = f"{self.YELLOW}○{self.RESET}"
                else:
                    symbol = f"{self.RED}✗{self.RESET}"
                lines.append(f"  {symbol} {file_outcome.name} | {suite.name}")
                lines.append(f"  {suite.summary_line()}")

        lines.append("")  # Empty line at end
        return "\n".join(lines)
