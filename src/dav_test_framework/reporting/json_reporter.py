"""
JSON reporter for run results.
"""

import json

from ..models import ResultCounters, RunSummary
from .base import ReportGenerator


def _counters(counters: ResultCounters) -> dict:
    return {
        "ok": counters.ok,
        "failed": counters.failed,
        "error": counters.error,
        "ignored": counters.ignored,
    }


class JSONReporter(ReportGenerator):
    """Generate JSON format for programmatic analysis."""

    def generate(self, summary: RunSummary) -> str:
        """Generate JSON report."""
        report = {
            "summary": {
                **_counters(summary.counters),
                "total": summary.counters.total,
                "duration_seconds": summary.duration_seconds,
                "success": summary.success,
                "aborted": summary.aborted,
                "abort_reason": summary.abort_reason,
            },
            "files": [
                {
                    "name": f.name,
                    "hook": f.hook,
                    "suites": [
                        {
                            "name": s.name,
                            "result": s.result.value if s.result else None,
                            "details": s.details,
                            "counters": _counters(s.counters),
                            "tests": [
                                {
                                    "name": n.name,
                                    "state": n.state.value,
                                    "result": n.result.value,
                                    "details": n.details,
                                    "duration_ms": n.duration_ms,
                                }
                                for n in s.nodes
                            ],
                        }
                        for s in f.suites
                    ],
                }
                for f in summary.files
            ],
        }

        return json.dumps(report, indent=2)
