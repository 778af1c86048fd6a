"""
JUnit XML reporter for run results.
"""

import xml.etree.ElementTree as ET

from ..models import ResultKind, RunSummary
from .base import ReportGenerator


class JUnitReporter(ReportGenerator):
    """Generate JUnit XML format for CI/CD integration."""

    def generate(self, summary: RunSummary) -> str:
        """Generate JUnit XML report, one testsuite element per suite."""
        counters = summary.counters
        testsuites = ET.Element("testsuites")
        testsuites.set("name", "DAV Tests")
        testsuites.set("tests", str(counters.total))
        testsuites.set("failures", str(counters.failed))
        testsuites.set("errors", str(counters.error))
        testsuites.set("skipped", str(counters.ignored))
        testsuites.set("time", f"{summary.duration_seconds:.3f}")

        for file_outcome in summary.files:
            for suite in file_outcome.suites:
                testsuite = ET.SubElement(testsuites, "testsuite")
                testsuite.set("name", f"{file_outcome.name} | {suite.name}")
                testsuite.set("tests", str(suite.counters.total))
                testsuite.set("failures", str(suite.counters.failed))
                testsuite.set("errors", str(suite.counters.error))
                testsuite.set("skipped", str(suite.counters.ignored))

                for node in suite.nodes:
                    testcase = ET.SubElement(testsuite, "testcase")
                    testcase.set("classname", file_outcome.name)
                    testcase.set("name", node.name)
                    testcase.set("time", f"{node.duration_ms / 1000:.3f}")

                    if node.result == ResultKind.FAILED:
                        failure = ET.SubElement(testcase, "failure")
                        failure.set("message", node.details.strip().split("\n")[0])
                        failure.text = node.details

                    elif node.result == ResultKind.ERROR:
                        error = ET.SubElement(testcase, "error")
                        error.set("message", node.details.strip().split("\n")[0])
                        error.text = node.details

                    elif node.result == ResultKind.IGNORED:
                        skipped = ET.SubElement(testcase, "skipped")
                        skipped.set("message", node.details.strip())

        ET.indent(testsuites, space="  ")
        return ET.tostring(testsuites, encoding="unicode", xml_declaration=True)
