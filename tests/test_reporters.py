"""Tests for report generators."""

import json
import xml.etree.ElementTree as ET

from src.dav_test_framework.models import (
    FileOutcome,
    NodeOutcome,
    NodeState,
    ResultCounters,
    ResultKind,
    RunSummary,
    SuiteOutcome,
)
from src.dav_test_framework.reporting import ConsoleReporter, JSONReporter, JUnitReporter


def _suite(name, *nodes):
    suite = SuiteOutcome(name)
    for node in nodes:
        suite.record(node)
    if suite.counters.has_failures:
        suite.result = ResultKind.FAILED
    elif suite.counters.ok:
        suite.result = ResultKind.OK
    else:
        suite.result = ResultKind.IGNORED
    return suite


def _make_summary(files=None, aborted=False, abort_reason=""):
    """Helper to create a run summary."""
    if files is None:
        files = [
            FileOutcome(
                "put.yaml",
                suites=[
                    _suite(
                        "simple PUT",
                        NodeOutcome("store", NodeState.EVALUATED, ResultKind.OK, "", 45.0),
                        NodeOutcome(
                            "fetch",
                            NodeState.EVALUATED,
                            ResultKind.FAILED,
                            "    Failed request GET /1.ics (calendarDataMatch):\n-SUMMARY:A\n+SUMMARY:B",
                            120.0,
                        ),
                        NodeOutcome(
                            "ctag", NodeState.MISSING_FEATURE, ResultKind.IGNORED,
                            "    Missing features: CTAG",
                        ),
                        NodeOutcome("crash", NodeState.EVALUATED, ResultKind.ERROR, "    Unexpected error: x"),
                    )
                ],
            )
        ]
    counters = ResultCounters()
    for f in files:
        counters.add(f.counters)
    return RunSummary(counters, files, 1.5, aborted=aborted, abort_reason=abort_reason)


def _passing_summary():
    return _make_summary(
        [FileOutcome("f", suites=[_suite("s", NodeOutcome("t", NodeState.EVALUATED, ResultKind.OK))])]
    )


class TestConsoleReporter:
    """Tests for ConsoleReporter."""

    def test_contains_header(self):
        assert "DAV Conformance Results" in ConsoleReporter().generate(_make_summary())

    def test_contains_summary_stats(self):
        report = ConsoleReporter().generate(_make_summary())
        assert "Total Tests: 4" in report
        assert "Passed: 1" in report
        assert "Failed: 1" in report
        assert "Errors: 1" in report
        assert "Ignored: 1" in report

    def test_shows_failure_details(self):
        report = ConsoleReporter().generate(_make_summary())
        assert "put.yaml | simple PUT | fetch" in report
        assert "+SUMMARY:B" in report
        assert "put.yaml | simple PUT | crash" in report

    def test_suite_summary_line(self):
        report = ConsoleReporter().generate(_make_summary())
        assert "Suite Results: 1 PASSED, 2 FAILED, 1 IGNORED" in report

    def test_failed_message(self):
        assert "TESTS FAILED" in ConsoleReporter().generate(_make_summary())

    def test_all_pass_message(self):
        assert "ALL TESTS PASSED" in ConsoleReporter().generate(_passing_summary())

    def test_aborted_message(self):
        summary = _make_summary(aborted=True, abort_reason="Pre-test hook setup failed")
        assert "RUN ABORTED: Pre-test hook setup failed" in ConsoleReporter().generate(summary)

    def test_no_color_when_not_tty(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert "\033[" not in ConsoleReporter().generate(_make_summary())


class TestJSONReporter:
    """Tests for JSONReporter."""

    def test_valid_json(self):
        data = json.loads(JSONReporter().generate(_make_summary()))
        assert "summary" in data
        assert "files" in data

    def test_summary(self):
        summary = json.loads(JSONReporter().generate(_make_summary()))["summary"]
        assert summary["total"] == 4
        assert summary["ok"] == 1
        assert summary["failed"] == 1
        assert summary["error"] == 1
        assert summary["ignored"] == 1
        assert summary["success"] is False
        assert summary["aborted"] is False

    def test_nested_results(self):
        data = json.loads(JSONReporter().generate(_make_summary()))
        suite = data["files"][0]["suites"][0]
        assert suite["name"] == "simple PUT"
        assert suite["result"] == "failed"
        assert suite["counters"] == {"ok": 1, "failed": 1, "error": 1, "ignored": 1}
        ctag = suite["tests"][2]
        assert ctag["state"] == "missing_feature"
        assert ctag["result"] == "ignored"
        assert ctag["details"] == "    Missing features: CTAG"


class TestJUnitReporter:
    """Tests for JUnitReporter."""

    def test_valid_xml(self):
        root = ET.fromstring(JUnitReporter().generate(_make_summary()))
        assert root.tag == "testsuites"
        assert root.get("tests") == "4"
        assert root.get("failures") == "1"
        assert root.get("errors") == "1"
        assert root.get("skipped") == "1"

    def test_one_testsuite_per_suite(self):
        root = ET.fromstring(JUnitReporter().generate(_make_summary()))
        suites = root.findall("testsuite")
        assert len(suites) == 1
        assert suites[0].get("name") == "put.yaml | simple PUT"
        assert len(suites[0].findall("testcase")) == 4

    def test_case_elements(self):
        root = ET.fromstring(JUnitReporter().generate(_make_summary()))
        cases = {c.get("name"): c for c in root.iter("testcase")}
        assert cases["store"].find("failure") is None
        failure = cases["fetch"].find("failure")
        assert failure.get("message") == "Failed request GET /1.ics (calendarDataMatch):"
        assert "+SUMMARY:B" in failure.text
        assert cases["crash"].find("error") is not None
        assert cases["ctag"].find("skipped").get("message") == "Missing features: CTAG"

    def test_xml_declaration(self):
        assert JUnitReporter().generate(_passing_summary()).startswith("<?xml")
