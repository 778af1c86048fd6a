"""Tests for the run manager."""

from unittest.mock import MagicMock, patch

import pytest

from src.dav_test_framework.config import ServerConfig
from src.dav_test_framework.models import DAVResponse, KeyedAttributes, ResultKind
from src.dav_test_framework.manager import RunManager
from src.dav_test_framework.observers import ResultsObserver
from src.dav_test_framework.suite import RequestSpec, TestFile, TestNode, TestSuite, VerifySpec


class RecordingObserver(ResultsObserver):
    def __init__(self):
        self.messages = []

    def process(self, message, payload):
        self.messages.append((message, payload))

    def names(self):
        return [m for m, _ in self.messages]


class BrokenObserver(ResultsObserver):
    def process(self, message, payload):
        raise RuntimeError("observer broke")


def node(name, ruri, **kwargs):
    return TestNode(
        name=name,
        requests=[RequestSpec("GET", ruri, verifies=[VerifySpec("statusCode")])],
        **kwargs,
    )


def suite(name, *nodes, **kwargs):
    return TestSuite(name=name, tests=list(nodes), **kwargs)


@pytest.fixture
def dav_client():
    """Patch DAVClient in the manager; requests to /fail* answer 500."""
    client = MagicMock()

    def respond(method, uri, headers=None, body=None):
        status = 500 if uri.startswith("/fail") else 200
        return DAVResponse(uri=uri, status=status, headers={}, body="")

    client.request.side_effect = respond
    with patch("src.dav_test_framework.manager.DAVClient") as mock_cls:
        mock_cls.return_value.__enter__.return_value = client
        yield client


def requested_uris(client):
    return [c.args[1] for c in client.request.call_args_list]


class TestRunManagerRun:
    """Tests for RunManager.run_all."""

    def test_totals_over_files(self, dav_client):
        manager = RunManager(ServerConfig())
        manager.files = [
            TestFile("one", suites=[suite("a", node("ok", "/a"), node("bad", "/fail"))]),
            TestFile("two", suites=[suite("b", node("skip", "/b", ignore=True))]),
        ]
        summary = manager.run_all()

        assert (summary.counters.ok, summary.counters.failed, summary.counters.ignored) == (1, 1, 1)
        assert summary.counters.total == 3
        assert summary.success is False
        assert summary.aborted is False
        assert [f.name for f in summary.files] == ["one", "two"]

    def test_ignored_suite_not_evaluated(self, dav_client):
        manager = RunManager(ServerConfig())
        manager.files = [
            TestFile(
                "f",
                suites=[suite("s", node("a", "/a"), node("b", "/b"), node("c", "/c"), ignore=True)],
            )
        ]
        summary = manager.run_all()

        assert (summary.counters.ok, summary.counters.failed, summary.counters.ignored) == (0, 0, 3)
        dav_client.request.assert_not_called()

    def test_missing_feature(self, dav_client):
        manager = RunManager(ServerConfig(features=["calendar-access"]))
        manager.files = [TestFile("f", suites=[suite("s", node("ctag", "/a", require_features=["CTAG"]))])]
        summary = manager.run_all()

        outcome = summary.files[0].suites[0].nodes[0]
        assert outcome.result == ResultKind.IGNORED
        assert outcome.details == "    Missing features: CTAG"

    def test_failing_pretest_aborts_run(self, dav_client):
        manager = RunManager(ServerConfig())
        manager.pretest = TestFile("setup", suites=[suite("hook", node("prepare", "/fail-setup"))])
        manager.files = [
            TestFile("main", suites=[suite("a", node("x", "/a")), suite("b", node("y", "/b"))]),
            TestFile("more", suites=[suite("c", node("z", "/c"))]),
        ]
        summary = manager.run_all()

        assert summary.aborted is True
        assert "setup" in summary.abort_reason
        assert (summary.counters.ok, summary.counters.failed, summary.counters.ignored) == (0, 1, 0)
        assert requested_uris(dav_client) == ["/fail-setup"]
        assert [f.name for f in summary.files] == ["setup"]
        assert summary.files[0].hook is True

    def test_failing_posttest_aborts_remaining_files(self, dav_client):
        manager = RunManager(ServerConfig())
        manager.posttest = TestFile("cleanup", suites=[suite("hook", node("clean", "/fail-clean"))])
        manager.files = [
            TestFile("first", suites=[suite("a", node("x", "/a"))]),
            TestFile("second", suites=[suite("b", node("y", "/b"))]),
        ]
        summary = manager.run_all()

        assert summary.aborted is True
        assert requested_uris(dav_client) == ["/a", "/fail-clean"]
        assert (summary.counters.ok, summary.counters.failed) == (1, 1)

    def test_hooks_run_around_each_file(self, dav_client):
        manager = RunManager(ServerConfig())
        manager.pretest = TestFile("setup", suites=[suite("pre", node("p", "/setup"))])
        manager.posttest = TestFile("cleanup", suites=[suite("post", node("q", "/cleanup"))])
        manager.files = [
            TestFile("first", suites=[suite("a", node("x", "/a"))]),
            TestFile("second", suites=[suite("b", node("y", "/b"))]),
        ]
        summary = manager.run_all()

        assert requested_uris(dav_client) == [
            "/setup", "/a", "/cleanup", "/setup", "/b", "/cleanup",
        ]
        assert summary.counters.ok == 6
        assert summary.success is True

    def test_stop_on_fail(self, dav_client):
        manager = RunManager(ServerConfig(), stop_on_fail=True)
        manager.files = [
            TestFile(
                "first",
                suites=[suite("a", node("x", "/fail"), node("y", "/a")), suite("b", node("z", "/b"))],
            ),
            TestFile("second", suites=[suite("c", node("w", "/c"))]),
        ]
        summary = manager.run_all()

        # The failing suite finishes, nothing after it runs
        assert requested_uris(dav_client) == ["/fail", "/a"]
        assert summary.aborted is False
        assert summary.counters.total == 2

    def test_stop_on_fail_from_config(self):
        assert RunManager(ServerConfig(stop_on_fail=True)).stop_on_fail is True
        assert RunManager(ServerConfig(stop_on_fail=True), stop_on_fail=False).stop_on_fail is False

    def test_only_suite_in_file(self, dav_client):
        manager = RunManager(ServerConfig())
        manager.files = [
            TestFile("f", suites=[suite("a", node("x", "/a")), suite("b", node("y", "/b"), only=True)])
        ]
        summary = manager.run_all()

        assert requested_uris(dav_client) == ["/b"]
        assert summary.counters.ignored == 1
        assert summary.counters.ok == 1

    def test_fresh_uids_each_run(self, dav_client):
        manager = RunManager(ServerConfig())
        manager.files = [TestFile("f", suites=[suite("s", node("x", "/cal/$uid1:.ics"))])]
        manager.run_all()
        manager.run_all()

        first, second = requested_uris(dav_client)
        assert first != second
        assert "$uid1:" not in first

    def test_client_built_from_config(self):
        config = ServerConfig(server_url="http://cal:8080", username="u", password="p", timeout_seconds=5)
        with patch("src.dav_test_framework.manager.DAVClient") as mock_cls:
            RunManager(config).run_all()
        mock_cls.assert_called_once_with(
            base_url="http://cal:8080", timeout=5, username="u", password="p", max_retries=3
        )


class TestRunManagerMessages:
    """Tests for observer notifications."""

    def test_message_sequence(self, dav_client):
        observer = RecordingObserver()
        manager = RunManager(ServerConfig(), observers=[observer])
        manager.files = [TestFile("f", suites=[suite("s", node("x", "/a"))])]
        manager.run_all()

        assert observer.names() == ["start", "testFile", "testSuite", "testResult", "trace", "finish"]
        trace = observer.messages[4][1]
        assert trace.get_only("message") == "  Suite Results: 1 PASSED, 0 FAILED, 0 IGNORED"
        result = observer.messages[3][1]
        assert result.get_only("name") == "x"
        assert result.get_only("result") == "ok"

    def test_results_reported_while_suite_runs(self, dav_client):
        observer = RecordingObserver()
        seen_at_request = []
        respond = dav_client.request.side_effect

        def recording_respond(method, uri, headers=None, body=None):
            seen_at_request.append((uri, observer.names()))
            return respond(method, uri, headers, body)

        dav_client.request.side_effect = recording_respond
        manager = RunManager(ServerConfig(), observers=[observer])
        manager.files = [TestFile("f", suites=[suite("s", node("x", "/a"), node("y", "/b"))])]
        manager.run_all()

        (first_uri, before_first), (second_uri, before_second) = seen_at_request
        assert first_uri == "/a"
        assert before_first[-1] == "testSuite"
        assert "testResult" not in before_first
        assert second_uri == "/b"
        assert before_second.count("testResult") == 1

    def test_skipped_suite_announced_with_details(self, dav_client):
        observer = RecordingObserver()
        manager = RunManager(ServerConfig(), observers=[observer])
        skipped = suite("ctag", node("x", "/a"), require_features=["CTAG"])
        manager.files = [TestFile("f", suites=[skipped])]
        manager.run_all()

        announced = [p for m, p in observer.messages if m == "testSuite"]
        assert announced[0].get_only("details") == "    Missing features: CTAG"
        results = [p for m, p in observer.messages if m == "testResult"]
        assert results[0].get_only("result") == ResultKind.IGNORED.value

    def test_progress_for_multiple_files(self, dav_client):
        observer = RecordingObserver()
        manager = RunManager(ServerConfig(), observers=[observer])
        manager.files = [TestFile("a"), TestFile("b")]
        manager.run_all()

        progress = [p for m, p in observer.messages if m == "testProgress"]
        assert [(p.get_only("count"), p.get_only("total")) for p in progress] == [(1, 2), (2, 2)]

    def test_abort_traced(self, dav_client):
        observer = RecordingObserver()
        manager = RunManager(ServerConfig(), observers=[observer])
        manager.pretest = TestFile("setup", suites=[suite("hook", node("p", "/fail"))])
        manager.files = [TestFile("f")]
        manager.run_all()

        traces = [p.get_only("message") for m, p in observer.messages if m == "trace"]
        assert traces[-1] == "Run aborted: Pre-test hook setup failed"
        assert observer.names()[-1] == "finish"

    def test_observer_errors_do_not_stop_run(self, dav_client):
        recorder = RecordingObserver()
        manager = RunManager(ServerConfig(), observers=[BrokenObserver(), recorder])
        manager.files = [TestFile("f", suites=[suite("s", node("x", "/a"))])]
        summary = manager.run_all()

        assert summary.counters.ok == 1
        assert recorder.names()[0] == "start"
        assert recorder.names()[-1] == "finish"

    def test_trace_helper(self):
        observer = RecordingObserver()
        RunManager(ServerConfig(), observers=[observer]).trace("hello")
        assert observer.messages == [("trace", KeyedAttributes({"message": "hello"}))]


SIMPLE_FILE = """
name: {name}
ignore_all: {ignore_all}
suites:
  - name: s
    tests:
      - name: t
"""


class TestRunManagerLoad:
    """Tests for RunManager.load."""

    def test_load_files_and_hooks(self, tmp_path):
        paths = []
        for name in ("one", "two"):
            path = tmp_path / f"{name}.yaml"
            path.write_text(SIMPLE_FILE.format(name=name, ignore_all="no"))
            paths.append(str(path))
        hook = tmp_path / "hook.yaml"
        hook.write_text(SIMPLE_FILE.format(name="hook", ignore_all="no"))

        observer = RecordingObserver()
        manager = RunManager(ServerConfig(), observers=[observer])
        manager.load(paths, pretest=str(hook), posttest=str(hook))

        assert [f.name for f in manager.files] == ["one", "two"]
        assert manager.pretest.name == "hook"
        assert manager.posttest.name == "hook"
        loads = [p for m, p in observer.messages if m == "load"]
        assert loads[0].get_only("name") == paths[0]
        assert loads[-1].get_only("name") is None

    def test_all_mode_skips_ignore_all(self, tmp_path):
        keep = tmp_path / "keep.yaml"
        keep.write_text(SIMPLE_FILE.format(name="keep", ignore_all="no"))
        skip = tmp_path / "skip.yaml"
        skip.write_text(SIMPLE_FILE.format(name="skip", ignore_all="yes"))

        manager = RunManager(ServerConfig())
        manager.load([str(keep), str(skip)], all_mode=True)
        assert [f.name for f in manager.files] == ["keep"]

        manager = RunManager(ServerConfig())
        manager.load([str(keep), str(skip)])
        assert [f.name for f in manager.files] == ["keep", "skip"]
