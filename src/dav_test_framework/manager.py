"""
Run manager sequencing suite-definition files against a server.
"""

import logging
import time
from typing import List, Optional, Sequence, Tuple

from .client import DAVClient
from .config import ServerConfig
from .loader import load_test_file
from .models import (
    FileOutcome,
    KeyedAttributes,
    NodeOutcome,
    ResultCounters,
    RunSummary,
    SuiteOutcome,
)
from .observers import ResultsObserver
from .serverinfo import ServerInfo
from .suite import RunContext, TestFile

logger = logging.getLogger(__name__)


class RunManager:
    """
    Orchestrates one run: loads files, runs hooks and suites, totals the verdicts.

    Pass/fail is decided by suites and nodes; the manager only folds their
    returned outcomes into the run counters and informs observers.
    """

    def __init__(
        self,
        config: ServerConfig,
        observers: Optional[Sequence[ResultsObserver]] = None,
        stop_on_fail: Optional[bool] = None,
    ):
        self.config = config
        self.observers: List[ResultsObserver] = list(observers or [])
        self.stop_on_fail = config.stop_on_fail if stop_on_fail is None else stop_on_fail
        self.files: List[TestFile] = []
        self.pretest: Optional[TestFile] = None
        self.posttest: Optional[TestFile] = None

    # Notifications

    def message(self, message: str, payload: Optional[KeyedAttributes] = None) -> None:
        """Send a notification to every observer. Observer errors never stop the run."""
        for observer in self.observers:
            try:
                observer.process(message, payload)
            except Exception:
                logger.exception(
                    "Observer %s failed processing '%s'", type(observer).__name__, message
                )

    def trace(self, text: str) -> None:
        self.message("trace", KeyedAttributes({"message": text}))

    def _load_progress(self, name: Optional[str], current: int, total: int) -> None:
        self.message(
            "load", KeyedAttributes({"name": name, "current": current, "total": total})
        )

    # Loading

    def load(
        self,
        test_files: Sequence[str],
        pretest: Optional[str] = None,
        posttest: Optional[str] = None,
        all_mode: bool = False,
    ) -> None:
        """
        Load suite-definition files and hooks.

        Args:
            test_files: Ordered suite-definition file paths
            pretest: Optional hook file run before each test file
            posttest: Optional hook file run after each test file
            all_mode: Skip files marked ignore_all

        Raises:
            ConfigurationError: If any file is malformed
            FileNotFoundError: If any file is missing
        """
        total = len(test_files)
        for current, path in enumerate(test_files, start=1):
            self._load_progress(path, current, total)
            test_file = load_test_file(path)
            if all_mode and test_file.ignore_all:
                logger.info("Skipping %s: ignore_all is set", path)
                continue
            self.files.append(test_file)

        if pretest:
            self.pretest = load_test_file(pretest)
        if posttest:
            self.posttest = load_test_file(posttest)

        self._load_progress(None, total + 1, total)

    # Running

    def _run_suite(
        self, ctx: RunContext, test_file: TestFile, suite_index: int
    ) -> SuiteOutcome:
        suite = test_file.suites[suite_index]

        # Announced before any node runs; details are known only for skipped suites
        skipped = suite.gate(ctx.server, test_file.has_only)
        self.message(
            "testSuite",
            KeyedAttributes(
                {
                    "file": test_file.name,
                    "name": suite.name,
                    "details": skipped[1] if skipped else "",
                }
            ),
        )

        def report(node: NodeOutcome) -> None:
            self.message(
                "testResult",
                KeyedAttributes(
                    {
                        "suite": suite.name,
                        "name": node.name,
                        "details": node.details,
                        "result": node.result.value,
                        "duration_ms": node.duration_ms,
                    }
                ),
            )

        outcome = suite.run(ctx, test_file.has_only, on_result=report)
        self.trace(outcome.summary_line())
        return outcome

    def _run_file(
        self,
        ctx: RunContext,
        test_file: TestFile,
        counters: ResultCounters,
        hook: bool = False,
    ) -> Tuple[FileOutcome, bool]:
        """
        Run every suite of a file, folding results into counters.

        Returns:
            Tuple of (file outcome, True if stop-on-fail ended the file early)
        """
        logger.info("Executing %s%s", "hook " if hook else "", test_file.name)
        self.message("testFile", KeyedAttributes({"name": test_file.name, "path": test_file.path}))

        file_outcome = FileOutcome(test_file.name, hook=hook)
        for index in range(len(test_file.suites)):
            outcome = self._run_suite(ctx, test_file, index)
            file_outcome.suites.append(outcome)
            counters.add(outcome.counters)

            if self.stop_on_fail and not hook and outcome.counters.has_failures:
                logger.info("Stopping after failures in suite %s", outcome.name)
                return file_outcome, True

        return file_outcome, False

    def run_all(self) -> RunSummary:
        """
        Run every loaded file in order.

        Hook failures abort the remaining run; the summary is then marked
        aborted and holds the results gathered up to that point.

        Returns:
            RunSummary with totals over all four result kinds
        """
        self.message("start")
        start_time = time.time()

        counters = ResultCounters()
        outcomes: List[FileOutcome] = []
        aborted = False
        abort_reason = ""

        server = ServerInfo.from_config(self.config)
        logger.info("Running %d test files against %s", len(self.files), self.config.server_url)

        with DAVClient(
            base_url=self.config.server_url,
            timeout=self.config.timeout_seconds,
            username=self.config.username,
            password=self.config.password,
            max_retries=self.config.max_retries,
        ) as client:
            ctx = RunContext(client=client, server=server)
            total = len(self.files)

            for index, test_file in enumerate(self.files, start=1):
                if total > 1:
                    self.message("testProgress", KeyedAttributes({"count": index, "total": total}))

                if self.pretest is not None:
                    hook_outcome, _ = self._run_file(ctx, self.pretest, counters, hook=True)
                    outcomes.append(hook_outcome)
                    # Hooks establish preconditions for everything else
                    if hook_outcome.counters.has_failures:
                        aborted = True
                        abort_reason = f"Pre-test hook {self.pretest.name} failed"
                        break

                file_outcome, stopped = self._run_file(ctx, test_file, counters)
                outcomes.append(file_outcome)
                if stopped:
                    break

                if self.posttest is not None:
                    hook_outcome, _ = self._run_file(ctx, self.posttest, counters, hook=True)
                    outcomes.append(hook_outcome)
                    if hook_outcome.counters.has_failures:
                        aborted = True
                        abort_reason = f"Post-test hook {self.posttest.name} failed"
                        break

        if aborted:
            logger.error("Run aborted: %s", abort_reason)
            self.trace(f"Run aborted: {abort_reason}")

        self.message("finish")

        return RunSummary(
            counters=counters,
            files=outcomes,
            duration_seconds=time.time() - start_time,
            aborted=aborted,
            abort_reason=abort_reason,
        )
