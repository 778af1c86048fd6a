"""
Test nodes, suites and suite-definition files.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .client import DAVClient
from .exceptions import DAVConnectionError, DAVTimeoutError
from .models import KeyedAttributes, NodeOutcome, NodeState, ResultKind, SuiteOutcome
from .serverinfo import ServerInfo
from .verifiers import create_verifier

logger = logging.getLogger(__name__)

IGNORED_DETAILS = "    Deliberately ignored"


@dataclass
class RunContext:
    """Collaborators shared by every node of a run."""

    client: DAVClient
    server: ServerInfo


@dataclass
class VerifySpec:
    """One verifier invocation on a response."""

    callback: str
    args: KeyedAttributes = field(default_factory=KeyedAttributes)


@dataclass
class RequestSpec:
    """One HTTP exchange of a test node."""

    method: str
    ruri: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    body_file: Optional[str] = None
    content_type: Optional[str] = None
    if_match: bool = False
    verifies: List[VerifySpec] = field(default_factory=list)

    def build(self, server: ServerInfo) -> Tuple[str, Dict[str, str], Optional[str]]:
        """Substituted (uri, headers, body) for this request."""
        uri = server.subs(self.ruri) or ""
        headers = {k: server.subs(v) or "" for k, v in self.headers.items()}
        if self.body_file:
            body: Optional[str] = server.read_data(self.body_file)
        else:
            body = server.subs(self.body)
        if self.content_type and body is not None:
            headers.setdefault("Content-Type", self.content_type)
        return uri, headers, body


@dataclass
class Gated:
    """Gating flags shared by nodes and suites."""

    name: str
    ignore: bool = False
    only: bool = False
    http_trace: bool = False
    require_features: List[str] = field(default_factory=list)
    exclude_features: List[str] = field(default_factory=list)

    def gate(self, server: ServerInfo, only_active: bool) -> Optional[Tuple[NodeState, str]]:
        """
        Decide whether this item is skipped.

        Args:
            server: Server whose capabilities are checked
            only_active: True if a sibling is marked only

        Returns:
            (state, details) when skipped, None when the item should run
        """
        if self.ignore or (only_active and not self.only):
            return NodeState.IGNORED, IGNORED_DETAILS

        missing = server.missing_features(self.require_features)
        if missing:
            return NodeState.MISSING_FEATURE, f"    Missing features: {', '.join(missing)}"

        excluded = server.excluded_features(self.exclude_features)
        if excluded:
            return NodeState.EXCLUDED_FEATURE, f"    Excluded features: {', '.join(excluded)}"

        return None


@dataclass
class TestNode(Gated):
    """A single scenario: a sequence of requests, each with its verifiers."""

    __test__ = False

    description: str = ""
    requests: List[RequestSpec] = field(default_factory=list)

    def run(self, ctx: RunContext, etags: Dict[str, str], only_active: bool) -> NodeOutcome:
        """
        Run this node.

        Args:
            ctx: Run collaborators
            etags: Suite-scoped map of URI to last seen ETag
            only_active: True if a sibling node is marked only

        Returns:
            NodeOutcome with exactly one ResultKind
        """
        skipped = self.gate(ctx.server, only_active)
        if skipped:
            state, details = skipped
            return NodeOutcome(self.name, state, ResultKind.IGNORED, details)

        start_time = time.time()
        with ctx.client.tracing(self.http_trace):
            result, details = self._evaluate(ctx, etags)
        duration_ms = (time.time() - start_time) * 1000

        return NodeOutcome(self.name, NodeState.EVALUATED, result, details, duration_ms)

    def _evaluate(self, ctx: RunContext, etags: Dict[str, str]) -> Tuple[ResultKind, str]:
        try:
            for request in self.requests:
                uri, headers, body = request.build(ctx.server)
                if request.if_match and uri in etags:
                    headers["If-Match"] = etags[uri]

                response = ctx.client.request(request.method, uri, headers, body)

                etag = response.headers.get("ETag")
                if etag:
                    etags[uri] = etag

                for spec in request.verifies:
                    verifier = create_verifier(spec.callback, ctx.server)
                    verified = verifier.verify(
                        uri, response.headers, response.status, response.body, spec.args
                    )
                    if not verified.ok:
                        return ResultKind.FAILED, (
                            f"    Failed request {request.method} {uri} ({spec.callback}):\n"
                            f"{verified.message}"
                        )
            return ResultKind.OK, ""

        except (DAVConnectionError, DAVTimeoutError) as e:
            return ResultKind.FAILED, f"    Request failed: {e}"
        except Exception as e:
            logger.exception("Unexpected error in test %s", self.name)
            return ResultKind.ERROR, f"    Unexpected error: {e}"


@dataclass
class TestSuite(Gated):
    """An ordered group of nodes sharing gating and an ETag map."""

    __test__ = False

    change_uid: bool = False
    tests: List[TestNode] = field(default_factory=list)

    def run(
        self,
        ctx: RunContext,
        only_active: bool = False,
        on_result: Optional[Callable[[NodeOutcome], None]] = None,
    ) -> SuiteOutcome:
        """
        Run every node in order.

        Args:
            ctx: Run collaborators
            only_active: True if a sibling suite in the same file is marked only
            on_result: Called with each node outcome as soon as it is recorded

        Returns:
            SuiteOutcome holding one outcome per node
        """
        outcome = SuiteOutcome(self.name)

        def record(node_outcome: NodeOutcome) -> None:
            outcome.record(node_outcome)
            if on_result is not None:
                on_result(node_outcome)

        skipped = self.gate(ctx.server, only_active)
        if skipped:
            state, details = skipped
            outcome.details = details
            outcome.result = ResultKind.IGNORED
            for test in self.tests:
                record(NodeOutcome(test.name, state, ResultKind.IGNORED, details))
            return outcome

        etags: Dict[str, str] = {}
        only_tests = any(test.only for test in self.tests)

        if self.change_uid:
            ctx.server.new_uids()

        with ctx.client.tracing(self.http_trace):
            for test in self.tests:
                logger.debug("Running test %s | %s", self.name, test.name)
                record(test.run(ctx, etags, only_tests))

        if outcome.counters.has_failures:
            outcome.result = ResultKind.FAILED
        elif outcome.counters.ok:
            outcome.result = ResultKind.OK
        else:
            outcome.result = ResultKind.IGNORED
        return outcome


@dataclass
class TestFile:
    """The suites loaded from one suite-definition file."""

    __test__ = False

    name: str
    path: str = ""
    ignore_all: bool = False
    suites: List[TestSuite] = field(default_factory=list)

    @property
    def has_only(self) -> bool:
        return any(suite.only for suite in self.suites)
