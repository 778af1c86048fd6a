"""
Data models for DAV test framework.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional


class ResultKind(Enum):
    """Verdict of a completed node or suite."""

    OK = "ok"
    FAILED = "failed"
    ERROR = "error"
    IGNORED = "ignored"


class NodeState(Enum):
    """How a node was disposed of by the gating rules."""

    IGNORED = "ignored"
    MISSING_FEATURE = "missing_feature"
    EXCLUDED_FEATURE = "excluded_feature"
    EVALUATED = "evaluated"


@dataclass
class ResultCounters:
    """One counter per ResultKind. Only ever incremented."""

    ok: int = 0
    failed: int = 0
    error: int = 0
    ignored: int = 0

    def increment(self, kind: ResultKind, count: int = 1) -> None:
        if count < 0:
            raise ValueError(f"Counters can only be incremented, got {count}")
        setattr(self, kind.value, getattr(self, kind.value) + count)

    def add(self, other: "ResultCounters") -> None:
        for kind in ResultKind:
            self.increment(kind, other[kind])

    def __getitem__(self, kind: ResultKind) -> int:
        return getattr(self, kind.value)

    @property
    def total(self) -> int:
        return self.ok + self.failed + self.error + self.ignored

    @property
    def has_failures(self) -> bool:
        return self.failed > 0 or self.error > 0


class KeyedAttributes:
    """
    Ordered mapping from a case-sensitive key to one or more values.

    Used for substitution variables, verifier arguments and observer payloads.
    Insertion order is kept for display only.
    """

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, List[Any]] = {}
        if initial:
            for key, value in initial.items():
                self.put(key, value)

    def put(self, key: str, value: Any) -> None:
        """Replace all values of key. Lists and tuples become multiple values."""
        if isinstance(value, (list, tuple)):
            self._data[key] = list(value)
        else:
            self._data[key] = [value]

    def add(self, key: str, value: Any) -> None:
        """Append a value to key."""
        self._data.setdefault(key, []).append(value)

    def get(self, key: str) -> List[Any]:
        return list(self._data.get(key, []))

    def get_only(self, key: str, default: Any = None) -> Any:
        """Return the single value of key, or default when absent."""
        values = self._data.get(key)
        if not values:
            return default
        if len(values) > 1:
            raise ValueError(f"Expected one value for '{key}', got {len(values)}")
        return values[0]

    def get_ints(self, key: str, *defaults: int) -> List[int]:
        """Return the values of key as ints, or the defaults when key is absent."""
        values = self._data.get(key)
        if not values:
            return list(defaults)
        return [int(v) for v in values]

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get_only(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("yes", "true", "1", "on")

    def copy(self) -> "KeyedAttributes":
        clone = KeyedAttributes()
        for key, values in self._data.items():
            clone._data[key] = list(values)
        return clone

    def to_dict(self) -> Dict[str, Any]:
        """Flatten single-valued keys for display and JSON output."""
        return {k: (v[0] if len(v) == 1 else list(v)) for k, v in self._data.items()}

    def items(self) -> Iterable:
        return [(k, list(v)) for k, v in self._data.items()]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyedAttributes):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"KeyedAttributes({self.to_dict()!r})"


@dataclass
class VerifyResult:
    """Outcome of one verifier call. Passing only when no text was appended."""

    ok: bool = True
    text: List[str] = field(default_factory=list)

    @classmethod
    def failure(cls, *lines: str) -> "VerifyResult":
        result = cls()
        for line in lines:
            result.append(line)
        return result

    def append(self, line: str) -> None:
        self.ok = False
        self.text.append(line)

    def extend(self, other: "VerifyResult") -> None:
        for line in other.text:
            self.append(line)
        if not other.ok:
            self.ok = False

    @property
    def message(self) -> str:
        return "\n".join(self.text)


@dataclass
class DAVResponse:
    """Response received from the server under test."""

    uri: str
    status: int
    headers: Mapping[str, str]
    body: str
    duration_ms: float = 0.0


@dataclass
class NodeOutcome:
    """Verdict of a single test node."""

    name: str
    state: NodeState
    result: ResultKind
    details: str = ""
    duration_ms: float = 0.0


@dataclass
class SuiteOutcome:
    """Verdict of a test suite and all its nodes."""

    name: str
    details: str = ""
    result: Optional[ResultKind] = None
    nodes: List[NodeOutcome] = field(default_factory=list)
    counters: ResultCounters = field(default_factory=ResultCounters)

    def record(self, outcome: NodeOutcome) -> None:
        self.nodes.append(outcome)
        self.counters.increment(outcome.result)

    def summary_line(self) -> str:
        failed = self.counters.failed + self.counters.error
        return (
            f"  Suite Results: {self.counters.ok} PASSED, "
            f"{failed} FAILED, {self.counters.ignored} IGNORED"
        )


@dataclass
class FileOutcome:
    """Outcomes of all suites loaded from one suite-definition file."""

    name: str
    suites: List[SuiteOutcome] = field(default_factory=list)
    hook: bool = False

    @property
    def counters(self) -> ResultCounters:
        counters = ResultCounters()
        for suite in self.suites:
            counters.add(suite.counters)
        return counters


@dataclass
class RunSummary:
    """Aggregated result of one run invocation."""

    counters: ResultCounters
    files: List[FileOutcome]
    duration_seconds: float
    aborted: bool = False
    abort_reason: str = ""

    @property
    def success(self) -> bool:
        """Return True if nothing failed or errored and the run was not aborted."""
        return not self.counters.has_failures and not self.aborted

    def iter_nodes(self) -> Iterator[tuple]:
        """Yield (file, suite, node) outcome triples in run order."""
        for file_outcome in self.files:
            for suite in file_outcome.suites:
                for node in suite.nodes:
                    yield file_outcome, suite, node
