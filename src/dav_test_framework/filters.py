"""
Filter directives applied to response and fixture fields before comparison.

A directive is a short token::

    NAME          drop the field NAME
    !NAME         cancel an active drop whose text is NAME
    NAME:PARAM    drop parameter PARAM from field NAME, keep the field
    NAME=VALUE    drop field NAME only when its value is exactly VALUE

NAME may start with a ``{namespace}`` part (Clark notation for XML element
names). Characters inside the braces never split the directive.
"""

from dataclasses import dataclass, field, replace
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class Field:
    """A named value with parameters, as seen by the filters."""

    name: str
    value: str = ""
    params: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DropField:
    name: str

    @property
    def key(self) -> str:
        return self.name

    def apply(self, target: Field) -> Tuple[bool, Field]:
        return target.name != self.name, target


@dataclass(frozen=True)
class DropFieldParam:
    field: str
    param: str

    @property
    def key(self) -> str:
        return f"{self.field}:{self.param}"

    def apply(self, target: Field) -> Tuple[bool, Field]:
        if target.name != self.field or self.param not in target.params:
            return True, target
        params = {k: v for k, v in target.params.items() if k != self.param}
        return True, replace(target, params=params)


@dataclass(frozen=True)
class DropFieldIf:
    field: str
    value: str

    @property
    def key(self) -> str:
        return f"{self.field}={self.value}"

    def apply(self, target: Field) -> Tuple[bool, Field]:
        return not (target.name == self.field and target.value == self.value), target


@dataclass(frozen=True)
class Negate:
    """Cancels every drop directive whose key equals target."""

    target: str

    @property
    def key(self) -> str:
        return f"!{self.target}"

    def apply(self, target: Field) -> Tuple[bool, Field]:
        return True, target


FilterDirective = Union[DropField, DropFieldParam, DropFieldIf, Negate]


def _split_point(text: str) -> Optional[int]:
    """Index of the first ':' or '=' after the (optionally braced) name."""
    start = 0
    if text.startswith("{"):
        close = text.find("}")
        if close == -1:
            raise ValueError(f"Unterminated namespace in filter '{text}'")
        start = close + 1

    positions = [p for p in (text.find(":", start), text.find("=", start)) if p != -1]
    return min(positions) if positions else None


def parse_filter(text: str) -> FilterDirective:
    """
    Parse a single directive.

    Raises:
        ValueError: If the directive is empty or has an empty name or parameter
    """
    text = text.strip()
    if not text:
        raise ValueError("Empty filter directive")

    if text.startswith("!"):
        target = text[1:].strip()
        if not target:
            raise ValueError("Negated filter directive has no name")
        # Validate the cancelled directive has a legal shape
        parse_filter(target)
        return Negate(target)

    split = _split_point(text)
    if split is None:
        return DropField(text)

    name, separator, rest = text[:split], text[split], text[split + 1 :]
    if not name:
        raise ValueError(f"Filter directive '{text}' has no field name")

    if separator == ":":
        if not rest:
            raise ValueError(f"Filter directive '{text}' has no parameter name")
        return DropFieldParam(name, rest)

    return DropFieldIf(name, rest)


def parse_filters(texts: Union[str, Iterable[str], None]) -> List[FilterDirective]:
    """Parse a space-separated string or a list of (space-separated) strings."""
    if texts is None:
        return []
    if isinstance(texts, str):
        texts = [texts]

    directives: List[FilterDirective] = []
    for text in texts:
        for token in str(text).split():
            directives.append(parse_filter(token))
    return directives


def resolve_filters(
    defaults: Sequence[FilterDirective],
    directives: Sequence[FilterDirective] = (),
) -> List[FilterDirective]:
    """
    Merge environment defaults with node directives and apply cancellations.

    Negations always win over drops with the same key, wherever they appear.
    The result holds only drop directives, defaults first, without duplicates.
    """
    combined = list(defaults) + list(directives)
    cancelled = {d.target for d in combined if isinstance(d, Negate)}

    active: List[FilterDirective] = []
    seen = set()
    for directive in combined:
        if isinstance(directive, Negate) or directive.key in cancelled:
            continue
        if directive.key in seen:
            continue
        seen.add(directive.key)
        active.append(directive)
    return active


def apply_filters(directives: Sequence[FilterDirective], target: Field) -> Tuple[bool, Field]:
    """
    Run every applicable directive over a field.

    Returns:
        Tuple of (keep, rewritten field). The field is returned unchanged when
        it is dropped.
    """
    current = target
    for directive in resolve_filters(directives):
        keep, current = directive.apply(current)
        if not keep:
            return False, target
    return True, current
