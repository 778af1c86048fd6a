"""
iCalendar equivalence verifier.
"""

import difflib
import re
from typing import Any, List, Mapping, Sequence

from icalendar import Calendar, Component

from ..filters import Field, FilterDirective, apply_filters, parse_filters, resolve_filters
from ..models import KeyedAttributes, VerifyResult
from .base import FileDataMatch

# Servers stamp these parameters on every write, so their value is meaningless
ATTENDEE_PROPERTIES = frozenset(["ATTENDEE", "X-CALENDARSERVER-ATTENDEE-COMMENT"])
DTSTAMP_PARAMETER = "X-CALENDARSERVER-DTSTAMP"
DTSTAMP_SENTINEL = "20080101T000000Z"

EMAIL_FEATURE = "EMAIL parameter"
EMAIL_FILTERS = ("ATTENDEE:EMAIL", "ORGANIZER:EMAIL")

_FOLD = re.compile(r"\r?\n[ \t]")


def _ical_text(value: Any) -> str:
    """Decoded value of a property: unescaped text, serialized form for other types."""
    if isinstance(value, str):
        return str(value)
    data = value.to_ical() if hasattr(value, "to_ical") else value
    if isinstance(data, bytes):
        return data.decode("utf-8")
    return str(data)


def _filter_value(name: str, value: Any, filters: Sequence[FilterDirective]) -> bool:
    """Filter one property value in place. Returns False when it is dropped."""
    params = getattr(value, "params", None)

    if name in ATTENDEE_PROPERTIES and params is not None and DTSTAMP_PARAMETER in params:
        params[DTSTAMP_PARAMETER] = DTSTAMP_SENTINEL

    keep, rewritten = apply_filters(
        filters,
        Field(name=name, value=_ical_text(value), params=dict(params or {})),
    )
    if not keep:
        return False

    if params is not None:
        for param in [p for p in params if p not in rewritten.params]:
            del params[param]
    return True


def remove_properties_parameters(component: Component, filters: Sequence[FilterDirective]) -> None:
    """Apply the filters to every property of component and its sub-components."""
    for name in list(component.keys()):
        values = component[name]
        multiple = isinstance(values, list)
        kept = [v for v in (values if multiple else [values]) if _filter_value(name, v, filters)]

        if not kept:
            del component[name]
        elif multiple:
            component[name] = kept if len(kept) > 1 else kept[0]

    for sub in component.subcomponents:
        remove_properties_parameters(sub, filters)


def remove_timezones(calendar: Component) -> None:
    calendar.subcomponents = [c for c in calendar.subcomponents if c.name != "VTIMEZONE"]


def parse_calendar(data: str) -> Calendar:
    """
    Parse iCalendar text.

    Raises:
        ValueError: If data is not a single VCALENDAR object
    """
    calendar = Calendar.from_ical(data)
    if getattr(calendar, "name", None) != "VCALENDAR":
        raise ValueError(f"expected VCALENDAR, got {getattr(calendar, 'name', None)}")
    return calendar


def calendar_lines(calendar: Component) -> List[str]:
    """Serialize to unfolded content lines in a stable order."""
    text = calendar.to_ical().decode("utf-8")
    return [line for line in _FOLD.sub("", text).splitlines() if line]


def normalize_calendar(data: str, filters: Sequence[FilterDirective] = ()) -> List[str]:
    calendar = parse_calendar(data)
    remove_properties_parameters(calendar, filters)
    remove_timezones(calendar)
    return calendar_lines(calendar)


class CalendarDataMatch(FileDataMatch):
    """
    Checks the response body is the same calendar object as an expected-data file.

    Filters are cumulative: every directive that applies to a property is
    applied. Time zone components never take part in the comparison.
    """

    name = "calendarDataMatch"
    default_status = (200, 201, 207)

    def default_filters(self) -> List[FilterDirective]:
        filters: List[FilterDirective] = []
        if not self.feature_supported(EMAIL_FEATURE):
            filters.extend(parse_filters(list(EMAIL_FILTERS)))
        filters.extend(self.server.calendar_data_filters)
        return resolve_filters(filters)

    def compare(
        self,
        uri: str,
        response_headers: Mapping[str, str],
        status: int,
        body: str,
        args: KeyedAttributes,
        fixture_path: str,
        filters: List[FilterDirective],
        data: str,
    ) -> VerifyResult:
        try:
            response_lines = normalize_calendar(body, filters)
        except Exception as e:
            return VerifyResult.failure(f"        Response data is not calendar data: {e}")

        try:
            expected_lines = normalize_calendar(data, filters)
        except Exception as e:
            return VerifyResult.failure(
                f"        Data file {fixture_path} is not calendar data: {e}"
            )

        diff = list(
            difflib.unified_diff(
                response_lines,
                expected_lines,
                fromfile="Response",
                tofile="Expected",
                n=0,
                lineterm="",
            )
        )
        if not diff:
            return VerifyResult()

        result = VerifyResult.failure("        Response data does not exactly match file data")
        for line in diff:
            result.append(line)
        return result
