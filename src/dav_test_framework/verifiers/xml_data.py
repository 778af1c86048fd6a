"""
XML equivalence verifier.
"""

import xml.etree.ElementTree as ET
from typing import List, Mapping, Sequence

from ..filters import Field, FilterDirective, apply_filters
from ..models import KeyedAttributes, VerifyResult
from .base import FileDataMatch


def _filter_element(element: ET.Element, filters: Sequence[FilterDirective]) -> None:
    """Drop child elements and attributes matching the filters, recursively."""
    for child in list(element):
        keep, rewritten = apply_filters(
            filters,
            Field(name=child.tag, value=(child.text or "").strip(), params=dict(child.attrib)),
        )
        if not keep:
            element.remove(child)
            continue
        for attr in [a for a in child.attrib if a not in rewritten.params]:
            del child.attrib[attr]
        _filter_element(child, filters)


def normalize_xml(data: str, filters: Sequence[FilterDirective] = ()) -> str:
    """
    Canonical form of an XML document.

    Attributes are sorted, insignificant whitespace is stripped and namespace
    prefixes are rewritten, so documents differing only in those respects
    normalize to the same string.

    Raises:
        ET.ParseError: If data is not well-formed XML
    """
    root = ET.fromstring(data)

    # The root is never dropped, only its attributes are filtered
    _, rewritten = apply_filters(
        filters, Field(name=root.tag, value=(root.text or "").strip(), params=dict(root.attrib))
    )
    for attr in [a for a in root.attrib if a not in rewritten.params]:
        del root.attrib[attr]
    _filter_element(root, filters)

    return ET.canonicalize(
        ET.tostring(root, encoding="unicode"),
        strip_text=True,
        rewrite_prefixes=True,
    )


class XmlDataMatch(FileDataMatch):
    """Checks the response body is equivalent XML to an expected-data file."""

    name = "xmlDataMatch"
    default_status = (200, 207)

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
            normalized_response = normalize_xml(body, filters)
        except ET.ParseError as e:
            return VerifyResult.failure(f"        HTTP response is not valid XML: {e}")

        try:
            normalized_data = normalize_xml(data, filters)
        except ET.ParseError as e:
            return VerifyResult.failure(f"        Data file {fixture_path} is not valid XML: {e}")

        if normalized_response == normalized_data:
            return VerifyResult()

        return VerifyResult.failure(
            "        Response data does not exactly match file data",
            "        Response:",
            normalized_response,
            "        Expected:",
            normalized_data,
        )
