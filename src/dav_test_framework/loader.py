"""
Loading suite-definition files.

A suite-definition file is YAML::

    name: put and get
    ignore_all: false
    suites:
      - name: simple PUT
        change_uid: true
        require_features: [caldav]
        tests:
          - name: store event
            requests:
              - method: PUT
                ruri: $calendarpath1:/1.ics
                data:
                  content_type: text/calendar; charset=utf-8
                  filepath: Resource/put/1.ics
                verify:
                  - callback: statusCode
              - method: GET
                ruri: $calendarpath1:/1.ics
                verify:
                  - callback: calendarDataMatch
                    args:
                      filepath: Resource/put/1.ics
                      filter: [DTSTAMP]
"""

import logging
from typing import Any, Dict, List, Mapping

import yaml

from .exceptions import ConfigurationError
from .filters import parse_filters
from .models import KeyedAttributes
from .suite import RequestSpec, TestFile, TestNode, TestSuite, VerifySpec
from .verifiers import VERIFIERS

logger = logging.getLogger(__name__)


def _as_bool(value: Any, where: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("yes", "true", "1", "on"):
        return True
    if text in ("no", "false", "0", "off", ""):
        return False
    raise ConfigurationError(f"{where}: expected yes/no, got '{value}'")


def _as_list(value: Any, where: str) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, (str, int, float)):
        return [value]
    raise ConfigurationError(f"{where}: expected a list, got {type(value).__name__}")


def _as_mapping(value: Any, where: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{where}: expected a mapping, got {type(value).__name__}")
    return value


def _require_name(data: Mapping[str, Any], where: str) -> str:
    name = data.get("name")
    if not name:
        raise ConfigurationError(f"{where}: missing name")
    return str(name)


def _gates(data: Mapping[str, Any], where: str) -> Dict[str, Any]:
    return {
        "ignore": _as_bool(data.get("ignore"), where),
        "only": _as_bool(data.get("only"), where),
        "http_trace": _as_bool(data.get("http_trace"), where),
        "require_features": [str(f) for f in _as_list(data.get("require_features"), where)],
        "exclude_features": [str(f) for f in _as_list(data.get("exclude_features"), where)],
    }


def _parse_verify(data: Any, where: str) -> VerifySpec:
    data = _as_mapping(data, where)
    callback = data.get("callback")
    if callback not in VERIFIERS:
        raise ConfigurationError(
            f"{where}: unknown verifier '{callback}'. Available: {', '.join(sorted(VERIFIERS))}"
        )

    args = KeyedAttributes()
    for key, value in _as_mapping(data.get("args"), where).items():
        args.put(str(key), [str(v) for v in _as_list(value, f"{where}.args.{key}")])

    try:
        parse_filters(args.get("filter"))
    except ValueError as e:
        raise ConfigurationError(f"{where}: invalid filter: {e}")

    return VerifySpec(callback=callback, args=args)


def _parse_request(data: Any, where: str) -> RequestSpec:
    data = _as_mapping(data, where)
    method = data.get("method")
    ruri = data.get("ruri")
    if not method or not ruri:
        raise ConfigurationError(f"{where}: method and ruri are required")

    body_data = _as_mapping(data.get("data"), f"{where}.data")
    verifies = [
        _parse_verify(v, f"{where}.verify[{i}]")
        for i, v in enumerate(_as_list(data.get("verify"), where))
    ]

    return RequestSpec(
        method=str(method).upper(),
        ruri=str(ruri),
        headers={str(k): str(v) for k, v in _as_mapping(data.get("headers"), where).items()},
        body=body_data.get("body"),
        body_file=body_data.get("filepath"),
        content_type=body_data.get("content_type"),
        if_match=_as_bool(data.get("if_match"), where),
        verifies=verifies,
    )


def _parse_node(data: Any, where: str) -> TestNode:
    data = _as_mapping(data, where)
    name = _require_name(data, where)
    where = f"{where} ({name})"
    requests = [
        _parse_request(r, f"{where}.requests[{i}]")
        for i, r in enumerate(_as_list(data.get("requests"), where))
    ]
    return TestNode(
        name=name,
        description=str(data.get("description") or ""),
        requests=requests,
        **_gates(data, where),
    )


def _parse_suite(data: Any, where: str) -> TestSuite:
    data = _as_mapping(data, where)
    name = _require_name(data, where)
    where = f"{where} ({name})"
    tests = [
        _parse_node(t, f"{where}.tests[{i}]")
        for i, t in enumerate(_as_list(data.get("tests"), where))
    ]
    return TestSuite(
        name=name,
        change_uid=_as_bool(data.get("change_uid"), where),
        tests=tests,
        **_gates(data, where),
    )


def parse_test_file(data: Any, path: str = "<memory>") -> TestFile:
    """
    Build a TestFile from already-parsed YAML data.

    Raises:
        ConfigurationError: If the structure is invalid
    """
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")

    name = str(data.get("name") or path)
    suites = [
        _parse_suite(s, f"{path}: suites[{i}]")
        for i, s in enumerate(_as_list(data.get("suites"), path))
    ]
    return TestFile(
        name=name,
        path=path,
        ignore_all=_as_bool(data.get("ignore_all"), path),
        suites=suites,
    )


def load_test_file(path: str) -> TestFile:
    """
    Load a suite-definition file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigurationError: If the file is not valid YAML or is malformed
    """
    logger.info("Loading suite definitions from %s", path)
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in test file '{path}': {e}")
    except FileNotFoundError:
        raise FileNotFoundError(f"Test file not found: {path}")
    except OSError as e:
        raise ConfigurationError(f"Unable to read test file '{path}': {e}")

    return parse_test_file(data, path)
