"""
Declarative per-endpoint corrections applied to generated test cases.

A rule pairs a predicate over ``(endpoint, method)`` with a transform over a
TestCase. Rules run in declaration order and each one sees the mutations of
the rules before it, including a rewritten endpoint.
"""
import copy
import fnmatch
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

import yaml

from apispectra.core.exceptions import OverrideRuleError
from apispectra.models import TestCase

logger = logging.getLogger(__name__)

Predicate = Callable[[str, str], bool]
Transform = Callable[[TestCase], TestCase]


@dataclass
class OverrideRule:
    name: str
    predicate: Predicate
    transform: Transform

    def matches(self, test_case: TestCase) -> bool:
        return self.predicate(test_case.endpoint, test_case.method)


def match(path: str = '*', method: Union[str, Iterable[str]] = '*') -> Predicate:
    """
    Predicate matching an endpoint glob and a method.

    Args:
        path: fnmatch pattern over the endpoint template, e.g. ``/todos*``
        method: Method name, a list of them, or ``*`` for any
    """
    methods = [method] if isinstance(method, str) else list(method)
    methods = {m.upper() for m in methods}

    def predicate(endpoint: str, test_method: str) -> bool:
        if '*' not in methods and test_method.upper() not in methods:
            return False
        return fnmatch.fnmatchcase(endpoint, path)

    return predicate


def _millis() -> int:
    return int(time.time() * 1000)


def expect_status(
    path: str,
    method: str,
    status: int,
    from_status: Optional[int] = None,
    name: Optional[str] = None,
) -> OverrideRule:
    """Set the expected status, optionally only when it currently is ``from_status``."""
    def transform(test_case: TestCase) -> TestCase:
        if from_status is None or test_case.expected_response.status == from_status:
            test_case.expected_response.status = status
        return test_case

    return OverrideRule(name or f"expect_status {method} {path} -> {status}", match(path, method), transform)


def substitute_path(
    path: str,
    method: str,
    concrete_path: str,
    name: Optional[str] = None,
) -> OverrideRule:
    """Replace a templated endpoint with a concrete one."""
    def transform(test_case: TestCase) -> TestCase:
        test_case.endpoint = concrete_path
        return test_case

    return OverrideRule(name or f"substitute_path {method} {path} -> {concrete_path}", match(path, method), transform)


def substitute_payload(
    path: str,
    method: str,
    payload: Any,
    merge: bool = False,
    name: Optional[str] = None,
) -> OverrideRule:
    """
    Replace the request body.

    With ``merge`` and both sides being objects, the payload keys are laid
    over the generated body instead.
    """
    def transform(test_case: TestCase) -> TestCase:
        body = test_case.request.body
        if merge and isinstance(body, dict) and isinstance(payload, dict):
            body.update(copy.deepcopy(payload))
        else:
            test_case.request.body = copy.deepcopy(payload)
        return test_case

    return OverrideRule(name or f"substitute_payload {method} {path}", match(path, method), transform)


def unique_field(
    path: str,
    method: str,
    field: str,
    clock: Callable[[], int] = _millis,
    name: Optional[str] = None,
) -> OverrideRule:
    """
    Make a body field unique per run by injecting a timestamp.

    An address ``user@example.com`` becomes ``user<ts>@example.com``; other
    strings get the timestamp appended. A missing field is created.
    """
    def transform(test_case: TestCase) -> TestCase:
        if test_case.request.body is None:
            test_case.request.body = {}
        body = test_case.request.body
        if not isinstance(body, dict):
            logger.warning(f"{test_case.id}: body is not an object, cannot make '{field}' unique")
            return test_case

        stamp = clock()
        value = body.get(field)
        if isinstance(value, str) and '@' in value:
            local, domain = value.split('@', 1)
            body[field] = f"{local}{stamp}@{domain}"
        elif isinstance(value, str) and value:
            body[field] = f"{value}{stamp}"
        elif 'email' in field.lower():
            body[field] = f"test{stamp}@example.com"
        else:
            body[field] = f"{field}_{stamp}"
        return test_case

    return OverrideRule(name or f"unique_field {method} {path} {field}", match(path, method), transform)


def exclude(
    path: str,
    method: str,
    reason: Optional[str] = None,
    name: Optional[str] = None,
) -> OverrideRule:
    """Mark matching test cases excluded from execution."""
    def transform(test_case: TestCase) -> TestCase:
        test_case.excluded = True
        test_case.exclusion_reason = reason or f"Excluded by rule for {method} {path}"
        return test_case

    return OverrideRule(name or f"exclude {method} {path}", match(path, method), transform)


class OverrideRuleEngine:
    """Apply an ordered rule table to test cases."""

    def __init__(self, rules: Optional[List[OverrideRule]] = None):
        self.rules: List[OverrideRule] = list(rules or [])

    def add(self, rule: OverrideRule) -> "OverrideRuleEngine":
        self.rules.append(rule)
        return self

    def apply(self, test_case: TestCase) -> TestCase:
        """
        Run every matching rule on a copy of ``test_case``.

        Returns:
            The adjusted copy; the input is left untouched
        """
        current = test_case.model_copy(deep=True)
        for rule in self.rules:
            if rule.matches(current):
                logger.debug(f"Override '{rule.name}' applied to {current.id}")
                current = rule.transform(current)
        return current

    def apply_all(self, test_cases: Dict[str, TestCase]) -> Tuple[Dict[str, TestCase], List[str]]:
        """
        Apply the table to a whole synthesis pass.

        Returns:
            Active test cases (ordered, keyed by id) and the excluded ids
        """
        active: Dict[str, TestCase] = OrderedDict()
        excluded: List[str] = []
        for test_id, test_case in test_cases.items():
            adjusted = self.apply(test_case)
            if adjusted.excluded:
                excluded.append(test_id)
                logger.info(f"Excluded {test_id}: {adjusted.exclusion_reason}")
            else:
                active[test_id] = adjusted
        return active, excluded


def apply_overrides(test_case: TestCase, rule_table: List[OverrideRule]) -> TestCase:
    """Apply ``rule_table`` to one test case."""
    return OverrideRuleEngine(rule_table).apply(test_case)


def _rule_from_entry(entry: Any, index: int) -> OverrideRule:
    if not isinstance(entry, dict):
        raise OverrideRuleError(f"#{index}", "rule must be a mapping")

    name = entry.get('name') or f"#{index}"
    action = entry.get('action')
    path = entry.get('path', '*')
    method = entry.get('method', '*')

    def required(key: str) -> Any:
        if key not in entry:
            raise OverrideRuleError(name, f"action '{action}' requires '{key}'")
        return entry[key]

    if action == 'expect_status':
        try:
            status = int(required('status'))
            from_status = entry.get('from_status')
            from_status = int(from_status) if from_status is not None else None
        except (TypeError, ValueError) as e:
            raise OverrideRuleError(name, f"status must be an integer: {str(e)}") from e
        return expect_status(path, method, status, from_status, name=name)
    if action == 'substitute_path':
        return substitute_path(path, method, required('to'), name=name)
    if action == 'substitute_payload':
        return substitute_payload(path, method, required('payload'), merge=bool(entry.get('merge', False)), name=name)
    if action == 'unique_field':
        return unique_field(path, method, required('field'), name=name)
    if action == 'exclude':
        return exclude(path, method, entry.get('reason'), name=name)
    raise OverrideRuleError(name, f"unknown action '{action}'")


def build_rule_table(entries: Any, source: str = "rule table") -> List[OverrideRule]:
    """
    Build rules from plain entries (a list, or a mapping with a ``rules`` list).

    Each rule has ``action``, optional ``name``/``path``/``method`` and the
    action's own keys (``status``/``from_status``, ``to``, ``payload``/``merge``,
    ``field``, ``reason``).

    Raises:
        OverrideRuleError: If an entry is invalid
    """
    if isinstance(entries, dict):
        entries = entries.get('rules')
    if entries is None:
        entries = []
    if not isinstance(entries, list):
        raise OverrideRuleError(source, "rule table must be a list")
    return [_rule_from_entry(entry, index) for index, entry in enumerate(entries)]


def load_rule_table(path: Union[str, Path]) -> List[OverrideRule]:
    """
    Load rules from a YAML or JSON file; see ``build_rule_table`` for the format.

    Raises:
        OverrideRuleError: If the file is unreadable or an entry is invalid
    """
    rule_path = Path(path)
    try:
        data = yaml.safe_load(rule_path.read_text(encoding='utf-8'))
    except (OSError, yaml.YAMLError) as e:
        raise OverrideRuleError(str(rule_path), f"cannot load rule table: {str(e)}") from e

    rules = build_rule_table(data, str(rule_path))
    logger.info(f"Loaded {len(rules)} override rules from {rule_path}")
    return rules
