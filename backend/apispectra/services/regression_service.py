"""
Regression comparison between a baseline run and a current run.
"""
import json
import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional, Union

from apispectra.core.monitoring import record_regression_classification
from apispectra.models import (
    Baseline,
    Classification,
    ExecutionResult,
    RegressionDetail,
    RegressionSummary,
)

logger = logging.getLogger(__name__)

ResultSet = Union[Baseline, Dict[str, ExecutionResult], Iterable[ExecutionResult]]


def _as_ordered(results: Optional[ResultSet]) -> Dict[str, ExecutionResult]:
    if results is None:
        return OrderedDict()
    if isinstance(results, Baseline):
        return OrderedDict(results.results)
    if isinstance(results, dict):
        return OrderedDict(results)
    return OrderedDict((result.id, result) for result in results)


def canonical_json(body: Any) -> str:
    """Serialized form with sorted object keys; array order is kept."""
    return json.dumps(body, sort_keys=True, default=str)


def _json_type(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, (int, float)):
        return 'number'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, list):
        return 'array'
    if isinstance(value, dict):
        return 'object'
    return type(value).__name__


def describe_structure_changes(baseline: Any, current: Any, path: str = '') -> List[str]:
    """
    Keys added, removed or retyped between two response bodies.

    Arrays are compared through their first elements only; values are not
    compared.
    """
    differences: List[str] = []
    label = path or '(root)'

    if isinstance(baseline, list) and isinstance(current, list):
        if baseline and current and isinstance(baseline[0], (dict, list)) and isinstance(current[0], (dict, list)):
            differences.extend(describe_structure_changes(baseline[0], current[0], f"{path}[0]"))
        return differences

    if baseline is None or current is None:
        if (baseline is None) != (current is None):
            differences.append(f"{label}: was {_json_type(baseline)}, now {_json_type(current)}")
        return differences

    if not isinstance(baseline, dict) or not isinstance(current, dict):
        if _json_type(baseline) != _json_type(current):
            differences.append(
                f"{label}: type changed from {_json_type(baseline)} to {_json_type(current)}"
            )
        return differences

    for key, value in baseline.items():
        key_path = f"{path}.{key}" if path else key
        if key not in current:
            differences.append(f"{key_path}: removed (was present in baseline)")
            continue
        if _json_type(value) != _json_type(current[key]):
            differences.append(
                f"{key_path}: type changed from {_json_type(value)} to {_json_type(current[key])}"
            )
            continue
        if isinstance(value, (dict, list)):
            differences.extend(describe_structure_changes(value, current[key], key_path))

    for key in current:
        if key not in baseline:
            key_path = f"{path}.{key}" if path else key
            differences.append(f"{key_path}: added (not present in baseline)")

    return differences


def _status(result: ExecutionResult) -> Optional[int]:
    return result.response.status if result.response else None


def _body(result: ExecutionResult) -> Any:
    return result.response.body if result.response else None


def _lost_assertions(baseline: ExecutionResult, current: ExecutionResult) -> List[str]:
    baseline_passed = {a.name for a in baseline.assertions if a.success}
    failures = [
        f"{a.name}: {a.error}" if a.error else a.name
        for a in current.assertions
        if not a.success and a.name in baseline_passed
    ]
    if not current.success and current.error and not failures:
        failures.append(current.error)
    return failures


class RegressionComparator:
    """Classify each test of a current run against a baseline."""

    def compare_result(self, baseline: ExecutionResult, current: ExecutionResult) -> RegressionDetail:
        """Signals and classification for one test present in both runs."""
        status_code_changed = _status(baseline) != _status(current)
        response_changed = canonical_json(_body(baseline)) != canonical_json(_body(current))
        assertions_changed = baseline.success != current.success

        if baseline.success and not current.success:
            classification = Classification.REGRESSED
        elif current.success and not baseline.success:
            classification = Classification.IMPROVED
        else:
            classification = Classification.UNCHANGED

        failures = _lost_assertions(baseline, current) if classification == Classification.REGRESSED else []
        structure_changes = describe_structure_changes(_body(baseline), _body(current)) if response_changed else []

        return RegressionDetail(
            id=current.id,
            classification=classification,
            endpoint=current.endpoint or baseline.endpoint,
            method=current.method or baseline.method,
            baseline_response=baseline.response,
            current_response=current.response,
            baseline_success=baseline.success,
            current_success=current.success,
            baseline_duration=baseline.duration,
            current_duration=current.duration,
            status_code_changed=status_code_changed,
            response_changed=response_changed,
            assertions_changed=assertions_changed,
            failures=failures,
            structure_changes=structure_changes,
        )

    def compare(self, baseline: Optional[ResultSet], current: ResultSet) -> RegressionSummary:
        """
        Compare two runs in a single pass over the union of their ids.

        Args:
            baseline: Baseline snapshot or results keyed by id
            current: Results of the current run keyed by id

        Returns:
            Summary with per-test details for ids present in both runs,
            baseline order first and then new ids in current order
        """
        baseline_results = _as_ordered(baseline)
        current_results = _as_ordered(current)
        summary = RegressionSummary()

        ordered_ids = list(baseline_results) + [i for i in current_results if i not in baseline_results]
        for test_id in ordered_ids:
            if test_id not in current_results:
                classification = Classification.REMOVED
                summary.removed.append(test_id)
            elif test_id not in baseline_results:
                classification = Classification.NEW
                summary.new.append(test_id)
            else:
                detail = self.compare_result(baseline_results[test_id], current_results[test_id])
                classification = detail.classification
                summary.details.append(detail)
            summary.classifications[test_id] = classification
            record_regression_classification(classification.value)

        counts = {c: 0 for c in Classification}
        for classification in summary.classifications.values():
            counts[classification] += 1

        summary.total_tests = len(ordered_ids)
        summary.regressed_tests = counts[Classification.REGRESSED]
        summary.improved_tests = counts[Classification.IMPROVED]
        summary.unchanged_tests = counts[Classification.UNCHANGED]
        summary.new_tests = counts[Classification.NEW]
        summary.removed_tests = counts[Classification.REMOVED]

        logger.info(
            f"Regression comparison: {summary.regressed_tests} regressed, "
            f"{summary.improved_tests} improved, {summary.unchanged_tests} unchanged, "
            f"{summary.new_tests} new, {summary.removed_tests} removed"
        )
        return summary


def compare(baseline: Optional[ResultSet], current: ResultSet) -> RegressionSummary:
    """Compare ``current`` against ``baseline``."""
    return RegressionComparator().compare(baseline, current)


def _label(detail: RegressionDetail) -> str:
    return f"{(detail.method or '').upper()} {detail.endpoint or detail.id}".strip()


def format_regression_results(summary: RegressionSummary) -> str:
    """Plain-text console report of a comparison."""
    lines = [
        "",
        "== REGRESSION TEST RESULTS ==",
        "",
        f"Total tests: {summary.total_tests}",
        f"New tests: {summary.new_tests}",
        f"Removed tests: {summary.removed_tests}",
        f"Matching tests: {len(summary.details)}",
        "",
        f"Regressions: {summary.regressed_tests}",
        f"Improvements: {summary.improved_tests}",
        f"Unchanged: {summary.unchanged_tests}",
        "",
    ]

    regressed = [d for d in summary.details if d.classification == Classification.REGRESSED]
    if regressed:
        lines += ["=== REGRESSION DETAILS ===", ""]
        for detail in regressed:
            lines.append(f"[REGRESSED] {_label(detail)} ({detail.id})")
            if detail.status_code_changed:
                lines.append(f"   Status code: {_status_of(detail.baseline_response)} -> "
                             f"{_status_of(detail.current_response)}")
            if detail.failures:
                lines.append("   Failed assertions:")
                lines += [f"     - {failure}" for failure in detail.failures]
            if detail.structure_changes:
                lines.append("   Response structure changes:")
                lines += [f"     - {change}" for change in detail.structure_changes]
            lines.append("")

    improved = [d for d in summary.details if d.classification == Classification.IMPROVED]
    if improved:
        lines += ["=== IMPROVEMENTS ===", ""]
        for detail in improved:
            lines.append(f"[IMPROVED] {_label(detail)} ({detail.id})")
            if detail.status_code_changed:
                lines.append(f"   Status code: {_status_of(detail.baseline_response)} -> "
                             f"{_status_of(detail.current_response)}")
            lines.append("")

    if summary.new:
        lines += ["=== NEW TESTS ===", ""]
        lines += [f"  {test_id}" for test_id in summary.new]
        lines.append("")

    if summary.removed:
        lines += ["=== REMOVED TESTS ===", ""]
        lines += [f"  {test_id}" for test_id in summary.removed]
        lines.append("")

    return "\n".join(lines)


def _status_of(response) -> Optional[int]:
    return response.status if response else None
