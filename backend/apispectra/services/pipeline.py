"""
Generation, execution and regression pipeline.

Each stage takes a PipelineContext and returns a new one; contexts are
frozen so a published run can be read while the next one is being built.
"""
import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from apispectra.core.config import settings
from apispectra.models import (
    Baseline,
    CamelModel,
    ExecutionResult,
    RegressionSummary,
    TestCase,
    utc_now,
)
from apispectra.services.baseline_store import load_baseline, save_baseline, save_regression_results
from apispectra.services.openapi_parser import OpenAPIParser
from apispectra.services.override_rules import OverrideRule, OverrideRuleEngine, load_rule_table
from apispectra.services.regression_service import compare, format_regression_results
from apispectra.services.test_executor import TestExecutor
from apispectra.services.test_generator import TestGenerator, feature_key
from apispectra.services.value_synthesizer import ValueSynthesizer

logger = logging.getLogger(__name__)


class PipelineContext(CamelModel):
    """State of one run, replaced rather than mutated by every stage."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    spec_path: Optional[str] = None
    spec: Optional[Dict[str, Any]] = None
    features: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)
    test_cases: Dict[str, TestCase] = Field(default_factory=dict)
    excluded: List[str] = Field(default_factory=list)
    results: Dict[str, ExecutionResult] = Field(default_factory=dict)
    baseline: Optional[Baseline] = None
    baseline_missing: bool = False
    regression: Optional[RegressionSummary] = None
    started_at: datetime = Field(default_factory=utc_now)


def _parser_for(ctx: PipelineContext) -> OpenAPIParser:
    parser = OpenAPIParser(spec_dict=ctx.spec, validate=False)
    parser.parse()
    return parser


def load_stage(ctx: PipelineContext, validate: Optional[bool] = None) -> PipelineContext:
    """Load (and optionally validate) the OpenAPI document."""
    parser = OpenAPIParser(spec_path=ctx.spec_path, spec_dict=ctx.spec, validate=validate)
    spec = parser.parse()
    return ctx.model_copy(update={'spec': spec})


def synthesize_stage(ctx: PipelineContext, synthesizer: Optional[ValueSynthesizer] = None) -> PipelineContext:
    """Generate test cases; endpoints without supplied features get defaults."""
    parser = _parser_for(ctx)
    generator = TestGenerator(parser, synthesizer)

    features = dict(ctx.features)
    for endpoint in parser.get_endpoints():
        key = feature_key(endpoint['method'], endpoint['path'])
        if key not in features:
            features[key] = [generator.default_feature(endpoint)]

    test_cases = generator.generate_all_tests(features)
    return ctx.model_copy(update={'features': features, 'test_cases': test_cases})


def override_stage(ctx: PipelineContext, rules: Optional[List[OverrideRule]] = None) -> PipelineContext:
    """Apply the override rule table; excluded test cases leave the active set."""
    if rules is None and settings.OVERRIDES_PATH:
        rules = load_rule_table(settings.OVERRIDES_PATH)
    active, excluded = OverrideRuleEngine(rules).apply_all(ctx.test_cases)
    return ctx.model_copy(update={'test_cases': active, 'excluded': excluded})


def execute_stage(ctx: PipelineContext, executor: Optional[TestExecutor] = None) -> PipelineContext:
    """Run every active test case against the service."""
    executor = executor or TestExecutor()
    results = executor.execute_test_suite(ctx.test_cases)
    return ctx.model_copy(update={'results': results})


def compare_stage(
    ctx: PipelineContext,
    baseline_path: Optional[str] = None,
    results_path: Optional[str] = None,
) -> PipelineContext:
    """
    Compare results with the stored baseline.

    A missing baseline is reported and the comparison skipped.
    """
    baseline = load_baseline(baseline_path or settings.BASELINE_PATH)
    if baseline is None:
        logger.warning("Regression mode without a baseline, skipping comparison")
        return ctx.model_copy(update={'baseline_missing': True})

    summary = compare(baseline, ctx.results)
    save_regression_results(summary, results_path or settings.REGRESSION_RESULTS_PATH)
    logger.info(format_regression_results(summary))
    return ctx.model_copy(update={'baseline': baseline, 'regression': summary})


def run_pipeline(
    spec_path: Optional[str] = None,
    spec_dict: Optional[Dict[str, Any]] = None,
    features: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    rules: Optional[List[OverrideRule]] = None,
    executor: Optional[TestExecutor] = None,
    synthesizer: Optional[ValueSynthesizer] = None,
    regression_mode: bool = False,
    save_as_baseline: bool = False,
    baseline_path: Optional[str] = None,
    results_path: Optional[str] = None,
    validate: Optional[bool] = None,
    publish: bool = True,
) -> PipelineContext:
    """
    Run load, synthesize, override, execute and (in regression mode) compare.

    Args:
        spec_path: OpenAPI file to load
        spec_dict: OpenAPI document, used when no path is given
        features: Scenario source keyed "METHOD path"
        rules: Override rule table (defaults to settings.OVERRIDES_PATH if set)
        executor: Configured executor (defaults from settings)
        synthesizer: Value synthesizer (defaults from settings)
        regression_mode: Compare results against the stored baseline
        save_as_baseline: Store this run's results as the new baseline
        baseline_path: Baseline file (defaults to settings.BASELINE_PATH)
        results_path: Regression results file
        validate: Validate the document (defaults to settings.VALIDATE_SPEC)
        publish: Make the finished context visible to the dashboard

    Returns:
        Final pipeline context
    """
    ctx = PipelineContext(spec_path=spec_path, spec=spec_dict, features=features or {})
    ctx = load_stage(ctx, validate=validate)
    ctx = synthesize_stage(ctx, synthesizer)
    ctx = override_stage(ctx, rules)
    ctx = execute_stage(ctx, executor)

    if regression_mode:
        ctx = compare_stage(ctx, baseline_path, results_path)
    if save_as_baseline:
        save_baseline(ctx.results, baseline_path or settings.BASELINE_PATH)

    if publish:
        get_run_store().publish(ctx)
    return ctx


def exit_code(ctx: PipelineContext, regression_mode: bool) -> int:
    """
    Process exit status for a finished run.

    Regression mode fails only on regressions (a missing baseline is not a
    failure); otherwise any failed test fails the run.
    """
    if regression_mode:
        if ctx.regression is not None and ctx.regression.regressed_tests > 0:
            return 1
        return 0
    return 1 if any(not result.success for result in ctx.results.values()) else 0


class RunStore:
    """Holds the latest published run for the dashboard."""

    def __init__(self):
        self._lock = threading.Lock()
        self._latest: Optional[PipelineContext] = None

    def publish(self, ctx: PipelineContext):
        with self._lock:
            self._latest = ctx
        logger.info(f"Published run with {len(ctx.results)} results")

    def latest(self) -> Optional[PipelineContext]:
        with self._lock:
            return self._latest

    def clear(self):
        with self._lock:
            self._latest = None


_run_store = RunStore()


def get_run_store() -> RunStore:
    """Process-wide run store."""
    return _run_store
