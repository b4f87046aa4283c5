"""
Run endpoints.
"""
import logging
from fastapi import APIRouter, HTTPException, Body
from typing import Optional, List, Dict, Any

from apispectra.api.v1.endpoints.dashboard import run_summary
from apispectra.core.exceptions import BaselineError, OverrideRuleError, SpecParseError
from apispectra.models import CamelModel
from apispectra.services.override_rules import build_rule_table
from apispectra.services.pipeline import exit_code, run_pipeline
from apispectra.services.test_executor import TestExecutor

logger = logging.getLogger(__name__)

router = APIRouter()


class RunRequest(CamelModel):
    """Request model for a pipeline run."""
    spec_path: Optional[str] = None
    spec: Optional[Dict[str, Any]] = None
    features: Optional[Dict[str, List[Dict[str, Any]]]] = None
    rules: Optional[List[Dict[str, Any]]] = None
    base_url: Optional[str] = None
    regression_mode: bool = False
    save_as_baseline: bool = False
    validate_spec: Optional[bool] = None


@router.post("/runs", status_code=201)
def create_run(request: RunRequest = Body(...)) -> Dict[str, Any]:
    """
    Generate, execute and (optionally) compare a suite, then publish it.

    Runs synchronously; the dashboard endpoints serve the result once this
    returns.

    Args:
        request: Document source, scenarios, override rules and run mode
    """
    if not request.spec_path and request.spec is None:
        raise HTTPException(status_code=400, detail="specPath or spec is required")

    try:
        rules = build_rule_table(request.rules, "request") if request.rules is not None else None
        ctx = run_pipeline(
            spec_path=request.spec_path,
            spec_dict=request.spec,
            features=request.features,
            rules=rules,
            executor=TestExecutor(base_url=request.base_url),
            regression_mode=request.regression_mode,
            save_as_baseline=request.save_as_baseline,
            validate=request.validate_spec,
        )
    except (SpecParseError, OverrideRuleError, BaselineError) as e:
        logger.warning(f"Run rejected: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))

    summary = run_summary(ctx)
    summary['exitCode'] = exit_code(ctx, request.regression_mode)
    return summary
