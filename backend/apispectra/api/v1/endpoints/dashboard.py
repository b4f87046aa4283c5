"""
Read-only dashboard endpoints over the latest published run.
"""
from fastapi import APIRouter, HTTPException, Depends
from typing import Any, Dict, List

from apispectra.services.pipeline import PipelineContext, RunStore, get_run_store
from apispectra.services.test_executor import summarize_results

router = APIRouter()


def get_latest_run(store: RunStore = Depends(get_run_store)) -> PipelineContext:
    ctx = store.latest()
    if ctx is None:
        raise HTTPException(status_code=404, detail="No run has been published yet")
    return ctx


def run_summary(ctx: PipelineContext) -> Dict[str, Any]:
    """Counts for a finished run."""
    summary = summarize_results(ctx.results)
    summary.update({
        'testCases': len(ctx.test_cases),
        'excluded': len(ctx.excluded),
        'baselineMissing': ctx.baseline_missing,
        'startedAt': ctx.started_at.isoformat(),
    })
    if ctx.regression is not None:
        summary['regressedTests'] = ctx.regression.regressed_tests
        summary['improvedTests'] = ctx.regression.improved_tests
    return summary


@router.get("/summary")
async def get_summary(ctx: PipelineContext = Depends(get_latest_run)) -> Dict[str, Any]:
    """Counts for the latest run."""
    return run_summary(ctx)


@router.get("/features")
async def get_features(ctx: PipelineContext = Depends(get_latest_run)) -> Dict[str, List[Dict[str, Any]]]:
    """Scenario features per endpoint."""
    return ctx.features


@router.get("/results")
async def get_results(ctx: PipelineContext = Depends(get_latest_run)) -> Dict[str, Any]:
    """Execution results keyed by test id, in execution order."""
    return {test_id: result.to_dict() for test_id, result in ctx.results.items()}


@router.get("/regression")
async def get_regression(ctx: PipelineContext = Depends(get_latest_run)) -> Dict[str, Any]:
    """Regression summary of the latest run."""
    if ctx.regression is None:
        raise HTTPException(status_code=404, detail="Latest run has no regression comparison")
    return ctx.regression.to_dict()


@router.get("/baseline")
async def get_baseline(ctx: PipelineContext = Depends(get_latest_run)) -> Dict[str, Any]:
    """Baseline the latest run was compared against."""
    if ctx.baseline is None:
        raise HTTPException(status_code=404, detail="No baseline loaded for the latest run")
    return ctx.baseline.to_dict()
