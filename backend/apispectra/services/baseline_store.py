"""
Baseline and regression result files.

Baseline format::

    {"name": "...", "createdAt": "...", "results": {"<test id>": {...}}}

The older list form ``[{"id": "...", ...}, ...]`` is still read.
"""
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from pydantic import ValidationError

from apispectra.core.exceptions import BaselineError
from apispectra.models import Baseline, ExecutionResult, RegressionSummary

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _write_json(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding='utf-8')
    return path


def save_baseline(
    results: Union[Dict[str, ExecutionResult], Iterable[ExecutionResult]],
    path: PathLike,
    name: Optional[str] = None,
) -> Path:
    """
    Write a run's results as the new baseline.

    Args:
        results: Results keyed by test id, or an iterable of results
        path: Target file; parent directories are created
        name: Baseline name (defaults to "baseline")

    Returns:
        The written path
    """
    if not isinstance(results, dict):
        results = {result.id: result for result in results}
    baseline = Baseline(name=name or "baseline", results=dict(results))
    written = _write_json(Path(path), baseline.to_dict())
    logger.info(f"Saved baseline '{baseline.name}' with {len(baseline.results)} results to {written}")
    return written


def load_baseline(path: PathLike) -> Optional[Baseline]:
    """
    Read a baseline file.

    Returns:
        The baseline, or None when no file exists at ``path``

    Raises:
        BaselineError: If the file exists but is not a valid baseline
    """
    baseline_path = Path(path)
    if not baseline_path.exists():
        logger.info(f"No baseline found at {baseline_path}")
        return None

    try:
        data = json.loads(baseline_path.read_text(encoding='utf-8'))
    except (OSError, ValueError) as e:
        raise BaselineError(str(baseline_path), str(e)) from e

    if isinstance(data, list):
        # Legacy format
        if not all(isinstance(item, dict) and 'id' in item for item in data):
            raise BaselineError(str(baseline_path), "list entries must be results with an id")
        data = {'results': {item['id']: item for item in data}}
    elif not isinstance(data, dict):
        raise BaselineError(str(baseline_path), "expected an object or a list of results")

    try:
        baseline = Baseline.model_validate(data)
    except ValidationError as e:
        raise BaselineError(str(baseline_path), str(e)) from e

    logger.info(f"Loaded baseline '{baseline.name}' with {len(baseline.results)} results")
    return baseline


def save_regression_results(summary: RegressionSummary, path: PathLike) -> Path:
    """Write a comparison summary next to the baseline."""
    written = _write_json(Path(path), summary.to_dict())
    logger.info(f"Saved regression results to {written}")
    return written
