"""
Monitoring and metrics setup.
"""
import logging
from prometheus_client import Counter, Histogram, generate_latest

from apispectra.core.config import settings

logger = logging.getLogger(__name__)

# Metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration',
    ['method', 'endpoint']
)

test_execution_total = Counter(
    'test_execution_total',
    'Total test executions',
    ['method', 'outcome']
)

test_execution_duration = Histogram(
    'test_execution_duration_seconds',
    'Duration of a single test case HTTP exchange',
    ['method']
)

regression_classification_total = Counter(
    'regression_classification_total',
    'Regression comparison outcomes per test',
    ['classification']
)


def get_metrics():
    """Get Prometheus metrics."""
    return generate_latest()


def record_http_request(method: str, endpoint: str, status: int, duration: float):
    """Record HTTP request metrics."""
    http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
    http_request_duration.labels(method=method, endpoint=endpoint).observe(duration)


def record_test_execution(method: str, success: bool, duration_ms: float):
    """Record the outcome of one executed test case."""
    if not settings.ENABLE_METRICS:
        return
    outcome = 'passed' if success else 'failed'
    test_execution_total.labels(method=method, outcome=outcome).inc()
    test_execution_duration.labels(method=method).observe(duration_ms / 1000.0)


def record_regression_classification(classification: str):
    """Record one regression classification."""
    if not settings.ENABLE_METRICS:
        return
    regression_classification_total.labels(classification=classification).inc()
