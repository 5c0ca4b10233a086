"""
Observability Module
-------------------
This module provides Prometheus metrics and OpenTelemetry tracing for the
drift detection and reconciliation entry points.
"""

import time
import logging
from contextlib import contextmanager
from typing import Dict, Callable, Generator, Optional
import functools
from datetime import datetime

from prometheus_client import Counter, Histogram, Info
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

from infraudit.core.config import settings

# Set up logging
logger = logging.getLogger(__name__)

# Prometheus metrics
DRIFT_DETECTION_COUNTER = Counter(
    'infraudit_drift_detections_total',
    'Total number of drift detection runs',
    ['outcome']
)

DRIFT_CHANGE_COUNTER = Counter(
    'infraudit_drift_changes_total',
    'Total number of drifted configuration changes detected',
    ['severity', 'drift_type']
)

DRIFT_DETECTION_DURATION = Histogram(
    'infraudit_drift_detection_duration_seconds',
    'Duration of drift detection runs in seconds',
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 5)
)

RECONCILIATION_VERDICT_COUNTER = Counter(
    'infraudit_reconciliation_verdicts_total',
    'Total number of IaC reconciliation verdicts',
    ['category', 'severity']
)

RECONCILIATION_DURATION = Histogram(
    'infraudit_reconciliation_duration_seconds',
    'Duration of IaC reconciliation runs in seconds',
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 5, 10)
)

SYSTEM_INFO = Info(
    'infraudit_system_info',
    'Information about the InfraAudit drift engine'
)

# Update system info
SYSTEM_INFO.info({
    'version': settings.VERSION,
    'environment': settings.ENVIRONMENT,
    'start_time': datetime.now().isoformat()
})

# OpenTelemetry setup
def setup_tracing() -> Optional[trace.Tracer]:
    """Initialize OpenTelemetry tracing"""
    if not settings.ENABLE_TRACING:
        logger.info("OpenTelemetry tracing is disabled")
        return None

    trace.set_tracer_provider(TracerProvider())
    tracer = trace.get_tracer(__name__)

    otlp_exporter = OTLPSpanExporter(endpoint=settings.OTLP_ENDPOINT, insecure=True)
    span_processor = BatchSpanProcessor(otlp_exporter)
    trace.get_tracer_provider().add_span_processor(span_processor)

    logger.info(f"OpenTelemetry tracing initialized with endpoint {settings.OTLP_ENDPOINT}")
    return tracer

# Context manager to measure function execution time
@contextmanager
def timed_execution(
    metric: Histogram,
    labels: Dict[str, str] = None
) -> Generator[None, None, None]:
    """
    Context manager to measure execution time

    Args:
        metric: Prometheus histogram to record duration
        labels: Labels to apply to the metric

    Yields:
        None
    """
    start_time = time.perf_counter()
    try:
        yield
    finally:
        if settings.METRICS_ENABLED:
            duration = time.perf_counter() - start_time
            if labels:
                metric.labels(**labels).observe(duration)
            else:
                metric.observe(duration)

def record_detection(result) -> None:
    """Record counters for a DetectionResult"""
    if not settings.METRICS_ENABLED:
        return

    if not result.has_drift:
        DRIFT_DETECTION_COUNTER.labels(outcome='no_drift').inc()
        return

    DRIFT_DETECTION_COUNTER.labels(outcome='drift').inc()
    DRIFT_CHANGE_COUNTER.labels(
        severity=result.severity.value,
        drift_type=result.drift_type.value
    ).inc(len(result.changes))

def record_verdicts(verdicts) -> None:
    """Record counters for a list of ReconciliationVerdict"""
    if not settings.METRICS_ENABLED:
        return

    for verdict in verdicts:
        RECONCILIATION_VERDICT_COUNTER.labels(
            category=verdict.category.value,
            severity=verdict.severity.value
        ).inc()

# Decorator for drift detection functions to record metrics
def track_drift_detection(func: Callable) -> Callable:
    """
    Decorator to track drift detection metrics

    Args:
        func: Function returning a DetectionResult

    Returns:
        Decorated function
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        tracer = trace.get_tracer(__name__)
        with tracer.start_as_current_span("drift_detection") as span:
            with timed_execution(DRIFT_DETECTION_DURATION):
                result = func(*args, **kwargs)

            span.set_attribute("drift.has_drift", result.has_drift)
            if result.has_drift:
                span.set_attribute("drift.severity", result.severity.value)
                span.set_attribute("drift.type", result.drift_type.value)
                span.set_attribute("drift.change_count", len(result.changes))
            record_detection(result)
            return result

    return wrapper

def track_reconciliation(func: Callable) -> Callable:
    """
    Decorator to track IaC reconciliation metrics

    Args:
        func: Function returning a list of ReconciliationVerdict

    Returns:
        Decorated function
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        tracer = trace.get_tracer(__name__)
        with tracer.start_as_current_span("iac_reconciliation") as span:
            with timed_execution(RECONCILIATION_DURATION):
                verdicts = func(*args, **kwargs)

            span.set_attribute("reconciliation.verdict_count", len(verdicts))
            record_verdicts(verdicts)
            return verdicts

    return wrapper
