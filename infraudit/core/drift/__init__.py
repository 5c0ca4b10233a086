"""
Drift Detection System
---------------------
This module provides a system for detecting and classifying drift in cloud
resource configurations, and for reconciling infrastructure-as-code
declarations against deployed resources.

Drift refers to unexpected changes in configurations, permissions, or other settings
that might indicate security issues or unauthorized modifications.
"""

from infraudit.core.drift.computed import COMPUTED_FIELDS, ComputedFieldFilter, is_computed_field
from infraudit.core.drift.detector import compare_configs, detect_drift
from infraudit.core.drift.errors import ConfigDecodeError, DriftEngineError, UnsupportedValueError
from infraudit.core.drift.reconciler import reconcile, summarize_verdicts
from infraudit.core.drift.rules import DEFAULT_CATALOG, SecurityRule, SecurityRuleCatalog
from infraudit.core.drift.severity import DEFAULT_CLASSIFICATION, classify, evaluate_change
from infraudit.core.drift.types import (
    ActualResource, ChangeKind, DeclaredResource, DetectionResult, DriftCategory,
    DriftType, FieldChange, ReconciliationSummary, ReconciliationVerdict, Severity
)
from infraudit.core.drift.values import ValueKind, value_kind, values_equal

__all__ = [
    'COMPUTED_FIELDS',
    'ComputedFieldFilter',
    'is_computed_field',
    'compare_configs',
    'detect_drift',
    'ConfigDecodeError',
    'DriftEngineError',
    'UnsupportedValueError',
    'reconcile',
    'summarize_verdicts',
    'DEFAULT_CATALOG',
    'SecurityRule',
    'SecurityRuleCatalog',
    'DEFAULT_CLASSIFICATION',
    'classify',
    'evaluate_change',
    'ActualResource',
    'ChangeKind',
    'DeclaredResource',
    'DetectionResult',
    'DriftCategory',
    'DriftType',
    'FieldChange',
    'ReconciliationSummary',
    'ReconciliationVerdict',
    'Severity',
    'ValueKind',
    'value_kind',
    'values_equal',
]
