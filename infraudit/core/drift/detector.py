"""
Drift Detection Core Logic
-------------------------
This module contains the core logic for detecting drift between two
configuration snapshots, including nested object comparison.

``compare_configs`` is the single structural diff used by both the snapshot
detector and the IaC reconciler. The reconciler passes an ``exclude``
predicate to ignore provider-computed fields.
"""

import logging
from typing import Callable, List, Optional

from infraudit.core.drift.rules import SecurityRuleCatalog
from infraudit.core.drift.severity import classify
from infraudit.core.drift.types import ChangeKind, DetectionResult, FieldChange
from infraudit.core.drift.values import ConfigValue, ValueKind, value_kind, values_equal
from infraudit.core.observability import track_drift_detection

logger = logging.getLogger(__name__)

ROOT_PATH = "root"

# Called with (key, value) for keys present only on the current side.
ExcludePredicate = Callable[[str, ConfigValue], bool]


def _join_path(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _index_path(path: str, index: int) -> str:
    return f"{path}[{index}]"


def _change_path(path: str) -> str:
    return path if path else ROOT_PATH


def compare_configs(
    baseline: ConfigValue,
    current: ConfigValue,
    path: str = "",
    exclude: Optional[ExcludePredicate] = None,
) -> List[FieldChange]:
    """
    Compare two configuration values recursively and list every difference.

    Mappings are compared key by key, sequences of equal length element by
    element. A sequence whose length changed is reported as one modified
    change for the whole sequence, and a value whose shape changed (mapping
    vs. scalar, etc.) is reported as one modified change without recursing.
    A key missing on one side is reported once, with its whole subtree.

    The output order is stable for a given pair of inputs: baseline keys in
    sorted order (removed or recursed), then added keys in sorted order.

    Args:
        baseline: The expected configuration
        current: The observed configuration
        path: Path of the values being compared (empty at the root)
        exclude: Optional predicate suppressing keys only present in ``current``

    Returns:
        Ordered list of field changes
    """
    baseline_kind = value_kind(baseline)
    current_kind = value_kind(current)

    if baseline_kind == ValueKind.NULL and current_kind == ValueKind.NULL:
        return []

    if baseline_kind == ValueKind.NULL:
        return [FieldChange(path=_change_path(path), new_value=current, kind=ChangeKind.ADDED)]

    if current_kind == ValueKind.NULL:
        return [FieldChange(path=_change_path(path), old_value=baseline, kind=ChangeKind.REMOVED)]

    if baseline_kind == ValueKind.MAPPING and current_kind == ValueKind.MAPPING:
        return _compare_mappings(baseline, current, path, exclude)

    if baseline_kind == ValueKind.SEQUENCE and current_kind == ValueKind.SEQUENCE:
        return _compare_sequences(baseline, current, path, exclude)

    # Shape mismatch or two scalars
    if baseline_kind != current_kind or not values_equal(baseline, current):
        return [FieldChange(
            path=_change_path(path),
            old_value=baseline,
            new_value=current,
            kind=ChangeKind.MODIFIED,
        )]

    return []


def _excluded(exclude, key, value, key_path) -> bool:
    if exclude is not None and exclude(key, value):
        logger.debug(f"Ignoring computed field at {key_path}")
        return True
    return False


def _compare_mappings(baseline, current, path, exclude) -> List[FieldChange]:
    changes = []

    for key in sorted(baseline):
        key_path = _join_path(path, key)
        if key in current:
            if baseline[key] is None and _excluded(exclude, key, current[key], key_path):
                continue
            changes.extend(compare_configs(baseline[key], current[key], key_path, exclude))
        elif baseline[key] is not None:
            changes.append(FieldChange(path=key_path, old_value=baseline[key], kind=ChangeKind.REMOVED))

    for key in sorted(current):
        if key in baseline or current[key] is None:
            continue
        if _excluded(exclude, key, current[key], _join_path(path, key)):
            continue
        changes.append(FieldChange(
            path=_join_path(path, key),
            new_value=current[key],
            kind=ChangeKind.ADDED,
        ))

    return changes


def _compare_sequences(baseline, current, path, exclude) -> List[FieldChange]:
    # No alignment across a length change, the whole sequence is reported.
    if len(baseline) != len(current):
        return [FieldChange(
            path=_change_path(path),
            old_value=list(baseline),
            new_value=list(current),
            kind=ChangeKind.MODIFIED,
        )]

    changes = []
    for index, (old_item, new_item) in enumerate(zip(baseline, current)):
        changes.extend(compare_configs(old_item, new_item, _index_path(path, index), exclude))
    return changes


@track_drift_detection
def detect_drift(
    resource_type: str,
    baseline: ConfigValue,
    current: ConfigValue,
    catalog: Optional[SecurityRuleCatalog] = None,
) -> DetectionResult:
    """
    Detect and classify drift between a resource's baseline and current state.

    Args:
        resource_type: Resource type used to select security rules (e.g. "s3-bucket")
        baseline: Approved configuration snapshot
        current: Current configuration snapshot
        catalog: Rule catalog to classify with, defaults to the built-in one

    Returns:
        DetectionResult describing the drift, if any
    """
    changes = compare_configs(baseline, current)

    if not changes:
        logger.debug(f"No drift detected for {resource_type}")
        return DetectionResult.no_drift()

    result = classify(resource_type, changes, catalog)
    logger.info(
        f"Drift detected for {resource_type}: {len(changes)} change(s), "
        f"severity={result.severity.value}, drift_type={result.drift_type.value}"
    )
    return result
