"""
Drift Severity Classification
----------------------------
This module classifies detected changes against the security rule catalog
and rolls a batch of changes up into a single detection result.

The severity classification helps prioritize responses to detected changes.
"""

import json
import logging
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence

from infraudit.core.config import settings
from infraudit.core.drift.rules import DEFAULT_CATALOG, SecurityRule, SecurityRuleCatalog
from infraudit.core.drift.types import (
    DRIFT_TYPE_PRIORITY, DetectionResult, DriftType, FieldChange, Severity
)

logger = logging.getLogger(__name__)


class RuleMatch(NamedTuple):
    """Classification of a single change."""

    severity: Severity
    drift_type: DriftType
    rule: Optional[SecurityRule] = None


# Policy default for changes no rule claims
DEFAULT_CLASSIFICATION = RuleMatch(Severity.LOW, DriftType.CONFIGURATION_CHANGE)


def evaluate_change(
    resource_type: str,
    change: FieldChange,
    catalog: Optional[SecurityRuleCatalog] = None,
) -> RuleMatch:
    """
    Determine the severity and drift type of a single change.

    Args:
        resource_type: Resource type selecting the rule set
        change: The change to evaluate
        catalog: Rule catalog, defaults to the built-in one

    Returns:
        RuleMatch from the first matching rule, or DEFAULT_CLASSIFICATION
    """
    catalog = catalog or DEFAULT_CATALOG

    for rule in catalog.rules_for(resource_type):
        if rule.matches(change):
            logger.debug(f"{change.path} matched rule '{rule.description}' ({rule.severity.value})")
            return RuleMatch(rule.severity, rule.drift_type, rule)

    return DEFAULT_CLASSIFICATION


def resolve_severity(matches: Iterable[RuleMatch]) -> Severity:
    """The most severe level across a batch of matches."""
    return Severity.highest(match.severity for match in matches) or DEFAULT_CLASSIFICATION.severity


def resolve_drift_type(matches: Iterable[RuleMatch]) -> DriftType:
    """
    Pick the drift type of a batch by fixed priority.

    The highest-priority type present anywhere in the batch wins, however many
    changes carry a lower-priority type.
    """
    present = {match.drift_type for match in matches}
    for drift_type in DRIFT_TYPE_PRIORITY:
        if drift_type in present:
            return drift_type
    return DEFAULT_CLASSIFICATION.drift_type


def calculate_severity_distribution(matches: Iterable[RuleMatch]) -> Dict[Severity, int]:
    """Count matches per severity level."""
    distribution = {severity: 0 for severity in Severity}
    for match in matches:
        distribution[match.severity] += 1
    return distribution


def format_value(value) -> str:
    """Render a configuration value for the narrative."""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, default=str)


def generate_narrative(
    changes: Sequence[FieldChange],
    severity: Severity,
    max_changes: Optional[int] = None,
) -> str:
    """
    Create a human-readable description of a batch of changes.

    Args:
        changes: Changes in detection order
        severity: Overall severity of the batch
        max_changes: Number of changes listed before truncating

    Returns:
        Multi-line description
    """
    if not changes:
        return "No changes detected"

    if max_changes is None:
        max_changes = settings.NARRATIVE_MAX_CHANGES

    lines = [f"{len(changes)} configuration change(s) detected with {severity.value} severity:"]
    for change in changes[:max_changes]:
        lines.append(
            f"- {change.path}: {change.kind.value} "
            f"(was: {format_value(change.old_value)}, now: {format_value(change.new_value)})"
        )

    if len(changes) > max_changes:
        lines.append(f"... and {len(changes) - max_changes} more changes")

    return "\n".join(lines)


def classify(
    resource_type: str,
    changes: List[FieldChange],
    catalog: Optional[SecurityRuleCatalog] = None,
) -> DetectionResult:
    """
    Classify a non-empty batch of changes.

    Args:
        resource_type: Resource type selecting the rule set
        changes: Changes produced by the diff, in order
        catalog: Rule catalog, defaults to the built-in one

    Returns:
        DetectionResult with the overall severity, drift type and narrative

    Raises:
        ValueError: If ``changes`` is empty
    """
    if not changes:
        raise ValueError("classify() needs at least one change, use DetectionResult.no_drift()")

    matches = [evaluate_change(resource_type, change, catalog) for change in changes]
    severity = resolve_severity(matches)
    drift_type = resolve_drift_type(matches)

    return DetectionResult(
        has_drift=True,
        drift_type=drift_type,
        severity=severity,
        narrative=generate_narrative(changes, severity),
        changes=list(changes),
    )
