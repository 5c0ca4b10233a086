"""
IaC Reconciliation
------------------
Reconciles resources declared in infrastructure-as-code against the resources
actually deployed, keyed by resource address.

Every address in the union of both sides gets exactly one verdict:
missing (declared only), shadow (deployed only), or modified / compliant
(both sides, depending on whether their configurations differ).
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from infraudit.core.config import settings
from infraudit.core.drift.computed import ComputedFieldFilter
from infraudit.core.drift.detector import compare_configs
from infraudit.core.drift.rules import SecurityRuleCatalog
from infraudit.core.drift.severity import evaluate_change, generate_narrative
from infraudit.core.drift.types import (
    ActualResource, DeclaredResource, DriftCategory, FieldChange,
    ReconciliationSummary, ReconciliationVerdict, ResourceDescriptor, Severity
)
from infraudit.core.observability import track_reconciliation

logger = logging.getLogger(__name__)

MISSING_SEVERITY = Severity.HIGH
SHADOW_SEVERITY = Severity.MEDIUM
COMPLIANT_SEVERITY = Severity.INFO

# Substrings of a change path that make a modified resource critical or high
CRITICAL_FIELD_MARKERS = ("encryption", "public_access", "security_group", "iam_policy", "acl")
HIGH_FIELD_MARKERS = ("password", "secret", "key", "network", "firewall")

MISSING_RECOMMENDATION = "Deploy this resource or remove it from IaC definition"
SHADOW_RECOMMENDATION = "Add this resource to IaC definition or remove from infrastructure"
MODIFIED_RECOMMENDATIONS = (
    "Review the configuration differences",
    "Update IaC definition to match actual state, or",
    "Re-apply IaC to correct the drift",
)
ENCRYPTION_CALLOUT = "CRITICAL: Encryption configuration has changed"
PUBLIC_ACCESS_CALLOUT = "CRITICAL: Public access configuration has changed"


def _index_by_address(resources: Iterable[ResourceDescriptor], side: str) -> Dict[str, ResourceDescriptor]:
    index = {}
    for resource in resources:
        if resource.address in index:
            logger.warning(f"Duplicate {side} resource address {resource.address}, keeping the last one")
        index[resource.address] = resource
    return index


def _marker_severity(changes: Sequence[FieldChange]) -> Severity:
    paths = [change.path.lower() for change in changes]

    if any(marker in path for path in paths for marker in CRITICAL_FIELD_MARKERS):
        return Severity.CRITICAL
    if any(marker in path for path in paths for marker in HIGH_FIELD_MARKERS):
        return Severity.HIGH
    if len(changes) > settings.LARGE_CHANGE_THRESHOLD:
        return Severity.HIGH
    return Severity.MEDIUM


def calculate_reconciliation_severity(
    resource_type: str,
    changes: Sequence[FieldChange],
    catalog: Optional[SecurityRuleCatalog] = None,
) -> Severity:
    """
    Determine the severity of a modified resource.

    A critical field marker on any changed path makes the resource critical,
    otherwise a high marker or a large change set makes it high, else medium.
    Security rules of the resource type raise that level when a rule matches
    a change, so a database made publicly accessible is critical even though
    no marker names it.

    Args:
        resource_type: Type of the drifted resource, selects the rule set
        changes: Filtered changes between declaration and deployment
        catalog: Rule catalog, defaults to the built-in one

    Returns:
        The severity of the modified verdict
    """
    severities = [_marker_severity(changes)]
    for change in changes:
        match = evaluate_change(resource_type, change, catalog)
        if match.rule is not None:
            severities.append(match.severity)
    return Severity.highest(severities)


def generate_recommendation(changes: Sequence[FieldChange]) -> str:
    """Build the remediation advice for a modified resource."""
    if not changes:
        return "No action required"

    recommendations = list(MODIFIED_RECOMMENDATIONS)
    paths = [change.path.lower() for change in changes]

    if any("encryption" in path for path in paths):
        recommendations.append(ENCRYPTION_CALLOUT)
    if any("public" in path and "access" in path for path in paths):
        recommendations.append(PUBLIC_ACCESS_CALLOUT)

    return "; ".join(recommendations)


def _missing_verdict(declared: ResourceDescriptor) -> ReconciliationVerdict:
    return ReconciliationVerdict(
        category=DriftCategory.MISSING,
        address=declared.address,
        resource_type=declared.resource_type,
        provider=declared.provider,
        declared=declared.ref(),
        severity=MISSING_SEVERITY,
        narrative=f"Resource defined in IaC but not deployed: {declared.address}",
        recommendation=MISSING_RECOMMENDATION,
    )


def _shadow_verdict(actual: ResourceDescriptor) -> ReconciliationVerdict:
    return ReconciliationVerdict(
        category=DriftCategory.SHADOW,
        address=actual.address,
        resource_type=actual.resource_type,
        provider=actual.provider,
        actual=actual.ref(),
        severity=SHADOW_SEVERITY,
        narrative=f"Resource deployed but not defined in IaC: {actual.address}",
        recommendation=SHADOW_RECOMMENDATION,
    )


def compare_resource(
    declared: ResourceDescriptor,
    actual: ResourceDescriptor,
    computed_filter: Optional[ComputedFieldFilter] = None,
) -> ReconciliationVerdict:
    """
    Compare a declared resource with its deployed counterpart.

    Args:
        declared: Resource from the IaC definition
        actual: Deployed resource with the same address
        computed_filter: Fields ignored when only present on the deployed side

    Returns:
        A MODIFIED or COMPLIANT verdict
    """
    if computed_filter is None:
        computed_filter = ComputedFieldFilter(settings.EXTRA_COMPUTED_FIELDS)

    changes = compare_configs(declared.configuration, actual.configuration, exclude=computed_filter)
    common = dict(
        address=declared.address,
        resource_type=declared.resource_type,
        provider=declared.provider or actual.provider,
        declared=declared.ref(),
        actual=actual.ref(),
    )

    if not changes:
        return ReconciliationVerdict(
            category=DriftCategory.COMPLIANT,
            severity=COMPLIANT_SEVERITY,
            narrative="Resource configuration matches IaC definition",
            recommendation=generate_recommendation(changes),
            **common,
        )

    severity = calculate_reconciliation_severity(declared.resource_type, changes)
    logger.info(f"Configuration drift for {declared.address}: {len(changes)} change(s), severity={severity.value}")

    return ReconciliationVerdict(
        category=DriftCategory.MODIFIED,
        severity=severity,
        change_count=len(changes),
        changes=changes,
        narrative=f"Configuration drift detected for {declared.address}\n{generate_narrative(changes, severity)}",
        recommendation=generate_recommendation(changes),
        **common,
    )


@track_reconciliation
def reconcile(
    declared: Iterable[DeclaredResource],
    actual: Iterable[ActualResource],
    computed_filter: Optional[ComputedFieldFilter] = None,
) -> List[ReconciliationVerdict]:
    """
    Reconcile declared resources against deployed resources.

    Verdicts come out grouped as missing, shadow, then modified / compliant,
    each group ordered by address.

    Args:
        declared: Resources from IaC definitions
        actual: Resources found in the cloud account
        computed_filter: Fields ignored when only present on the deployed side

    Returns:
        One verdict per address in the union of both sides
    """
    declared_by_address = _index_by_address(declared, "declared")
    actual_by_address = _index_by_address(actual, "actual")

    if computed_filter is None:
        computed_filter = ComputedFieldFilter(settings.EXTRA_COMPUTED_FIELDS)

    verdicts = []

    for address in sorted(declared_by_address.keys() - actual_by_address.keys()):
        verdicts.append(_missing_verdict(declared_by_address[address]))

    for address in sorted(actual_by_address.keys() - declared_by_address.keys()):
        verdicts.append(_shadow_verdict(actual_by_address[address]))

    for address in sorted(declared_by_address.keys() & actual_by_address.keys()):
        verdicts.append(compare_resource(
            declared_by_address[address],
            actual_by_address[address],
            computed_filter,
        ))

    logger.debug(
        f"Reconciled {len(declared_by_address)} declared and {len(actual_by_address)} "
        f"deployed resources into {len(verdicts)} verdicts"
    )
    return verdicts


def summarize_verdicts(verdicts: Iterable[ReconciliationVerdict]) -> ReconciliationSummary:
    """Count verdicts per category and per severity."""
    by_category = {category: 0 for category in DriftCategory}
    by_severity = {severity: 0 for severity in Severity}
    total = 0

    for verdict in verdicts:
        total += 1
        by_category[verdict.category] += 1
        by_severity[verdict.severity] += 1

    return ReconciliationSummary(total=total, by_category=by_category, by_severity=by_severity)
