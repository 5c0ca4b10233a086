# infraudit/services/drift_service.py
import hashlib
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError

from infraudit.core.drift.detector import detect_drift
from infraudit.core.drift.errors import ConfigDecodeError
from infraudit.core.drift.reconciler import reconcile, summarize_verdicts
from infraudit.core.drift.rules import SecurityRuleCatalog
from infraudit.core.drift.types import (
    ActualResource, DeclaredResource, DetectionResult, ReconciliationSummary,
    ReconciliationVerdict, Severity
)
from infraudit.core.drift.values import ConfigValue

logger = logging.getLogger(__name__)


class ResourceSnapshot(BaseModel):
    """A resource's approved baseline and current configuration, already decoded."""

    resource_id: str
    resource_type: str
    provider: str = ""
    baseline: Optional[Any] = None
    current: Any = None


class SnapshotDocument(BaseModel):
    """A resource's baseline and current configuration as raw JSON documents."""

    resource_id: str
    resource_type: str
    provider: str = ""
    baseline: Optional[str] = None
    current: Optional[str] = None


class ResourceDriftResult(BaseModel):
    resource_id: str
    resource_type: str
    provider: str = ""
    baseline_hash: str
    current_hash: str
    result: DetectionResult


class DriftScanReport(BaseModel):
    """Outcome of scanning a batch of resources for drift."""

    results: List[ResourceDriftResult] = Field(default_factory=list)
    needs_baseline: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict)
    resources_scanned: int = 0
    drifts_detected: int = 0
    summary_by_severity: Dict[Severity, int] = Field(default_factory=dict)

    @property
    def drifted(self) -> List[ResourceDriftResult]:
        return [entry for entry in self.results if entry.result.has_drift]


class IaCReconciliationReport(BaseModel):
    verdicts: List[ReconciliationVerdict] = Field(default_factory=list)
    summary: ReconciliationSummary


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def load_config_document(content: str, source: str = "document") -> ConfigValue:
    """
    Decode a JSON configuration document.

    Args:
        content: Raw JSON text
        source: Name of the document, used in error messages

    Returns:
        The decoded configuration value

    Raises:
        ConfigDecodeError: If the document is not valid JSON, including the
            NaN and Infinity constants Python's decoder accepts by default
    """
    try:
        return json.loads(content, parse_constant=_reject_constant)
    except (ValueError, TypeError) as e:
        raise ConfigDecodeError(str(e), source) from e


def calculate_hash(data: ConfigValue) -> str:
    """
    Calculate a stable hash for configuration data

    Args:
        data: Configuration value

    Returns:
        Hash string for the data
    """
    # Sort dict keys for stable hash
    serialized = json.dumps(data, sort_keys=True)
    return hashlib.sha256(serialized.encode()).hexdigest()


def load_resources(content: str, model: type, source: str = "resources") -> List[Any]:
    """
    Decode a JSON array of resources into DeclaredResource / ActualResource models.

    Raises:
        ConfigDecodeError: If the document is not a valid resource list
    """
    items = load_config_document(content, source)
    if not isinstance(items, list):
        raise ConfigDecodeError("expected a JSON array of resources", source)
    try:
        return [model.model_validate(item) for item in items]
    except ValidationError as e:
        raise ConfigDecodeError(str(e), source) from e


class DriftService:
    """
    Runs drift detection and IaC reconciliation over resources supplied by
    the caller. Fetching resources and storing results are left to the caller.
    """

    def __init__(self, catalog: Optional[SecurityRuleCatalog] = None):
        self.catalog = catalog

    def detect(self, snapshot: ResourceSnapshot) -> ResourceDriftResult:
        result = detect_drift(snapshot.resource_type, snapshot.baseline, snapshot.current, self.catalog)
        return ResourceDriftResult(
            resource_id=snapshot.resource_id,
            resource_type=snapshot.resource_type,
            provider=snapshot.provider,
            baseline_hash=calculate_hash(snapshot.baseline),
            current_hash=calculate_hash(snapshot.current),
            result=result,
        )

    def detect_drifts(self, snapshots: Iterable[ResourceSnapshot]) -> DriftScanReport:
        """
        Detect drift for each resource against its baseline.

        Resources without a baseline are not compared; their ids are returned
        in ``needs_baseline`` so the caller can record their current state as
        the first baseline.

        Args:
            snapshots: Decoded resource snapshots

        Returns:
            DriftScanReport with per-resource results and severity counts
        """
        report = DriftScanReport(summary_by_severity={severity: 0 for severity in Severity})
        logger.info("Starting drift detection")

        for snapshot in snapshots:
            report.resources_scanned += 1

            if snapshot.current is None:
                logger.debug(f"Skipping resource {snapshot.resource_id} without configuration data")
                report.skipped.append(snapshot.resource_id)
                continue

            if snapshot.baseline is None:
                logger.info(f"No baseline for resource {snapshot.resource_id}, current state should become the baseline")
                report.needs_baseline.append(snapshot.resource_id)
                continue

            entry = self.detect(snapshot)
            report.results.append(entry)

            if entry.result.has_drift:
                report.drifts_detected += 1
                report.summary_by_severity[entry.result.severity] += 1
                logger.info(
                    f"Drift detected for {snapshot.resource_id}: "
                    f"type={entry.result.drift_type.value}, severity={entry.result.severity.value}"
                )

        logger.info(
            f"Drift detection completed: {report.resources_scanned} resources, "
            f"{report.drifts_detected} drifts detected"
        )
        return report

    def detect_drifts_from_documents(self, documents: Iterable[SnapshotDocument]) -> DriftScanReport:
        """
        Decode raw JSON snapshots and detect drift.

        A resource whose documents fail to decode is logged, recorded in
        ``errors`` and skipped; the rest of the batch is still scanned.
        """
        snapshots = []
        errors = {}

        for document in documents:
            try:
                snapshots.append(ResourceSnapshot(
                    resource_id=document.resource_id,
                    resource_type=document.resource_type,
                    provider=document.provider,
                    baseline=self._decode_optional(document.baseline, f"baseline of {document.resource_id}"),
                    current=self._decode_optional(document.current, f"current config of {document.resource_id}"),
                ))
            except ConfigDecodeError as e:
                logger.error(f"Failed to decode configuration for {document.resource_id}: {e}")
                errors[document.resource_id] = str(e)

        report = self.detect_drifts(snapshots)
        report.errors.update(errors)
        report.resources_scanned += len(errors)
        return report

    @staticmethod
    def _decode_optional(content: Optional[str], source: str) -> ConfigValue:
        if content is None or content == "":
            return None
        return load_config_document(content, source)

    def reconcile(
        self,
        declared: Iterable[DeclaredResource],
        actual: Iterable[ActualResource],
    ) -> IaCReconciliationReport:
        """Reconcile IaC declarations with deployed resources and summarize the verdicts."""
        verdicts = reconcile(list(declared), list(actual))
        summary = summarize_verdicts(verdicts)
        logger.info(
            f"IaC reconciliation completed: {summary.total} resources, "
            + ", ".join(f"{category.value}={count}" for category, count in summary.by_category.items())
        )
        return IaCReconciliationReport(verdicts=verdicts, summary=summary)
