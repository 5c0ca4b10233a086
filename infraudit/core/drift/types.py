"""
Drift Detection Types
--------------------
This module defines the type system used for drift detection, including
severities, drift types, field-level changes and the results produced by the
detector and the IaC reconciler.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ChangeKind(str, Enum):
    """How a single field differs between two snapshots."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class Severity(str, Enum):
    """Severity levels for detected drift, ordered by ``rank``."""

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def highest(cls, severities: Iterable["Severity"]) -> Optional["Severity"]:
        """Return the most severe level in ``severities``, or None if empty."""
        return max(severities, key=lambda s: s.rank, default=None)


_SEVERITY_RANK = {
    Severity.INFO: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class DriftType(str, Enum):
    """Security domain a drift belongs to."""

    ENCRYPTION = "encryption"
    SECURITY_GROUP = "security_group"
    IAM_POLICY = "iam_policy"
    NETWORK_RULE = "network_rule"
    CONFIGURATION_CHANGE = "configuration_change"


# Highest priority first. A batch takes the first type present, not the most frequent.
DRIFT_TYPE_PRIORITY = (
    DriftType.ENCRYPTION,
    DriftType.SECURITY_GROUP,
    DriftType.IAM_POLICY,
    DriftType.NETWORK_RULE,
    DriftType.CONFIGURATION_CHANGE,
)


class DriftCategory(str, Enum):
    """Outcome of reconciling one resource address."""

    MISSING = "missing"      # declared but not deployed
    SHADOW = "shadow"        # deployed but not declared
    MODIFIED = "modified"    # both exist, configuration differs
    COMPLIANT = "compliant"  # both exist, configuration matches


class FieldChange(BaseModel):
    """
    A single field-level difference between two configurations.

    ``path`` is a dotted, bracket-indexed locator such as ``a.b[2].c``.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    kind: ChangeKind

    @model_validator(mode="after")
    def _check_values(self) -> "FieldChange":
        if self.old_value is None and self.new_value is None:
            raise ValueError(f"change at '{self.path}' has neither an old nor a new value")
        return self

    @property
    def field(self) -> str:
        """The last path segment, without any index suffix."""
        last = self.path.rsplit(".", 1)[-1]
        return last.split("[", 1)[0]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return self.model_dump(mode="json")


class DetectionResult(BaseModel):
    """Outcome of comparing a resource's baseline and current configuration."""

    has_drift: bool
    drift_type: Optional[DriftType] = None
    severity: Optional[Severity] = None
    narrative: str = ""
    changes: List[FieldChange] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_consistency(self) -> "DetectionResult":
        if self.has_drift:
            if not self.changes:
                raise ValueError("a drift result must carry at least one change")
        elif self.changes or self.severity is not None or self.drift_type is not None:
            raise ValueError("a result without drift cannot carry changes, severity or drift type")
        return self

    @classmethod
    def no_drift(cls) -> "DetectionResult":
        return cls(has_drift=False, narrative="No changes detected")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class ResourceDescriptor(BaseModel):
    """Common shape of declared and deployed resources."""

    address: str
    resource_type: str
    provider: str = ""
    configuration: Any = Field(default_factory=dict)
    name: Optional[str] = None
    resource_id: Optional[str] = None

    def ref(self) -> "ResourceRef":
        return ResourceRef(
            address=self.address,
            resource_type=self.resource_type,
            provider=self.provider,
            name=self.name,
            resource_id=self.resource_id,
        )


class DeclaredResource(ResourceDescriptor):
    """A resource as declared in an infrastructure-as-code definition."""


class ActualResource(ResourceDescriptor):
    """A resource as deployed in a cloud account."""


class ResourceRef(BaseModel):
    """Lightweight reference to a resource, without its configuration."""

    model_config = ConfigDict(frozen=True)

    address: str
    resource_type: str
    provider: str = ""
    name: Optional[str] = None
    resource_id: Optional[str] = None


class ReconciliationVerdict(BaseModel):
    """Reconciliation outcome for one resource address."""

    category: DriftCategory
    address: str
    resource_type: str
    provider: str = ""
    declared: Optional[ResourceRef] = None
    actual: Optional[ResourceRef] = None
    severity: Severity
    change_count: int = 0
    changes: List[FieldChange] = Field(default_factory=list)
    narrative: str
    recommendation: str = ""

    @model_validator(mode="after")
    def _check_refs(self) -> "ReconciliationVerdict":
        if self.category == DriftCategory.MISSING and (self.declared is None or self.actual is not None):
            raise ValueError("a missing verdict references only the declared resource")
        if self.category == DriftCategory.SHADOW and (self.actual is None or self.declared is not None):
            raise ValueError("a shadow verdict references only the actual resource")
        if self.category in (DriftCategory.MODIFIED, DriftCategory.COMPLIANT):
            if self.declared is None or self.actual is None:
                raise ValueError(f"a {self.category.value} verdict references both resources")
        if self.change_count != len(self.changes):
            raise ValueError("change_count does not match the number of changes")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class ReconciliationSummary(BaseModel):
    """Verdict counts per category and per severity."""

    total: int = 0
    by_category: Dict[DriftCategory, int] = Field(default_factory=dict)
    by_severity: Dict[Severity, int] = Field(default_factory=dict)

    @property
    def has_drift(self) -> bool:
        return any(
            count for category, count in self.by_category.items()
            if category != DriftCategory.COMPLIANT
        )
