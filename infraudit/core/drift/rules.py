"""
Security Rule Catalog
---------------------
Declarative security rules used to classify configuration changes.

Each rule pairs a field pattern with a severity, a drift type and an optional
predicate over the change. A rule applies to a change when the change path
contains the pattern (case-insensitive) and the predicate accepts the change.
Rules are grouped per resource type and evaluated in order, first match wins.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from infraudit.core.drift.types import ChangeKind, DriftType, FieldChange, Severity
from infraudit.core.drift.values import ValueKind, value_kind

ChangePredicate = Callable[[FieldChange], bool]

# Tokens that open a rule to every source
OPEN_CIDRS = ("0.0.0.0/0", "::/0")
CATCH_ALL_TOKENS = frozenset({"any", "all"})

# String values that mean a feature was switched off
DISABLED_VALUES = frozenset({"disabled", "none", "false"})

ESCALATION_MARKERS = ("*", "admin", "full")

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class SecurityRule:
    """A single row of the security rule catalog."""

    field_pattern: str
    severity: Severity
    drift_type: DriftType
    predicate: Optional[ChangePredicate] = None
    description: str = ""

    def matches(self, change: FieldChange) -> bool:
        if self.field_pattern.lower() not in change.path.lower():
            return False
        if self.predicate is None:
            return True
        return self.predicate(change)


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------

def _as_bool(value) -> Optional[bool]:
    return value if value_kind(value) == ValueKind.BOOL else None


def _as_lower_str(value) -> Optional[str]:
    return value.lower() if value_kind(value) == ValueKind.STRING else None


def _strings_in(value) -> Iterator[str]:
    """Yield every string inside a value, lower-cased, walking sequences and mappings."""
    kind = value_kind(value)
    if kind == ValueKind.STRING:
        yield value.lower()
    elif kind == ValueKind.SEQUENCE:
        for item in value:
            yield from _strings_in(item)
    elif kind == ValueKind.MAPPING:
        for item in value.values():
            yield from _strings_in(item)


def _normalized_path(change: FieldChange) -> str:
    return change.path.lower().replace("_", "").replace("-", "")


def _switched_off(change: FieldChange) -> bool:
    return _as_bool(change.old_value) is True and _as_bool(change.new_value) is False


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def is_encryption_disabled(change: FieldChange) -> bool:
    """Encryption went from enabled to disabled, or an enabled flag was removed."""
    if change.kind not in (ChangeKind.MODIFIED, ChangeKind.REMOVED):
        return False

    if _switched_off(change):
        return True

    if change.kind == ChangeKind.REMOVED and _as_bool(change.old_value) is True:
        return True

    old = _as_lower_str(change.old_value)
    new = _as_lower_str(change.new_value)
    if old is None or new is None:
        return False

    return (
        (old == "enabled" and new == "disabled")
        or (old == "aes256" and new == "none")
        or ("encrypt" in old and new == "none")
    )


def is_public_access_enabled(change: FieldChange) -> bool:
    """A flag was switched on (or added as true), or the new value mentions public access."""
    if change.kind not in (ChangeKind.MODIFIED, ChangeKind.ADDED):
        return False

    if _as_bool(change.new_value) is True and _as_bool(change.old_value) is not True:
        return True

    new = _as_lower_str(change.new_value)
    return new is not None and "public" in new


def is_public_access_granted(change: FieldChange) -> bool:
    """Public access enabled on a field that is not itself a public access block."""
    if "block" in _normalized_path(change):
        return False
    return is_public_access_enabled(change)


def is_public_access_block_disabled(change: FieldChange) -> bool:
    """A public access block flag went from true to false or was dropped."""
    if _switched_off(change):
        return True
    return change.kind == ChangeKind.REMOVED and _as_bool(change.old_value) is True


def is_storage_public_access_enabled(change: FieldChange) -> bool:
    """Object storage ACL made public, or a block-public-access flag turned off."""
    path = _normalized_path(change)
    if "blockpublic" in path:
        return _switched_off(change)
    if "acl" in path:
        return is_public_access_enabled(change)
    return False


def is_opened_to_world(change: FieldChange) -> bool:
    """A security group or firewall rule now allows any source."""
    if change.kind not in (ChangeKind.ADDED, ChangeKind.MODIFIED):
        return False

    for text in _strings_in(change.new_value):
        if any(cidr in text for cidr in OPEN_CIDRS):
            return True
        if CATCH_ALL_TOKENS.intersection(_TOKEN_SPLIT.split(text)):
            return True
    return False


def is_permission_escalation(change: FieldChange) -> bool:
    """A policy now grants wildcard, admin or full access."""
    if change.kind not in (ChangeKind.ADDED, ChangeKind.MODIFIED):
        return False
    return any(
        marker in text
        for text in _strings_in(change.new_value)
        for marker in ESCALATION_MARKERS
    )


def is_policy_changed(change: FieldChange) -> bool:
    return "policy" in change.path.lower() and is_value_changed(change)


def is_feature_disabled(change: FieldChange) -> bool:
    """Backup, logging or monitoring switched off."""
    if _switched_off(change):
        return True
    new = _as_lower_str(change.new_value)
    return new is not None and new in DISABLED_VALUES


def is_value_changed(change: FieldChange) -> bool:
    return change.kind in (ChangeKind.MODIFIED, ChangeKind.REMOVED)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

COMMON_RULES: Tuple[SecurityRule, ...] = (
    # Critical
    SecurityRule("encryption", Severity.CRITICAL, DriftType.ENCRYPTION,
                 is_encryption_disabled, "Encryption was disabled or removed"),
    SecurityRule("acl", Severity.CRITICAL, DriftType.SECURITY_GROUP,
                 is_storage_public_access_enabled, "Public access enabled through ACL"),
    SecurityRule("security_group", Severity.CRITICAL, DriftType.SECURITY_GROUP,
                 is_opened_to_world, "Security group open to the world"),
    SecurityRule("network", Severity.CRITICAL, DriftType.NETWORK_RULE,
                 is_opened_to_world, "Firewall rules allow unrestricted access"),
    # High
    SecurityRule("iam", Severity.HIGH, DriftType.IAM_POLICY,
                 is_permission_escalation, "IAM policy changed, potential permission escalation"),
    SecurityRule("policy", Severity.HIGH, DriftType.IAM_POLICY,
                 is_policy_changed, "Resource policy modified"),
    SecurityRule("backup", Severity.HIGH, DriftType.CONFIGURATION_CHANGE,
                 is_feature_disabled, "Backup configuration was disabled"),
    SecurityRule("logging", Severity.HIGH, DriftType.CONFIGURATION_CHANGE,
                 is_feature_disabled, "Access logging was disabled"),
    # Medium
    SecurityRule("versioning", Severity.MEDIUM, DriftType.CONFIGURATION_CHANGE,
                 is_value_changed, "Versioning configuration changed"),
    SecurityRule("ssh", Severity.MEDIUM, DriftType.SECURITY_GROUP,
                 is_value_changed, "SSH configuration changed"),
    SecurityRule("monitoring", Severity.MEDIUM, DriftType.CONFIGURATION_CHANGE,
                 is_feature_disabled, "Monitoring was disabled"),
)

STORAGE_RULES: Tuple[SecurityRule, ...] = (
    SecurityRule("public_access_block", Severity.CRITICAL, DriftType.SECURITY_GROUP,
                 is_public_access_block_disabled, "Public access block was disabled"),
    SecurityRule("public_access", Severity.CRITICAL, DriftType.SECURITY_GROUP,
                 is_public_access_granted, "Public access was enabled"),
)

COMPUTE_RULES: Tuple[SecurityRule, ...] = (
    SecurityRule("ingress", Severity.CRITICAL, DriftType.SECURITY_GROUP,
                 is_opened_to_world, "Ingress rule open to the world"),
    SecurityRule("associate_public_ip", Severity.HIGH, DriftType.NETWORK_RULE,
                 is_public_access_enabled, "Instance now receives a public IP address"),
)

DATABASE_RULES: Tuple[SecurityRule, ...] = (
    SecurityRule("storage_encrypted", Severity.CRITICAL, DriftType.ENCRYPTION,
                 is_encryption_disabled, "Storage encryption was disabled"),
    SecurityRule("publicly_accessible", Severity.CRITICAL, DriftType.NETWORK_RULE,
                 is_public_access_enabled, "Database made publicly accessible"),
    SecurityRule("deletion_protection", Severity.MEDIUM, DriftType.CONFIGURATION_CHANGE,
                 is_feature_disabled, "Deletion protection was disabled"),
)

STORAGE_TYPES = ("s3-bucket", "gcs-bucket", "azure-storage")
COMPUTE_TYPES = ("ec2-instance", "gce-instance", "azure-vm")
DATABASE_TYPES = ("rds-instance",)


def normalize_resource_type(resource_type: str) -> str:
    """Normalize a resource type so that "S3_Bucket" and "s3-bucket" are the same key."""
    return (resource_type or "").strip().lower().replace("_", "-")


class SecurityRuleCatalog:
    """
    Registry of security rules keyed by resource type.

    Unknown resource types fall back to the common rules. Catalogs are
    immutable, ``register`` returns a new catalog.
    """

    def __init__(
        self,
        rules_by_type: Optional[Mapping[str, Iterable[SecurityRule]]] = None,
        common_rules: Iterable[SecurityRule] = COMMON_RULES,
    ):
        self._common: Tuple[SecurityRule, ...] = tuple(common_rules)
        self._by_type: Dict[str, Tuple[SecurityRule, ...]] = {
            normalize_resource_type(resource_type): tuple(rules)
            for resource_type, rules in (rules_by_type or {}).items()
        }

    @property
    def common_rules(self) -> Tuple[SecurityRule, ...]:
        return self._common

    def resource_types(self) -> List[str]:
        return sorted(self._by_type)

    def rules_for(self, resource_type: str) -> Tuple[SecurityRule, ...]:
        """Return the ordered rules for a resource type, or the common rules if unknown."""
        return self._by_type.get(normalize_resource_type(resource_type), self._common)

    def register(
        self,
        resource_type: str,
        rules: Iterable[SecurityRule],
        include_common: bool = True,
    ) -> "SecurityRuleCatalog":
        """
        Return a new catalog with rules for ``resource_type`` placed ahead of
        whatever that type already had.

        Args:
            resource_type: Resource type the rules apply to
            rules: Rules to add, evaluated in the given order
            include_common: Append the common rules when the type is new

        Returns:
            A new SecurityRuleCatalog
        """
        key = normalize_resource_type(resource_type)
        existing = self._by_type.get(key)
        if existing is None:
            existing = self._common if include_common else ()

        by_type = dict(self._by_type)
        by_type[key] = tuple(rules) + existing
        return SecurityRuleCatalog(by_type, self._common)


def _build_default_catalog() -> SecurityRuleCatalog:
    rules_by_type = {}
    for resource_type in STORAGE_TYPES:
        rules_by_type[resource_type] = STORAGE_RULES + COMMON_RULES
    for resource_type in COMPUTE_TYPES:
        rules_by_type[resource_type] = COMPUTE_RULES + COMMON_RULES
    for resource_type in DATABASE_TYPES:
        rules_by_type[resource_type] = DATABASE_RULES + COMMON_RULES
    return SecurityRuleCatalog(rules_by_type)


DEFAULT_CATALOG = _build_default_catalog()
