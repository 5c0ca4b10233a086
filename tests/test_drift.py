"""
Drift Detection Tests
------------------
Tests for the structural configuration diff and for end-to-end drift
detection and classification.
"""

from copy import deepcopy

import pytest

from infraudit.core.drift.detector import compare_configs, detect_drift
from infraudit.core.drift.types import ChangeKind, DetectionResult, DriftType, Severity

# ========== TESTS FOR CONFIGURATION COMPARISON ========== #

@pytest.mark.parametrize("value", [
    None,
    True,
    42,
    "text",
    [1, [2, 3], {"a": None}],
    {"a": {"b": [1, 2, {"c": "d"}]}, "e": None},
])
def test_compare_identical_values(value):
    """A value compared with itself yields no changes"""
    assert compare_configs(value, deepcopy(value)) == []


def test_compare_with_added_field():
    """Test comparison with added field"""
    # Arrange
    old = {"a": 1}
    new = {"a": 1, "b": 2}

    # Act
    changes = compare_configs(old, new)

    # Assert
    assert len(changes) == 1
    assert changes[0].path == "b"
    assert changes[0].kind == ChangeKind.ADDED
    assert changes[0].old_value is None
    assert changes[0].new_value == 2


def test_compare_with_removed_field():
    """Test comparison with removed field"""
    # Act
    changes = compare_configs({"a": 1, "b": 2}, {"b": 2})

    # Assert
    assert len(changes) == 1
    assert changes[0].path == "a"
    assert changes[0].kind == ChangeKind.REMOVED
    assert changes[0].old_value == 1
    assert changes[0].new_value is None


def test_removed_subtree_is_reported_once():
    """A removed mapping is reported at its own key, not leaf by leaf"""
    old = {"logging": {"enabled": True, "target": "logs"}}
    new = {}

    changes = compare_configs(old, new)

    assert len(changes) == 1
    assert changes[0].path == "logging"
    assert changes[0].old_value == {"enabled": True, "target": "logs"}


def test_compare_nested_objects():
    """Test comparison of nested objects"""
    # Arrange
    old = {"level1": {"level2": {"value": "original"}}}
    new = {"level1": {"level2": {"value": "changed"}}}

    # Act
    changes = compare_configs(old, new)

    # Assert
    assert len(changes) == 1
    assert changes[0].path == "level1.level2.value"
    assert changes[0].kind == ChangeKind.MODIFIED
    assert changes[0].old_value == "original"
    assert changes[0].new_value == "changed"


def test_compare_arrays():
    """Equal-length arrays are compared element by element"""
    changes = compare_configs({"items": [1, 2, 3]}, {"items": [1, 2, 4]})

    assert len(changes) == 1
    assert changes[0].path == "items[2]"
    assert changes[0].old_value == 3
    assert changes[0].new_value == 4


def test_compare_arrays_different_length():
    """A length change is one modified change for the whole array"""
    changes = compare_configs({"items": [1, 2, 3]}, {"items": [1, 2, 3, 4]})

    assert len(changes) == 1
    assert changes[0].path == "items"
    assert changes[0].kind == ChangeKind.MODIFIED
    assert changes[0].old_value == [1, 2, 3]
    assert changes[0].new_value == [1, 2, 3, 4]


def test_compare_object_arrays():
    """Objects inside arrays are compared with indexed paths"""
    old = {"rules": [{"port": 22, "cidr": "10.0.0.0/8"}, {"port": 443, "cidr": "10.0.0.0/8"}]}
    new = {"rules": [{"port": 22, "cidr": "10.0.0.0/8"}, {"port": 443, "cidr": "0.0.0.0/0"}]}

    changes = compare_configs(old, new)

    assert [c.path for c in changes] == ["rules[1].cidr"]


def test_shape_mismatch_is_single_modified_change():
    """A mapping replaced by a scalar is not recursed into"""
    changes = compare_configs({"encryption": {"enabled": True}}, {"encryption": "none"})

    assert len(changes) == 1
    assert changes[0].path == "encryption"
    assert changes[0].kind == ChangeKind.MODIFIED
    assert changes[0].old_value == {"enabled": True}
    assert changes[0].new_value == "none"


def test_type_strict_scalar_change():
    """A number turned into a string is a change"""
    changes = compare_configs({"port": 22}, {"port": "22"})

    assert len(changes) == 1
    assert changes[0].kind == ChangeKind.MODIFIED


def test_null_values():
    """Null on one side is an addition or removal, null on both is nothing"""
    assert compare_configs(None, None) == []
    assert compare_configs({"a": None}, {}) == []
    assert compare_configs({}, {"a": None}) == []

    added = compare_configs({"a": None}, {"a": 5})
    assert len(added) == 1
    assert added[0].kind == ChangeKind.ADDED
    assert added[0].path == "a"

    removed = compare_configs({"a": 5}, {"a": None})
    assert removed[0].kind == ChangeKind.REMOVED


def test_root_scalar_change_uses_root_path():
    changes = compare_configs("a", "b")

    assert changes[0].path == "root"


def test_root_array_paths():
    changes = compare_configs([1, 2], [1, 3])

    assert changes[0].path == "[1]"


def test_output_order_is_deterministic():
    """Insertion order of keys does not change the output"""
    old_a = {"z": 1, "a": 1, "m": {"y": 1, "b": 1}}
    new_a = {"z": 2, "a": 2, "m": {"y": 2, "b": 2}, "n": 1, "c": 1}
    old_b = {"m": {"b": 1, "y": 1}, "a": 1, "z": 1}
    new_b = {"c": 1, "n": 1, "m": {"b": 2, "y": 2}, "a": 2, "z": 2}

    paths_a = [c.path for c in compare_configs(old_a, new_a)]
    paths_b = [c.path for c in compare_configs(old_b, new_b)]

    assert paths_a == paths_b
    assert paths_a == ["a", "m.b", "m.y", "z", "c", "n"]


def test_exclude_predicate_only_suppresses_additions():
    """The exclusion predicate hides added keys but never removed or modified ones"""
    exclude = lambda key, value: key == "id"

    assert compare_configs({"name": "x"}, {"name": "x", "id": "i-1"}, exclude=exclude) == []
    assert compare_configs({"name": "x", "id": None}, {"name": "x", "id": "i-1"}, exclude=exclude) == []

    removed = compare_configs({"name": "x", "id": "i-1"}, {"name": "x"}, exclude=exclude)
    assert [c.kind for c in removed] == [ChangeKind.REMOVED]

    modified = compare_configs({"id": "i-1"}, {"id": "i-2"}, exclude=exclude)
    assert [c.kind for c in modified] == [ChangeKind.MODIFIED]


def test_exclude_applies_at_any_depth():
    exclude = lambda key, value: key == "status"

    changes = compare_configs({"spec": {"a": 1}}, {"spec": {"a": 1, "status": "ok"}}, exclude=exclude)

    assert changes == []


# ========== TESTS FOR DRIFT DETECTION ========== #

def test_detect_no_drift(s3_config):
    """Identical snapshots produce an empty result"""
    result = detect_drift("s3-bucket", s3_config, deepcopy(s3_config))

    assert result.has_drift is False
    assert result.changes == []
    assert result.severity is None
    assert result.drift_type is None


def test_detect_encryption_disabled_end_to_end():
    """Disabling bucket encryption is critical encryption drift"""
    # Arrange
    baseline = {"encryption": {"enabled": True}}
    current = {"encryption": {"enabled": False}}

    # Act
    result = detect_drift("s3_bucket", baseline, current)

    # Assert
    assert result.has_drift is True
    assert result.severity == Severity.CRITICAL
    assert result.drift_type == DriftType.ENCRYPTION
    assert len(result.changes) == 1
    change = result.changes[0]
    assert change.path == "encryption.enabled"
    assert change.kind == ChangeKind.MODIFIED
    assert change.old_value is True
    assert change.new_value is False


def test_detect_benign_change_is_low(s3_config):
    """A tag change matches no rule and defaults to low configuration change"""
    current = deepcopy(s3_config)
    current["tags"]["team"] = "platform"

    result = detect_drift("s3-bucket", s3_config, current)

    assert result.severity == Severity.LOW
    assert result.drift_type == DriftType.CONFIGURATION_CHANGE
    assert "tags.team: modified (was: security, now: platform)" in result.narrative


def test_detect_public_acl(s3_config):
    current = deepcopy(s3_config)
    current["acl"] = "public-read"

    result = detect_drift("s3-bucket", s3_config, current)

    assert result.severity == Severity.CRITICAL
    assert result.drift_type == DriftType.SECURITY_GROUP


def test_detect_security_group_opened(security_group_config):
    current = deepcopy(security_group_config)
    current["security_group"]["ingress"][1]["cidr_blocks"] = ["0.0.0.0/0"]

    result = detect_drift("security-group", security_group_config, current)

    assert result.severity == Severity.CRITICAL
    assert result.drift_type == DriftType.SECURITY_GROUP
    assert result.changes[0].path == "security_group.ingress[1].cidr_blocks[0]"


def test_detect_unknown_resource_type_uses_common_rules():
    result = detect_drift("made-up-type", {"logging": True}, {"logging": False})

    assert result.severity == Severity.HIGH
    assert result.drift_type == DriftType.CONFIGURATION_CHANGE


def test_detection_result_serializes_stably():
    result = detect_drift("s3-bucket", {"encryption": {"enabled": True}}, {"encryption": {"enabled": False}})

    data = result.to_dict()

    assert data["has_drift"] is True
    assert data["severity"] == "critical"
    assert data["drift_type"] == "encryption"
    assert data["changes"] == [{
        "path": "encryption.enabled",
        "old_value": True,
        "new_value": False,
        "kind": "modified",
    }]


def test_no_drift_result_is_consistent():
    result = DetectionResult.no_drift()

    assert result.to_dict() == {
        "has_drift": False,
        "drift_type": None,
        "severity": None,
        "narrative": "No changes detected",
        "changes": [],
    }
