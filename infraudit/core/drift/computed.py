"""
Computed Fields
---------------
Provider-assigned attributes that legitimately differ between an IaC
declaration and the deployed resource. They are never reported as drift when
they only appear on the deployed side.
"""

from typing import Iterable, Optional

from infraudit.core.drift.values import ConfigValue

COMPUTED_FIELDS = frozenset({
    "id",
    "arn",
    "self_link",
    "created_at",
    "updated_at",
    "creation_timestamp",
    "uid",
    "resource_version",
    "generation",
    "managed_fields",
    "status",
    "instance_id",
    "public_ip",
    "public_dns",
    "private_ip",
    "private_dns",
})


def is_computed_field(name: str) -> bool:
    return name in COMPUTED_FIELDS


class ComputedFieldFilter:
    """
    Exclusion predicate for ``compare_configs``.

    Matches field names exactly against the built-in computed fields plus any
    ``extra`` names.
    """

    def __init__(self, extra: Optional[Iterable[str]] = None):
        self.fields = COMPUTED_FIELDS.union(extra or ())

    def __call__(self, key: str, value: ConfigValue = None) -> bool:
        return key in self.fields

    def __contains__(self, key: str) -> bool:
        return key in self.fields

    def __repr__(self) -> str:
        return f"ComputedFieldFilter({len(self.fields)} fields)"
