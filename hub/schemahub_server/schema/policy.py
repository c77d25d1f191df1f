"""
Severity policy for schema changes.

The policy maps every ChangeType to a Severity. The defaults below encode the
registry's compatibility rules; deployments can override individual entries
with a YAML file:

    severities:
      FIELD_MADE_NON_NULL: SAFE
      UNION_MEMBER_ADDED: SAFE

Invariants:
    - Every ChangeType has a severity (defaults fill anything not overridden)
    - Unknown change types or severities in overrides are rejected at load

How to change safely:
    - Tightening a default (SAFE -> BREAKING) can fail CI for existing users
    - Prefer overrides over editing the defaults for deployment-specific rules
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .changes import ChangeType, Severity

logger = logging.getLogger(__name__)


DEFAULT_SEVERITIES: Dict[ChangeType, Severity] = {
    # Removals break every client that selects or sends the element
    ChangeType.TYPE_REMOVED: Severity.BREAKING,
    ChangeType.FIELD_REMOVED: Severity.BREAKING,
    ChangeType.ARGUMENT_REMOVED: Severity.BREAKING,
    ChangeType.INPUT_FIELD_REMOVED: Severity.BREAKING,
    ChangeType.ENUM_VALUE_REMOVED: Severity.BREAKING,
    ChangeType.UNION_MEMBER_REMOVED: Severity.BREAKING,
    ChangeType.INTERFACE_REMOVED: Severity.BREAKING,
    # Incompatible type changes
    ChangeType.TYPE_KIND_CHANGED: Severity.BREAKING,
    ChangeType.ROOT_TYPE_CHANGED: Severity.BREAKING,
    ChangeType.FIELD_TYPE_CHANGED: Severity.BREAKING,
    ChangeType.ARGUMENT_TYPE_CHANGED: Severity.BREAKING,
    ChangeType.INPUT_FIELD_TYPE_CHANGED: Severity.BREAKING,
    # New mandatory inputs
    ChangeType.ARGUMENT_REQUIRED_ADDED: Severity.BREAKING,
    ChangeType.INPUT_FIELD_REQUIRED_ADDED: Severity.BREAKING,
    # Valid for existing queries, but may change observed behavior
    ChangeType.FIELD_DEPRECATED: Severity.DANGEROUS,
    ChangeType.FIELD_MADE_NON_NULL: Severity.DANGEROUS,
    ChangeType.ENUM_VALUE_DEPRECATED: Severity.DANGEROUS,
    ChangeType.ARGUMENT_DEPRECATED: Severity.DANGEROUS,
    ChangeType.INPUT_FIELD_DEPRECATED: Severity.DANGEROUS,
    ChangeType.ARGUMENT_DEFAULT_CHANGED: Severity.DANGEROUS,
    ChangeType.INPUT_FIELD_DEFAULT_CHANGED: Severity.DANGEROUS,
    ChangeType.UNION_MEMBER_ADDED: Severity.DANGEROUS,
    ChangeType.DIRECTIVE_USAGE_REMOVED: Severity.DANGEROUS,
    # Additions and relaxations
    ChangeType.TYPE_ADDED: Severity.SAFE,
    ChangeType.FIELD_ADDED: Severity.SAFE,
    ChangeType.FIELD_TYPE_NARROWED: Severity.SAFE,
    ChangeType.FIELD_UNDEPRECATED: Severity.SAFE,
    ChangeType.ARGUMENT_ADDED: Severity.SAFE,
    ChangeType.ARGUMENT_TYPE_WIDENED: Severity.SAFE,
    ChangeType.INPUT_FIELD_ADDED: Severity.SAFE,
    ChangeType.INPUT_FIELD_TYPE_WIDENED: Severity.SAFE,
    ChangeType.ENUM_VALUE_ADDED: Severity.SAFE,
    ChangeType.ENUM_VALUE_UNDEPRECATED: Severity.SAFE,
    ChangeType.ARGUMENT_UNDEPRECATED: Severity.SAFE,
    ChangeType.INPUT_FIELD_UNDEPRECATED: Severity.SAFE,
    ChangeType.INTERFACE_ADDED: Severity.SAFE,
    ChangeType.DIRECTIVE_USAGE_ADDED: Severity.SAFE,
}


class SeverityPolicy:
    """Maps change types to severities.

    Example:
        >>> policy = SeverityPolicy({ChangeType.UNION_MEMBER_ADDED: Severity.SAFE})
        >>> policy.severity_for(ChangeType.UNION_MEMBER_ADDED)
        <Severity.SAFE: 'SAFE'>
        >>> policy.severity_for(ChangeType.FIELD_REMOVED)
        <Severity.BREAKING: 'BREAKING'>
    """

    def __init__(self, overrides: Optional[Mapping[ChangeType, Severity]] = None) -> None:
        self._severities: Dict[ChangeType, Severity] = dict(DEFAULT_SEVERITIES)
        self._overrides: Dict[ChangeType, Severity] = dict(overrides or {})
        self._severities.update(self._overrides)

    @property
    def overrides(self) -> Dict[ChangeType, Severity]:
        """Entries that replace a built-in default."""
        return dict(self._overrides)

    def severity_for(self, change_type: ChangeType) -> Severity:
        return self._severities[change_type]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SeverityPolicy:
        """Create a policy from a parsed override document.

        Args:
            data: Mapping with a ``severities`` mapping of change type name
                to severity name

        Raises:
            ValueError: If a change type or severity name is unknown
        """
        raw = data.get("severities") or {}
        if not isinstance(raw, Mapping):
            raise ValueError("'severities' must be a mapping of change type to severity")

        overrides: Dict[ChangeType, Severity] = {}
        for type_name, severity_name in raw.items():
            change_type = ChangeType.from_name(str(type_name))
            try:
                severity = Severity(str(severity_name).upper())
            except ValueError:
                raise ValueError(
                    f"Invalid severity '{severity_name}' for {type_name}. "
                    "Must be one of: BREAKING, DANGEROUS, SAFE"
                ) from None
            overrides[change_type] = severity
        return cls(overrides)

    @classmethod
    def from_yaml(cls, path: str) -> SeverityPolicy:
        """Load severity overrides from a YAML file.

        Args:
            path: Path to the YAML policy file

        Returns:
            SeverityPolicy with the file's overrides applied
        """
        text = Path(path).read_text()
        data = yaml.safe_load(text) or {}
        if not isinstance(data, Mapping):
            raise ValueError(f"Severity policy {path} must be a YAML mapping")
        policy = cls.from_dict(data)
        logger.info(
            f"Loaded severity policy from {path} with {len(policy.overrides)} override(s)"
        )
        return policy
