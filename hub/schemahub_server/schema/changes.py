"""
Change model for schema diffs.

Invariants:
    - Change and DiffResult are immutable values
    - DiffResult.changes is always sorted by Change.sort_key
    - Severity is the structural label; in_use records practical impact
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple


class ChangeKind(Enum):
    """Coarse direction of a change."""

    ADDITION = "ADDITION"
    REMOVAL = "REMOVAL"
    MODIFICATION = "MODIFICATION"


class Severity(Enum):
    """Structural impact of a change on existing clients."""

    BREAKING = "BREAKING"
    DANGEROUS = "DANGEROUS"
    SAFE = "SAFE"


class ChangeType(Enum):
    """Individual rules the diff engine can report.

    Each value carries its ChangeKind; default severities live in policy.py.
    """

    TYPE_ADDED = ("TYPE_ADDED", ChangeKind.ADDITION)
    TYPE_REMOVED = ("TYPE_REMOVED", ChangeKind.REMOVAL)
    TYPE_KIND_CHANGED = ("TYPE_KIND_CHANGED", ChangeKind.MODIFICATION)
    ROOT_TYPE_CHANGED = ("ROOT_TYPE_CHANGED", ChangeKind.MODIFICATION)

    FIELD_ADDED = ("FIELD_ADDED", ChangeKind.ADDITION)
    FIELD_REMOVED = ("FIELD_REMOVED", ChangeKind.REMOVAL)
    FIELD_TYPE_CHANGED = ("FIELD_TYPE_CHANGED", ChangeKind.MODIFICATION)
    FIELD_TYPE_NARROWED = ("FIELD_TYPE_NARROWED", ChangeKind.MODIFICATION)
    FIELD_MADE_NON_NULL = ("FIELD_MADE_NON_NULL", ChangeKind.MODIFICATION)
    FIELD_DEPRECATED = ("FIELD_DEPRECATED", ChangeKind.MODIFICATION)
    FIELD_UNDEPRECATED = ("FIELD_UNDEPRECATED", ChangeKind.MODIFICATION)

    ARGUMENT_ADDED = ("ARGUMENT_ADDED", ChangeKind.ADDITION)
    ARGUMENT_REQUIRED_ADDED = ("ARGUMENT_REQUIRED_ADDED", ChangeKind.ADDITION)
    ARGUMENT_REMOVED = ("ARGUMENT_REMOVED", ChangeKind.REMOVAL)
    ARGUMENT_TYPE_CHANGED = ("ARGUMENT_TYPE_CHANGED", ChangeKind.MODIFICATION)
    ARGUMENT_TYPE_WIDENED = ("ARGUMENT_TYPE_WIDENED", ChangeKind.MODIFICATION)
    ARGUMENT_DEFAULT_CHANGED = ("ARGUMENT_DEFAULT_CHANGED", ChangeKind.MODIFICATION)
    ARGUMENT_DEPRECATED = ("ARGUMENT_DEPRECATED", ChangeKind.MODIFICATION)
    ARGUMENT_UNDEPRECATED = ("ARGUMENT_UNDEPRECATED", ChangeKind.MODIFICATION)

    INPUT_FIELD_ADDED = ("INPUT_FIELD_ADDED", ChangeKind.ADDITION)
    INPUT_FIELD_REQUIRED_ADDED = ("INPUT_FIELD_REQUIRED_ADDED", ChangeKind.ADDITION)
    INPUT_FIELD_REMOVED = ("INPUT_FIELD_REMOVED", ChangeKind.REMOVAL)
    INPUT_FIELD_TYPE_CHANGED = ("INPUT_FIELD_TYPE_CHANGED", ChangeKind.MODIFICATION)
    INPUT_FIELD_TYPE_WIDENED = ("INPUT_FIELD_TYPE_WIDENED", ChangeKind.MODIFICATION)
    INPUT_FIELD_DEFAULT_CHANGED = ("INPUT_FIELD_DEFAULT_CHANGED", ChangeKind.MODIFICATION)
    INPUT_FIELD_DEPRECATED = ("INPUT_FIELD_DEPRECATED", ChangeKind.MODIFICATION)
    INPUT_FIELD_UNDEPRECATED = ("INPUT_FIELD_UNDEPRECATED", ChangeKind.MODIFICATION)

    ENUM_VALUE_ADDED = ("ENUM_VALUE_ADDED", ChangeKind.ADDITION)
    ENUM_VALUE_REMOVED = ("ENUM_VALUE_REMOVED", ChangeKind.REMOVAL)
    ENUM_VALUE_DEPRECATED = ("ENUM_VALUE_DEPRECATED", ChangeKind.MODIFICATION)
    ENUM_VALUE_UNDEPRECATED = ("ENUM_VALUE_UNDEPRECATED", ChangeKind.MODIFICATION)

    UNION_MEMBER_ADDED = ("UNION_MEMBER_ADDED", ChangeKind.ADDITION)
    UNION_MEMBER_REMOVED = ("UNION_MEMBER_REMOVED", ChangeKind.REMOVAL)
    INTERFACE_ADDED = ("INTERFACE_ADDED", ChangeKind.ADDITION)
    INTERFACE_REMOVED = ("INTERFACE_REMOVED", ChangeKind.REMOVAL)

    DIRECTIVE_USAGE_ADDED = ("DIRECTIVE_USAGE_ADDED", ChangeKind.ADDITION)
    DIRECTIVE_USAGE_REMOVED = ("DIRECTIVE_USAGE_REMOVED", ChangeKind.REMOVAL)

    def __init__(self, label: str, kind: ChangeKind) -> None:
        self.label = label
        self.kind = kind

    @classmethod
    def from_name(cls, name: str) -> ChangeType:
        """Look up a change type by name.

        Raises:
            ValueError: If name is not a known change type
        """
        try:
            return cls[name]
        except KeyError:
            valid = ", ".join(sorted(c.name for c in cls))
            raise ValueError(f"Unknown change type '{name}'. Valid types: {valid}") from None


@dataclass(frozen=True)
class Change:
    """A single difference between two schema versions.

    Attributes:
        change_type: Rule that produced the change
        severity: Structural severity under the active policy
        path: Dotted path to the changed element, e.g. "Query.user.id"
        description: Human-readable description of the change
        in_use: Whether the path intersects recorded usage
    """

    change_type: ChangeType
    severity: Severity
    path: str
    description: str
    in_use: bool = True

    @property
    def kind(self) -> ChangeKind:
        return self.change_type.kind

    @property
    def is_breaking(self) -> bool:
        return self.severity == Severity.BREAKING

    @property
    def sort_key(self) -> Tuple[str, str, str]:
        return (self.path, self.change_type.name, self.description)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "path": self.path,
            "description": self.description,
            "change_type": self.change_type.name,
            "in_use": self.in_use,
        }

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.change_type.name}: {self.path} - {self.description}"


def path_in_usage(path: str, usage: FrozenSet[str]) -> bool:
    """Whether a change path intersects a set of used paths.

    A path intersects when it is used itself, when something below it is
    used (a type whose field is queried), or when something above it is used
    (an argument of a queried field).
    """
    if path in usage:
        return True
    prefix = path + "."
    for used in usage:
        if used.startswith(prefix) or path.startswith(used + "."):
            return True
    return False


@dataclass(frozen=True)
class DiffResult:
    """Structural diff between two schema versions.

    Attributes:
        from_version_id: Baseline version (None for ad-hoc SDL)
        to_version_id: Target version (None for an unsaved candidate)
        changes: Changes sorted by (path, change type, description)
    """

    from_version_id: Optional[str]
    to_version_id: Optional[str]
    changes: Tuple[Change, ...] = field(default_factory=tuple)

    @property
    def breaking(self) -> List[Change]:
        return [c for c in self.changes if c.severity == Severity.BREAKING]

    @property
    def dangerous(self) -> List[Change]:
        return [c for c in self.changes if c.severity == Severity.DANGEROUS]

    @property
    def safe(self) -> List[Change]:
        return [c for c in self.changes if c.severity == Severity.SAFE]

    def with_usage(self, usage: Optional[Iterable[str]]) -> DiffResult:
        """Return a copy with ``in_use`` computed against ``usage``.

        With no usage information at all every change is treated as in use.
        """
        if usage is None:
            changes = tuple(replace(c, in_use=True) for c in self.changes)
        else:
            used = frozenset(usage)
            changes = tuple(replace(c, in_use=path_in_usage(c.path, used)) for c in self.changes)
        return replace(self, changes=changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_version_id": self.from_version_id,
            "to_version_id": self.to_version_id,
            "changes": [c.to_dict() for c in self.changes],
        }


@dataclass(frozen=True)
class CheckResult:
    """Outcome of checking a candidate schema against a tag.

    Attributes:
        diff: Full diff with usage applied
        has_breaking_changes: True iff a BREAKING change is in use
    """

    diff: DiffResult

    @property
    def has_breaking_changes(self) -> bool:
        return any(c.is_breaking and c.in_use for c in self.diff.changes)

    @property
    def changes(self) -> Tuple[Change, ...]:
        return self.diff.changes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_breaking_changes": self.has_breaking_changes,
            "from_version_id": self.diff.from_version_id,
            "changes": [c.to_dict() for c in self.diff.changes],
        }
