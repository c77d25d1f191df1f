"""
Schema module for SchemaHub.

This module provides the diff/validation engine:
- SDL parsing into a typed graph (TypeDef, FieldDef, ...)
- Structural diffing with severity classification
- Configurable severity policy
- Usage-aware breaking change checks

Invariants:
    - SDL is always parsed into the typed graph before diffing
    - Diffs are pure and deterministic
    - Severity rules come from a SeverityPolicy, never hard-coded at call sites

How to change safely:
    - Add new change types with a default severity in policy.py
    - Run the compat unit tests for every new rule
"""

from .changes import (
    Change,
    ChangeKind,
    ChangeType,
    CheckResult,
    DiffResult,
    Severity,
)
from .compat import diff_schemas
from .engine import DiffEngine, content_hash
from .parser import parse_sdl, validate_sdl
from .policy import DEFAULT_SEVERITIES, SeverityPolicy
from .types import (
    ArgumentDef,
    EnumValueDef,
    FieldDef,
    SchemaGraph,
    TypeDef,
    TypeKind,
    TypeRef,
)

__all__ = [
    # Graph
    "SchemaGraph",
    "TypeDef",
    "TypeKind",
    "TypeRef",
    "FieldDef",
    "ArgumentDef",
    "EnumValueDef",
    "parse_sdl",
    "validate_sdl",
    # Changes
    "Change",
    "ChangeKind",
    "ChangeType",
    "Severity",
    "DiffResult",
    "CheckResult",
    "diff_schemas",
    # Policy
    "SeverityPolicy",
    "DEFAULT_SEVERITIES",
    # Engine
    "DiffEngine",
    "content_hash",
]
