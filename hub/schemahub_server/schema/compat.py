"""
Schema compatibility checking for SchemaHub.

This module computes the structural diff between two parsed schemas and
classifies every change with a SeverityPolicy:
- Removals of types, fields, arguments, enum values are breaking
- Output types may only change covariantly (narrower is fine)
- Input types may only change contravariantly (wider is fine)
- New required arguments/input fields are breaking
- Deprecations and output nullability tightening are dangerous
- Additions are safe

Invariants:
    - diff_schemas(s, s) returns no changes
    - Output order depends only on the inputs (sorted by path, type, text)
    - Neither input graph is mutated

How to change safely:
    - Add a ChangeType and a default severity before emitting it here
    - Keep descriptions stable; CI jobs grep them

Example:
    >>> old = parse_sdl("type Query { name: String! }")
    >>> new = parse_sdl("type Query { name: String! age: Int }")
    >>> [str(c) for c in diff_schemas(old, new).changes]
    ["[SAFE] FIELD_ADDED: Query.age - Field 'age' was added to object type 'Query'"]
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from .changes import Change, ChangeType, DiffResult
from .policy import SeverityPolicy
from .types import (
    ArgumentDef,
    EnumValueDef,
    FieldDef,
    SchemaGraph,
    TypeDef,
    TypeKind,
    TypeRef,
)

logger = logging.getLogger(__name__)

_KIND_LABELS = {
    TypeKind.OBJECT: "object type",
    TypeKind.INTERFACE: "interface type",
    TypeKind.ENUM: "enum",
    TypeKind.SCALAR: "scalar",
    TypeKind.UNION: "union type",
    TypeKind.INPUT: "input object type",
}


class _DiffContext:
    """Collects changes and applies the severity policy."""

    def __init__(self, old: SchemaGraph, new: SchemaGraph, policy: SeverityPolicy) -> None:
        self.old = old
        self.new = new
        self.policy = policy
        self.changes: List[Change] = []

    def emit(self, change_type: ChangeType, path: str, description: str) -> None:
        self.changes.append(Change(
            change_type=change_type,
            severity=self.policy.severity_for(change_type),
            path=path,
            description=description,
        ))


def diff_schemas(
    old: SchemaGraph,
    new: SchemaGraph,
    policy: Optional[SeverityPolicy] = None,
    from_version_id: Optional[str] = None,
    to_version_id: Optional[str] = None,
) -> DiffResult:
    """Compute the classified diff between two schemas.

    Args:
        old: The baseline (currently tagged) schema
        new: The candidate schema
        policy: Severity policy (defaults when omitted)
        from_version_id: Baseline version id, carried into the result
        to_version_id: Candidate version id, carried into the result

    Returns:
        DiffResult with changes sorted by (path, change type, description)
    """
    ctx = _DiffContext(old, new, policy or SeverityPolicy())

    _check_root_types(ctx)
    _check_types(ctx)

    changes = tuple(sorted(ctx.changes, key=lambda c: c.sort_key))
    logger.debug(
        "Schema diff computed",
        extra={
            "from_version_id": from_version_id,
            "to_version_id": to_version_id,
            "change_count": len(changes),
        },
    )
    return DiffResult(
        from_version_id=from_version_id,
        to_version_id=to_version_id,
        changes=changes,
    )


def _check_root_types(ctx: _DiffContext) -> None:
    """Check query/mutation/subscription root type assignments."""
    for operation, old_name in sorted(ctx.old.root_types.items()):
        new_name = ctx.new.root_types.get(operation)
        if new_name is not None and new_name != old_name:
            ctx.emit(
                ChangeType.ROOT_TYPE_CHANGED,
                old_name,
                f"Root {operation} type changed from '{old_name}' to '{new_name}'",
            )


def _check_types(ctx: _DiffContext) -> None:
    """Check named type additions, removals and modifications."""
    old_types = ctx.old.types
    new_types = ctx.new.types

    for name in sorted(old_types.keys() - new_types.keys()):
        ctx.emit(ChangeType.TYPE_REMOVED, name, f"Type '{name}' was removed")

    for name in sorted(new_types.keys() - old_types.keys()):
        ctx.emit(ChangeType.TYPE_ADDED, name, f"Type '{name}' was added")

    for name in sorted(old_types.keys() & new_types.keys()):
        old_type = old_types[name]
        new_type = new_types[name]
        if old_type.kind != new_type.kind:
            ctx.emit(
                ChangeType.TYPE_KIND_CHANGED,
                name,
                f"'{name}' kind changed from {old_type.kind.value} to {new_type.kind.value}",
            )
            continue
        _check_type_diff(ctx, old_type, new_type)


def _check_type_diff(ctx: _DiffContext, old_type: TypeDef, new_type: TypeDef) -> None:
    """Check differences between two versions of the same named type."""
    _check_directives(ctx, old_type.name, old_type.directives, new_type.directives)

    if old_type.kind in (TypeKind.OBJECT, TypeKind.INTERFACE):
        _check_interfaces(ctx, old_type, new_type)
        _check_fields(ctx, old_type, new_type)
    elif old_type.kind == TypeKind.INPUT:
        _check_input_fields(ctx, old_type, new_type)
    elif old_type.kind == TypeKind.ENUM:
        _check_enum_values(ctx, old_type, new_type)
    elif old_type.kind == TypeKind.UNION:
        _check_union_members(ctx, old_type, new_type)


def _check_interfaces(ctx: _DiffContext, old_type: TypeDef, new_type: TypeDef) -> None:
    label = _KIND_LABELS[old_type.kind].capitalize()
    old_set = set(old_type.interfaces)
    new_set = set(new_type.interfaces)

    for name in sorted(old_set - new_set):
        ctx.emit(
            ChangeType.INTERFACE_REMOVED,
            old_type.name,
            f"{label} '{old_type.name}' no longer implements interface '{name}'",
        )
    for name in sorted(new_set - old_set):
        ctx.emit(
            ChangeType.INTERFACE_ADDED,
            old_type.name,
            f"{label} '{old_type.name}' now implements interface '{name}'",
        )


def _check_fields(ctx: _DiffContext, old_type: TypeDef, new_type: TypeDef) -> None:
    """Check output field changes of an object or interface type."""
    label = _KIND_LABELS[old_type.kind]
    old_fields = old_type.field_map()
    new_fields = new_type.field_map()

    for name in sorted(old_fields.keys() - new_fields.keys()):
        ctx.emit(
            ChangeType.FIELD_REMOVED,
            f"{old_type.name}.{name}",
            f"Field '{name}' was removed from {label} '{old_type.name}'",
        )

    for name in sorted(new_fields.keys() - old_fields.keys()):
        ctx.emit(
            ChangeType.FIELD_ADDED,
            f"{old_type.name}.{name}",
            f"Field '{name}' was added to {label} '{old_type.name}'",
        )

    for name in sorted(old_fields.keys() & new_fields.keys()):
        _check_field_diff(ctx, old_type.name, old_fields[name], new_fields[name])


def _check_field_diff(
    ctx: _DiffContext,
    type_name: str,
    old_field: FieldDef,
    new_field: FieldDef,
) -> None:
    """Check differences between two versions of an output field."""
    path = f"{type_name}.{old_field.name}"

    change_type = _classify_output_change(old_field.type, new_field.type, ctx.new)
    if change_type is not None:
        ctx.emit(
            change_type,
            path,
            f"Field '{path}' changed type from '{old_field.type}' to '{new_field.type}'",
        )

    if not old_field.deprecated and new_field.deprecated:
        ctx.emit(
            ChangeType.FIELD_DEPRECATED,
            path,
            f"Field '{path}' is deprecated: {new_field.deprecation_reason}",
        )
    elif old_field.deprecated and not new_field.deprecated:
        ctx.emit(
            ChangeType.FIELD_UNDEPRECATED,
            path,
            f"Field '{path}' is no longer deprecated",
        )

    _check_arguments(ctx, path, old_field, new_field)
    _check_directives(ctx, path, old_field.directives, new_field.directives)


def _check_arguments(
    ctx: _DiffContext,
    field_path: str,
    old_field: FieldDef,
    new_field: FieldDef,
) -> None:
    """Check argument changes of a field."""
    old_args = old_field.argument_map()
    new_args = new_field.argument_map()

    for name in sorted(old_args.keys() - new_args.keys()):
        ctx.emit(
            ChangeType.ARGUMENT_REMOVED,
            f"{field_path}.{name}",
            f"Argument '{name}' was removed from field '{field_path}'",
        )

    for name in sorted(new_args.keys() - old_args.keys()):
        arg = new_args[name]
        change_type = (
            ChangeType.ARGUMENT_REQUIRED_ADDED if arg.is_required else ChangeType.ARGUMENT_ADDED
        )
        requirement = "Required" if arg.is_required else "Optional"
        ctx.emit(
            change_type,
            f"{field_path}.{name}",
            f"{requirement} argument '{name}: {arg.type}' was added to field '{field_path}'",
        )

    for name in sorted(old_args.keys() & new_args.keys()):
        _check_input_value_diff(
            ctx,
            path=f"{field_path}.{name}",
            subject=f"Argument '{name}' on field '{field_path}'",
            old_value=old_args[name],
            new_value=new_args[name],
            type_changed=ChangeType.ARGUMENT_TYPE_CHANGED,
            type_widened=ChangeType.ARGUMENT_TYPE_WIDENED,
            default_changed=ChangeType.ARGUMENT_DEFAULT_CHANGED,
            deprecated=ChangeType.ARGUMENT_DEPRECATED,
            undeprecated=ChangeType.ARGUMENT_UNDEPRECATED,
        )


def _check_input_fields(ctx: _DiffContext, old_type: TypeDef, new_type: TypeDef) -> None:
    """Check field changes of an input object type."""
    old_fields = old_type.input_field_map()
    new_fields = new_type.input_field_map()

    for name in sorted(old_fields.keys() - new_fields.keys()):
        ctx.emit(
            ChangeType.INPUT_FIELD_REMOVED,
            f"{old_type.name}.{name}",
            f"Input field '{name}' was removed from input object type '{old_type.name}'",
        )

    for name in sorted(new_fields.keys() - old_fields.keys()):
        input_field = new_fields[name]
        change_type = (
            ChangeType.INPUT_FIELD_REQUIRED_ADDED
            if input_field.is_required
            else ChangeType.INPUT_FIELD_ADDED
        )
        requirement = "Required" if input_field.is_required else "Optional"
        ctx.emit(
            change_type,
            f"{old_type.name}.{name}",
            f"{requirement} input field '{name}: {input_field.type}' was added "
            f"to input object type '{old_type.name}'",
        )

    for name in sorted(old_fields.keys() & new_fields.keys()):
        _check_input_value_diff(
            ctx,
            path=f"{old_type.name}.{name}",
            subject=f"Input field '{old_type.name}.{name}'",
            old_value=old_fields[name],
            new_value=new_fields[name],
            type_changed=ChangeType.INPUT_FIELD_TYPE_CHANGED,
            type_widened=ChangeType.INPUT_FIELD_TYPE_WIDENED,
            default_changed=ChangeType.INPUT_FIELD_DEFAULT_CHANGED,
            deprecated=ChangeType.INPUT_FIELD_DEPRECATED,
            undeprecated=ChangeType.INPUT_FIELD_UNDEPRECATED,
        )


def _check_input_value_diff(
    ctx: _DiffContext,
    path: str,
    subject: str,
    old_value: ArgumentDef,
    new_value: ArgumentDef,
    type_changed: ChangeType,
    type_widened: ChangeType,
    default_changed: ChangeType,
    deprecated: ChangeType,
    undeprecated: ChangeType,
) -> None:
    """Check an argument or input field present in both versions."""
    if old_value.type != new_value.type:
        change_type = (
            type_widened
            if _is_input_compatible(old_value.type, new_value.type)
            else type_changed
        )
        ctx.emit(
            change_type,
            path,
            f"{subject} changed type from '{old_value.type}' to '{new_value.type}'",
        )

    if old_value.default_value != new_value.default_value:
        ctx.emit(
            default_changed,
            path,
            f"{subject} default value changed from "
            f"'{_show_default(old_value.default_value)}' to '{_show_default(new_value.default_value)}'",
        )

    if not old_value.deprecated and new_value.deprecated:
        ctx.emit(
            deprecated,
            path,
            f"{subject} is deprecated: {new_value.deprecation_reason}",
        )
    elif old_value.deprecated and not new_value.deprecated:
        ctx.emit(undeprecated, path, f"{subject} is no longer deprecated")

    _check_directives(ctx, path, old_value.directives, new_value.directives)


def _check_enum_values(ctx: _DiffContext, old_type: TypeDef, new_type: TypeDef) -> None:
    """Check enum value changes."""
    old_values: Dict[str, EnumValueDef] = old_type.enum_value_map()
    new_values: Dict[str, EnumValueDef] = new_type.enum_value_map()

    for name in sorted(old_values.keys() - new_values.keys()):
        ctx.emit(
            ChangeType.ENUM_VALUE_REMOVED,
            f"{old_type.name}.{name}",
            f"Enum value '{name}' was removed from enum '{old_type.name}'",
        )

    for name in sorted(new_values.keys() - old_values.keys()):
        ctx.emit(
            ChangeType.ENUM_VALUE_ADDED,
            f"{old_type.name}.{name}",
            f"Enum value '{name}' was added to enum '{old_type.name}'",
        )

    for name in sorted(old_values.keys() & new_values.keys()):
        old_value = old_values[name]
        new_value = new_values[name]
        path = f"{old_type.name}.{name}"
        if not old_value.deprecated and new_value.deprecated:
            ctx.emit(
                ChangeType.ENUM_VALUE_DEPRECATED,
                path,
                f"Enum value '{path}' is deprecated: {new_value.deprecation_reason}",
            )
        elif old_value.deprecated and not new_value.deprecated:
            ctx.emit(
                ChangeType.ENUM_VALUE_UNDEPRECATED,
                path,
                f"Enum value '{path}' is no longer deprecated",
            )
        _check_directives(ctx, path, old_value.directives, new_value.directives)


def _check_union_members(ctx: _DiffContext, old_type: TypeDef, new_type: TypeDef) -> None:
    """Check union member changes."""
    old_set = set(old_type.members)
    new_set = set(new_type.members)

    for name in sorted(old_set - new_set):
        ctx.emit(
            ChangeType.UNION_MEMBER_REMOVED,
            old_type.name,
            f"Member '{name}' was removed from union type '{old_type.name}'",
        )
    for name in sorted(new_set - old_set):
        ctx.emit(
            ChangeType.UNION_MEMBER_ADDED,
            old_type.name,
            f"Member '{name}' was added to union type '{old_type.name}'",
        )


def _check_directives(
    ctx: _DiffContext,
    path: str,
    old_directives: Iterable[str],
    new_directives: Iterable[str],
) -> None:
    """Check directive usages on a schema element."""
    old_set = set(old_directives)
    new_set = set(new_directives)

    for usage in sorted(old_set - new_set):
        ctx.emit(
            ChangeType.DIRECTIVE_USAGE_REMOVED,
            path,
            f"Directive '{usage}' was removed from '{path}'",
        )
    for usage in sorted(new_set - old_set):
        ctx.emit(
            ChangeType.DIRECTIVE_USAGE_ADDED,
            path,
            f"Directive '{usage}' was added to '{path}'",
        )


def _classify_output_change(
    old: TypeRef,
    new: TypeRef,
    new_schema: SchemaGraph,
) -> Optional[ChangeType]:
    """Classify an output type change, or None when unchanged."""
    if old == new:
        return None
    if not _is_output_compatible(old, new, new_schema):
        return ChangeType.FIELD_TYPE_CHANGED
    if _adds_non_null(old, new):
        return ChangeType.FIELD_MADE_NON_NULL
    return ChangeType.FIELD_TYPE_NARROWED


def _is_output_compatible(old: TypeRef, new: TypeRef, new_schema: SchemaGraph) -> bool:
    """Whether every value of ``new`` is a valid value of ``old`` (covariance)."""
    if old.is_non_null:
        return new.is_non_null and _is_output_compatible(old.of_type, new.of_type, new_schema)
    if new.is_non_null:
        return _is_output_compatible(old, new.of_type, new_schema)
    if old.is_list:
        return new.is_list and _is_output_compatible(old.of_type, new.of_type, new_schema)
    if new.is_list:
        return False
    return old.name == new.name or new_schema.is_possible_type(old.name, new.name)


def _is_input_compatible(old: TypeRef, new: TypeRef) -> bool:
    """Whether ``new`` accepts every value ``old`` accepted (contravariance)."""
    if new.is_non_null:
        return old.is_non_null and _is_input_compatible(old.of_type, new.of_type)
    if old.is_non_null:
        return _is_input_compatible(old.of_type, new)
    if new.is_list:
        return old.is_list and _is_input_compatible(old.of_type, new.of_type)
    if old.is_list:
        return False
    return old.name == new.name


def _adds_non_null(old: TypeRef, new: TypeRef) -> bool:
    """Whether ``new`` adds a non-null wrapper at any level of ``old``."""
    if new.is_non_null and not old.is_non_null:
        return True
    if old.is_non_null and new.is_non_null:
        return _adds_non_null(old.of_type, new.of_type)
    if old.is_list and new.is_list:
        return _adds_non_null(old.of_type, new.of_type)
    return False


def _show_default(value: Optional[str]) -> str:
    return value if value is not None else "none"
