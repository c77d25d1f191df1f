"""
SDL parsing for SchemaHub.

This module turns SDL text into a SchemaGraph:
- Syntax is parsed with graphql-core
- The document is validated as SDL (unknown types, duplicate names,
  invalid extensions) before anything is diffed or stored
- Type extensions are merged into their base definitions

Invariants:
    - Malformed SDL raises ValidationError, never a graphql-core exception
    - The resulting graph is independent of graphql-core types

How to change safely:
    - New graph attributes need matching handling in compat.py
    - Keep directive printing stable; directive usages are compared as text
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from graphql import (
    DEFAULT_DEPRECATION_REASON,
    GraphQLError,
    GraphQLSyntaxError,
    build_ast_schema,
    parse,
    print_ast,
)
from graphql.language import (
    DirectiveNode,
    DocumentNode,
    EnumTypeDefinitionNode,
    EnumTypeExtensionNode,
    EnumValueDefinitionNode,
    FieldDefinitionNode,
    InputObjectTypeDefinitionNode,
    InputObjectTypeExtensionNode,
    InputValueDefinitionNode,
    InterfaceTypeDefinitionNode,
    InterfaceTypeExtensionNode,
    ListTypeNode,
    NonNullTypeNode,
    ObjectTypeDefinitionNode,
    ObjectTypeExtensionNode,
    ScalarTypeDefinitionNode,
    ScalarTypeExtensionNode,
    SchemaDefinitionNode,
    SchemaExtensionNode,
    StringValueNode,
    TypeNode,
    UnionTypeDefinitionNode,
    UnionTypeExtensionNode,
)

from ..errors import ValidationError
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

_TYPE_NODE_KINDS = {
    ObjectTypeDefinitionNode: TypeKind.OBJECT,
    ObjectTypeExtensionNode: TypeKind.OBJECT,
    InterfaceTypeDefinitionNode: TypeKind.INTERFACE,
    InterfaceTypeExtensionNode: TypeKind.INTERFACE,
    EnumTypeDefinitionNode: TypeKind.ENUM,
    EnumTypeExtensionNode: TypeKind.ENUM,
    ScalarTypeDefinitionNode: TypeKind.SCALAR,
    ScalarTypeExtensionNode: TypeKind.SCALAR,
    UnionTypeDefinitionNode: TypeKind.UNION,
    UnionTypeExtensionNode: TypeKind.UNION,
    InputObjectTypeDefinitionNode: TypeKind.INPUT,
    InputObjectTypeExtensionNode: TypeKind.INPUT,
}

_DEFAULT_ROOT_TYPES = {
    "query": "Query",
    "mutation": "Mutation",
    "subscription": "Subscription",
}


class _TypeBuilder:
    """Accumulates a type definition and its extensions."""

    def __init__(self, name: str, kind: TypeKind) -> None:
        self.name = name
        self.kind = kind
        self.fields: List[FieldDef] = []
        self.input_fields: List[ArgumentDef] = []
        self.enum_values: List[EnumValueDef] = []
        self.members: List[str] = []
        self.interfaces: List[str] = []
        self.directives: List[str] = []

    def add(self, node) -> None:
        self.directives.extend(_directive_usages(node.directives))
        if self.kind in (TypeKind.OBJECT, TypeKind.INTERFACE):
            self.interfaces.extend(i.name.value for i in node.interfaces or ())
            self.fields.extend(_field(f) for f in node.fields or ())
        elif self.kind == TypeKind.INPUT:
            self.input_fields.extend(_input_value(f) for f in node.fields or ())
        elif self.kind == TypeKind.ENUM:
            self.enum_values.extend(_enum_value(v) for v in node.values or ())
        elif self.kind == TypeKind.UNION:
            self.members.extend(t.name.value for t in node.types or ())

    def build(self) -> TypeDef:
        return TypeDef(
            name=self.name,
            kind=self.kind,
            fields=tuple(self.fields),
            input_fields=tuple(self.input_fields),
            enum_values=tuple(self.enum_values),
            members=tuple(self.members),
            interfaces=tuple(self.interfaces),
            directives=tuple(self.directives),
        )


def parse_sdl(sdl_text: str) -> SchemaGraph:
    """Parse and validate an SDL document.

    Args:
        sdl_text: Schema Definition Language text

    Returns:
        SchemaGraph for the document

    Raises:
        ValidationError: If the document is empty, has a syntax error,
            or is not a valid SDL document

    Example:
        >>> graph = parse_sdl("type Query { name: String! }")
        >>> graph.get_type("Query").kind
        <TypeKind.OBJECT: 'OBJECT'>
    """
    document = _parse_document(sdl_text)
    return _build_graph(document)


def validate_sdl(sdl_text: str) -> None:
    """Validate an SDL document without building the graph.

    Raises:
        ValidationError: If the document is not valid SDL
    """
    _parse_document(sdl_text)


def _parse_document(sdl_text: str) -> DocumentNode:
    if not sdl_text or not sdl_text.strip():
        raise ValidationError("Schema document is empty")

    try:
        document = parse(sdl_text, no_location=True)
    except GraphQLSyntaxError as e:
        raise ValidationError(f"Invalid SDL: {e.message}", errors=[str(e)]) from e

    try:
        # Runs the SDL validation rules; the built schema itself is not used
        build_ast_schema(document)
    except (TypeError, GraphQLError) as e:
        errors = [msg for msg in str(e).split("\n\n") if msg]
        raise ValidationError(
            f"Invalid SDL: {errors[0] if errors else e}", errors=errors
        ) from e

    return document


def _build_graph(document: DocumentNode) -> SchemaGraph:
    builders: Dict[str, _TypeBuilder] = {}
    root_types: Dict[str, str] = {}

    for definition in document.definitions:
        kind = _TYPE_NODE_KINDS.get(type(definition))
        if kind is not None:
            name = definition.name.value
            builder = builders.get(name)
            if builder is None:
                builder = builders[name] = _TypeBuilder(name, kind)
            builder.add(definition)
        elif isinstance(definition, (SchemaDefinitionNode, SchemaExtensionNode)):
            for op in definition.operation_types or ():
                root_types[op.operation.value] = op.type.name.value

    if not root_types:
        for operation, type_name in _DEFAULT_ROOT_TYPES.items():
            if type_name in builders:
                root_types[operation] = type_name

    types = {name: builder.build() for name, builder in builders.items()}
    logger.debug(
        "Parsed SDL document",
        extra={"type_count": len(types), "root_types": root_types},
    )
    return SchemaGraph(types=types, root_types=root_types)


def _type_ref(node: TypeNode) -> TypeRef:
    if isinstance(node, NonNullTypeNode):
        return TypeRef.non_null_of(_type_ref(node.type))
    if isinstance(node, ListTypeNode):
        return TypeRef.list_of(_type_ref(node.type))
    return TypeRef.named(node.name.value)


def _field(node: FieldDefinitionNode) -> FieldDef:
    return FieldDef(
        name=node.name.value,
        type=_type_ref(node.type),
        arguments=tuple(_input_value(a) for a in node.arguments or ()),
        deprecation_reason=_deprecation_reason(node.directives),
        directives=_directive_usages(node.directives),
    )


def _input_value(node: InputValueDefinitionNode) -> ArgumentDef:
    default = print_ast(node.default_value) if node.default_value is not None else None
    return ArgumentDef(
        name=node.name.value,
        type=_type_ref(node.type),
        default_value=default,
        deprecation_reason=_deprecation_reason(node.directives),
        directives=_directive_usages(node.directives),
    )


def _enum_value(node: EnumValueDefinitionNode) -> EnumValueDef:
    return EnumValueDef(
        name=node.name.value,
        deprecation_reason=_deprecation_reason(node.directives),
        directives=_directive_usages(node.directives),
    )


def _deprecation_reason(directives: Optional[Tuple[DirectiveNode, ...]]) -> Optional[str]:
    for directive in directives or ():
        if directive.name.value != "deprecated":
            continue
        for argument in directive.arguments or ():
            if argument.name.value == "reason" and isinstance(argument.value, StringValueNode):
                return argument.value.value
        return DEFAULT_DEPRECATION_REASON
    return None


def _directive_usages(directives: Optional[Tuple[DirectiveNode, ...]]) -> Tuple[str, ...]:
    return tuple(
        print_ast(d) for d in directives or () if d.name.value != "deprecated"
    )
