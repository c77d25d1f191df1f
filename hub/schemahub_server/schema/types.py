"""
Typed schema graph for SchemaHub.

SDL documents are never diffed as text. The parser turns them into the
immutable graph defined here:
- TypeRef: A possibly wrapped (list / non-null) reference to a named type
- ArgumentDef: Field argument or input object field
- FieldDef: Output field of an object or interface type
- EnumValueDef: Value of an enum type
- TypeDef: Named type, tagged with its TypeKind
- SchemaGraph: All named types plus root operation types

Invariants:
    - Every graph object is frozen; diffing never mutates its inputs
    - Members are kept in declaration order; the diff sorts its own output
    - A field is deprecated iff deprecation_reason is not None

Example:
    >>> from hub.schemahub_server.schema.parser import parse_sdl
    >>> graph = parse_sdl("type Query { name: String! }")
    >>> graph.get_type("Query").field_map()["name"].type
    TypeRef(name=None, of_type=TypeRef(name='String', ...), wrapper='non_null')
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


class TypeKind(Enum):
    """Kinds of named types in an SDL document."""

    OBJECT = "OBJECT"
    INTERFACE = "INTERFACE"
    ENUM = "ENUM"
    SCALAR = "SCALAR"
    UNION = "UNION"
    INPUT = "INPUT"


LIST = "list"
NON_NULL = "non_null"


@dataclass(frozen=True)
class TypeRef:
    """Reference to a type, with list and non-null wrappers.

    Exactly one of ``name`` (named type) or ``of_type`` (wrapper) is set.

    Attributes:
        name: Named type, e.g. "String"
        of_type: Wrapped type when this ref is a list or non-null wrapper
        wrapper: "list", "non_null" or None for named types
    """

    name: Optional[str] = None
    of_type: Optional[TypeRef] = None
    wrapper: Optional[str] = None

    @classmethod
    def named(cls, name: str) -> TypeRef:
        return cls(name=name)

    @classmethod
    def list_of(cls, inner: TypeRef) -> TypeRef:
        return cls(of_type=inner, wrapper=LIST)

    @classmethod
    def non_null_of(cls, inner: TypeRef) -> TypeRef:
        return cls(of_type=inner, wrapper=NON_NULL)

    @property
    def is_non_null(self) -> bool:
        return self.wrapper == NON_NULL

    @property
    def is_list(self) -> bool:
        return self.wrapper == LIST

    @property
    def named_type(self) -> str:
        """Innermost named type, ignoring all wrappers."""
        ref = self
        while ref.of_type is not None:
            ref = ref.of_type
        return ref.name or ""

    def nullable(self) -> TypeRef:
        """This reference with every non-null wrapper removed."""
        if self.is_non_null:
            return self.of_type.nullable()
        if self.is_list:
            return TypeRef.list_of(self.of_type.nullable())
        return self

    def __str__(self) -> str:
        if self.is_non_null:
            return f"{self.of_type}!"
        if self.is_list:
            return f"[{self.of_type}]"
        return self.name or ""


@dataclass(frozen=True)
class ArgumentDef:
    """Field argument or input object field.

    Attributes:
        name: Argument name
        type: Declared input type
        default_value: Printed default value literal, None when absent
        deprecation_reason: Reason from @deprecated, None if not deprecated
        directives: Printed directive usages other than @deprecated
    """

    name: str
    type: TypeRef
    default_value: Optional[str] = None
    deprecation_reason: Optional[str] = None
    directives: Tuple[str, ...] = ()

    @property
    def is_required(self) -> bool:
        """Callers must supply a value: non-null without a default."""
        return self.type.is_non_null and self.default_value is None

    @property
    def deprecated(self) -> bool:
        return self.deprecation_reason is not None


@dataclass(frozen=True)
class FieldDef:
    """Output field of an object or interface type.

    Attributes:
        name: Field name
        type: Declared return type
        arguments: Field arguments in declaration order
        deprecation_reason: Reason from @deprecated, None if not deprecated
        directives: Printed directive usages other than @deprecated
    """

    name: str
    type: TypeRef
    arguments: Tuple[ArgumentDef, ...] = ()
    deprecation_reason: Optional[str] = None
    directives: Tuple[str, ...] = ()

    @property
    def deprecated(self) -> bool:
        return self.deprecation_reason is not None

    def argument_map(self) -> Dict[str, ArgumentDef]:
        return {a.name: a for a in self.arguments}


@dataclass(frozen=True)
class EnumValueDef:
    """Enum value definition."""

    name: str
    deprecation_reason: Optional[str] = None
    directives: Tuple[str, ...] = ()

    @property
    def deprecated(self) -> bool:
        return self.deprecation_reason is not None


@dataclass(frozen=True)
class TypeDef:
    """Named type definition.

    Only the members relevant to ``kind`` are populated:
    - OBJECT / INTERFACE: fields, interfaces
    - INPUT: input_fields
    - ENUM: enum_values
    - UNION: members

    Attributes:
        name: Type name
        kind: Type kind tag
        fields: Output fields
        input_fields: Input object fields
        enum_values: Enum values
        members: Union member type names
        interfaces: Implemented interface names
        directives: Printed directive usages on the type
    """

    name: str
    kind: TypeKind
    fields: Tuple[FieldDef, ...] = ()
    input_fields: Tuple[ArgumentDef, ...] = ()
    enum_values: Tuple[EnumValueDef, ...] = ()
    members: Tuple[str, ...] = ()
    interfaces: Tuple[str, ...] = ()
    directives: Tuple[str, ...] = ()

    def field_map(self) -> Dict[str, FieldDef]:
        return {f.name: f for f in self.fields}

    def input_field_map(self) -> Dict[str, ArgumentDef]:
        return {f.name: f for f in self.input_fields}

    def enum_value_map(self) -> Dict[str, EnumValueDef]:
        return {v.name: v for v in self.enum_values}


@dataclass(frozen=True)
class SchemaGraph:
    """Parsed schema document.

    Attributes:
        types: Named types keyed by name
        root_types: Operation ("query", "mutation", "subscription") to type name
    """

    types: Dict[str, TypeDef]
    root_types: Dict[str, str]

    def get_type(self, name: str) -> Optional[TypeDef]:
        return self.types.get(name)

    def is_possible_type(self, abstract_name: str, concrete_name: str) -> bool:
        """Whether ``concrete_name`` may stand in for ``abstract_name``.

        True when the abstract type is an interface the concrete type
        implements, or a union the concrete type is a member of.
        """
        abstract = self.types.get(abstract_name)
        concrete = self.types.get(concrete_name)
        if abstract is None or concrete is None:
            return False
        if abstract.kind == TypeKind.UNION:
            return concrete_name in abstract.members
        if abstract.kind == TypeKind.INTERFACE:
            return abstract_name in concrete.interfaces
        return False
