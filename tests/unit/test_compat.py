"""
Unit tests for schema diffing.

Tests cover:
- Detection of breaking changes
- Detection of dangerous and safe changes
- Specific change types, paths and descriptions
- Determinism and ordering of results
"""

import pytest

from hub.schemahub_server.schema.changes import ChangeKind, ChangeType, Severity
from hub.schemahub_server.schema.compat import diff_schemas
from hub.schemahub_server.schema.parser import parse_sdl
from hub.schemahub_server.schema.policy import SeverityPolicy


def diff(old_sdl, new_sdl, policy=None):
    """Helper to diff two SDL documents."""
    return diff_schemas(parse_sdl(old_sdl), parse_sdl(new_sdl), policy)


def only_change(old_sdl, new_sdl):
    """Helper asserting a diff has exactly one change and returning it."""
    result = diff(old_sdl, new_sdl)
    assert len(result.changes) == 1, [str(c) for c in result.changes]
    return result.changes[0]


class TestIdentity:
    """Identical schemas have no changes."""

    def test_no_changes(self):
        sdl = """
            interface Node { id: ID! }
            type User implements Node { id: ID! name: String }
            enum Role { ADMIN }
            type Query { user(id: ID!): User role: Role }
        """
        assert diff(sdl, sdl).changes == ()

    def test_extension_equivalent_to_inline(self):
        """Where a field is declared does not matter."""
        merged = "type Query { a: Int b: Int }"
        extended = "type Query { a: Int } extend type Query { b: Int }"

        assert diff(merged, extended).changes == ()

    def test_field_order_ignored(self):
        assert diff("type Query { a: Int b: Int }", "type Query { b: Int a: Int }").changes == ()


class TestRemovalAndAddition:
    """Tests for added and removed elements."""

    def test_field_removed_and_added(self):
        """Replacing a field reports one breaking removal and one safe addition."""
        result = diff("type Query { name: String! }", "type Query { age: Int }")

        assert [c.change_type for c in result.changes] == [
            ChangeType.FIELD_ADDED,
            ChangeType.FIELD_REMOVED,
        ]

        added, removed = result.changes
        assert added.path == "Query.age"
        assert added.severity == Severity.SAFE
        assert added.kind == ChangeKind.ADDITION
        assert added.description == "Field 'age' was added to object type 'Query'"

        assert removed.path == "Query.name"
        assert removed.severity == Severity.BREAKING
        assert removed.kind == ChangeKind.REMOVAL
        assert removed.description == "Field 'name' was removed from object type 'Query'"

    def test_type_removed_is_breaking(self):
        change = only_change(
            "type Query { a: Int } type User { id: ID }",
            "type Query { a: Int }",
        )

        assert change.change_type == ChangeType.TYPE_REMOVED
        assert change.path == "User"
        assert change.is_breaking
        assert change.description == "Type 'User' was removed"

    def test_type_added_is_safe(self):
        change = only_change(
            "type Query { a: Int }",
            "type Query { a: Int } type User { id: ID }",
        )

        assert change.change_type == ChangeType.TYPE_ADDED
        assert change.severity == Severity.SAFE

    def test_interface_field_removed(self):
        change = only_change(
            "interface Node { id: ID name: String } type Query { node: Node }",
            "interface Node { id: ID } type Query { node: Node }",
        )

        assert change.change_type == ChangeType.FIELD_REMOVED
        assert change.description == "Field 'name' was removed from interface type 'Node'"


class TestTypeChanges:
    """Tests for type kind and field type changes."""

    def test_kind_changed_is_breaking(self):
        change = only_change(
            "type Query { a: Int } type Point { x: Int }",
            "type Query { a: Int } input Point { x: Int }",
        )

        assert change.change_type == ChangeType.TYPE_KIND_CHANGED
        assert change.path == "Point"
        assert change.is_breaking

    def test_field_type_changed_is_breaking(self):
        change = only_change("type Query { a: String }", "type Query { a: Int }")

        assert change.change_type == ChangeType.FIELD_TYPE_CHANGED
        assert change.is_breaking
        assert change.description == "Field 'Query.a' changed type from 'String' to 'Int'"

    def test_output_made_non_null_is_dangerous(self):
        change = only_change("type Query { name: String }", "type Query { name: String! }")

        assert change.change_type == ChangeType.FIELD_MADE_NON_NULL
        assert change.severity == Severity.DANGEROUS
        assert change.description == "Field 'Query.name' changed type from 'String' to 'String!'"

    def test_output_list_item_made_non_null(self):
        change = only_change("type Query { a: [String] }", "type Query { a: [String!] }")

        assert change.change_type == ChangeType.FIELD_MADE_NON_NULL

    def test_output_made_nullable_is_breaking(self):
        change = only_change("type Query { name: String! }", "type Query { name: String }")

        assert change.change_type == ChangeType.FIELD_TYPE_CHANGED
        assert change.is_breaking

    def test_output_list_wrapper_changed_is_breaking(self):
        change = only_change("type Query { a: String }", "type Query { a: [String] }")

        assert change.change_type == ChangeType.FIELD_TYPE_CHANGED

    def test_output_narrowed_to_implementation_is_safe(self):
        change = only_change(
            """
            interface Node { id: ID }
            type User implements Node { id: ID }
            type Query { node: Node }
            """,
            """
            interface Node { id: ID }
            type User implements Node { id: ID }
            type Query { node: User }
            """,
        )

        assert change.change_type == ChangeType.FIELD_TYPE_NARROWED
        assert change.severity == Severity.SAFE

    def test_root_type_changed(self):
        change = only_change(
            "schema { query: Q1 } type Q1 { a: Int } type Q2 { a: Int }",
            "schema { query: Q2 } type Q1 { a: Int } type Q2 { a: Int }",
        )

        assert change.change_type == ChangeType.ROOT_TYPE_CHANGED
        assert change.path == "Q1"
        assert change.is_breaking


class TestArguments:
    """Tests for field argument changes."""

    BASE = "type Query { users(limit: Int): [String] }"

    def test_optional_argument_added_is_safe(self):
        change = only_change(self.BASE, "type Query { users(limit: Int, offset: Int): [String] }")

        assert change.change_type == ChangeType.ARGUMENT_ADDED
        assert change.path == "Query.users.offset"
        assert change.severity == Severity.SAFE
        assert change.description == (
            "Optional argument 'offset: Int' was added to field 'Query.users'"
        )

    def test_required_argument_added_is_breaking(self):
        change = only_change(self.BASE, "type Query { users(limit: Int, org: ID!): [String] }")

        assert change.change_type == ChangeType.ARGUMENT_REQUIRED_ADDED
        assert change.is_breaking
        assert change.description == (
            "Required argument 'org: ID!' was added to field 'Query.users'"
        )

    def test_non_null_argument_with_default_is_safe(self):
        change = only_change(self.BASE, "type Query { users(limit: Int, org: ID! = 1): [String] }")

        assert change.change_type == ChangeType.ARGUMENT_ADDED

    def test_argument_removed_is_breaking(self):
        change = only_change(self.BASE, "type Query { users: [String] }")

        assert change.change_type == ChangeType.ARGUMENT_REMOVED
        assert change.path == "Query.users.limit"
        assert change.is_breaking

    def test_argument_made_non_null_is_breaking(self):
        change = only_change(self.BASE, "type Query { users(limit: Int!): [String] }")

        assert change.change_type == ChangeType.ARGUMENT_TYPE_CHANGED
        assert change.is_breaking

    def test_argument_made_nullable_is_safe(self):
        change = only_change(
            "type Query { users(limit: Int!): [String] }",
            self.BASE,
        )

        assert change.change_type == ChangeType.ARGUMENT_TYPE_WIDENED
        assert change.severity == Severity.SAFE

    def test_argument_default_changed_is_dangerous(self):
        change = only_change(
            "type Query { users(limit: Int = 10): [String] }",
            "type Query { users(limit: Int = 20): [String] }",
        )

        assert change.change_type == ChangeType.ARGUMENT_DEFAULT_CHANGED
        assert change.severity == Severity.DANGEROUS
        assert "from '10' to '20'" in change.description

    def test_argument_deprecated_is_dangerous(self):
        change = only_change(
            "type Query { users(limit: Int): [String] }",
            'type Query { users(limit: Int @deprecated(reason: "Use first")): [String] }',
        )

        assert change.change_type == ChangeType.ARGUMENT_DEPRECATED
        assert change.path == "Query.users.limit"
        assert change.severity == Severity.DANGEROUS
        assert change.description.endswith("is deprecated: Use first")

    def test_argument_undeprecated_is_safe(self):
        change = only_change(
            "type Query { users(limit: Int @deprecated): [String] }",
            "type Query { users(limit: Int): [String] }",
        )

        assert change.change_type == ChangeType.ARGUMENT_UNDEPRECATED
        assert change.severity == Severity.SAFE


class TestInputFields:
    """Tests for input object changes."""

    def sdl(self, fields):
        return f"input Filter {{ {fields} }} type Query {{ find(filter: Filter): Int }}"

    def test_optional_input_field_added_is_safe(self):
        change = only_change(self.sdl("a: Int"), self.sdl("a: Int b: String"))

        assert change.change_type == ChangeType.INPUT_FIELD_ADDED
        assert change.path == "Filter.b"
        assert change.severity == Severity.SAFE

    def test_required_input_field_added_is_breaking(self):
        change = only_change(self.sdl("a: Int"), self.sdl("a: Int b: String!"))

        assert change.change_type == ChangeType.INPUT_FIELD_REQUIRED_ADDED
        assert change.is_breaking

    def test_required_input_field_with_default_is_safe(self):
        change = only_change(self.sdl("a: Int"), self.sdl('a: Int b: String! = "x"'))

        assert change.change_type == ChangeType.INPUT_FIELD_ADDED

    def test_input_field_removed_is_breaking(self):
        change = only_change(self.sdl("a: Int b: Int"), self.sdl("a: Int"))

        assert change.change_type == ChangeType.INPUT_FIELD_REMOVED
        assert change.is_breaking

    def test_input_field_type_changed_is_breaking(self):
        change = only_change(self.sdl("a: Int"), self.sdl("a: String"))

        assert change.change_type == ChangeType.INPUT_FIELD_TYPE_CHANGED

    def test_input_field_default_changed_is_dangerous(self):
        change = only_change(self.sdl("a: Int = 1"), self.sdl("a: Int = 2"))

        assert change.change_type == ChangeType.INPUT_FIELD_DEFAULT_CHANGED
        assert change.severity == Severity.DANGEROUS

    def test_input_field_deprecated_is_dangerous(self):
        change = only_change(self.sdl("a: Int b: Int"), self.sdl("a: Int b: Int @deprecated"))

        assert change.change_type == ChangeType.INPUT_FIELD_DEPRECATED
        assert change.path == "Filter.b"
        assert change.severity == Severity.DANGEROUS

    def test_input_field_undeprecated_is_safe(self):
        change = only_change(self.sdl("a: Int @deprecated"), self.sdl("a: Int"))

        assert change.change_type == ChangeType.INPUT_FIELD_UNDEPRECATED
        assert change.severity == Severity.SAFE


class TestEnumsUnionsInterfaces:
    """Tests for enum values, union members and interfaces."""

    def test_enum_value_added_is_safe(self):
        change = only_change(
            "enum Role { ADMIN } type Query { role: Role }",
            "enum Role { ADMIN MEMBER } type Query { role: Role }",
        )

        assert change.change_type == ChangeType.ENUM_VALUE_ADDED
        assert change.path == "Role.MEMBER"
        assert change.severity == Severity.SAFE

    def test_enum_value_removed_is_breaking(self):
        change = only_change(
            "enum Role { ADMIN MEMBER } type Query { role: Role }",
            "enum Role { ADMIN } type Query { role: Role }",
        )

        assert change.change_type == ChangeType.ENUM_VALUE_REMOVED
        assert change.is_breaking
        assert change.description == "Enum value 'MEMBER' was removed from enum 'Role'"

    def test_enum_value_deprecated_is_dangerous(self):
        change = only_change(
            "enum Role { ADMIN MEMBER } type Query { role: Role }",
            'enum Role { ADMIN MEMBER @deprecated(reason: "gone") } type Query { role: Role }',
        )

        assert change.change_type == ChangeType.ENUM_VALUE_DEPRECATED
        assert change.severity == Severity.DANGEROUS

    def test_union_member_added_is_dangerous(self):
        change = only_change(
            "type A { a: Int } type B { b: Int } union U = A type Query { u: U }",
            "type A { a: Int } type B { b: Int } union U = A | B type Query { u: U }",
        )

        assert change.change_type == ChangeType.UNION_MEMBER_ADDED
        assert change.path == "U"
        assert change.severity == Severity.DANGEROUS

    def test_union_member_removed_is_breaking(self):
        change = only_change(
            "type A { a: Int } type B { b: Int } union U = A | B type Query { u: U }",
            "type A { a: Int } type B { b: Int } union U = A type Query { u: U }",
        )

        assert change.change_type == ChangeType.UNION_MEMBER_REMOVED
        assert change.is_breaking

    def test_interface_removed_is_breaking(self):
        change = only_change(
            "interface Node { id: ID } type User implements Node { id: ID } type Query { u: User }",
            "interface Node { id: ID } type User { id: ID } type Query { u: User }",
        )

        assert change.change_type == ChangeType.INTERFACE_REMOVED
        assert change.path == "User"
        assert change.is_breaking

    def test_interface_added_is_safe(self):
        change = only_change(
            "interface Node { id: ID } type User { id: ID } type Query { u: User }",
            "interface Node { id: ID } type User implements Node { id: ID } type Query { u: User }",
        )

        assert change.change_type == ChangeType.INTERFACE_ADDED
        assert change.severity == Severity.SAFE


class TestDeprecationAndDirectives:
    """Tests for deprecation and directive usage changes."""

    def test_field_deprecated_is_dangerous(self):
        change = only_change(
            "type Query { a: Int }",
            'type Query { a: Int @deprecated(reason: "Use b") }',
        )

        assert change.change_type == ChangeType.FIELD_DEPRECATED
        assert change.severity == Severity.DANGEROUS
        assert change.description == "Field 'Query.a' is deprecated: Use b"

    def test_field_undeprecated_is_safe(self):
        change = only_change(
            "type Query { a: Int @deprecated }",
            "type Query { a: Int }",
        )

        assert change.change_type == ChangeType.FIELD_UNDEPRECATED
        assert change.severity == Severity.SAFE

    def test_directive_usage_removed_is_dangerous(self):
        change = only_change(
            "directive @cached on FIELD_DEFINITION type Query { a: Int @cached }",
            "directive @cached on FIELD_DEFINITION type Query { a: Int }",
        )

        assert change.change_type == ChangeType.DIRECTIVE_USAGE_REMOVED
        assert change.path == "Query.a"
        assert change.severity == Severity.DANGEROUS

    def test_directive_usage_added_is_safe(self):
        change = only_change(
            "directive @cached on FIELD_DEFINITION type Query { a: Int }",
            "directive @cached on FIELD_DEFINITION type Query { a: Int @cached }",
        )

        assert change.change_type == ChangeType.DIRECTIVE_USAGE_ADDED
        assert change.severity == Severity.SAFE


class TestOrderingAndPolicy:
    """Tests for result ordering, determinism and policy use."""

    OLD = """
        type User { id: ID name: String email: String }
        type Query { user(id: ID): User users: [User] }
    """
    NEW = """
        type User { id: ID! handle: String }
        type Query { user(id: ID!, org: ID!): User }
        type Team { id: ID }
    """

    def test_deterministic(self):
        first = diff(self.OLD, self.NEW)
        second = diff(self.OLD, self.NEW)

        assert first == second
        assert [str(c) for c in first.changes] == [str(c) for c in second.changes]

    def test_sorted_by_path_then_type(self):
        changes = diff(self.OLD, self.NEW).changes

        assert list(changes) == sorted(changes, key=lambda c: c.sort_key)
        assert changes[0].path == "Query.user.id"
        assert changes[-1].path == "User.name"

    def test_policy_overrides_severity(self):
        policy = SeverityPolicy({ChangeType.FIELD_REMOVED: Severity.DANGEROUS})
        result = diff("type Query { a: Int b: Int }", "type Query { a: Int }", policy)

        assert result.changes[0].severity == Severity.DANGEROUS
        assert result.breaking == []
        assert len(result.dangerous) == 1

    def test_version_ids_carried(self):
        result = diff_schemas(
            parse_sdl("type Query { a: Int }"),
            parse_sdl("type Query { a: Int }"),
            from_version_id="v1",
            to_version_id="v2",
        )

        assert result.from_version_id == "v1"
        assert result.to_version_id == "v2"

    @pytest.mark.parametrize("sdl", [
        "type Query { a: Int }",
        "enum E { A B } type Query { e(x: E = A): E }",
        "input I { a: Int = 1 } type Query { q(i: I): Int }",
    ])
    def test_self_diff_is_empty(self, sdl):
        assert diff(sdl, sdl).changes == ()
