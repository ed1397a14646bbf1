from pathlib import Path

import pytest

from api_contract_infer.errors import SourceNotFoundError
from api_contract_infer.schema.registry import SchemaRegistry
from api_contract_infer.schema.types import TypeGraphResolver

FIXTURES = Path(__file__).parent / "fixtures"
TYPES = FIXTURES / "express_app" / "src" / "types"

SHAPES = """
interface Item { name: string; count: number }
export type Patch = Partial<Item>;
export type Lookup = Record<string, Item>;
type Mixed = string | number;
type Maybe = Item | null;
type Optional = string | undefined;
type Pair = [string, number];
type Flags = { [key: string]: boolean };
type Both = Item & { extra?: string };
type Names = Array<string>;
type Later = Promise<Item>;
type Answer = true | false;
type Slug = `item-${string}`;
export enum Level { Low = 1, High = 2 }
enum Plain { A, B }
"""


@pytest.fixture
def resolver():
    resolver = TypeGraphResolver(SchemaRegistry())
    resolver.load_directory(TYPES)
    resolver.resolve_all()
    return resolver


@pytest.fixture
def shapes():
    resolver = TypeGraphResolver(SchemaRegistry())
    resolver.load_source(SHAPES)
    return resolver


class TestLoadDirectory:
    def test_counts_declarations(self):
        resolver = TypeGraphResolver(SchemaRegistry())
        assert resolver.load_directory(TYPES) == 7
        assert set(resolver.declarations) == {
            "ApiResponse", "AuthToken", "Role", "BaseEntity", "User", "CreateUserBody", "Status",
        }

    def test_missing_directory(self, tmp_path):
        with pytest.raises(SourceNotFoundError):
            TypeGraphResolver(SchemaRegistry()).load_directory(tmp_path / "missing")


class TestFixtureTypes:
    def test_user_inherits_base_entity(self, resolver):
        user = resolver.registry.get("User")
        assert list(user.properties)[:2] == ["id", "createdAt"]
        assert user.required == ["id", "createdAt", "email", "firstName", "role", "tags", "deletedAt"]

    def test_date_is_date_time_string(self, resolver):
        created = resolver.registry.get("User").properties["createdAt"]
        assert (created.type, created.format) == ("string", "date-time")

    def test_nullable_union(self, resolver):
        deleted = resolver.registry.get("User").properties["deletedAt"]
        assert (deleted.type, deleted.format, deleted.nullable) == ("string", "date-time", True)

    def test_self_reference_becomes_ref(self, resolver):
        manager = resolver.registry.get("User").properties["manager"]
        assert manager.kind == "reference"
        assert manager.ref == "User"

    def test_alias_inlined_as_enum(self, resolver):
        role = resolver.registry.get("User").properties["role"]
        assert role.kind == "enum"
        assert role.enum == ["admin", "user", "guest"]

    def test_array_of_strings(self, resolver):
        tags = resolver.registry.get("User").properties["tags"]
        assert tags.type == "array"
        assert tags.items.type == "string"

    def test_string_enum(self, resolver):
        status = resolver.registry.get("Status")
        assert (status.type, status.enum) == ("string", ["active", "disabled"])

    def test_generic_parameter_is_untyped(self, resolver):
        data = resolver.registry.get("ApiResponse").properties["data"]
        assert data.type == "object"
        assert data.properties is None

    def test_unknown_name(self, resolver):
        assert resolver.resolve("Nope") is None


class TestTypeShapes:
    def test_partial_clears_required(self, shapes):
        patch = shapes.resolve("Patch")
        assert set(patch.properties) == {"name", "count"}
        assert patch.required == []

    def test_record(self, shapes):
        lookup = shapes.resolve("Lookup")
        assert lookup.additional_properties.required == ["name", "count"]

    def test_mixed_union_takes_first_member(self, shapes):
        assert shapes.resolve("Mixed").type == "string"

    def test_object_or_null(self, shapes):
        maybe = shapes.resolve("Maybe")
        assert maybe.nullable is True
        assert set(maybe.properties) == {"name", "count"}

    def test_undefined_dropped(self, shapes):
        optional = shapes.resolve("Optional")
        assert optional.type == "string"
        assert optional.nullable is False

    def test_tuple(self, shapes):
        pair = shapes.resolve("Pair")
        assert (pair.type, pair.items.type) == ("array", "string")

    def test_index_signature(self, shapes):
        assert shapes.resolve("Flags").additional_properties.type == "boolean"

    def test_intersection_merges_members(self, shapes):
        both = shapes.resolve("Both")
        assert set(both.properties) == {"name", "count", "extra"}
        assert both.required == ["name", "count"]

    def test_wrapping_generics(self, shapes):
        assert shapes.resolve("Names").items.type == "string"
        assert set(shapes.resolve("Later").properties) == {"name", "count"}

    def test_boolean_literals(self, shapes):
        assert shapes.resolve("Answer").type == "boolean"

    def test_template_literal(self, shapes):
        assert shapes.resolve("Slug").type == "string"

    def test_numeric_enum(self, shapes):
        level = shapes.resolve("Level")
        assert (level.type, level.enum) == ("number", [1, 2])

    def test_member_names_enum(self, shapes):
        assert shapes.resolve("Plain").enum == ["A", "B"]


class TestCycles:
    def test_mutual_references_terminate(self):
        resolver = TypeGraphResolver(SchemaRegistry())
        resolver.load_source("interface A { b?: B }\ninterface B { a: A; peers: B[] }")
        a = resolver.resolve("A")
        b = a.properties["b"]
        assert b.properties["a"].ref == "A"
        assert b.properties["peers"].items.ref == "B"

    def test_resolved_copies_are_independent(self):
        resolver = TypeGraphResolver(SchemaRegistry())
        resolver.load_source("interface A { name: string }")
        first = resolver.resolve("A")
        first.properties.clear()
        assert set(resolver.resolve("A").properties) == {"name"}
