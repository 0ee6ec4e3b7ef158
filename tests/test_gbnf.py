# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for GBNF grammar projection."""

from __future__ import annotations

import pytest

from structgen.errors import UnprojectableSchemaError
from structgen.projection import BackendKind, gbnf_literal, project
from structgen.schema import (
    ArraySchema,
    Count,
    Length,
    ObjectSchema,
    Pattern,
    Property,
    StringSchema,
)
from tests._fixtures import Expr, Note, Pair, Person, Priority, TreeNode

pytestmark = pytest.mark.core


def _rules(grammar: object) -> dict[str, str]:
    assert isinstance(grammar, str)
    rules: dict[str, str] = {}
    for line in grammar.splitlines():
        name, _, expr = line.partition(" ::= ")
        rules[name] = expr
    return rules


def test_gbnf_literal_escapes_quotes_and_backslashes() -> None:
    assert gbnf_literal("plain") == '"plain"'
    assert gbnf_literal('a"b\\') == '"a\\"b\\\\"'


def test_record_grammar() -> None:
    grammar = project(Pair, BackendKind.GBNF)
    rules = _rules(grammar)

    assert isinstance(grammar, str)
    assert grammar.startswith("root ::= pair\n")
    assert grammar.endswith("\n")
    assert rules["pair"] == (
        r'"{" ws "\"a\"" ws ":" ws integer ws "," ws "\"b\"" ws ":" ws string ws "}"'
    )
    for primitive in ("ws", "string", "char", "escape", "hex", "integer", "number"):
        assert primitive in rules


def test_optional_members_accept_null_and_literals_become_alternatives() -> None:
    rules = _rules(project(Note, "gbnf"))

    assert rules["note"] == (
        r'"{" ws "\"title\"" ws ":" ws string ws "," ws '
        r'"\"tags\"" ws ":" ws "[" ws string ws ( "," ws string ws ){0,2} "]" ws "," ws '
        r'"\"rating\"" ws ":" ws ( ( "\"up\"" | "\"down\"" ) | null ) ws "}"'
    )


def test_enum_becomes_rule_of_literals() -> None:
    rules = _rules(project(Priority, "gbnf"))

    assert rules["root"] == "priority"
    assert rules["priority"] == r'( "\"low\"" ) | ( "\"medium\"" ) | ( "\"high\"" )'


def test_recursive_record_refers_to_its_own_rule() -> None:
    rules = _rules(project(TreeNode, "gbnf"))

    assert rules["root"] == "treenode"
    assert rules["treenode"].endswith(
        r'"\"children\"" ws ":" ws "[" ws ( treenode ws ( "," ws treenode ws )* )? "]" ws "}"'
    )


def test_recursive_union_refers_to_its_own_rule() -> None:
    rules = _rules(project(Expr, "gbnf"))

    assert rules["root"] == "expr"
    assert rules["expr"] == "leaf | branch"
    assert '"\\"left\\"" ws ":" ws expr' in rules["branch"]
    assert list(rules)[:4] == ["root", "leaf", "branch", "expr"]


def test_rule_names_avoid_primitive_rules() -> None:
    grammar = project(ObjectSchema("String"), "gbnf")
    rules = _rules(grammar)

    assert rules["root"] == "string-2"
    assert rules["string-2"] == '"{" ws "}"'
    assert rules["string"] == r'"\"" char* "\""'


def test_array_bounds() -> None:
    empty = project(ArraySchema(StringSchema(), (Count(upper=0),)), "gbnf")
    at_least_two = project(ArraySchema(StringSchema(), (Count(lower=2),)), "gbnf")
    open_ended = project(ArraySchema(StringSchema()), "gbnf")

    assert _rules(empty)["root"] == '"[" ws "]"'
    assert _rules(at_least_two)["root"] == (
        '"[" ws string ws ( "," ws string ws ){1,} "]"'
    )
    assert _rules(open_ended)["root"] == (
        '"[" ws ( string ws ( "," ws string ws )* )? "]"'
    )


def test_patterns_are_unprojectable() -> None:
    schema = ObjectSchema(
        "Code", properties={"code": Property(StringSchema((Pattern("^[A-Z]{3}$"),)))}
    )

    with pytest.raises(UnprojectableSchemaError) as exc:
        project(schema, "gbnf")

    assert exc.value.backend == "gbnf"
    assert "pattern" in exc.value.reason


def test_numeric_ranges_are_unprojectable() -> None:
    with pytest.raises(UnprojectableSchemaError, match="numeric ranges"):
        project(Person, "gbnf")


def test_string_length_bounds_repeat_characters() -> None:
    bounded = project(StringSchema((Length(2, 5),)), "gbnf")
    at_least = project(StringSchema((Length(lower=1),)), "gbnf")
    merged = project(StringSchema((Length(lower=1), Length(upper=3))), "gbnf")

    assert _rules(bounded)["root"] == r'"\"" char{2,5} "\""'
    assert _rules(at_least)["root"] == r'"\"" char{1,} "\""'
    assert _rules(merged)["root"] == r'"\"" char{1,3} "\""'


def test_contradictory_string_lengths_are_unprojectable() -> None:
    schema = StringSchema((Length(lower=4), Length(upper=2)))

    with pytest.raises(UnprojectableSchemaError, match="contradictory"):
        project(schema, "gbnf")
