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

"""Tests for partial counterparts of generable records."""

from __future__ import annotations

import dataclasses
import pickle

import pytest

from structgen.content import StructuredContent
from structgen.errors import SchemaDefinitionError
from structgen.streaming import (
    UNKNOWN,
    is_partial,
    merge_partial,
    missing_fields,
    partial_type,
    partial_value,
)
from tests._fixtures import (
    Job,
    Outcome,
    Person,
    Point,
    Priority,
    Route,
    Ticket,
    TreeNode,
)

pytestmark = pytest.mark.core


def _partial(text: str, tp: object) -> object:
    return partial_value(StructuredContent.parse(text), tp)


def test_unknown_is_a_falsy_singleton() -> None:
    assert not UNKNOWN
    assert repr(UNKNOWN) == "UNKNOWN"
    assert type(UNKNOWN)() is UNKNOWN
    assert pickle.loads(pickle.dumps(UNKNOWN)) is UNKNOWN


def test_partial_type_mirrors_record_fields() -> None:
    person_partial = partial_type(Person)
    empty = person_partial()

    assert person_partial.__name__ == "PersonPartial"
    assert [field.name for field in dataclasses.fields(person_partial)] == [
        "name",
        "age",
        "nickname",
    ]
    assert empty.name is UNKNOWN  # pyright: ignore[reportAttributeAccessIssue]
    assert is_partial(empty)
    assert not is_partial(Person("Ann", 3))


def test_partial_type_is_cached_and_frozen() -> None:
    assert partial_type(Person) is partial_type(Person)
    with pytest.raises(dataclasses.FrozenInstanceError):
        partial_type(Person)().name = "x"  # pyright: ignore[reportAttributeAccessIssue]


def test_partial_type_requires_a_dataclass() -> None:
    with pytest.raises(SchemaDefinitionError):
        partial_type(int)


def test_partial_value_keeps_observed_slots() -> None:
    value = _partial('{"name": "Al"}', Person)

    assert value == partial_type(Person)(name="Al")
    assert missing_fields(value) == ("age",)


def test_optional_null_is_known_absent() -> None:
    value = _partial('{"name": "Al", "nickname": null}', Person)

    assert value.nickname is None  # pyright: ignore[reportAttributeAccessIssue]


def test_mismatched_slots_stay_unknown() -> None:
    value = _partial('{"name": 3, "age": 1.5}', Person)

    assert value == partial_type(Person)()
    assert _partial("[1, 2]", Person) is UNKNOWN


def test_nested_records_hold_nested_partials() -> None:
    value = _partial('{"start": {"x": 1}}', Route)

    start = value.start  # pyright: ignore[reportAttributeAccessIssue]
    assert type(start) is partial_type(Point)
    assert start.x == 1.0
    assert start.y is UNKNOWN
    assert value.end is UNKNOWN  # pyright: ignore[reportAttributeAccessIssue]


def test_arrays_hold_the_decodable_prefix() -> None:
    value = _partial('{"title": "t", "labels": ["a", "b", 3, "c"]}', Ticket)

    assert value.labels == ("a", "b")  # pyright: ignore[reportAttributeAccessIssue]


def test_arrays_of_records_hold_partials() -> None:
    value = _partial('{"label": "root", "children": [{"label": "a"}, {}]}', TreeNode)

    children = value.children  # pyright: ignore[reportAttributeAccessIssue]
    assert len(children) == 2
    assert children[0].label == "a"
    assert children[1].label is UNKNOWN


def test_enums_and_unions() -> None:
    ticket = _partial('{"priority": "high"}', Ticket)
    unknown_priority = _partial('{"priority": "urgent"}', Ticket)
    job = _partial('{"outcome": {"type": "failure", "code": 4}}', Job)

    assert ticket.priority is Priority.HIGH  # pyright: ignore[reportAttributeAccessIssue]
    assert unknown_priority.priority is UNKNOWN  # pyright: ignore[reportAttributeAccessIssue]
    outcome = job.outcome  # pyright: ignore[reportAttributeAccessIssue]
    assert type(outcome).__name__ == "FailurePartial"
    assert outcome.code == 4
    assert outcome.reason is UNKNOWN


def test_union_without_known_case_is_unknown() -> None:
    assert _partial('{"value": "x"}', Outcome) is UNKNOWN
    assert _partial('{"type": "other"}', Outcome) is UNKNOWN


def test_merge_never_forgets_observed_slots() -> None:
    person_partial = partial_type(Person)
    previous = person_partial(name="Al", age=3)
    current = person_partial(name="Alice")

    assert merge_partial(previous, current) == person_partial(name="Alice", age=3)
    assert merge_partial(previous, UNKNOWN) is previous
    assert merge_partial(UNKNOWN, current) is current


def test_merge_combines_nested_partials_and_arrays() -> None:
    previous = _partial(
        '{"label": "r", "children": [{"label": "a"}, {"label": "b"}]}', TreeNode
    )
    current = _partial('{"children": [{"children": []}]}', TreeNode)

    merged = merge_partial(previous, current)

    assert merged.label == "r"  # pyright: ignore[reportAttributeAccessIssue]
    children = merged.children  # pyright: ignore[reportAttributeAccessIssue]
    assert [child.label for child in children] == ["a", "b"]
    assert children[0].children == ()


def test_merge_replaces_scalars() -> None:
    assert merge_partial("Al", "Alice") == "Alice"
    assert merge_partial(None, "x") == "x"


def test_missing_fields_ignores_optional_and_non_partials() -> None:
    value = _partial('{"name": "Al", "age": 3}', Person)

    assert missing_fields(value) == ()
    assert missing_fields(UNKNOWN) == ()
    assert missing_fields(partial_type(Person)()) == ("name", "age")
