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

"""Tests for progressive reconstruction of streamed structured output."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import AsyncIterator

import pytest
from hypothesis import given, strategies as st

from structgen.codec import encode
from structgen.config import ReconstructionConfig
from structgen.content import StructuredContent
from structgen.errors import (
    IncompleteResultError,
    KindMismatchError,
    UnknownDiscriminatorError,
)
from structgen.streaming import (
    UNKNOWN,
    NativePartial,
    PartialReconstructor,
    ReconstructionState,
    StreamCancelled,
    StreamCompleted,
    StreamEvent,
    StreamFailed,
    TextDelta,
    TextFragment,
    areconstruct,
    partial_type,
    reconstruct,
)
from tests._fixtures import Author, Job, Outcome, Person, Success, TreeNode

pytestmark = pytest.mark.core

_REPAIR = ReconstructionConfig(repair_partial_json=True)


def _native(**entries: StructuredContent) -> NativePartial:
    return NativePartial(StructuredContent.object(entries))


def test_fragments_then_completion() -> None:
    reconstructor = PartialReconstructor(Author)

    first = reconstructor.feed(TextFragment('{"name":"Al'))
    assert first is None
    assert reconstructor.state is ReconstructionState.EMPTY

    second = reconstructor.feed(TextFragment('{"name":"Alice"}'))
    assert second is not None
    assert second.state is ReconstructionState.PARTIAL
    assert second.partial == partial_type(Author)(name="Alice")
    assert second.value is None

    final = reconstructor.feed(StreamCompleted())
    assert final is not None
    assert final.state is ReconstructionState.COMPLETE
    assert final.value == Author("Alice")
    assert reconstructor.result() == Author("Alice")


def test_unparseable_fragment_keeps_previous_snapshot() -> None:
    reconstructor = PartialReconstructor(Person)
    reconstructor.feed(TextFragment('{"name":"Ann","age":3}'))

    assert reconstructor.feed(TextFragment('{"name":"Ann","age":3,"nick')) is None
    assert reconstructor.state is ReconstructionState.PARTIAL
    assert reconstructor.snapshot.partial == partial_type(Person)(name="Ann", age=3)


def test_deltas_accumulate_into_the_buffer() -> None:
    reconstructor = PartialReconstructor(Author)

    assert reconstructor.feed(TextDelta('{"na')) is None
    assert reconstructor.feed(TextDelta('me":"Bo"')) is None
    snapshot = reconstructor.feed(TextDelta("}"))

    assert reconstructor.buffer == '{"name":"Bo"}'
    assert snapshot is not None
    assert snapshot.partial == partial_type(Author)(name="Bo")


def test_native_partials_merge_without_forgetting() -> None:
    reconstructor = PartialReconstructor(Person)

    reconstructor.feed(_native(age=StructuredContent.number(40)))
    snapshot = reconstructor.feed(_native(name=StructuredContent.string("Ann")))

    assert snapshot is not None
    assert snapshot.partial == partial_type(Person)(name="Ann", age=40)


def test_fragment_of_the_wrong_shape_is_not_a_snapshot() -> None:
    reconstructor = PartialReconstructor(Author)

    assert reconstructor.feed(TextFragment("[1, 2]")) is None
    assert reconstructor.state is ReconstructionState.EMPTY
    assert reconstructor.snapshot.partial is UNKNOWN


def test_repair_surfaces_in_progress_strings() -> None:
    reconstructor = PartialReconstructor(Author, config=_REPAIR)

    snapshot = reconstructor.feed(TextFragment('{"name":"Al'))

    assert snapshot is not None
    assert snapshot.partial == partial_type(Author)(name="Al")


def test_repair_surfaces_completed_array_elements() -> None:
    reconstructor = PartialReconstructor(TreeNode, config=_REPAIR)

    snapshot = reconstructor.feed(
        TextFragment('{"label":"root","children":[{"label":"a","children":[]},{"lab')
    )

    assert snapshot is not None
    children = snapshot.partial.children
    assert [child.label for child in children] == ["a"]


def test_completion_with_missing_required_property_fails() -> None:
    reconstructor = PartialReconstructor(Person)
    reconstructor.feed(TextFragment('{"name":"Al"}'))

    with pytest.raises(IncompleteResultError) as exc:
        reconstructor.feed(StreamCompleted())

    assert exc.value.missing == ("age",)
    assert reconstructor.state is ReconstructionState.FAILED
    with pytest.raises(IncompleteResultError):
        reconstructor.result()


def test_completion_with_invalid_json_fails() -> None:
    reconstructor = PartialReconstructor(Author)

    with pytest.raises(IncompleteResultError):
        reconstructor.feed(StreamCompleted(final_json='{"name"'))

    assert reconstructor.state is ReconstructionState.FAILED


def test_final_json_overrides_the_buffer() -> None:
    reconstructor = PartialReconstructor(Author)
    reconstructor.feed(TextFragment('{"name":"Al'))

    snapshot = reconstructor.feed(StreamCompleted(final_json='{"name":"Alice"}'))

    assert snapshot is not None
    assert snapshot.value == Author("Alice")
    assert snapshot.partial == partial_type(Author)(name="Alice")


def test_completion_with_wrong_kinds_raises_codec_error() -> None:
    reconstructor = PartialReconstructor(Author)
    reconstructor.feed(TextFragment('{"name":"Al"}'))

    with pytest.raises(KindMismatchError):
        reconstructor.feed(StreamCompleted(final_json='{"name": 3}'))

    assert reconstructor.state is ReconstructionState.FAILED
    assert reconstructor.feed(TextFragment('{"name":"Bob"}')) is None
    assert reconstructor.snapshot.partial == partial_type(Author)(name="Al")
    with pytest.raises(IncompleteResultError):
        reconstructor.result()


def test_completion_with_unknown_case_fails_the_stream() -> None:
    reconstructor = PartialReconstructor(Outcome)

    with pytest.raises(UnknownDiscriminatorError):
        reconstructor.feed(StreamCompleted('{"type":"timeout"}'))

    assert reconstructor.state is ReconstructionState.FAILED


def test_deeply_nested_fragment_is_skipped() -> None:
    reconstructor = PartialReconstructor(Author)
    reconstructor.feed(TextFragment('{"name":"Al"}'))

    assert reconstructor.feed(TextFragment("[" * 100_000)) is None
    assert reconstructor.feed(TextDelta("]" * 100_000)) is None
    assert reconstructor.state is ReconstructionState.PARTIAL
    assert reconstructor.snapshot.partial == partial_type(Author)(name="Al")


def test_adapter_failures_are_reraised() -> None:
    reconstructor = PartialReconstructor(Author)
    error = RuntimeError("connection reset")

    with pytest.raises(RuntimeError) as exc:
        reconstructor.feed(StreamFailed(error))

    assert exc.value is error
    assert reconstructor.state is ReconstructionState.FAILED


def test_cancellation_keeps_the_last_snapshot() -> None:
    reconstructor = PartialReconstructor(Author)
    reconstructor.feed(TextFragment('{"name":"Al"}'))

    assert reconstructor.feed(StreamCancelled()) is None
    assert reconstructor.state is ReconstructionState.CANCELLED
    assert reconstructor.snapshot.state is ReconstructionState.PARTIAL
    assert reconstructor.snapshot.partial == partial_type(Author)(name="Al")
    with pytest.raises(IncompleteResultError):
        reconstructor.result()


def test_events_after_the_end_are_ignored() -> None:
    reconstructor = PartialReconstructor(Author)
    reconstructor.feed(TextFragment('{"name":"Al"}'))
    reconstructor.feed(StreamCompleted())

    assert reconstructor.feed(TextFragment('{"name":"Bob"}')) is None
    assert reconstructor.feed(StreamFailed(RuntimeError("late"))) is None
    assert reconstructor.result() == Author("Al")


def test_result_before_completion_reports_missing_fields() -> None:
    reconstructor = PartialReconstructor(Person)
    reconstructor.feed(TextFragment('{"age":3}'))

    with pytest.raises(IncompleteResultError) as exc:
        reconstructor.result()

    assert exc.value.missing == ("name",)


def test_union_targets_reconstruct_their_case() -> None:
    reconstructor = PartialReconstructor(Outcome)

    partial = reconstructor.feed(TextFragment('{"type":"success"}'))
    final = reconstructor.feed(StreamCompleted('{"type":"success","value":"OK"}'))

    assert partial is not None
    assert type(partial.partial).__name__ == "SuccessPartial"
    assert final is not None
    assert final.value == Success("OK")


def test_reconstruct_yields_only_changes() -> None:
    events: list[StreamEvent] = [
        TextFragment('{"name":"Al'),
        TextFragment('{"name":"Alice"}'),
        StreamCompleted(),
    ]

    snapshots = list(reconstruct(events, Author))

    assert [snapshot.state for snapshot in snapshots] == [
        ReconstructionState.PARTIAL,
        ReconstructionState.COMPLETE,
    ]
    assert snapshots[-1].value == Author("Alice")


async def _events(*events: StreamEvent) -> AsyncIterator[StreamEvent]:
    for event in events:
        await asyncio.sleep(0)
        yield event


def test_areconstruct_consumes_async_streams() -> None:
    async def collect() -> list[object]:
        stream = _events(
            TextDelta('{"name":'),
            TextDelta('"Ann","age":30}'),
            StreamCompleted(),
        )
        return [snapshot.value async for snapshot in areconstruct(stream, Person)]

    values = asyncio.run(collect())

    assert values == [None, Person("Ann", 30)]


def test_skipped_fragments_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    reconstructor = PartialReconstructor(Author)

    with caplog.at_level(logging.DEBUG, logger="structgen.streaming"):
        reconstructor.feed(TextFragment('{"name":'))

    events = [getattr(record, "event", None) for record in caplog.records]
    assert "stream.fragment_skipped" in events
    record = caplog.records[events.index("stream.fragment_skipped")]
    assert getattr(record, "context")["target"] == "Author"


_SAFE_TEXT = st.text(
    alphabet=st.characters(exclude_categories=("Cs",)), max_size=8
)
_PEOPLE = st.builds(
    Person,
    name=_SAFE_TEXT,
    age=st.integers(min_value=0, max_value=150),
    nickname=st.none() | _SAFE_TEXT,
)


@given(_PEOPLE)
def test_streamed_prefixes_converge_on_the_value(person: Person) -> None:
    text = encode(person).serialize()
    reconstructor = PartialReconstructor(Person, config=_REPAIR)
    known: set[str] = set()

    for end in range(1, len(text) + 1):
        reconstructor.feed(TextFragment(text[:end]))
        partial = reconstructor.snapshot.partial
        if partial is UNKNOWN:
            assert not known
            continue
        now_known = {
            field.name
            for field in dataclasses.fields(partial)
            if getattr(partial, field.name) is not UNKNOWN
        }
        assert known <= now_known
        known = now_known

    final = reconstructor.feed(StreamCompleted())

    assert final is not None
    assert final.value == person
    assert reconstructor.result() == person


def test_job_stream_with_nested_union_history() -> None:
    text = (
        '{"name":"nightly","outcome":{"type":"pending"},'
        '"history":[{"type":"failure","code":2},{"type":"success","value":"OK"}]}'
    )
    reconstructor = PartialReconstructor(Job, config=_REPAIR)

    for end in range(1, len(text) + 1):
        reconstructor.feed(TextDelta(text[end - 1]))
    final = reconstructor.feed(StreamCompleted())

    assert final is not None
    assert final.value is not None
    assert [type(item).__name__ for item in final.value.history] == [
        "Failure",
        "Success",
    ]
