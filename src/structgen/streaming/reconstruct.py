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

"""Progressive reconstruction of typed values from streamed output.

Backend adapters deliver an ordered, finite sequence of :data:`StreamEvent`
values. A :class:`PartialReconstructor` consumes them one at a time and
exposes a best-effort :class:`Snapshot` after each fragment::

    reconstructor = PartialReconstructor(Person)
    for event in adapter_events:
        snapshot = reconstructor.feed(event)
        if snapshot is not None:
            render(snapshot.partial)
    person = reconstructor.result()

Fragments that fail to parse are skipped and the previous snapshot is kept;
snapshots never lose a value once observed. Only completion produces a fully
decoded value, through the same codec as a non-streaming decode.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, cast, overload

from .._introspect import shape_of
from ..codec import decode
from ..config import ReconstructionConfig
from ..content import StructuredContent
from ..errors import (
    IncompleteResultError,
    InvalidJSONError,
    MissingPropertyError,
    StructgenError,
)
from ..logging import StructuredLogger, get_logger
from .partial import UNKNOWN, merge_partial, missing_fields, partial_value
from .repair import repair_json

__all__ = [
    "NativePartial",
    "PartialReconstructor",
    "ReconstructionState",
    "Snapshot",
    "StreamCancelled",
    "StreamCompleted",
    "StreamEvent",
    "StreamFailed",
    "TextDelta",
    "TextFragment",
    "areconstruct",
    "reconstruct",
]

logger: StructuredLogger = get_logger(__name__, context={"component": "streaming"})


@dataclass(frozen=True, slots=True)
class TextFragment:
    text: str
    """Cumulative response text received so far."""


@dataclass(frozen=True, slots=True)
class TextDelta:
    text: str
    """Text to append to the buffered response."""


@dataclass(frozen=True, slots=True)
class NativePartial:
    content: StructuredContent
    """Structured partial supplied directly by the backend."""


@dataclass(frozen=True, slots=True)
class StreamCompleted:
    final_json: str | None = None
    """Complete response text; the buffered text is used when omitted."""


@dataclass(frozen=True, slots=True)
class StreamFailed:
    error: BaseException
    """Adapter failure, re-raised by the reconstructor."""


@dataclass(frozen=True, slots=True)
class StreamCancelled:
    pass


type StreamEvent = (
    TextFragment
    | TextDelta
    | NativePartial
    | StreamCompleted
    | StreamFailed
    | StreamCancelled
)


class ReconstructionState(StrEnum):
    EMPTY = "empty"
    PARTIAL = "partial"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"


_TERMINAL_STATES = frozenset(
    {
        ReconstructionState.COMPLETE,
        ReconstructionState.CANCELLED,
        ReconstructionState.FAILED,
    }
)
_SNAPSHOT_STATES = frozenset(
    {
        ReconstructionState.EMPTY,
        ReconstructionState.PARTIAL,
        ReconstructionState.COMPLETE,
    }
)


@dataclass(frozen=True, slots=True)
class Snapshot[T]:
    """Point-in-time view of a stream.

    ``partial`` is the reconstruction so far (a generated partial for record
    and union targets, :data:`UNKNOWN` while nothing is known). ``value``
    holds the decoded result once ``state`` is ``COMPLETE``.
    """

    state: ReconstructionState
    partial: Any = UNKNOWN
    value: T | None = None


class PartialReconstructor[T]:
    """Single-consumer state machine turning stream events into snapshots.

    Instances hold per-stream state and must not be shared across streams.
    """

    @overload
    def __init__(
        self, tp: type[T], *, config: ReconstructionConfig | None = None
    ) -> None: ...

    @overload
    def __init__(
        self, tp: object, *, config: ReconstructionConfig | None = None
    ) -> None: ...

    def __init__(
        self, tp: object, *, config: ReconstructionConfig | None = None
    ) -> None:
        super().__init__()
        self._type = tp
        _ = shape_of(tp)
        self._config = config if config is not None else ReconstructionConfig()
        self._buffer = ""
        self._state = ReconstructionState.EMPTY
        self._visible = ReconstructionState.EMPTY
        self._partial: object = UNKNOWN
        self._value: T | None = None
        self._logger = logger.bind(target=getattr(tp, "__name__", repr(tp)))

    @property
    def state(self) -> ReconstructionState:
        return self._state

    @property
    def buffer(self) -> str:
        """Response text accumulated from text events."""
        return self._buffer

    @property
    def snapshot(self) -> Snapshot[T]:
        """The latest snapshot; remains valid after cancellation."""
        return Snapshot(self._visible, self._partial, self._value)

    def feed(self, event: StreamEvent) -> Snapshot[T] | None:
        """Consume ``event`` and return the new snapshot, if any.

        Returns ``None`` when the event produced nothing new: a fragment that
        does not parse, cancellation, or any event after the stream ended.

        Raises:
            IncompleteResultError: completion arrived without a decodable
                value holding every required property.
            StructgenError: the completed value does not match the target
                type; the stream still ends in ``FAILED``.
            BaseException: the adapter error carried by :class:`StreamFailed`.
        """

        if self._state in _TERMINAL_STATES:
            self._logger.debug(
                "Ignoring event after stream end.",
                event="stream.event_ignored",
                context={"state": self._state.value, "kind": type(event).__name__},
            )
            return None

        match event:
            case TextFragment(text=text):
                self._buffer = text
                return self._ingest_text()
            case TextDelta(text=text):
                self._buffer += text
                return self._ingest_text()
            case NativePartial(content=content):
                return self._ingest(content)
            case StreamCompleted(final_json=final_json):
                return self._complete(final_json)
            case StreamFailed(error=error):
                self._transition(ReconstructionState.FAILED)
                raise error
            case StreamCancelled():
                self._transition(ReconstructionState.CANCELLED)
                return None

    def result(self) -> T:
        """Return the completed value.

        Raises:
            IncompleteResultError: the stream has not completed, or was
                cancelled or failed.
        """

        if self._state is not ReconstructionState.COMPLETE:
            raise IncompleteResultError(
                f"Stream ended in state {self._state.value} without a result.",
                missing=missing_fields(self._partial),
            )
        return cast(T, self._value)

    def _ingest_text(self) -> Snapshot[T] | None:
        text = self._buffer
        if self._config.repair_partial_json:
            text = repair_json(text)
        if not text.strip():
            return None
        try:
            content = StructuredContent.parse(text)
        except InvalidJSONError as error:
            self._logger.debug(
                "Skipping unparseable fragment.",
                event="stream.fragment_skipped",
                context={"length": len(self._buffer), "error": error.message},
            )
            return None
        return self._ingest(content)

    def _ingest(self, content: StructuredContent) -> Snapshot[T] | None:
        observed = partial_value(content, self._type)
        if observed is UNKNOWN:
            self._logger.debug(
                "Fragment did not match the target shape.",
                event="stream.fragment_unmatched",
                context={"kind": content.kind.value},
            )
            return None
        self._partial = merge_partial(self._partial, observed)
        self._transition(ReconstructionState.PARTIAL)
        return self.snapshot

    def _complete(self, final_json: str | None) -> Snapshot[T]:
        text = final_json if final_json is not None else self._buffer
        try:
            content = StructuredContent.parse(text)
            value = cast(T, decode(content, self._type))
        except InvalidJSONError as error:
            self._transition(ReconstructionState.FAILED)
            raise IncompleteResultError(
                "Stream completed without valid JSON.",
                missing=missing_fields(self._partial),
            ) from error
        except MissingPropertyError as error:
            self._transition(ReconstructionState.FAILED)
            raise IncompleteResultError(
                f"Stream completed without required property {error.name!r}.",
                missing=missing_fields(self._partial) or (error.name,),
            ) from error
        except StructgenError:
            self._transition(ReconstructionState.FAILED)
            raise

        observed = partial_value(content, self._type)
        self._partial = merge_partial(self._partial, observed)
        self._value = value
        self._transition(ReconstructionState.COMPLETE)
        return self.snapshot

    def _transition(self, state: ReconstructionState) -> None:
        if state is self._state:
            return
        self._logger.debug(
            "Reconstruction state changed.",
            event="stream.state_changed",
            context={"from": self._state.value, "to": state.value},
        )
        self._state = state
        if state in _SNAPSHOT_STATES:
            self._visible = state


def reconstruct[T](
    events: Iterable[StreamEvent],
    tp: type[T],
    *,
    config: ReconstructionConfig | None = None,
) -> Iterator[Snapshot[T]]:
    """Yield a snapshot for every event that changes the reconstruction."""

    reconstructor = PartialReconstructor(tp, config=config)
    for event in events:
        snapshot = reconstructor.feed(event)
        if snapshot is not None:
            yield snapshot


async def areconstruct[T](
    events: AsyncIterable[StreamEvent],
    tp: type[T],
    *,
    config: ReconstructionConfig | None = None,
) -> AsyncIterator[Snapshot[T]]:
    """Asynchronous counterpart of :func:`reconstruct`."""

    reconstructor = PartialReconstructor(tp, config=config)
    async for event in events:
        snapshot = reconstructor.feed(event)
        if snapshot is not None:
            yield snapshot
