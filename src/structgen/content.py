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

"""Generic structured value tree exchanged with model backends.

:class:`StructuredContent` is the interchange format between backend adapters
and the typed codec. A node is one of six kinds (``null``, ``bool``,
``number``, ``string``, ``array``, ``object``); the kind is a closed
:class:`ContentKind` enum so consumers can ``match`` on it exhaustively::

    content = StructuredContent.parse('{"name": "Ada", "tags": ["x"]}')
    match content.kind:
        case ContentKind.OBJECT:
            name = content.as_object()["name"].as_string()
        case _:
            ...

Object entries keep their insertion order, which makes re-serialization
deterministic. Numbers are stored as ``float`` whether integral or not; the
codec checks integrality only when decoding into ``int``.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Final, cast

from .errors import InvalidJSONError, KindMismatchError
from .types import JSONValue

__all__ = [
    "ContentKind",
    "StructuredContent",
    "extract_json",
]

# Integral floats beyond this magnitude are not exactly representable as ints.
_MAX_SAFE_INTEGER: Final[float] = float(2**53)

_JSON_FENCE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"```json\s*\n(.*?)```", re.IGNORECASE | re.DOTALL
)


class ContentKind(StrEnum):
    """The closed set of node kinds."""

    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


type ContentPayload = (
    None
    | bool
    | float
    | str
    | tuple[StructuredContent, ...]
    | tuple[tuple[str, StructuredContent], ...]
)


@dataclass(frozen=True, slots=True)
class StructuredContent:
    """One immutable node of a JSON-like value tree.

    Build nodes through the named constructors rather than the raw
    initializer; they validate the payload for each kind.
    """

    kind: ContentKind
    payload: ContentPayload = None

    # Constructors -----------------------------------------------------------

    @classmethod
    def null(cls) -> StructuredContent:
        return _NULL

    @classmethod
    def boolean(cls, value: bool) -> StructuredContent:
        return cls(ContentKind.BOOL, bool(value))

    @classmethod
    def number(cls, value: float) -> StructuredContent:
        if isinstance(value, bool):
            raise TypeError("number() does not accept bool; use boolean().")
        try:
            number = float(value)
        except OverflowError as error:
            raise ValueError(
                "number() requires a value representable as a float"
            ) from error
        if not math.isfinite(number):
            raise ValueError(f"number() requires a finite value, got {value!r}")
        return cls(ContentKind.NUMBER, number)

    @classmethod
    def string(cls, value: str) -> StructuredContent:
        return cls(ContentKind.STRING, value)

    @classmethod
    def array(cls, items: Iterable[StructuredContent] = ()) -> StructuredContent:
        return cls(ContentKind.ARRAY, tuple(items))

    @classmethod
    def object(
        cls,
        entries: Mapping[str, StructuredContent]
        | Iterable[tuple[str, StructuredContent]] = (),
    ) -> StructuredContent:
        """Build an object node; later duplicate keys replace earlier values."""
        mapping = dict(entries)
        return cls(ContentKind.OBJECT, tuple(mapping.items()))

    @classmethod
    def from_json_value(cls, value: JSONValue) -> StructuredContent:
        """Convert plain Python JSON data (as produced by :func:`json.loads`)."""
        if value is None:
            return _NULL
        if isinstance(value, bool):
            return cls.boolean(value)
        if isinstance(value, (int, float)):
            return cls.number(value)
        if isinstance(value, str):
            return cls.string(value)
        if isinstance(value, Mapping):
            mapping = cast(Mapping[object, JSONValue], value)
            entries: list[tuple[str, StructuredContent]] = []
            for key, item in mapping.items():
                if not isinstance(key, str):
                    raise TypeError(f"Object keys must be strings, got {key!r}")
                entries.append((key, cls.from_json_value(item)))
            return cls.object(entries)
        if isinstance(value, Sequence):
            return cls.array(
                cls.from_json_value(item) for item in cast(Sequence[JSONValue], value)
            )
        raise TypeError(f"Unsupported JSON value: {type(value).__name__}")

    @classmethod
    def parse(cls, text: str | bytes) -> StructuredContent:
        """Parse JSON text, raising :class:`InvalidJSONError` when malformed."""
        try:
            raw = json.loads(text, parse_constant=_reject_constant)
            # Overflowing literals such as 1e400 decode to inf.
            return cls.from_json_value(cast(JSONValue, raw))
        except (ValueError, RecursionError) as error:
            raise InvalidJSONError(
                f"Invalid JSON: {error}",
                text=text if isinstance(text, str) else None,
            ) from error

    # Serialization ----------------------------------------------------------

    def to_json_value(self) -> JSONValue:
        """Return plain Python JSON data; integral numbers become ``int``."""
        match self.kind:
            case ContentKind.NULL:
                return None
            case ContentKind.BOOL | ContentKind.STRING:
                return cast(JSONValue, self.payload)
            case ContentKind.NUMBER:
                number = cast(float, self.payload)
                if number.is_integer() and abs(number) < _MAX_SAFE_INTEGER:
                    return int(number)
                return number
            case ContentKind.ARRAY:
                return [item.to_json_value() for item in self.as_array()]
            case ContentKind.OBJECT:
                return {key: item.to_json_value() for key, item in self._entries()}

    def serialize(self, *, indent: int | None = None) -> str:
        """Render as JSON text; :meth:`parse` is the exact inverse."""
        separators = (",", ":") if indent is None else (",", ": ")
        return json.dumps(
            self.to_json_value(),
            ensure_ascii=False,
            allow_nan=False,
            indent=indent,
            separators=separators,
        )

    # Typed accessors --------------------------------------------------------

    @property
    def is_null(self) -> bool:
        return self.kind is ContentKind.NULL

    def as_object(self, *, path: str = "$") -> dict[str, StructuredContent]:
        """Return the object entries as a fresh ordered ``dict``."""
        self._require(ContentKind.OBJECT, path)
        return dict(self._entries())

    def as_array(self, *, path: str = "$") -> tuple[StructuredContent, ...]:
        self._require(ContentKind.ARRAY, path)
        return cast(tuple[StructuredContent, ...], self.payload)

    def as_string(self, *, path: str = "$") -> str:
        self._require(ContentKind.STRING, path)
        return cast(str, self.payload)

    def as_number(self, *, path: str = "$") -> float:
        self._require(ContentKind.NUMBER, path)
        return cast(float, self.payload)

    def as_bool(self, *, path: str = "$") -> bool:
        self._require(ContentKind.BOOL, path)
        return cast(bool, self.payload)

    def _require(self, expected: ContentKind, path: str) -> None:
        if self.kind is not expected:
            raise KindMismatchError(expected.value, self.kind.value, path=path)

    def _entries(self) -> tuple[tuple[str, StructuredContent], ...]:
        return cast(tuple[tuple[str, StructuredContent], ...], self.payload)

    def __str__(self) -> str:
        return self.serialize()


_NULL: Final[StructuredContent] = StructuredContent(ContentKind.NULL)


def _reject_constant(name: str) -> object:
    raise ValueError(f"Invalid JSON: non-finite literal {name} is not allowed")


def extract_json(text: str) -> StructuredContent:
    """Locate and parse the JSON payload inside free-form model output.

    Tries, in order: the first fenced ````` ```json ````` block, the whole
    stripped text, and the first ``{`` or ``[`` from which a complete JSON
    value can be decoded.
    """

    fenced_match = _JSON_FENCE_PATTERN.search(text)
    if fenced_match is not None:
        return StructuredContent.parse(fenced_match.group(1).strip())

    stripped = text.strip()
    if stripped:
        try:
            return StructuredContent.parse(stripped)
        except InvalidJSONError:
            pass

    decoder = json.JSONDecoder(parse_constant=_reject_constant)
    for index, character in enumerate(text):
        if character not in "{[":
            continue
        try:
            payload, _ = decoder.raw_decode(text, index)
            return StructuredContent.from_json_value(cast(JSONValue, payload))
        except (ValueError, RecursionError):
            continue

    raise InvalidJSONError("No JSON object or array found in model output.", text=text)
