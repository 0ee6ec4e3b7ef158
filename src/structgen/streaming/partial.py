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

"""Partial counterparts of generable records.

A partial mirrors every declared field of a record as an independent slot.
A slot holds :data:`UNKNOWN` until a value has been observed; ``None`` means
an optional field was observed as ``null``. Nested records hold nested
partials, arrays hold a tuple of the decodable element prefix and strings
hold the text received so far.
"""

# pyright: reportUnknownArgumentType=false, reportUnknownVariableType=false, reportUnknownMemberType=false

from __future__ import annotations

import dataclasses
import threading
from typing import Any, Final, final

from .._introspect import (
    DISCRIMINATOR_KEY,
    ArrayShape,
    EnumShape,
    FieldShape,
    LiteralShape,
    OptionalShape,
    PrimitiveShape,
    RecordShape,
    Shape,
    UnionShape,
    record_fields,
    shape_of,
)
from ..content import ContentKind, StructuredContent
from ..errors import SchemaDefinitionError

__all__ = [
    "UNKNOWN",
    "is_partial",
    "merge_partial",
    "missing_fields",
    "partial_type",
    "partial_value",
]

_PARTIAL_SOURCE_ATTR: Final[str] = "__partial_of__"


@final
class _Unknown:
    """Marker for a slot that has not been observed yet."""

    __slots__ = ()
    _instance: _Unknown | None = None

    def __new__(cls) -> _Unknown:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "UNKNOWN"


UNKNOWN: Final[Any] = _Unknown()

_PARTIALS_LOCK = threading.Lock()
_PARTIALS: dict[type[object], type[object]] = {}


def partial_type(tp: type[object]) -> type[object]:
    """Return the cached ``<Name>Partial`` dataclass mirroring ``tp``.

    Every field of the generated class defaults to :data:`UNKNOWN`, so a
    bare ``partial_type(Person)()`` is the empty snapshot.

    Raises:
        SchemaDefinitionError: when ``tp`` is not a dataclass.
    """

    cached = _PARTIALS.get(tp)
    if cached is not None:
        return cached
    if not isinstance(tp, type) or not dataclasses.is_dataclass(tp):
        raise SchemaDefinitionError(f"Partials are derived from dataclasses, got {tp!r}.")

    fields = record_fields(tp)
    generated = dataclasses.make_dataclass(
        f"{tp.__name__}Partial",
        [
            (field.attr, Any, dataclasses.field(default=UNKNOWN))
            for field in fields
        ],
        frozen=True,
        slots=True,
        module=tp.__module__,
    )
    setattr(generated, _PARTIAL_SOURCE_ATTR, tp)
    with _PARTIALS_LOCK:
        return _PARTIALS.setdefault(tp, generated)


def is_partial(value: object) -> bool:
    """Return whether ``value`` is an instance of a generated partial class."""

    return _PARTIAL_SOURCE_ATTR in vars(type(value))


def partial_value(content: StructuredContent, tp: object) -> object:
    """Decode whatever ``content`` already determines about a ``tp`` value.

    Never raises for content of the wrong shape: undeterminable slots are
    :data:`UNKNOWN`.
    """

    return _partial(content, shape_of(tp))


def _partial(content: StructuredContent, shape: Shape) -> object:
    match shape:
        case OptionalShape(inner=inner):
            if content.is_null:
                return None
            return _partial(content, inner)
        case PrimitiveShape(py_type=py_type):
            return _partial_primitive(content, py_type)
        case LiteralShape(values=values):
            if content.kind is ContentKind.STRING and content.as_string() in values:
                return content.as_string()
            return UNKNOWN
        case EnumShape():
            if content.kind is not ContentKind.STRING:
                return UNKNOWN
            return dict(shape.members).get(content.as_string(), UNKNOWN)
        case ArrayShape(item=item):
            if content.kind is not ContentKind.ARRAY:
                return UNKNOWN
            prefix: list[object] = []
            for element in content.as_array():
                decoded = _partial(element, item)
                if decoded is UNKNOWN:
                    break
                prefix.append(decoded)
            return tuple(prefix)
        case RecordShape(cls=cls):
            if content.kind is not ContentKind.OBJECT:
                return UNKNOWN
            return _partial_record(content.as_object(), cls)
        case UnionShape():
            if content.kind is not ContentKind.OBJECT:
                return UNKNOWN
            entries = content.as_object()
            discriminator = entries.get(DISCRIMINATOR_KEY)
            if discriminator is None or discriminator.kind is not ContentKind.STRING:
                return UNKNOWN
            case = shape.case_for(discriminator.as_string())
            if case is None:
                return UNKNOWN
            return _partial_record(entries, case.cls)


def _partial_primitive(content: StructuredContent, py_type: type[object]) -> object:
    match content.kind:
        case ContentKind.STRING if py_type is str:
            return content.as_string()
        case ContentKind.BOOL if py_type is bool:
            return content.as_bool()
        case ContentKind.NUMBER if py_type is float:
            return content.as_number()
        case ContentKind.NUMBER if py_type is int and content.as_number().is_integer():
            return int(content.as_number())
        case _:
            return UNKNOWN


def _partial_record(entries: dict[str, StructuredContent], cls: type[object]) -> object:
    slots: dict[str, object] = {}
    for field in record_fields(cls):
        entry = entries.get(field.key)
        if entry is None:
            continue
        if entry.is_null and field.optional:
            slots[field.attr] = None
            continue
        decoded = _partial(entry, field.shape)
        if decoded is not UNKNOWN:
            slots[field.attr] = decoded
    return partial_type(cls)(**slots)


def merge_partial(previous: object, current: object) -> object:
    """Combine two snapshots so that no observed slot is forgotten.

    Slots unknown in ``current`` keep their ``previous`` value, partials of
    the same record merge field by field and arrays merge element-wise,
    keeping the longer prefix. Everything else is replaced by ``current``.
    """

    if current is UNKNOWN:
        return previous
    if previous is UNKNOWN or previous is None:
        return current
    if is_partial(current) and type(previous) is type(current):
        return dataclasses.replace(
            current,  # pyright: ignore[reportArgumentType]
            **{
                field.name: merge_partial(
                    getattr(previous, field.name), getattr(current, field.name)
                )
                for field in dataclasses.fields(current)  # pyright: ignore[reportArgumentType]
            },
        )
    if isinstance(previous, tuple) and isinstance(current, tuple):
        merged = [
            merge_partial(old, new)
            for old, new in zip(previous, current, strict=False)
        ]
        longer = current if len(current) >= len(previous) else previous
        merged.extend(longer[len(merged) :])
        return tuple(merged)
    return current


def missing_fields(partial: object) -> tuple[str, ...]:
    """Return the keys of required fields still unknown in ``partial``."""

    if not is_partial(partial):
        return ()
    source: type[object] = getattr(type(partial), _PARTIAL_SOURCE_ATTR)
    fields: tuple[FieldShape, ...] = record_fields(source)
    return tuple(
        field.key
        for field in fields
        if not field.optional and getattr(partial, field.attr) is UNKNOWN
    )
