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

""":class:`~structgen.content.StructuredContent` to typed values.

All reads go through the typed accessors of the content tree, so a node of
the wrong kind surfaces as :class:`KindMismatchError` carrying the JSON path
of the node. Keys absent from an object decode like an explicit ``null``
for optional fields and raise :class:`MissingPropertyError` otherwise.
Unknown keys are ignored.
"""

# pyright: reportUnknownArgumentType=false, reportUnknownVariableType=false

from __future__ import annotations

from typing import Any, cast, overload

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
from ..content import StructuredContent
from ..errors import KindMismatchError, MissingPropertyError, UnknownDiscriminatorError

__all__ = ["decode", "decode_json"]


@overload
def decode[T](content: StructuredContent, tp: type[T]) -> T: ...


@overload
def decode(content: StructuredContent, tp: object) -> Any: ...  # noqa: ANN401


def decode(content: StructuredContent, tp: object) -> object:
    """Decode ``content`` into a value of ``tp``.

    Raises:
        KindMismatchError: a node has the wrong kind, or a non-integral
            number targets ``int``.
        MissingPropertyError: a required key (or a union's ``type`` key) is
            absent.
        UnknownDiscriminatorError: a union discriminator, enum value or
            literal matches no declared option.
        SchemaDefinitionError: ``tp`` is not a supported declaration.
    """

    return _decode(content, shape_of(tp), "$")


@overload
def decode_json[T](text: str | bytes, tp: type[T]) -> T: ...


@overload
def decode_json(text: str | bytes, tp: object) -> Any: ...  # noqa: ANN401


def decode_json(text: str | bytes, tp: object) -> object:
    """Parse JSON ``text`` and decode it into ``tp``.

    Raises :class:`InvalidJSONError` when ``text`` is not well-formed, plus
    everything :func:`decode` raises.
    """

    return decode(StructuredContent.parse(text), tp)


def _decode(content: StructuredContent, shape: Shape, path: str) -> object:
    match shape:
        case OptionalShape(inner=inner):
            if content.is_null:
                return None
            return _decode(content, inner, path)
        case PrimitiveShape(py_type=py_type):
            return _decode_primitive(content, py_type, path)
        case LiteralShape(values=values):
            text = content.as_string(path=path)
            if text not in values:
                raise UnknownDiscriminatorError(text, path=path, expected=values)
            return text
        case ArrayShape(item=item, container=container):
            elements = content.as_array(path=path)
            return container(
                _decode(element, item, f"{path}[{index}]")
                for index, element in enumerate(elements)
            )
        case EnumShape():
            text = content.as_string(path=path)
            members = dict(shape.members)
            if text not in members:
                raise UnknownDiscriminatorError(
                    text, path=path, expected=tuple(members)
                )
            return members[text]
        case RecordShape(cls=cls):
            entries = content.as_object(path=path)
            return cls(**_decode_fields(entries, record_fields(cls), path))
        case UnionShape():
            entries = content.as_object(path=path)
            discriminator = entries.get(DISCRIMINATOR_KEY)
            if discriminator is None:
                raise MissingPropertyError(DISCRIMINATOR_KEY, path=path)
            name = discriminator.as_string(path=f"{path}.{DISCRIMINATOR_KEY}")
            case = shape.case_for(name)
            if case is None:
                raise UnknownDiscriminatorError(
                    name,
                    path=f"{path}.{DISCRIMINATOR_KEY}",
                    expected=tuple(option.case for option in shape.cases),
                )
            return case.cls(**_decode_fields(entries, record_fields(case.cls), path))


def _decode_primitive(
    content: StructuredContent, py_type: type[object], path: str
) -> object:
    if py_type is str:
        return content.as_string(path=path)
    if py_type is bool:
        return content.as_bool(path=path)
    number = content.as_number(path=path)
    if py_type is int:
        if not number.is_integer():
            raise KindMismatchError("integer", "number", path=path)
        return int(number)
    return number


def _decode_fields(
    entries: dict[str, StructuredContent],
    fields: tuple[FieldShape, ...],
    path: str,
) -> dict[str, object]:
    kwargs: dict[str, object] = {}
    for field in fields:
        entry = entries.get(field.key)
        field_path = f"{path}.{field.key}"
        if entry is None or entry.is_null:
            if field.optional:
                kwargs[field.attr] = None
                continue
            if entry is None:
                raise MissingPropertyError(field.key, path=path)
        kwargs[field.attr] = _decode(cast(StructuredContent, entry), field.shape, field_path)
    return kwargs
