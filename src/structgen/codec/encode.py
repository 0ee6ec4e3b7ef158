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

"""Typed values to :class:`~structgen.content.StructuredContent`."""

# pyright: reportUnknownArgumentType=false, reportUnknownVariableType=false

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from enum import Enum
from typing import cast

from .._introspect import (
    DISCRIMINATOR_KEY,
    ArrayShape,
    CaseShape,
    EnumShape,
    FieldShape,
    LiteralShape,
    OptionalShape,
    PrimitiveShape,
    RecordShape,
    Shape,
    UnionShape,
    case_name,
    generable_info,
    record_fields,
    shape_of,
)
from ..content import StructuredContent
from ..errors import KindMismatchError

__all__ = ["encode"]

_PRIMITIVE_KINDS: dict[type[object], str] = {
    bool: "bool",
    int: "integer",
    float: "number",
    str: "string",
}


def encode(value: object, as_type: object = None) -> StructuredContent:
    """Encode ``value`` into a content tree.

    With ``as_type`` the value is encoded against that declared type, which
    is how a case is tagged when the union type is known. Without it the
    value's runtime type drives encoding; a dataclass decorated with
    ``generable(case=...)`` encodes as a tagged-union case.

    ``None`` always encodes to ``null``: optional properties are present in
    the tree rather than omitted.
    """

    if as_type is not None:
        return _encode(value, shape_of(as_type), "$")
    return _encode_untyped(value, "$")


def _encode_untyped(value: object, path: str) -> StructuredContent:
    if value is None:
        return StructuredContent.null()
    if isinstance(value, bool):
        return StructuredContent.boolean(value)
    if isinstance(value, (int, float)):
        return StructuredContent.number(value)
    if isinstance(value, str):
        return StructuredContent.string(value)
    if isinstance(value, Enum):
        return _encode(value, shape_of(type(value)), path)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        cls = type(value)
        if generable_info(cls).case is not None:
            return _encode_case(value, CaseShape(cls, case_name(cls)), path)
        return _encode(value, shape_of(cls), path)
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        return StructuredContent.array(
            _encode_untyped(item, f"{path}[{index}]")
            for index, item in enumerate(cast(Sequence[object], value))
        )
    raise KindMismatchError("encodable value", type(value).__name__, path=path)


def _encode(value: object, shape: Shape, path: str) -> StructuredContent:
    match shape:
        case OptionalShape(inner=inner):
            if value is None:
                return StructuredContent.null()
            return _encode(value, inner, path)
        case PrimitiveShape(py_type=py_type):
            return _encode_primitive(value, py_type, path)
        case LiteralShape():
            if not isinstance(value, str):
                raise KindMismatchError("string", type(value).__name__, path=path)
            return StructuredContent.string(value)
        case ArrayShape(item=item):
            if not isinstance(value, (list, tuple)):
                raise KindMismatchError("array", type(value).__name__, path=path)
            return StructuredContent.array(
                _encode(element, item, f"{path}[{index}]")
                for index, element in enumerate(cast(Sequence[object], value))
            )
        case EnumShape(cls=cls):
            if not isinstance(value, cls):
                raise KindMismatchError(cls.__name__, type(value).__name__, path=path)
            wire = {member: key for key, member in shape.members}
            return StructuredContent.string(wire[value])
        case RecordShape(cls=cls):
            if not isinstance(value, cls):
                raise KindMismatchError(cls.__name__, type(value).__name__, path=path)
            return StructuredContent.object(_encode_fields(value, record_fields(cls), path))
        case UnionShape():
            case = shape.case_of(value)
            if case is None:
                raise KindMismatchError(shape.name, type(value).__name__, path=path)
            return _encode_case(value, case, path)


def _encode_primitive(
    value: object, py_type: type[object], path: str
) -> StructuredContent:
    if py_type is bool:
        if isinstance(value, bool):
            return StructuredContent.boolean(value)
    elif py_type is str:
        if isinstance(value, str):
            return StructuredContent.string(value)
    elif py_type is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return StructuredContent.number(value)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return StructuredContent.number(value)
    raise KindMismatchError(_PRIMITIVE_KINDS[py_type], type(value).__name__, path=path)


def _encode_case(value: object, case: CaseShape, path: str) -> StructuredContent:
    entries = [(DISCRIMINATOR_KEY, StructuredContent.string(case.case))]
    entries.extend(_encode_fields(value, record_fields(case.cls), path))
    return StructuredContent.object(entries)


def _encode_fields(
    value: object, fields: tuple[FieldShape, ...], path: str
) -> list[tuple[str, StructuredContent]]:
    entries: list[tuple[str, StructuredContent]] = []
    for field in fields:
        attribute = getattr(value, field.attr)
        field_path = f"{path}.{field.key}"
        if attribute is None and field.optional:
            entries.append((field.key, StructuredContent.null()))
        else:
            entries.append((field.key, _encode(attribute, field.shape, field_path)))
    return entries
