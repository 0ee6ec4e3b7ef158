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

"""Type analysis shared by schema derivation, the codec and partials.

:func:`shape_of` reduces a Python annotation to a :data:`Shape`, a small
closed description of how values of that type travel as structured content.
Record fields are resolved lazily through :func:`record_fields` so that
self-referential dataclasses never recurse at analysis time.
"""

# pyright: reportUnknownArgumentType=false, reportUnknownVariableType=false, reportUnknownMemberType=false

from __future__ import annotations

import dataclasses
import threading
import types
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import (
    Annotated,
    Final,
    Literal,
    TypeAliasType,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from .errors import SchemaDefinitionError
from .schema.constraints import Constraint
from .schema.declarations import (
    GENERABLE_ATTR,
    UNLABELED_METADATA_KEY,
    GenerableInfo,
    Guide,
    TaggedUnion,
)

__all__ = [
    "DISCRIMINATOR_KEY",
    "ArrayShape",
    "CaseShape",
    "EnumShape",
    "FieldShape",
    "LiteralShape",
    "OptionalShape",
    "PrimitiveShape",
    "RecordShape",
    "Shape",
    "UnionShape",
    "case_name",
    "generable_info",
    "record_fields",
    "shape_of",
]

DISCRIMINATOR_KEY: Final[str] = "type"
_NONE_TYPE: Final[type[None]] = type(None)
_PRIMITIVES: Final[tuple[type[object], ...]] = (str, int, float, bool)
_UNLABELED_KEY: Final[str] = "value"


@dataclass(frozen=True, slots=True)
class PrimitiveShape:
    py_type: type[object]
    constraints: tuple[Constraint, ...] = ()


@dataclass(frozen=True, slots=True)
class LiteralShape:
    values: tuple[str, ...]
    constraints: tuple[Constraint, ...] = ()


@dataclass(frozen=True, slots=True)
class ArrayShape:
    item: Shape
    container: type[list[object]] | type[tuple[object, ...]] = list
    constraints: tuple[Constraint, ...] = ()


@dataclass(frozen=True, slots=True)
class OptionalShape:
    inner: Shape


@dataclass(frozen=True, slots=True)
class RecordShape:
    cls: type[object]
    name: str
    description: str | None = None

    @property
    def fields(self) -> tuple[FieldShape, ...]:
        return record_fields(self.cls)


@dataclass(frozen=True, slots=True)
class EnumShape:
    cls: type[Enum]
    name: str
    description: str | None = None

    @property
    def members(self) -> tuple[tuple[str, Enum], ...]:
        """Wire value and member pairs in declaration order."""
        return tuple((_enum_wire_value(member), member) for member in self.cls)


@dataclass(frozen=True, slots=True)
class CaseShape:
    cls: type[object]
    case: str

    @property
    def record(self) -> RecordShape:
        name, description = _naming(self.cls)
        return RecordShape(self.cls, name, description)


@dataclass(frozen=True, slots=True)
class UnionShape:
    name: str
    cases: tuple[CaseShape, ...]
    description: str | None = None

    def case_for(self, discriminator: str) -> CaseShape | None:
        for case in self.cases:
            if case.case == discriminator:
                return case
        return None

    def case_of(self, value: object) -> CaseShape | None:
        for case in self.cases:
            if type(value) is case.cls:
                return case
        return None


type Shape = (
    PrimitiveShape
    | LiteralShape
    | ArrayShape
    | OptionalShape
    | RecordShape
    | EnumShape
    | UnionShape
)


@dataclass(frozen=True, slots=True)
class FieldShape:
    """One init field of a record.

    ``shape`` is the non-optional value shape; ``optional`` records whether
    the field also accepts ``None``.
    """

    attr: str
    key: str
    shape: Shape
    optional: bool = False
    description: str | None = None


_FIELDS_LOCK = threading.Lock()
_FIELDS_CACHE: dict[type[object], tuple[FieldShape, ...]] = {}


def generable_info(cls: type[object]) -> GenerableInfo:
    # Read from the class itself so subclasses do not inherit naming.
    info = vars(cls).get(GENERABLE_ATTR)
    return info if isinstance(info, GenerableInfo) else GenerableInfo()


def case_name(cls: type[object]) -> str:
    """Return the discriminator used when ``cls`` is a tagged-union case."""
    info = generable_info(cls)
    if info.case is not None:
        return info.case
    name = cls.__name__
    return name[:1].lower() + name[1:]


def _naming(cls: type[object]) -> tuple[str, str | None]:
    info = generable_info(cls)
    return info.name or cls.__name__, info.description


def _enum_wire_value(member: Enum) -> str:
    return member.value if isinstance(member.value, str) else member.name


def shape_of(annotation: object) -> Shape:
    """Reduce ``annotation`` to its :data:`Shape`.

    Raises:
        SchemaDefinitionError: when the annotation is unsupported or carries
            metadata that cannot apply to it.
    """

    return _resolve(annotation, (), None)


def _resolve(
    annotation: object,
    constraints: tuple[Constraint, ...],
    naming: TaggedUnion | str | None,
) -> Shape:
    if isinstance(annotation, TypeAliasType):
        return _resolve(annotation.__value__, constraints, naming or annotation.__name__)

    if get_origin(annotation) is Annotated:
        inner = get_args(annotation)[0]
        metadata = annotation.__metadata__  # pyright: ignore[reportAttributeAccessIssue]
        guided = [
            constraint
            for item in metadata
            if isinstance(item, Guide)
            for constraint in item.constraints
        ]
        tagged = [item for item in metadata if isinstance(item, TaggedUnion)]
        return _resolve(
            inner, (*constraints, *guided), tagged[-1] if tagged else naming
        )

    origin = get_origin(annotation)
    if origin is Union or isinstance(annotation, types.UnionType):
        members = get_args(annotation)
        present = tuple(member for member in members if member is not _NONE_TYPE)
        if len(present) == 1:
            resolved = _resolve(present[0], constraints, naming)
        else:
            if constraints:
                raise SchemaDefinitionError(
                    "Constraints cannot be applied to a union; constrain the cases instead."
                )
            resolved = _union_shape(present, naming)
        if len(present) < len(members):
            return OptionalShape(resolved)
        return resolved

    if isinstance(naming, TaggedUnion):
        raise SchemaDefinitionError(
            f"TaggedUnion metadata requires a union of dataclasses, got {annotation!r}."
        )

    if origin is Literal:
        values = get_args(annotation)
        if not values or not all(isinstance(value, str) for value in values):
            raise SchemaDefinitionError(
                f"Only string literals are supported, got {annotation!r}."
            )
        return LiteralShape(tuple(values), constraints)

    if origin in (list, tuple, Sequence):
        return _array_shape(annotation, origin, constraints)

    if origin is not None:
        raise SchemaDefinitionError(
            f"Unsupported type for structured generation: {annotation!r}"
        )

    if annotation in _PRIMITIVES:
        return PrimitiveShape(annotation, constraints)  # pyright: ignore[reportArgumentType]

    if isinstance(annotation, type) and issubclass(annotation, Enum):
        _reject_constraints(annotation, constraints)
        name, description = _naming(annotation)
        shape = EnumShape(annotation, name, description)
        wire_values = [wire for wire, _ in shape.members]
        if not wire_values:
            raise SchemaDefinitionError(f"Enum {annotation.__name__} has no members.")
        if len(set(wire_values)) != len(wire_values):
            raise SchemaDefinitionError(
                f"Enum {annotation.__name__} has members sharing a wire value."
            )
        return shape

    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        _reject_constraints(annotation, constraints)
        name, description = _naming(annotation)
        return RecordShape(annotation, name, description)

    raise SchemaDefinitionError(f"Unsupported type for structured generation: {annotation!r}")


def _reject_constraints(cls: type[object], constraints: tuple[Constraint, ...]) -> None:
    if constraints:
        raise SchemaDefinitionError(
            f"Constraints cannot be applied to {cls.__name__}; "
            "only primitive and array types accept them."
        )


def _array_shape(
    annotation: object, origin: object, constraints: tuple[Constraint, ...]
) -> ArrayShape:
    args = get_args(annotation)
    if origin is tuple:
        if len(args) != 2 or args[1] is not Ellipsis:
            raise SchemaDefinitionError(
                f"Only homogeneous tuples (tuple[T, ...]) are supported, got {annotation!r}."
            )
        container: type[list[object]] | type[tuple[object, ...]] = tuple
    else:
        container = list
    if not args:
        raise SchemaDefinitionError(f"Array type {annotation!r} needs an element type.")
    item = _resolve(args[0], (), None)
    if isinstance(item, OptionalShape):
        raise SchemaDefinitionError(
            f"Arrays of optional elements are not supported: {annotation!r}."
        )
    return ArrayShape(item, container, constraints)


def _union_shape(
    members: tuple[object, ...], naming: TaggedUnion | str | None
) -> UnionShape:
    cases: list[CaseShape] = []
    for member in members:
        if not isinstance(member, type) or not dataclasses.is_dataclass(member):
            raise SchemaDefinitionError(
                f"Tagged union cases must be dataclasses, got {member!r}."
            )
        if any(
            field.name == DISCRIMINATOR_KEY
            for field in dataclasses.fields(member)
            if field.init
        ):
            raise SchemaDefinitionError(
                f"Union case {member.__name__} declares the reserved "
                f"{DISCRIMINATOR_KEY!r} field."
            )
        cases.append(CaseShape(member, case_name(member)))

    discriminators = [case.case for case in cases]
    if len(set(discriminators)) != len(discriminators):
        raise SchemaDefinitionError(
            f"Tagged union cases must have distinct names, got {discriminators}."
        )

    description: str | None = None
    if isinstance(naming, TaggedUnion):
        name = naming.name
        description = naming.description
    elif naming is not None:
        name = naming
    else:
        name = "Or".join(_naming(case.cls)[0] for case in cases)
    return UnionShape(name, tuple(cases), description)


def record_fields(cls: type[object]) -> tuple[FieldShape, ...]:
    """Return the analysed init fields of dataclass ``cls`` (cached)."""

    cached = _FIELDS_CACHE.get(cls)
    if cached is not None:
        return cached
    computed = _compute_fields(cls)
    with _FIELDS_LOCK:
        return _FIELDS_CACHE.setdefault(cls, computed)


def _compute_fields(cls: type[object]) -> tuple[FieldShape, ...]:
    try:
        hints = get_type_hints(cls, localns={cls.__name__: cls}, include_extras=True)
    except NameError as error:
        raise SchemaDefinitionError(
            f"Cannot resolve annotations of {cls.__name__}: {error}"
        ) from error

    result: list[FieldShape] = []
    unlabeled_index = 0
    for field in dataclasses.fields(cls):  # pyright: ignore[reportArgumentType]
        if not field.init:
            continue
        metadata = field.metadata
        if metadata.get(UNLABELED_METADATA_KEY):
            key = _UNLABELED_KEY if unlabeled_index == 0 else f"{_UNLABELED_KEY}{unlabeled_index}"
            unlabeled_index += 1
        else:
            key = str(metadata.get("alias") or field.name)

        annotation = hints.get(field.name, field.type)
        try:
            shape = shape_of(annotation)
        except SchemaDefinitionError as error:
            raise SchemaDefinitionError(f"{cls.__name__}.{field.name}: {error}") from error

        optional = isinstance(shape, OptionalShape)
        if isinstance(shape, OptionalShape):
            shape = shape.inner
        description = _guide_description(annotation)
        if description is None:
            raw = metadata.get("description")
            description = raw if isinstance(raw, str) else None
        result.append(FieldShape(field.name, key, shape, optional, description))

    keys = [entry.key for entry in result]
    duplicates = sorted({key for key in keys if keys.count(key) > 1})
    if duplicates:
        raise SchemaDefinitionError(
            f"{cls.__name__} maps several fields to the same key: {', '.join(duplicates)}."
        )
    return tuple(result)


def _guide_description(annotation: object) -> str | None:
    """Return the last ``Guide`` description found on ``annotation``."""

    description: str | None = None
    if get_origin(annotation) is Annotated:
        description = _guide_description(get_args(annotation)[0])
        for item in annotation.__metadata__:  # pyright: ignore[reportAttributeAccessIssue]
            if isinstance(item, Guide) and item.description is not None:
                description = item.description
        return description
    if get_origin(annotation) is Union or isinstance(annotation, types.UnionType):
        for member in get_args(annotation):
            found = _guide_description(member)
            if found is not None:
                description = found
    return description
