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

"""Derive :data:`~structgen.schema.model.Schema` values from Python types."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Final

from .._introspect import (
    DISCRIMINATOR_KEY,
    ArrayShape,
    CaseShape,
    EnumShape,
    LiteralShape,
    OptionalShape,
    PrimitiveShape,
    RecordShape,
    Shape,
    UnionShape,
    shape_of,
)
from ..errors import SchemaDefinitionError
from ..logging import StructuredLogger, get_logger
from .constraints import Constant, OneOf
from .model import (
    ArraySchema,
    BooleanSchema,
    IntegerSchema,
    NumberSchema,
    ObjectSchema,
    Property,
    Schema,
    SchemaRef,
    StringSchema,
    UnionSchema,
)

__all__ = ["clear_schema_cache", "schema_for"]

logger: StructuredLogger = get_logger(__name__, context={"component": "schema"})

_CACHE_LOCK: Final = threading.Lock()
_CACHE: dict[object, Schema] = {}


def schema_for(tp: object) -> Schema:
    """Return the schema describing values of ``tp``.

    Derivation is cached per type. Self-referential types produce a
    :class:`SchemaRef` at the point of recursion.

    Raises:
        SchemaDefinitionError: when ``tp`` cannot be described, including a
            top-level optional type.
    """

    cached = _CACHE.get(tp)
    if cached is not None:
        return cached

    shape = shape_of(tp)
    if isinstance(shape, OptionalShape):
        raise SchemaDefinitionError(
            f"Optional types cannot be generated at the top level: {tp!r}."
        )
    schema = _Derivation().build(shape)
    with _CACHE_LOCK:
        schema = _CACHE.setdefault(tp, schema)
    logger.debug(
        "Derived schema.",
        event="schema.derived",
        context={"type": getattr(tp, "__name__", repr(tp)), "kind": type(schema).__name__},
    )
    return schema


def clear_schema_cache() -> None:
    """Drop every cached schema. Intended for tests."""

    with _CACHE_LOCK:
        _CACHE.clear()


class _Derivation:
    """Single derivation pass; tracks named schemas under construction.

    Named schemas are keyed by the declaring type rather than by display
    name. When two distinct declarations claim one name, the later one is
    renamed with a numeric suffix (``Item``, ``Item2``) so every projected
    definition stays unambiguous.
    """

    def __init__(self) -> None:
        super().__init__()
        self._building: set[object] = set()
        self._named: dict[object, ObjectSchema | UnionSchema] = {}
        self._names: dict[object, str] = {}
        self._claimed: dict[str, object] = {}
        self._by_name: dict[str, ObjectSchema | UnionSchema] = {}

    def build(self, shape: Shape) -> Schema:
        match shape:
            case PrimitiveShape(py_type=py_type, constraints=constraints):
                return _primitive(py_type).with_constraints(*constraints)
            case LiteralShape(values=values, constraints=constraints):
                base = Constant(values[0]) if len(values) == 1 else OneOf(values)
                return StringSchema((base,)).with_constraints(*constraints)
            case ArrayShape(item=item, constraints=constraints):
                return ArraySchema(self.build(item)).with_constraints(*constraints)
            case OptionalShape():
                raise SchemaDefinitionError(
                    "Optional values are only supported as record fields."
                )
            case EnumShape(cls=cls):
                return self._named_schema(
                    ("enum", cls),
                    shape.name,
                    lambda name: UnionSchema(
                        name,
                        shape.description,
                        (StringSchema((Constant(wire),)) for wire, _ in shape.members),
                    ),
                )
            case RecordShape(cls=cls):
                return self._named_schema(
                    ("record", cls),
                    shape.name,
                    lambda name: self._record(shape, name),
                )
            case UnionShape():
                key = _union_key(shape)
                return self._named_schema(
                    key, shape.name, lambda name: self._union(shape, name, key)
                )

    def _named_schema(
        self,
        key: object,
        base_name: str,
        factory: Callable[[str], ObjectSchema | UnionSchema],
    ) -> ObjectSchema | UnionSchema | SchemaRef:
        name = self._claim(key, base_name)
        if key in self._building:
            return SchemaRef(name, self._resolver(name))
        existing = self._named.get(key)
        if existing is not None:
            return existing
        self._building.add(key)
        try:
            schema = factory(name)
        finally:
            self._building.discard(key)
        self._named[key] = schema
        self._by_name[name] = schema
        return schema

    def _claim(self, key: object, base_name: str) -> str:
        name = self._names.get(key)
        if name is not None:
            return name
        name = base_name
        suffix = 2
        while name in self._claimed:
            name = f"{base_name}{suffix}"
            suffix += 1
        if name != base_name:
            logger.debug(
                "Renamed clashing schema.",
                event="schema.renamed",
                context={"name": base_name, "renamed": name},
            )
        self._names[key] = name
        self._claimed[name] = key
        return name

    def _resolver(self, name: str) -> Callable[[], ObjectSchema | UnionSchema]:
        by_name = self._by_name

        def resolve() -> ObjectSchema | UnionSchema:
            return by_name[name]

        return resolve

    def _record(
        self,
        shape: RecordShape,
        name: str,
        leading: tuple[tuple[str, Property], ...] = (),
    ) -> ObjectSchema:
        properties = list(leading)
        for field in shape.fields:
            properties.append(
                (
                    field.key,
                    Property(
                        self.build(field.shape),
                        description=field.description,
                        optional=field.optional,
                    ),
                )
            )
        return ObjectSchema(name, shape.description, properties)

    def _union(self, shape: UnionShape, name: str, key: object) -> UnionSchema:
        return UnionSchema(
            name,
            shape.description,
            tuple(self._case(case, key) for case in shape.cases),
        )

    def _case(self, case: CaseShape, union_key: object) -> ObjectSchema:
        # A case object carries the discriminator, so it never shares a name
        # with the same class used as a plain record.
        record = case.record
        name = self._claim(("case", union_key, case.cls), record.name)
        discriminator = Property(StringSchema((Constant(case.case),)))
        return self._record(record, name, ((DISCRIMINATOR_KEY, discriminator),))


def _union_key(shape: UnionShape) -> object:
    return ("union", shape.name, tuple(case.cls for case in shape.cases))


def _primitive(
    py_type: type[object],
) -> StringSchema | IntegerSchema | NumberSchema | BooleanSchema:
    if py_type is bool:
        return BooleanSchema()
    if py_type is int:
        return IntegerSchema()
    if py_type is float:
        return NumberSchema()
    return StringSchema()
