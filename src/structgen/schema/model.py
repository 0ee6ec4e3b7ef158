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

"""Declarative schema nodes.

A :data:`Schema` is one of a closed set of frozen node types. Consumers
``match`` on the node class; adding a kind means touching every consumer,
which is the point.

Nodes are immutable. :meth:`with_constraints` (or :func:`constrain`) returns
an updated copy:

- a matching primitive or array node appends the constraints in order;
- :class:`~structgen.schema.constraints.Element` recurses into the array item
  schema instead of constraining the array;
- any other combination raises :class:`SchemaDefinitionError`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace

from ..errors import SchemaDefinitionError
from .constraints import (
    Constant,
    Constraint,
    Count,
    Element,
    Length,
    OneOf,
    Pattern,
    Range,
    StringConstraint,
)

__all__ = [
    "ArraySchema",
    "BooleanSchema",
    "IntegerSchema",
    "NumberSchema",
    "ObjectSchema",
    "Property",
    "Schema",
    "SchemaRef",
    "StringSchema",
    "UnionSchema",
    "constrain",
]


def _reject(kind: str, constraint: Constraint) -> SchemaDefinitionError:
    return SchemaDefinitionError(
        f"{type(constraint).__name__} cannot constrain a {kind} schema."
    )


@dataclass(frozen=True, slots=True)
class StringSchema:
    constraints: tuple[StringConstraint, ...] = ()

    def with_constraints(self, *constraints: Constraint) -> StringSchema:
        accepted: list[StringConstraint] = []
        for constraint in constraints:
            if not isinstance(constraint, (Pattern, Constant, OneOf, Length)):
                raise _reject("string", constraint)
            accepted.append(constraint)
        return replace(self, constraints=(*self.constraints, *accepted))


@dataclass(frozen=True, slots=True)
class IntegerSchema:
    constraints: tuple[Range, ...] = ()

    def with_constraints(self, *constraints: Constraint) -> IntegerSchema:
        accepted: list[Range] = []
        for constraint in constraints:
            if not isinstance(constraint, Range):
                raise _reject("integer", constraint)
            if not constraint.is_integral:
                raise SchemaDefinitionError(
                    "Integer ranges require integral bounds, "
                    f"got {constraint.lower!r}..{constraint.upper!r}."
                )
            accepted.append(
                Range(
                    None if constraint.lower is None else int(constraint.lower),
                    None if constraint.upper is None else int(constraint.upper),
                )
            )
        return replace(self, constraints=(*self.constraints, *accepted))


@dataclass(frozen=True, slots=True)
class NumberSchema:
    constraints: tuple[Range, ...] = ()

    def with_constraints(self, *constraints: Constraint) -> NumberSchema:
        for constraint in constraints:
            if not isinstance(constraint, Range):
                raise _reject("number", constraint)
        return replace(
            self,
            constraints=(*self.constraints, *(c for c in constraints if isinstance(c, Range))),
        )


@dataclass(frozen=True, slots=True)
class BooleanSchema:
    def with_constraints(self, *constraints: Constraint) -> BooleanSchema:
        if constraints:
            raise _reject("boolean", constraints[0])
        return self


@dataclass(frozen=True, slots=True)
class ArraySchema:
    item: Schema
    constraints: tuple[Count, ...] = ()

    def with_constraints(self, *constraints: Constraint) -> ArraySchema:
        updated = self
        for constraint in constraints:
            if isinstance(constraint, Element):
                updated = replace(
                    updated, item=constrain(updated.item, constraint.constraint)
                )
            elif isinstance(constraint, Count):
                updated = replace(
                    updated, constraints=(*updated.constraints, constraint)
                )
            else:
                raise _reject("array", constraint)
        return updated


@dataclass(frozen=True, slots=True)
class Property:
    schema: Schema
    description: str | None = None
    optional: bool = False


@dataclass(frozen=True, slots=True, init=False)
class ObjectSchema:
    """A record with ordered, named properties."""

    name: str
    description: str | None
    properties: tuple[tuple[str, Property], ...]

    def __init__(
        self,
        name: str,
        description: str | None = None,
        properties: Mapping[str, Property] | Iterable[tuple[str, Property]] = (),
    ) -> None:
        entries = tuple(
            properties.items() if isinstance(properties, Mapping) else properties
        )
        names = [entry_name for entry_name, _ in entries]
        if len(set(names)) != len(names):
            raise SchemaDefinitionError(f"Object {name!r} declares duplicate properties.")
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "description", description)
        object.__setattr__(self, "properties", entries)

    @property
    def property_map(self) -> dict[str, Property]:
        return dict(self.properties)

    @property
    def required(self) -> tuple[str, ...]:
        """Names of the non-optional properties, in declaration order."""
        return tuple(name for name, prop in self.properties if not prop.optional)

    def with_constraints(self, *constraints: Constraint) -> ObjectSchema:
        if constraints:
            raise _reject("object", constraints[0])
        return self


@dataclass(frozen=True, slots=True, init=False)
class UnionSchema:
    """A choice between alternative schemas."""

    name: str
    description: str | None
    alternatives: tuple[Schema, ...]

    def __init__(
        self,
        name: str,
        description: str | None = None,
        alternatives: Iterable[Schema] = (),
    ) -> None:
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "description", description)
        object.__setattr__(self, "alternatives", tuple(alternatives))

    def with_constraints(self, *constraints: Constraint) -> UnionSchema:
        if constraints:
            raise SchemaDefinitionError(
                f"Constraints cannot be applied to union {self.name!r}; "
                "constrain the alternatives instead."
            )
        return self


@dataclass(frozen=True, slots=True)
class SchemaRef:
    """Back-reference to an enclosing named object or union schema.

    Derivation emits a reference wherever a type refers to itself, directly or
    through other types. Equality compares names only.
    """

    name: str
    resolver: Callable[[], ObjectSchema | UnionSchema] = field(
        compare=False, repr=False
    )

    def resolve(self) -> ObjectSchema | UnionSchema:
        return self.resolver()

    def with_constraints(self, *constraints: Constraint) -> SchemaRef:
        if constraints:
            raise SchemaDefinitionError(
                f"Constraints cannot be applied to recursive reference {self.name!r}."
            )
        return self


type Schema = (
    StringSchema
    | IntegerSchema
    | NumberSchema
    | BooleanSchema
    | ArraySchema
    | ObjectSchema
    | UnionSchema
    | SchemaRef
)


def constrain[S: Schema](schema: S, *constraints: Constraint) -> S:
    """Return ``schema`` with ``constraints`` applied in declaration order."""

    return schema.with_constraints(*constraints)  # pyright: ignore[reportReturnType]
