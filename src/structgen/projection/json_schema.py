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

"""JSON Schema dialects: generic, OpenAI strict and Gemini.

Per node kind:

- primitives render as ``{"type": ...}`` plus constraint keywords
  (``pattern``, ``enum``, ``minLength``/``maxLength``,
  ``minimum``/``maximum``);
- arrays render ``items`` plus ``minItems``/``maxItems``;
- objects render ``title``, ``properties``, ``required`` and, except for
  Gemini, ``additionalProperties: false``;
- unions render ``title`` and ``anyOf``.

When a later constraint sets the same keyword as an earlier one, the later
value wins; the two bounds of a length, range or count are set independently.
"""

from __future__ import annotations

from typing import Final

from ..config import ProjectionConfig
from ..errors import UnprojectableSchemaError
from ..schema.constraints import (
    Constant,
    Count,
    Length,
    OneOf,
    Pattern,
    Range,
    StringConstraint,
)
from ..schema.model import (
    ArraySchema,
    BooleanSchema,
    IntegerSchema,
    NumberSchema,
    ObjectSchema,
    Schema,
    SchemaRef,
    StringSchema,
    UnionSchema,
)
from ..types import JSONValue
from ._definitions import NamedSchemas
from ._types import BackendKind

__all__ = ["render_json_schema"]

_DEFS_KEY: Final[str] = "$defs"
_NULL_SCHEMA: Final[dict[str, JSONValue]] = {"type": "null"}


def render_json_schema(
    root: Schema,
    backend: BackendKind,
    named: NamedSchemas,
    config: ProjectionConfig,
) -> dict[str, JSONValue]:
    """Render ``root`` as a JSON Schema document for ``backend``."""

    if backend is BackendKind.OPENAI and not isinstance(root, ObjectSchema):
        raise UnprojectableSchemaError(
            "structured outputs require an object at the root, "
            f"got {type(root).__name__}",
            backend=backend.value,
        )
    return _JsonSchemaRenderer(root, backend, named, config).document()


class _JsonSchemaRenderer:
    def __init__(
        self,
        root: Schema,
        backend: BackendKind,
        named: NamedSchemas,
        config: ProjectionConfig,
    ) -> None:
        super().__init__()
        self._root = root
        self._backend = backend
        self._named = named
        self._config = config
        self._pointers = backend.supports_pointers and config.use_definitions
        self._root_name = (
            root.name if isinstance(root, (ObjectSchema, UnionSchema)) else None
        )
        self._definitions = (
            [name for name in named.shared() if name != self._root_name]
            if self._pointers
            else []
        )

    def document(self) -> dict[str, JSONValue]:
        body = self._body(self._root)
        if self._definitions:
            body[_DEFS_KEY] = {
                name: self._body(self._named.schemas[name])
                for name in self._definitions
            }
        return body

    def _emit(self, schema: Schema) -> dict[str, JSONValue]:
        match schema:
            case ObjectSchema(name=name) | UnionSchema(name=name) if self._pointers and (
                name == self._root_name or name in self._definitions
            ):
                return {"$ref": self._pointer(name)}
            case SchemaRef(name=name):
                if not self._pointers:
                    raise UnprojectableSchemaError(
                        f"recursive schema {name!r} cannot be inlined",
                        backend=self._backend.value,
                    )
                return {"$ref": self._pointer(name)}
            case _:
                return self._body(schema)

    def _pointer(self, name: str) -> str:
        return "#" if name == self._root_name else f"#/{_DEFS_KEY}/{name}"

    def _body(self, schema: Schema) -> dict[str, JSONValue]:
        match schema:
            case StringSchema(constraints=constraints):
                return _string(constraints)
            case IntegerSchema(constraints=constraints):
                return _numeric("integer", constraints)
            case NumberSchema(constraints=constraints):
                return _numeric("number", constraints)
            case BooleanSchema():
                return {"type": "boolean"}
            case ArraySchema(item=item, constraints=constraints):
                return self._array(item, constraints)
            case ObjectSchema():
                return self._object(schema)
            case UnionSchema():
                return self._union(schema)
            case SchemaRef():
                return self._emit(schema)

    def _array(self, item: Schema, constraints: tuple[Count, ...]) -> dict[str, JSONValue]:
        body: dict[str, JSONValue] = {"type": "array", "items": self._emit(item)}
        for count in constraints:
            if count.lower is not None:
                body["minItems"] = count.lower
            if count.upper is not None:
                body["maxItems"] = count.upper
        return body

    def _object(self, schema: ObjectSchema) -> dict[str, JSONValue]:
        strict = self._backend is BackendKind.OPENAI
        properties: dict[str, JSONValue] = {}
        for key, prop in schema.properties:
            rendered = dict(self._emit(prop.schema))
            if strict and prop.optional:
                rendered = _nullable(rendered)
            if self._config.include_descriptions and prop.description:
                rendered["description"] = prop.description
            properties[key] = rendered

        keys = [key for key, _ in schema.properties]
        body: dict[str, JSONValue] = {"type": "object", "title": schema.name}
        if self._config.include_descriptions and schema.description:
            body["description"] = schema.description
        body["properties"] = properties
        body["required"] = keys if strict else list(schema.required)
        if self._backend is BackendKind.GEMINI:
            body["propertyOrdering"] = keys
        else:
            body["additionalProperties"] = False
        return body

    def _union(self, schema: UnionSchema) -> dict[str, JSONValue]:
        if not schema.alternatives:
            raise UnprojectableSchemaError(
                f"union {schema.name!r} has no alternatives",
                backend=self._backend.value,
            )
        body: dict[str, JSONValue] = {"title": schema.name}
        if self._config.include_descriptions and schema.description:
            body["description"] = schema.description
        body["anyOf"] = [self._emit(alternative) for alternative in schema.alternatives]
        return body


def _string(constraints: tuple[StringConstraint, ...]) -> dict[str, JSONValue]:
    body: dict[str, JSONValue] = {"type": "string"}
    for constraint in constraints:
        match constraint:
            case Pattern(regex=regex):
                body["pattern"] = regex
            case Constant(value=value):
                body["enum"] = [value]
            case OneOf(values=values):
                body["enum"] = list(values)
            case Length(lower=lower, upper=upper):
                if lower is not None:
                    body["minLength"] = lower
                if upper is not None:
                    body["maxLength"] = upper
    return body


def _numeric(kind: str, constraints: tuple[Range, ...]) -> dict[str, JSONValue]:
    body: dict[str, JSONValue] = {"type": kind}
    for bounds in constraints:
        if bounds.lower is not None:
            body["minimum"] = bounds.lower
        if bounds.upper is not None:
            body["maximum"] = bounds.upper
    return body


def _nullable(body: dict[str, JSONValue]) -> dict[str, JSONValue]:
    kind = body.get("type")
    if isinstance(kind, str) and kind != "object":
        widened = dict(body)
        widened["type"] = [kind, "null"]
        enum = body.get("enum")
        if isinstance(enum, list):
            widened["enum"] = [*enum, None]
        return widened
    return {"anyOf": [body, dict(_NULL_SCHEMA)]}
