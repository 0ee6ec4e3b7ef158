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

"""Schema to llama.cpp GBNF grammar.

Each named object or union becomes one rule, so recursive schemas map onto
recursive rules directly. Objects are generated with every property present
in declaration order; optional properties accept ``null``, which is how the
codec encodes absent values. Regular-expression patterns and numeric ranges
have no GBNF rendering and are rejected.
"""

from __future__ import annotations

import json
import re
from typing import Final

from ..errors import UnprojectableSchemaError
from ..schema.constraints import (
    Constant,
    Count,
    Length,
    OneOf,
    Pattern,
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
from ._definitions import NamedSchemas
from ._types import BackendKind

__all__ = ["gbnf_literal", "render_gbnf"]

_BACKEND: Final[str] = BackendKind.GBNF.value

_PRIMITIVE_RULES: Final[tuple[tuple[str, str], ...]] = (
    ("ws", r"[ \t\n]*"),
    ("string", r'"\"" char* "\""'),
    ("char", r'[^"\\\x7F\x00-\x1F] | "\\" escape'),
    ("escape", r'["\\/bfnrt] | "u" hex hex hex hex'),
    ("hex", r"[0-9a-fA-F]"),
    ("integer", r'"-"? ( "0" | [1-9] [0-9]* )'),
    ("number", r'integer ( "." [0-9]+ )? ( [eE] [-+]? [0-9]+ )?'),
    ("boolean", r'"true" | "false"'),
    ("null", r'"null"'),
)
_RESERVED: Final[frozenset[str]] = frozenset(
    {"root", *(name for name, _ in _PRIMITIVE_RULES)}
)
_INVALID_RULE_CHARS: Final[re.Pattern[str]] = re.compile(r"[^a-zA-Z0-9]+")


def render_gbnf(root: Schema, named: NamedSchemas) -> str:
    """Render ``root`` as GBNF grammar text with a ``root`` start rule."""

    return _GrammarBuilder(named).build(root)


def gbnf_literal(text: str) -> str:
    """Quote ``text`` as a GBNF terminal."""

    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class _GrammarBuilder:
    def __init__(self, named: NamedSchemas) -> None:
        super().__init__()
        self._named = named
        self._rules: dict[str, str] = {}
        self._rule_names: dict[str, str] = {}
        self._in_progress: set[str] = set()

    def build(self, root: Schema) -> str:
        start = self._expr(root)
        lines = [f"root ::= {start}"]
        lines.extend(f"{name} ::= {expr}" for name, expr in self._rules.items())
        lines.extend(f"{name} ::= {expr}" for name, expr in _PRIMITIVE_RULES)
        return "\n".join(lines) + "\n"

    def _expr(self, schema: Schema) -> str:
        match schema:
            case StringSchema(constraints=constraints):
                return _string_expr(constraints)
            case IntegerSchema(constraints=constraints) | NumberSchema(
                constraints=constraints
            ):
                if constraints:
                    raise UnprojectableSchemaError(
                        "numeric ranges cannot be expressed in GBNF", backend=_BACKEND
                    )
                return "integer" if isinstance(schema, IntegerSchema) else "number"
            case BooleanSchema():
                return "boolean"
            case ArraySchema(item=item, constraints=constraints):
                return _array_expr(self._expr(item), constraints)
            case ObjectSchema() | UnionSchema():
                return self._rule(schema)
            case SchemaRef(name=name):
                target = self._named.schemas.get(name)
                return self._rule(target if target is not None else schema.resolve())

    def _rule(self, schema: ObjectSchema | UnionSchema) -> str:
        rule_name = self._rule_name(schema.name)
        if rule_name in self._rules or rule_name in self._in_progress:
            return rule_name
        self._in_progress.add(rule_name)
        try:
            if isinstance(schema, ObjectSchema):
                expr = self._object_expr(schema)
            else:
                expr = self._union_expr(schema)
        finally:
            self._in_progress.discard(rule_name)
        self._rules[rule_name] = expr
        return rule_name

    def _rule_name(self, schema_name: str) -> str:
        existing = self._rule_names.get(schema_name)
        if existing is not None:
            return existing
        base = _INVALID_RULE_CHARS.sub("-", schema_name).strip("-").lower() or "schema"
        candidate = base
        suffix = 2
        taken = set(self._rule_names.values())
        while candidate in _RESERVED or candidate in taken:
            candidate = f"{base}-{suffix}"
            suffix += 1
        self._rule_names[schema_name] = candidate
        return candidate

    def _object_expr(self, schema: ObjectSchema) -> str:
        members: list[str] = []
        for key, prop in schema.properties:
            value = self._expr(prop.schema)
            if prop.optional:
                value = f"( {value} | null )"
            key_literal = gbnf_literal(json.dumps(key, ensure_ascii=False))
            members.append(f'{key_literal} ws ":" ws {value}')
        if not members:
            return '"{" ws "}"'
        return '"{" ws ' + ' ws "," ws '.join(members) + ' ws "}"'

    def _union_expr(self, schema: UnionSchema) -> str:
        if not schema.alternatives:
            raise UnprojectableSchemaError(
                f"union {schema.name!r} has no alternatives", backend=_BACKEND
            )
        return " | ".join(self._expr(alternative) for alternative in schema.alternatives)


def _string_expr(constraints: tuple[StringConstraint, ...]) -> str:
    options: tuple[str, ...] | None = None
    lower: int | None = None
    upper: int | None = None
    for constraint in constraints:
        match constraint:
            case Pattern(regex=regex):
                raise UnprojectableSchemaError(
                    f"pattern {regex!r} cannot be expressed in GBNF", backend=_BACKEND
                )
            case Constant(value=value):
                options = (value,)
            case OneOf(values=values):
                options = values
            case Length():
                lower = constraint.lower if constraint.lower is not None else lower
                upper = constraint.upper if constraint.upper is not None else upper
    if options is not None:
        literals = [
            gbnf_literal(json.dumps(option, ensure_ascii=False)) for option in options
        ]
        return "( " + " | ".join(literals) + " )"
    if lower is None and upper is None:
        return "string"
    if lower is not None and upper is not None and lower > upper:
        raise UnprojectableSchemaError(
            f"string length bounds {lower}..{upper} are contradictory",
            backend=_BACKEND,
        )
    repeat = f"{{{lower or 0},{'' if upper is None else upper}}}"
    return f'"\\"" char{repeat} "\\""'


def _array_expr(item: str, constraints: tuple[Count, ...]) -> str:
    lower: int | None = None
    upper: int | None = None
    for count in constraints:
        if count.lower is not None:
            lower = count.lower
        if count.upper is not None:
            upper = count.upper
    if lower is not None and upper is not None and lower > upper:
        raise UnprojectableSchemaError(
            f"array bounds {lower}..{upper} are contradictory", backend=_BACKEND
        )

    if upper == 0:
        return '"[" ws "]"'
    tail = f'( "," ws {item} ws )'
    if not lower:
        repeat = "*" if upper is None else f"{{0,{upper - 1}}}"
        return f'"[" ws ( {item} ws {tail}{repeat} )? "]"'
    repeat = f"{{{lower - 1},}}" if upper is None else f"{{{lower - 1},{upper - 1}}}"
    return f'"[" ws {item} ws {tail}{repeat} "]"'
