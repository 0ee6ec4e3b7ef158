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

"""Entry points turning schemas into backend request fragments."""

from __future__ import annotations

import re
from typing import Final, cast

from ..config import ProjectionConfig
from ..logging import StructuredLogger, get_logger
from ..schema.derive import schema_for
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
from ..types import GrammarDocument, JSONValue
from ._definitions import collect_named
from ._types import BackendKind
from .gbnf import render_gbnf
from .json_schema import render_json_schema

__all__ = ["project", "response_format"]

logger: StructuredLogger = get_logger(__name__, context={"component": "projection"})

_SCHEMA_TYPES: Final = (
    StringSchema,
    IntegerSchema,
    NumberSchema,
    BooleanSchema,
    ArraySchema,
    ObjectSchema,
    UnionSchema,
    SchemaRef,
)
_FORMAT_NAME_INVALID: Final[re.Pattern[str]] = re.compile(r"[^a-zA-Z0-9_-]+")
_FORMAT_NAME_LIMIT: Final[int] = 64
_DEFAULT_FORMAT_NAME: Final[str] = "response"


def project(
    schema: Schema | object,
    backend: BackendKind | str,
    config: ProjectionConfig | None = None,
) -> GrammarDocument:
    """Project ``schema`` into ``backend``'s grammar document.

    ``schema`` may also be a declared Python type, whose schema is derived
    first. JSON backends return a schema ``dict``; ``GBNF`` returns grammar
    text. Projection is pure: equal inputs give equal documents.

    Raises:
        UnprojectableSchemaError: the backend cannot express the schema.
    """

    resolved = _as_schema(schema)
    kind = BackendKind(backend)
    settings = config if config is not None else ProjectionConfig()
    named = collect_named(resolved, kind)

    document: GrammarDocument
    if kind is BackendKind.GBNF:
        document = render_gbnf(resolved, named)
    else:
        document = render_json_schema(resolved, kind, named, settings)

    logger.debug(
        "Projected schema.",
        event="projection.complete",
        context={
            "backend": kind.value,
            "root": _schema_name(resolved),
            "named": len(named.schemas),
        },
    )
    return document


def response_format(
    schema: Schema | object,
    backend: BackendKind | str,
    *,
    name: str | None = None,
    config: ProjectionConfig | None = None,
) -> dict[str, JSONValue]:
    """Wrap the projected grammar in the request fragment ``backend`` expects.

    - ``JSON_SCHEMA``: ``{"type": "json_schema", "json_schema": {...}}`` as
      accepted by OpenAI-compatible servers;
    - ``OPENAI``: the same envelope with ``strict: true``;
    - ``GEMINI``: ``response_mime_type`` plus ``response_schema``;
    - ``GBNF``: ``{"grammar": ...}`` for llama.cpp.
    """

    resolved = _as_schema(schema)
    kind = BackendKind(backend)
    document = project(resolved, kind, config)
    format_name = _format_name(name or _schema_name(resolved))

    match kind:
        case BackendKind.JSON_SCHEMA:
            return {
                "type": "json_schema",
                "json_schema": {"name": format_name, "schema": cast(JSONValue, document)},
            }
        case BackendKind.OPENAI:
            return {
                "type": "json_schema",
                "json_schema": {
                    "name": format_name,
                    "schema": cast(JSONValue, document),
                    "strict": True,
                },
            }
        case BackendKind.GEMINI:
            return {
                "response_mime_type": "application/json",
                "response_schema": cast(JSONValue, document),
            }
        case BackendKind.GBNF:
            return {"grammar": cast(str, document)}


def _as_schema(schema: Schema | object) -> Schema:
    if isinstance(schema, _SCHEMA_TYPES):
        return schema
    return schema_for(schema)


def _schema_name(schema: Schema) -> str:
    if isinstance(schema, (ObjectSchema, UnionSchema, SchemaRef)):
        return schema.name
    return _DEFAULT_FORMAT_NAME


def _format_name(raw: str) -> str:
    cleaned = _FORMAT_NAME_INVALID.sub("_", raw).strip("_")
    return (cleaned or _DEFAULT_FORMAT_NAME)[:_FORMAT_NAME_LIMIT]
