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

"""Named-schema bookkeeping shared by the projectors."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from ..errors import UnprojectableSchemaError
from ..schema.model import ArraySchema, ObjectSchema, Schema, SchemaRef, UnionSchema
from ._types import BackendKind

__all__ = ["NamedSchemas", "collect_named"]


@dataclass(slots=True)
class NamedSchemas:
    """Every named object and union reachable from a root schema."""

    schemas: dict[str, ObjectSchema | UnionSchema] = field(default_factory=dict)
    occurrences: Counter[str] = field(default_factory=Counter)
    referenced: set[str] = field(default_factory=set)

    def shared(self) -> list[str]:
        """Names that recur or are targets of a back-reference, in first-seen order."""
        return [
            name
            for name in self.schemas
            if self.occurrences[name] > 1 or name in self.referenced
        ]


def collect_named(root: Schema, backend: BackendKind) -> NamedSchemas:
    """Walk ``root`` once, recording named schemas.

    Raises:
        UnprojectableSchemaError: two different schemas claim one name.
    """

    named = NamedSchemas()
    pending: list[Schema] = [root]
    while pending:
        node = pending.pop()
        match node:
            case ObjectSchema() | UnionSchema():
                named.occurrences[node.name] += 1
                existing = named.schemas.get(node.name)
                if existing is None:
                    named.schemas[node.name] = node
                    pending.extend(reversed(_children(node)))
                elif existing != node:
                    raise UnprojectableSchemaError(
                        f"two different schemas are named {node.name!r}",
                        backend=backend.value,
                    )
            case ArraySchema(item=item):
                pending.append(item)
            case SchemaRef(name=name):
                named.referenced.add(name)
                if name not in named.schemas:
                    pending.append(node.resolve())
            case _:
                pass
    return named


def _children(node: ObjectSchema | UnionSchema) -> list[Schema]:
    if isinstance(node, ObjectSchema):
        return [prop.schema for _, prop in node.properties]
    return list(node.alternatives)
