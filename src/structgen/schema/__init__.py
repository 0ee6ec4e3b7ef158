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

"""Schema declarations, constraints and derivation."""

from __future__ import annotations

from .constraints import (
    ArrayConstraint,
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
from .declarations import Guide, TaggedUnion, generable, unlabeled
from .derive import clear_schema_cache, schema_for
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
    constrain,
)

__all__ = [
    "ArrayConstraint",
    "ArraySchema",
    "BooleanSchema",
    "Constant",
    "Constraint",
    "Count",
    "Element",
    "Length",
    "Guide",
    "IntegerSchema",
    "NumberSchema",
    "ObjectSchema",
    "OneOf",
    "Pattern",
    "Property",
    "Range",
    "Schema",
    "SchemaRef",
    "StringConstraint",
    "StringSchema",
    "TaggedUnion",
    "UnionSchema",
    "clear_schema_cache",
    "constrain",
    "generable",
    "schema_for",
    "unlabeled",
]
