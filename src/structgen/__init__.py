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

"""Typed structured generation: schemas, codec, streaming and projection."""

from __future__ import annotations

# ``schema`` must load before the subsystems that introspect declarations.
from . import schema  # isort: skip
from . import codec, projection, streaming
from .codec import decode, decode_json, encode
from .config import ProjectionConfig, ReconstructionConfig
from .content import ContentKind, StructuredContent, extract_json
from .errors import (
    IncompleteResultError,
    InvalidJSONError,
    KindMismatchError,
    MissingPropertyError,
    SchemaDefinitionError,
    StructgenError,
    UnknownDiscriminatorError,
    UnprojectableSchemaError,
)
from .logging import StructuredLogger, configure_logging, get_logger
from .projection import BackendKind, project, response_format
from .schema import (
    Constant,
    Count,
    Element,
    Length,
    Guide,
    OneOf,
    Pattern,
    Range,
    TaggedUnion,
    generable,
    schema_for,
    unlabeled,
)
from .streaming import (
    UNKNOWN,
    PartialReconstructor,
    ReconstructionState,
    Snapshot,
    partial_type,
    reconstruct,
)

__all__ = [
    "UNKNOWN",
    "BackendKind",
    "Constant",
    "ContentKind",
    "Count",
    "Element",
    "Length",
    "Guide",
    "IncompleteResultError",
    "InvalidJSONError",
    "KindMismatchError",
    "MissingPropertyError",
    "OneOf",
    "PartialReconstructor",
    "Pattern",
    "ProjectionConfig",
    "Range",
    "ReconstructionConfig",
    "ReconstructionState",
    "SchemaDefinitionError",
    "Snapshot",
    "StructgenError",
    "StructuredContent",
    "StructuredLogger",
    "TaggedUnion",
    "UnknownDiscriminatorError",
    "UnprojectableSchemaError",
    "codec",
    "configure_logging",
    "decode",
    "decode_json",
    "encode",
    "extract_json",
    "generable",
    "get_logger",
    "partial_type",
    "project",
    "projection",
    "reconstruct",
    "response_format",
    "schema",
    "schema_for",
    "streaming",
    "unlabeled",
]
