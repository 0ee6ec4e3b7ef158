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

"""Streaming decode: partial snapshots of in-flight structured output."""

from __future__ import annotations

from .partial import (
    UNKNOWN,
    is_partial,
    merge_partial,
    missing_fields,
    partial_type,
    partial_value,
)
from .reconstruct import (
    NativePartial,
    PartialReconstructor,
    ReconstructionState,
    Snapshot,
    StreamCancelled,
    StreamCompleted,
    StreamEvent,
    StreamFailed,
    TextDelta,
    TextFragment,
    areconstruct,
    reconstruct,
)
from .repair import repair_json

__all__ = [
    "UNKNOWN",
    "NativePartial",
    "PartialReconstructor",
    "ReconstructionState",
    "Snapshot",
    "StreamCancelled",
    "StreamCompleted",
    "StreamEvent",
    "StreamFailed",
    "TextDelta",
    "TextFragment",
    "areconstruct",
    "is_partial",
    "merge_partial",
    "missing_fields",
    "partial_type",
    "partial_value",
    "reconstruct",
    "repair_json",
]
