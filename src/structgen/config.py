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

"""Typed configuration objects for projection and streaming reconstruction."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Self

__all__ = [
    "ProjectionConfig",
    "ReconstructionConfig",
]


@dataclass(frozen=True, slots=True)
class ProjectionConfig:
    """Options controlling how schemas are projected into backend grammars.

    Attributes:
        use_definitions: Hoist recurring objects into a ``$defs`` table and
            reference them by pointer when the backend supports it. When False
            every occurrence is inlined and cyclic schemas become
            unprojectable.
        include_descriptions: Emit ``description`` fields for objects, unions
            and properties. Some backends count descriptions against request
            size limits.
    """

    use_definitions: bool = True
    include_descriptions: bool = True

    def update(self, **changes: object) -> Self:
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)  # pyright: ignore[reportArgumentType]


@dataclass(frozen=True, slots=True)
class ReconstructionConfig:
    """Options controlling streaming reconstruction.

    Attributes:
        repair_partial_json: Repair each cumulative fragment to its longest
            valid JSON prefix before decoding, so in-progress strings and
            completed array elements surface before the closing brackets
            arrive. When False an unterminated fragment is skipped.
    """

    repair_partial_json: bool = False

    def update(self, **changes: object) -> Self:
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)  # pyright: ignore[reportArgumentType]
