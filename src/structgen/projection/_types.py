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

"""Shared projection types."""

from __future__ import annotations

from enum import StrEnum

__all__ = ["BackendKind"]


class BackendKind(StrEnum):
    """Constrained-generation grammar families a schema can be projected to."""

    JSON_SCHEMA = "json_schema"
    """Generic JSON Schema (llama.cpp server, vLLM, MLX/outlines)."""

    OPENAI = "openai"
    """OpenAI strict structured outputs."""

    GEMINI = "gemini"
    """Gemini's OpenAPI-subset response schema."""

    GBNF = "gbnf"
    """llama.cpp GBNF grammar text."""

    @property
    def supports_pointers(self) -> bool:
        return self in {BackendKind.JSON_SCHEMA, BackendKind.OPENAI, BackendKind.GBNF}
