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

"""Longest-valid-prefix repair for truncated JSON text.

The input is assumed to be a prefix of some well-formed JSON document, as
produced by a model mid-generation. Only strings are completed in place;
any other unfinished value is dropped because its final spelling is
unknown::

    >>> repair_json('{"name": "Jo')
    '{"name": "Jo"}'
    >>> repair_json("[1, 2")
    '[1]'
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Literal

__all__ = ["repair_json"]

_LITERALS: Final[tuple[str, ...]] = ("true", "false", "null")
_CLOSED_VALUE_ENDINGS: Final[tuple[str, ...]] = ('"', "}", "]")


@dataclass(slots=True)
class _Container:
    kind: Literal["object", "array"]
    opened_at: int
    last_comma: int | None = None
    last_colon: int | None = None

    def expects_value(self) -> bool:
        if self.kind == "array":
            return True
        if self.last_colon is None:
            return False
        border = self.last_comma if self.last_comma is not None else self.opened_at
        return border < self.last_colon

    @property
    def closer(self) -> str:
        return "}" if self.kind == "object" else "]"


def repair_json(text: str) -> str:
    """Return the longest valid JSON prefix of ``text``, closed.

    An open string is terminated (dropping a dangling escape backslash).
    When the innermost container ends in an incomplete value, the text is cut
    back to that container's last comma, or the container is removed
    entirely when it has none, walking outwards. Remaining containers are
    closed innermost first. A prefix that collapses to nothing yields ``{}``
    or ``[]`` according to the outermost container.
    """

    if not text:
        return ""

    chars = list(text)
    in_string = False
    escape_next = False
    stack: list[_Container] = []

    for index, char in enumerate(chars):
        if in_string:
            if escape_next:
                escape_next = False
            elif char == "\\":
                escape_next = True
            elif char == '"':
                in_string = False
            continue
        match char:
            case '"':
                in_string = True
            case "{":
                stack.append(_Container("object", index))
            case "[":
                stack.append(_Container("array", index))
            case "}" | "]":
                if stack:
                    _ = stack.pop()
            case ",":
                if stack:
                    stack[-1].last_comma = index
            case ":":
                if stack:
                    stack[-1].last_colon = index
            case _:
                pass

    if in_string:
        if _trailing_backslashes(chars) % 2 == 1:
            _ = chars.pop()
        chars.append('"')

    if not stack:
        return "".join(chars).strip()

    outermost = stack[0]
    if not _is_complete_value(stack[-1], chars):
        while stack:
            top = stack[-1]
            if top.last_comma is not None:
                chars = chars[: top.last_comma]
                break
            chars = chars[: top.opened_at]
            _ = stack.pop()

    chars.extend(container.closer for container in reversed(stack))

    result = "".join(chars).strip()
    if not result:
        return "{}" if outermost.kind == "object" else "[]"
    return result


def _is_complete_value(container: _Container, chars: list[str]) -> bool:
    if not container.expects_value():
        return False
    trimmed = "".join(chars).rstrip()
    if not trimmed:
        return False
    # Open strings were closed above; a trailing bracket ends a nested container.
    if trimmed.endswith(_CLOSED_VALUE_ENDINGS):
        return True
    return trimmed.endswith(_LITERALS)


def _trailing_backslashes(chars: list[str]) -> int:
    count = 0
    for char in reversed(chars):
        if char != "\\":
            break
        count += 1
    return count
