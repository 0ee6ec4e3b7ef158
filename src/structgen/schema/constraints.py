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

"""Refinement constraints for primitive and array schemas.

Each constraint type refines exactly one family of schema kinds:

- string schemas accept :class:`Pattern`, :class:`Constant`,
  :class:`OneOf` and :class:`Length`;
- integer and number schemas accept :class:`Range`;
- array schemas accept :class:`Count` and :class:`Element`.

Constraint values validate their own arguments on construction so that a
malformed declaration fails where it is written, not when a request is sent.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass

from ..errors import SchemaDefinitionError

__all__ = [
    "ArrayConstraint",
    "Constant",
    "Constraint",
    "Count",
    "Element",
    "Length",
    "OneOf",
    "Pattern",
    "Range",
    "StringConstraint",
]


@dataclass(frozen=True, slots=True)
class Pattern:
    """Require strings to match a regular expression."""

    regex: str

    def __post_init__(self) -> None:
        try:
            _ = re.compile(self.regex)
        except re.error as error:
            raise SchemaDefinitionError(
                f"Pattern {self.regex!r} is not a valid regular expression: {error}"
            ) from error


@dataclass(frozen=True, slots=True)
class Constant:
    """Require strings to equal ``value`` exactly."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):  # pyright: ignore[reportUnnecessaryIsInstance]
            raise SchemaDefinitionError("Constant requires a string value.")


@dataclass(frozen=True, slots=True, init=False)
class OneOf:
    """Require strings to be one of ``values``."""

    values: tuple[str, ...]

    def __init__(self, values: Iterable[str]) -> None:
        normalized = tuple(values)
        if not normalized:
            raise SchemaDefinitionError("OneOf requires at least one option.")
        if not all(isinstance(value, str) for value in normalized):  # pyright: ignore[reportUnnecessaryIsInstance]
            raise SchemaDefinitionError("OneOf options must be strings.")
        object.__setattr__(self, "values", normalized)


@dataclass(frozen=True, slots=True)
class Length:
    """Bound the number of characters in a string; either bound may be omitted."""

    lower: int | None = None
    upper: int | None = None

    def __post_init__(self) -> None:
        _check_counts("Length", self.lower, self.upper)


@dataclass(frozen=True, slots=True)
class Range:
    """Bound a numeric value; either bound may be omitted."""

    lower: int | float | None = None
    upper: int | float | None = None

    def __post_init__(self) -> None:
        for bound in (self.lower, self.upper):
            if bound is None:
                continue
            if isinstance(bound, bool) or not isinstance(bound, (int, float)):  # pyright: ignore[reportUnnecessaryIsInstance]
                raise SchemaDefinitionError(f"Range bounds must be numbers, got {bound!r}")
            if not math.isfinite(bound):
                raise SchemaDefinitionError("Range bounds must be finite.")
        if self.lower is not None and self.upper is not None and self.lower > self.upper:
            raise SchemaDefinitionError(
                f"Range lower bound {self.lower} exceeds upper bound {self.upper}."
            )

    @property
    def is_integral(self) -> bool:
        return all(
            bound is None or float(bound).is_integer()
            for bound in (self.lower, self.upper)
        )


@dataclass(frozen=True, slots=True)
class Count:
    """Bound the number of elements in an array; either bound may be omitted."""

    lower: int | None = None
    upper: int | None = None

    def __post_init__(self) -> None:
        _check_counts("Count", self.lower, self.upper)


@dataclass(frozen=True, slots=True)
class Element:
    """Apply ``constraint`` to every element of an array.

    This is not a constraint on the array node itself: applying it rewrites the
    array's item schema. Nest ``Element`` to reach arrays of arrays.
    """

    constraint: Constraint


type StringConstraint = Pattern | Constant | OneOf | Length
type ArrayConstraint = Count | Element
type Constraint = StringConstraint | Range | ArrayConstraint


def _check_counts(kind: str, lower: int | None, upper: int | None) -> None:
    for bound in (lower, upper):
        if bound is None:
            continue
        if isinstance(bound, bool) or not isinstance(bound, int):  # pyright: ignore[reportUnnecessaryIsInstance]
            raise SchemaDefinitionError(f"{kind} bounds must be integers, got {bound!r}")
        if bound < 0:
            raise SchemaDefinitionError(f"{kind} bounds must be non-negative.")
    if lower is not None and upper is not None and lower > upper:
        raise SchemaDefinitionError(
            f"{kind} lower bound {lower} exceeds upper bound {upper}."
        )
