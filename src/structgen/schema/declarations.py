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

"""Declaration helpers that attach schema metadata to Python types.

Records are plain dataclasses, enums are :class:`enum.Enum` subclasses and
tagged unions are PEP 604 unions of dataclasses. The helpers here add the
naming and refinement metadata a schema needs::

    @generable(description="A person.")
    @dataclass(frozen=True)
    class Person:
        name: Annotated[str, Guide(Pattern(r"^[A-Z]"), description="Given name")]
        age: Annotated[int, Guide(Range(0, 150))]
        nickname: str | None = None

    @generable(case="ok")
    @dataclass(frozen=True)
    class Ok:
        value: str = unlabeled()

    type Outcome = Ok | Failure
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Final

from .constraints import Constraint

__all__ = [
    "GENERABLE_ATTR",
    "UNLABELED_METADATA_KEY",
    "GenerableInfo",
    "Guide",
    "TaggedUnion",
    "generable",
    "unlabeled",
]

GENERABLE_ATTR: Final[str] = "__generable__"
UNLABELED_METADATA_KEY: Final[str] = "unlabeled"


@dataclass(frozen=True, slots=True, init=False)
class Guide:
    """``Annotated`` metadata carrying a description and constraints."""

    constraints: tuple[Constraint, ...]
    description: str | None

    def __init__(self, *constraints: Constraint, description: str | None = None) -> None:
        object.__setattr__(self, "constraints", constraints)
        object.__setattr__(self, "description", description)


@dataclass(frozen=True, slots=True)
class TaggedUnion:
    """``Annotated`` metadata naming a union of dataclass cases."""

    name: str
    description: str | None = None


@dataclass(frozen=True, slots=True)
class GenerableInfo:
    name: str | None = None
    description: str | None = None
    case: str | None = None


def generable[T: type[Any]](
    cls: T | None = None,
    /,
    *,
    name: str | None = None,
    description: str | None = None,
    case: str | None = None,
) -> T | Callable[[T], T]:
    """Record schema naming metadata on a dataclass or enum.

    ``name`` overrides the schema name (the class name by default) and
    ``case`` overrides the discriminator value used when the class appears as
    a tagged-union case (the lowerCamel class name by default). Usable bare
    (``@generable``) or with arguments.
    """

    def decorate(target: T) -> T:
        setattr(
            target,
            GENERABLE_ATTR,
            GenerableInfo(name=name, description=description, case=case),
        )
        return target

    if cls is not None:
        return decorate(cls)
    return decorate


def unlabeled(**kwargs: Any) -> Any:  # noqa: ANN401
    """Dataclass field marking a union-case parameter as positional.

    Unlabeled parameters are keyed ``value``, ``value1``, ``value2``... in
    declaration order. Keyword arguments are forwarded to
    :func:`dataclasses.field`.
    """

    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[UNLABELED_METADATA_KEY] = True
    return field(metadata=metadata, **kwargs)
