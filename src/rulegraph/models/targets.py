"""Target contracts: what the scheduler orders and what rules evaluate."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IdentifiableTarget(Protocol):
    """
    Anything the dependency graph can schedule.

    Attributes:
        id: Identifier, unique within one graph
        depends_on: Ids of targets that must pass first, checked in listed order
    """

    @property
    def id(self) -> str: ...

    @property
    def depends_on(self) -> Sequence[str]: ...


@dataclass(frozen=True)
class TargetObject:
    """
    A single input object that rules are evaluated against.

    Attributes:
        value: The deserialized object (usually a dict)
        name: Bound target name used in results
        source: File the object was read from (None for in-memory objects)
        index: Position of the object within its source
    """

    value: Any
    name: str
    source: str | None = None
    index: int = 0
