"""Dependency Graph - pull scheduler for dependency-ordered rule evaluation.

Yields targets (usually rules) so that every dependency is evaluated
before its dependents, and skips dependents of failed targets instead of
handing them to the consumer.
"""

from collections.abc import Generator, Iterator, Sequence
from contextlib import ExitStack
from enum import Enum
from typing import Generic, TypeVar

import structlog

from ..models.targets import IdentifiableTarget
from ..utils.exceptions import (
    CyclicDependencyError,
    DuplicateIdentifierError,
    TargetStateError,
    TraversalProtocolError,
    UnresolvedDependencyError,
    UseAfterDisposeError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=IdentifiableTarget)

# DFS colors for cycle detection
_WHITE, _GREY, _BLACK = 0, 1, 2


class TargetState(str, Enum):
    """Evaluation state of a target within one traversal."""

    UNEVALUATED = "unevaluated"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"  # A dependency failed or was itself skipped

    @property
    def is_terminal(self) -> bool:
        return self is not TargetState.UNEVALUATED


_STATE_COLORS = {
    TargetState.UNEVALUATED: "#eeeeee",  # Gray
    TargetState.PASSED: "#d4edda",  # Green
    TargetState.FAILED: "#f8d7da",  # Red
    TargetState.SKIPPED: "#fff3cd",  # Yellow
}


class DependencyTarget(Generic[T]):
    """
    A target wrapped by the graph.

    The wrapper holds no state of its own: its state lives in the graph's
    state table at ``handle``, so resetting a traversal is a single table reset.

    Attributes:
        graph: Owning graph
        handle: Index of this target in the graph's arena
        value: The original target, never copied or mutated
    """

    __slots__ = ("graph", "handle", "value")

    def __init__(self, graph: "DependencyGraph[T]", handle: int, value: T) -> None:
        self.graph = graph
        self.handle = handle
        self.value = value

    @property
    def id(self) -> str:
        return self.value.id

    @property
    def state(self) -> TargetState:
        return self.graph._state_of(self.handle)

    @property
    def passed(self) -> bool:
        return self.state is TargetState.PASSED

    @property
    def failed(self) -> bool:
        """True when the target failed or was skipped; both block dependents."""
        return self.state in (TargetState.FAILED, TargetState.SKIPPED)

    @property
    def skipped(self) -> bool:
        return self.state is TargetState.SKIPPED

    @property
    def blocked_by(self) -> str | None:
        """Id of the dependency whose failure caused this target to be skipped."""
        return self.graph._blocked_by_of(self.handle)

    def mark_passed(self) -> None:
        """
        Report that the target's evaluation passed.

        Raises:
            TargetStateError: If the target is not the item awaiting an outcome
        """
        self.graph._report(self.handle, TargetState.PASSED)

    def mark_failed(self) -> None:
        """
        Report that the target's evaluation failed.

        Raises:
            TargetStateError: If the target is not the item awaiting an outcome
        """
        self.graph._report(self.handle, TargetState.FAILED)

    def _mark_dependency_failed(self, cause: "DependencyTarget[T]") -> None:
        self.graph._skip(self.handle, cause.handle)

    def __repr__(self) -> str:
        return f"DependencyTarget(id={self.id!r}, handle={self.handle})"


class DependencyGraph(Generic[T]):
    """
    Pull scheduler over a flat collection of identifiable targets.

    Features:
    - O(1) dependency lookup through an id index built at construction
    - Duplicate id and cycle detection at construction
    - Lazy ordered traversal that interleaves dependency resolution with the
      input order and propagates failures as skips
    - Scoped release of closeable target values

    Usage:
        with DependencyGraph(rules) as graph:
            for target in graph.ordered_traversal():
                if evaluate(target.value):
                    target.mark_passed()
                else:
                    target.mark_failed()

    The consumer must report an outcome for every yielded target before
    requesting the next one.
    """

    def __init__(self, targets: Sequence[T]) -> None:
        """
        Build the graph.

        Args:
            targets: Targets in evaluation order

        Raises:
            DuplicateIdentifierError: If two targets share an id
            CyclicDependencyError: If depends_on references form a cycle
        """
        self._targets: list[DependencyTarget[T]] = []
        self._dependencies: list[tuple[str, ...]] = []
        self._index: dict[str, int] = {}

        # State table, indexed by handle
        self._states: list[TargetState] = []
        self._blocked_by: list[int | None] = []

        self._generation = 0
        self._pending: int | None = None
        self._resources = ExitStack()
        self._disposed = False

        self._prepare(targets)
        self._check_cycles()
        self._register_resources()

        logger.debug(
            "Dependency graph built",
            targets=len(self._targets),
            edges=sum(len(dependencies) for dependencies in self._dependencies),
        )

    def _prepare(self, targets: Sequence[T]) -> None:
        for value in targets:
            target_id = value.id
            if target_id in self._index:
                raise DuplicateIdentifierError(target_id)

            handle = len(self._targets)
            self._index[target_id] = handle
            self._targets.append(DependencyTarget(self, handle, value))
            self._dependencies.append(tuple(value.depends_on or ()))

        self._states = [TargetState.UNEVALUATED] * len(self._targets)
        self._blocked_by = [None] * len(self._targets)

    def _register_resources(self) -> None:
        # ExitStack unwinds LIFO; register in reverse so values close in input order
        for target in reversed(self._targets):
            close = getattr(target.value, "close", None)
            if callable(close):
                self._resources.callback(close)

    # -------------------------------------------------------------------------
    # Cycle detection
    # -------------------------------------------------------------------------

    def _check_cycles(self) -> None:
        """
        Fail fast if any depends_on references form a cycle.

        Raises:
            CyclicDependencyError: With the first cycle found, in input order
        """
        colors = [_WHITE] * len(self._targets)

        for handle in range(len(self._targets)):
            if colors[handle] != _WHITE:
                continue

            cycle = self._find_cycle_from(handle, colors)
            if cycle:
                cycle_ids = [self._targets[h].id for h in cycle]
                raise CyclicDependencyError(
                    f"Cyclic dependency detected: {' -> '.join(cycle_ids)}",
                    cycles=[cycle_ids],
                )

    def _find_cycle_from(self, start: int, colors: list[int]) -> list[int] | None:
        """
        Depth-first search for a back edge reachable from ``start``.

        Grey marks targets on the current path; reaching a grey target again
        closes a cycle. Black targets were fully explored and cannot be part
        of a new cycle. The path is an explicit stack of
        ``[handle, next_dependency_index]`` frames, so chain depth is unbounded.

        Args:
            start: Target to explore
            colors: Shared color table

        Returns:
            The cycle as a list of handles (first handle repeated at the end),
            or None
        """
        colors[start] = _GREY
        stack: list[list[int]] = [[start, 0]]

        while stack:
            frame = stack[-1]
            handle, position = frame
            dependencies = self._dependencies[handle]

            if position == len(dependencies):
                stack.pop()
                colors[handle] = _BLACK
                continue

            frame[1] = position + 1
            dependency = self._index.get(dependencies[position])
            if dependency is None:
                # Unknown ids are reported when the traversal scans them
                continue

            if colors[dependency] == _GREY:
                path = [h for h, _ in stack]
                return path[path.index(dependency) :] + [dependency]

            if colors[dependency] == _WHITE:
                colors[dependency] = _GREY
                stack.append([dependency, 0])

        return None

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def count(self) -> int:
        """Number of targets in the graph."""
        self._ensure_open("count targets")
        return len(self._targets)

    def __len__(self) -> int:
        return self.count

    def all_targets(self) -> Iterator[T]:
        """
        Iterate the original target values in input order.

        Does not read or change evaluation state; may be called any number of times.

        Returns:
            Iterator over the target values
        """
        self._ensure_open("list targets")
        return (target.value for target in self._targets)

    def get(self, target_id: str) -> DependencyTarget[T]:
        """
        Look up a wrapped target, e.g. to inspect its state after a traversal.

        Args:
            target_id: Target id

        Returns:
            The wrapped target

        Raises:
            KeyError: If no target has this id
        """
        self._ensure_open("look up targets")
        return self._targets[self._index[target_id]]

    # -------------------------------------------------------------------------
    # Traversal
    # -------------------------------------------------------------------------

    def ordered_traversal(self) -> Generator[DependencyTarget[T], None, None]:
        """
        Start a new traversal and return its single-pass iterator.

        All states are reset to UNEVALUATED immediately. Targets are considered
        in input order; for each one its dependencies are scanned in listed
        order:

        - PASSED dependency: continue with the next one
        - FAILED or SKIPPED dependency: the target becomes SKIPPED and is not yielded
        - UNEVALUATED dependency: it is resolved the same way and yielded first,
          then its reported outcome is applied as above

        A target whose scan completes is yielded. Targets that already reached
        a terminal state earlier in the traversal are never yielded twice.

        Starting another traversal supersedes this one; resuming a superseded
        iterator raises TraversalProtocolError.

        Returns:
            Iterator of wrapped targets awaiting evaluation

        Raises:
            UseAfterDisposeError: If the graph has been closed
        """
        self._ensure_open("start a traversal")

        self._generation += 1
        self._states = [TargetState.UNEVALUATED] * len(self._targets)
        self._blocked_by = [None] * len(self._targets)
        self._pending = None

        logger.debug(
            "Starting ordered traversal",
            generation=self._generation,
            targets=len(self._targets),
        )

        return self._traverse(self._generation)

    def _traverse(self, generation: int) -> Generator[DependencyTarget[T], None, None]:
        self._ensure_current(generation)

        for handle in range(len(self._targets)):
            self._ensure_current(generation)
            if self._states[handle] is TargetState.UNEVALUATED:
                yield from self._resolve(handle, generation)

    def _resolve(self, root: int, generation: int) -> Generator[DependencyTarget[T], None, None]:
        # Frames are [handle, next_dependency_index]; a frame is revisited at the
        # same index once the dependency it pushed reaches a terminal state
        stack: list[list[int]] = [[root, 0]]

        while stack:
            frame = stack[-1]
            handle, position = frame
            dependencies = self._dependencies[handle]

            if position == len(dependencies):
                stack.pop()
                yield from self._emit(handle, generation)
                continue

            dependency_id = dependencies[position]
            dependency = self._index.get(dependency_id)
            if dependency is None:
                raise UnresolvedDependencyError(self._targets[handle].id, dependency_id)

            state = self._states[dependency]
            if state is TargetState.UNEVALUATED:
                stack.append([dependency, 0])
            elif state is TargetState.PASSED:
                frame[1] = position + 1
            else:
                self._targets[handle]._mark_dependency_failed(self._targets[dependency])
                stack.pop()

    def _emit(self, handle: int, generation: int) -> Generator[DependencyTarget[T], None, None]:
        self._pending = handle
        try:
            yield self._targets[handle]
        finally:
            if self._generation == generation:
                self._pending = None

        self._ensure_current(generation)
        if self._states[handle] is TargetState.UNEVALUATED:
            raise TraversalProtocolError(
                f"Target {self._targets[handle].id} was not marked passed or failed "
                "before the next target was requested"
            )

    def planned_order(self) -> list[str]:
        """
        Return target ids in the order a fully passing traversal yields them.

        Runs one traversal, marking every target passed. State is left as
        PASSED for all targets until the next traversal starts.

        Returns:
            Target ids in execution order

        Raises:
            UnresolvedDependencyError: If any depends_on entry is unknown
        """
        order: list[str] = []
        for target in self.ordered_traversal():
            order.append(target.id)
            target.mark_passed()
        return order

    def to_dot(self) -> str:
        """
        Generate DOT format representation of the dependency graph.

        Nodes are colored by their state in the most recent traversal.

        Returns:
            String containing the Graphviz DOT definition
        """
        self._ensure_open("render the graph")

        def quote(value: str) -> str:
            return '"' + value.replace('"', '\\"') + '"'

        lines = ["digraph DependencyGraph {"]
        lines.append("    rankdir=LR;")
        lines.append("    node [shape=box style=filled];")

        for target in self._targets:
            color = _STATE_COLORS[self._states[target.handle]]
            lines.append(f'    {quote(target.id)} [fillcolor="{color}"];')

            for dependency_id in self._dependencies[target.handle]:
                lines.append(f"    {quote(dependency_id)} -> {quote(target.id)};")

        lines.append("}")
        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # State table
    # -------------------------------------------------------------------------

    def _state_of(self, handle: int) -> TargetState:
        self._ensure_open("read target state")
        return self._states[handle]

    def _blocked_by_of(self, handle: int) -> str | None:
        self._ensure_open("read target state")
        cause = self._blocked_by[handle]
        return self._targets[cause].id if cause is not None else None

    def _report(self, handle: int, state: TargetState) -> None:
        self._ensure_open("report an outcome")

        target = self._targets[handle]
        current = self._states[handle]

        if current.is_terminal:
            raise TargetStateError(target.id, current.value, "outcome already recorded")

        if self._pending != handle:
            raise TargetStateError(
                target.id, current.value, "target was not yielded by the active traversal"
            )

        self._states[handle] = state

    def _skip(self, handle: int, cause: int) -> None:
        self._states[handle] = TargetState.SKIPPED
        self._blocked_by[handle] = cause

        logger.debug(
            "Target skipped due to dependency failure",
            target=self._targets[handle].id,
            dependency=self._targets[cause].id,
            dependency_state=self._states[cause].value,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _ensure_open(self, operation: str) -> None:
        if self._disposed:
            raise UseAfterDisposeError(operation)

    def _ensure_current(self, generation: int) -> None:
        self._ensure_open("continue a traversal")
        if generation != self._generation:
            raise TraversalProtocolError(
                "Traversal was superseded by a newer ordered_traversal() call"
            )

    @property
    def closed(self) -> bool:
        return self._disposed

    def close(self) -> None:
        """
        Release closeable target values and clear the graph.

        Every target value with a callable ``close`` is closed exactly once, in
        input order. All values are released even if one close raises; the
        last error is re-raised afterwards, chained to any earlier one.
        Closing twice is a no-op.
        """
        if self._disposed:
            return

        self._disposed = True
        try:
            self._resources.close()
        finally:
            self._index.clear()
            self._targets.clear()
            self._dependencies.clear()
            self._states = []
            self._blocked_by = []
            self._pending = None
            logger.debug("Dependency graph closed")

    def __enter__(self) -> "DependencyGraph[T]":
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
