"""Custom exceptions for rulegraph.

Exception Hierarchy:
-------------------
RuleGraphError (base)
├── ValidationError
│   ├── RuleDefinitionError         # Malformed rule or baseline document
│   └── InputFormatError            # Input document cannot be read or parsed
├── DependencyError (base for graph construction/traversal errors)
│   ├── DuplicateIdentifierError    # Two targets share an id
│   ├── UnresolvedDependencyError   # depends_on references an unknown id
│   └── CyclicDependencyError       # Circular depends_on references
├── UseAfterDisposeError            # Graph used after close()
├── TargetStateError                # Outcome reported for the wrong target/state
├── TraversalProtocolError          # Consumer broke the pull/report protocol
└── BaselineNotFoundError           # Requested baseline is not defined

Usage Guidelines:
----------------
1. DependencyError subclasses are raised by the scheduler and are fatal for
   the graph (construction) or for the current traversal (scan time).

2. TargetStateError and TraversalProtocolError indicate a bug in the code
   driving the traversal, never a rule failure.

3. Exceptions raised inside a rule body are NOT converted to RuleGraphError:
   the runner records them as an ERROR outcome and marks the rule failed so
   that its dependents are skipped.

Error Recovery Strategy:
-----------------------
The runner handles rule failures by:
1. Logging the failure with rule and target context
2. Marking the rule failed in the dependency graph
3. Skipping dependent rules (cascade skip)
4. Continuing with independent rules (unless fail-fast is configured)
5. Reporting a summary at completion
"""


class RuleGraphError(Exception):
    """Base exception for all rulegraph errors."""

    pass


class ValidationError(RuleGraphError):
    """Raised when a document fails validation."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """
        Initialize ValidationError.

        Args:
            message: Error message.
            source: Optional file or document the error was found in.
            original_error: Optional original exception that caused this error.
        """
        super().__init__(message)
        self.source = source
        self.original_error = original_error

    def __str__(self) -> str:
        """
        Return string representation with source if available.

        Returns:
            str: Error message prefixed with the source if set.
        """
        message = str(self.args[0]) if self.args else "Validation error"
        if self.source:
            return f"{self.source}: {message}"
        return message


class RuleDefinitionError(ValidationError):
    """Raised when a rule or baseline document is invalid."""

    pass


class InputFormatError(ValidationError):
    """Raised when an input document cannot be read."""

    pass


class DependencyError(RuleGraphError):
    """Base exception for dependency graph errors."""

    pass


class DuplicateIdentifierError(DependencyError):
    """Raised when two targets handed to the same graph share an id."""

    def __init__(self, identifier: str) -> None:
        """
        Initialize DuplicateIdentifierError.

        Args:
            identifier: The id that appears more than once.
        """
        super().__init__(f"Duplicate target id: {identifier}")
        self.identifier = identifier


class UnresolvedDependencyError(DependencyError):
    """Raised when a depends_on entry does not match any known target id."""

    def __init__(self, target_id: str, dependency_id: str) -> None:
        """
        Initialize UnresolvedDependencyError.

        Args:
            target_id: Target declaring the dependency.
            dependency_id: The id that could not be resolved.
        """
        super().__init__(f"Target {target_id} depends on unknown target {dependency_id}")
        self.target_id = target_id
        self.dependency_id = dependency_id


class CyclicDependencyError(DependencyError):
    """
    Raised when circular dependencies are detected between targets.

    Example cycles:
    1. Rule A depends on Rule B, Rule B depends on Rule A
    2. Rule A depends on itself
    3. A -> B -> C -> A

    Without this check a traversal could never reach a terminal decision for
    the targets on the cycle, so the graph fails fast at construction.
    """

    def __init__(self, message: str, cycles: list[list[str]] | None = None) -> None:
        """
        Initialize CyclicDependencyError.

        Args:
            message: Error message.
            cycles: List of detected cycles, where each cycle is a list of target ids.
        """
        super().__init__(message)
        self.cycles = cycles or []


class UseAfterDisposeError(RuleGraphError):
    """Raised when a dependency graph is used after it has been closed."""

    def __init__(self, operation: str) -> None:
        """
        Initialize UseAfterDisposeError.

        Args:
            operation: Name of the operation that was attempted.
        """
        super().__init__(f"Cannot {operation}: dependency graph has been closed")
        self.operation = operation


class TargetStateError(RuleGraphError):
    """Raised when an outcome is reported for a target that is not awaiting one."""

    def __init__(self, target_id: str, state: str, reason: str | None = None) -> None:
        """
        Initialize TargetStateError.

        Args:
            target_id: Target the outcome was reported for.
            state: Current state of the target.
            reason: Optional explanation.
        """
        message = f"Cannot report outcome for target {target_id} in state {state}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.target_id = target_id
        self.state = state


class TraversalProtocolError(RuleGraphError):
    """Raised when the consumer of an ordered traversal breaks its contract."""

    pass


class BaselineNotFoundError(RuleGraphError):
    """Raised when a baseline name does not match any loaded baseline."""

    def __init__(self, name: str, available: list[str] | None = None) -> None:
        """
        Initialize BaselineNotFoundError.

        Args:
            name: Requested baseline name.
            available: Names of the baselines that were loaded.
        """
        message = f"Baseline not found: {name}"
        if available:
            message = f"{message} (available: {', '.join(sorted(available))})"
        super().__init__(message)
        self.name = name
        self.available = available or []
