"""Custom exception hierarchy for the casegen workflow client.

Every failure surfaced by the workflow engine is one of the classes below,
so callers (the CLI, tests, embedding applications) can tell a local
precondition problem from a remote failure without inspecting messages.

Exception Hierarchy:
    CasegenError (base)
    ├── ConfigurationError
    ├── ValidationError
    │   └── OperationInProgressError
    ├── RemoteOperationError
    └── StaleResultError

Example Usage:
    >>> from casegen.exceptions import RemoteOperationError
    >>> from casegen.enums import Stage
    >>> try:
    ...     await engine.generate_summaries()
    ... except RemoteOperationError as e:
    ...     print(e.stage, e.path, e.status_code)
"""

from casegen.enums import Stage


class CasegenError(Exception):
    """Base exception for all casegen errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(CasegenError):
    """Configuration-related errors.

    Raised when configuration files are invalid, missing, or contain
    incompatible settings.
    """

    pass


class ValidationError(CasegenError):
    """A precondition on engine-local state was violated.

    Raised before any remote call is attempted. The engine state is never
    modified when this error is raised.

    Examples:
        - Empty repository reference
        - Generating summaries with nothing selected
        - Submitting before any code was generated
    """

    pass


class OperationInProgressError(ValidationError):
    """The same operation type is already running on this engine.

    Attributes:
        stage: The stage whose operation is still outstanding
    """

    def __init__(self, stage: Stage) -> None:
        """Initialize exception.

        Args:
            stage: Stage that is already in flight
        """
        self.stage = stage
        super().__init__(f"A {stage.label} request is already in progress")


class RemoteOperationError(CasegenError):
    """A call to the generation service failed.

    Covers both service-reported failures (non-success HTTP status, malformed
    response bodies) and transport failures (connection refused, timeouts).
    Both collapse to this one class for workflow purposes; ``status_code`` and
    ``transport`` keep them apart for diagnostics.

    Attributes:
        message: Error message without the stage/status decoration
        stage: Workflow stage that failed
        path: File path for content-fetch failures
        status_code: HTTP status code (if the service answered)
        response_text: Response body text (if the service answered)
        transport: True when no response was received at all
    """

    def __init__(
        self,
        message: str,
        stage: Stage,
        path: str | None = None,
        status_code: int | None = None,
        response_text: str | None = None,
        transport: bool = False,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            stage: Workflow stage that failed
            path: File path being fetched (content-fetch stage only)
            status_code: HTTP status code (if applicable)
            response_text: Response body text (if applicable)
            transport: Whether the failure happened below the HTTP layer
        """
        self.stage = stage
        self.path = path
        self.status_code = status_code
        self.response_text = response_text
        self.transport = transport

        where = stage.label if path is None else f"{stage.label} for {path}"
        full_message = f"{where} failed: {message}"
        if status_code:
            full_message = f"{full_message} (HTTP {status_code})"
        elif transport:
            full_message = f"{full_message} (transport error)"

        super().__init__(full_message)
        # Preserve original message (super sets self.message to full_message)
        self.message = message


class StaleResultError(CasegenError):
    """A stage finished after the state it was computed from was replaced.

    Either the file listing was reloaded, or (for code generation) a new
    summary batch was installed. The result was discarded instead of being
    installed into the engine.

    Attributes:
        stage: Stage whose result was discarded
        reason: What was replaced while the stage ran
    """

    def __init__(self, stage: Stage, reason: str = "the file listing was reloaded") -> None:
        """Initialize exception.

        Args:
            stage: Stage whose result was discarded
            reason: What was replaced while the stage ran
        """
        self.stage = stage
        self.reason = reason
        super().__init__(f"{stage.label.capitalize()} result discarded: {reason} while it ran")
