"""gitstate exceptions."""

from pathlib import Path  # noqa: TC003 - Used at runtime in annotations
from typing import Any


class GitStateError(Exception):
    """Base exception for gitstate errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(GitStateError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """Raised when configuration fails validation."""

    def __init__(
        self,
        message: str,
        *,
        key: str,
        value: Any,  # pyright: ignore[reportAny,reportExplicitAny]
        expected: str,
        source: str | None = None,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.key: str = key
        self.value: Any = value  # pyright: ignore[reportExplicitAny]
        self.expected: str = expected
        self.source: str | None = source


# =============================================================================
# Repository Exceptions
# =============================================================================


class RepositoryError(GitStateError):
    """Base exception for repository state errors."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the working directory is not an initialized repository.

    Attributes:
        path: The directory that was expected to contain a repository.
    """

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        """Initialize with error message and path context.

        Args:
            message: Human-readable error message.
            path: The directory that was expected to contain a repository.
        """
        super().__init__(message)
        self.path: Path | None = path


class DirtyWorkingTreeError(RepositoryError):
    """Raised when local changes would be overwritten by an operation.

    Attributes:
        paths: Repository-relative paths holding the conflicting changes.
    """

    def __init__(self, message: str, *, paths: tuple[str, ...] = ()) -> None:
        """Initialize with error message and the offending paths.

        Args:
            message: Human-readable error message.
            paths: Repository-relative paths holding the conflicting changes.
        """
        super().__init__(message)
        self.paths: tuple[str, ...] = paths


class InvalidRefError(RepositoryError, ValueError):
    """Raised when a ref name or stash index is invalid, missing, or in use.

    Attributes:
        ref: The ref name (or stash reference) that was rejected.
    """

    def __init__(self, message: str, *, ref: str | None = None) -> None:
        """Initialize with error message and ref context.

        Args:
            message: Human-readable error message.
            ref: The ref name (or stash reference) that was rejected.
        """
        super().__init__(message)
        self.ref: str | None = ref


class NoStagedChangesError(RepositoryError):
    """Raised when committing with an empty staging area."""


class NoChangesToStashError(RepositoryError):
    """Raised when stashing a working tree without local changes."""


class MergeInProgressError(RepositoryError):
    """Raised when an operation is blocked by an unresolved merge.

    Attributes:
        conflicts: Paths that still have unresolved conflicts.
    """

    def __init__(self, message: str, *, conflicts: tuple[str, ...] = ()) -> None:
        """Initialize with error message and outstanding conflicts.

        Args:
            message: Human-readable error message.
            conflicts: Paths that still have unresolved conflicts.
        """
        super().__init__(message)
        self.conflicts: tuple[str, ...] = conflicts


class MergeConflictError(RepositoryError):
    """Raised when applying changes produced conflicts that need resolution.

    Attributes:
        conflicts: Paths left in a conflicted state.
    """

    def __init__(self, message: str, *, conflicts: tuple[str, ...] = ()) -> None:
        """Initialize with error message and conflicted paths.

        Args:
            message: Human-readable error message.
            conflicts: Paths left in a conflicted state.
        """
        super().__init__(message)
        self.conflicts: tuple[str, ...] = conflicts


class GitCommandFailedError(RepositoryError):
    """Raised when git fails in a way no other error describes.

    Attributes:
        command: The git arguments that were executed.
        stderr: Captured standard error output.
        status: Process exit status, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        command: tuple[str, ...] = (),
        stderr: str = "",
        status: int | None = None,
    ) -> None:
        """Initialize with error message and process context."""
        super().__init__(message)
        self.command: tuple[str, ...] = command
        self.stderr: str = stderr
        self.status: int | None = status


# =============================================================================
# Network Exceptions
# =============================================================================


class RemoteError(GitStateError):
    """Base exception for push, pull, and fetch failures.

    Attributes:
        remote: Name of the remote that was contacted.
    """

    def __init__(self, message: str, *, remote: str | None = None) -> None:
        """Initialize with error message and remote context."""
        super().__init__(message)
        self.remote: str | None = remote


class AuthenticationFailureError(RemoteError):
    """Raised when the remote rejects the supplied credentials."""


class NonFastForwardError(RemoteError):
    """Raised when the remote rejects a push that is not a fast-forward.

    Attributes:
        ref: The rejected ref.
    """

    def __init__(
        self,
        message: str,
        *,
        remote: str | None = None,
        ref: str | None = None,
    ) -> None:
        """Initialize with error message, remote, and rejected ref."""
        super().__init__(message, remote=remote)
        self.ref: str | None = ref


class NetworkFailureError(RemoteError):
    """Raised when a network operation fails or times out.

    Attributes:
        reason: Short machine-readable reason ("timeout", "unreachable", ...).
        transient: True if a retry may succeed.
    """

    def __init__(
        self,
        message: str,
        *,
        remote: str | None = None,
        reason: str = "error",
        transient: bool = True,
    ) -> None:
        """Initialize with error message and failure classification."""
        super().__init__(message, remote=remote)
        self.reason: str = reason
        self.transient: bool = transient


# =============================================================================
# Session Exceptions
# =============================================================================


class SessionError(GitStateError):
    """Base exception for session and serializer errors."""


class ConcurrentOperationRejectedError(SessionError):
    """Raised when an operation cannot be queued.

    Either the pending-operation queue is full, or the working directory
    is already owned by another open session.

    Attributes:
        operation: Name of the rejected operation.
    """

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        """Initialize with error message and operation context."""
        super().__init__(message)
        self.operation: str | None = operation


class OperationCancelledError(SessionError):
    """Raised when a running operation was cancelled before completing.

    Attributes:
        operation: Name of the cancelled operation.
    """

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        """Initialize with error message and operation context."""
        super().__init__(message)
        self.operation: str | None = operation


class SessionClosedError(SessionError):
    """Raised when an operation is submitted to a closed session."""
