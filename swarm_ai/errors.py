"""Structured error types for the mission system."""

from typing import Iterable, Optional


class SwarmError(Exception):
    """Base error for all swarm operations."""
    pass


class RemoteCallError(SwarmError):
    """A remote generation call failed permanently."""

    def __init__(self, message: str, attempts: int = 1, cause: Optional[BaseException] = None):
        self.attempts = attempts
        self.cause = cause
        super().__init__(message)


class TransientRemoteError(RemoteCallError):
    """Retryable failure that exhausted its attempts."""


class FatalRemoteError(RemoteCallError):
    """Non-retryable failure; never retried."""


class StructuredResponseError(FatalRemoteError):
    """Raised when a structured reply does not parse."""

    def __init__(self, message: str, raw: str = "", attempts: int = 1,
                 cause: Optional[BaseException] = None):
        self.raw = raw
        super().__init__(message, attempts=attempts, cause=cause)


class TaskExecutionError(SwarmError):
    """Terminal failure of a single task, recorded on its result."""

    def __init__(self, task_id: int, message: str, detail: str = ""):
        self.task_id = task_id
        self.detail = detail
        super().__init__(message)


class DependencyDeadlock(SwarmError):
    """Remaining pending tasks can never become runnable."""

    def __init__(self, task_ids: Iterable[int], names: Iterable[str]):
        self.task_ids = sorted(task_ids)
        self.names = list(names)
        super().__init__(
            "Deadlock detected. The following tasks cannot run due to unmet "
            f"dependencies: {', '.join(self.names)}"
        )


class RetryRejectedError(SwarmError):
    """Raised when a retry would reset a task that is not safe to reset."""

    def __init__(self, task_id: int, reason: str):
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"Cannot retry task {task_id}: {reason}")


class PlanError(SwarmError):
    """Raised when the planner cannot produce a usable mission plan."""


class SummaryError(SwarmError):
    """Raised when the executive summary cannot be generated."""
