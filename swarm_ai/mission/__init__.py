"""Mission orchestration: planning, dependency-driven execution, retry and reporting."""

from .tasks import MissionPlan, Priority, Task, TaskResult, TaskStatus, Tool
from .board import ResultBoard
from .messages import MessageBus, MessageType, MissionMessage
from .resilience import RetryPolicy, complete_structured, is_retryable, stream_with_retry
from .executor import TaskExecutor
from .scheduler import DEADLOCK_MESSAGE, Coordinator, MissionListener, MissionOutcome
from .planner import ProjectManager
from .summarizer import ExecutiveSummarizer, ExecutiveSummary
from .rendering import MissionRenderer
from .swarm import Swarm, SwarmConfig

__all__ = [
    "MissionPlan",
    "Priority",
    "Task",
    "TaskResult",
    "TaskStatus",
    "Tool",
    "ResultBoard",
    "MessageBus",
    "MessageType",
    "MissionMessage",
    "RetryPolicy",
    "complete_structured",
    "is_retryable",
    "stream_with_retry",
    "TaskExecutor",
    "DEADLOCK_MESSAGE",
    "Coordinator",
    "MissionListener",
    "MissionOutcome",
    "ProjectManager",
    "ExecutiveSummarizer",
    "ExecutiveSummary",
    "MissionRenderer",
    "Swarm",
    "SwarmConfig",
]
