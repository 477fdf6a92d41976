"""Task definitions and execution records for a mission."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import PlanError


class Priority(Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def parse(cls, value: Any) -> "Priority":
        """Lenient parse; unknown values fall back to MEDIUM (priority is display-only)."""
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.MEDIUM


class TaskStatus(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


_TERMINAL_STATUSES = frozenset({TaskStatus.SUCCESS, TaskStatus.ERROR})


@dataclass(frozen=True)
class Tool:
    name: str
    description: str = ""


@dataclass(frozen=True)
class Task:
    """A single unit of work in the mission graph. Immutable once launched."""

    id: int
    name: str
    description: str
    tools: List[str] = field(default_factory=list)
    dependencies: List[int] = field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    priority_reasoning: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        if not isinstance(data, dict):
            raise PlanError(f"Task entry must be an object, got {type(data).__name__}")
        try:
            task_id = int(data["id"])
        except (KeyError, TypeError, ValueError):
            raise PlanError(f"Task entry has no integer id: {data!r}")
        raw_deps = data.get("dependencies") or []
        raw_tools = data.get("tools") or []
        if not isinstance(raw_deps, list) or not isinstance(raw_tools, list):
            raise PlanError(f"Task {task_id} dependencies and tools must be lists")
        try:
            dependencies = [int(d) for d in raw_deps]
        except (TypeError, ValueError):
            raise PlanError(f"Task {task_id} has non-integer dependencies")
        return cls(
            id=task_id,
            name=str(data.get("name") or f"Task {task_id}"),
            description=str(data.get("description", "")),
            tools=[str(t) for t in raw_tools],
            dependencies=dependencies,
            priority=Priority.parse(data.get("priority")),
            priority_reasoning=str(data.get("priorityReasoning", "")),
        )


@dataclass
class TaskResult:
    """Mutable execution record for one task, keyed by the task id."""

    id: int
    status: TaskStatus = TaskStatus.PENDING
    content: str = ""
    error: Optional[str] = None
    error_detail: Optional[str] = None
    active_tool: Optional[str] = None
    tool_used: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in _TERMINAL_STATUSES

    def reset(self) -> "TaskResult":
        """Return a fresh pending record for the same task."""
        return TaskResult(id=self.id)

    def copy(self) -> "TaskResult":
        return replace(self)


@dataclass
class MissionPlan:
    """Task graph plus tool catalog produced by the planner."""

    objective: str
    tasks: List[Task] = field(default_factory=list)
    tools: List[Tool] = field(default_factory=list)

    def __post_init__(self):
        seen = set()
        for task in self.tasks:
            if task.id in seen:
                raise PlanError(f"Duplicate task id {task.id}")
            seen.add(task.id)

    def get_task(self, task_id: int) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MissionPlan":
        """Parse the planner's JSON document (camelCase keys)."""
        if not isinstance(data, dict):
            raise PlanError("Plan must be a JSON object")
        raw_tasks = data.get("tasks")
        if not isinstance(raw_tasks, list):
            raise PlanError("Plan has no task list")
        tools = []
        for item in data.get("tools") or []:
            if isinstance(item, dict) and item.get("name"):
                tools.append(Tool(name=str(item["name"]),
                                  description=str(item.get("description", ""))))
        return cls(
            objective=str(data.get("improvedPrompt", "")),
            tasks=[Task.from_dict(item) for item in raw_tasks],
            tools=tools,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "improvedPrompt": self.objective,
            "tasks": [
                {
                    "id": t.id,
                    "name": t.name,
                    "description": t.description,
                    "tools": list(t.tools),
                    "dependencies": list(t.dependencies),
                    "priority": t.priority.value,
                    "priorityReasoning": t.priority_reasoning,
                }
                for t in self.tasks
            ],
            "tools": [{"name": t.name, "description": t.description} for t in self.tools],
        }
