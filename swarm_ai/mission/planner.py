"""ProjectManager: turns a natural-language mission into a task graph."""

import json
from typing import Dict, List, Optional

from ..errors import PlanError, RemoteCallError
from ..logger import get_logger
from .resilience import RetryPolicy, complete_structured
from .tasks import MissionPlan

_log = get_logger(__name__)

PLANNER_SYSTEM_PROMPT = """\
You are a senior software architect and project manager for a multi-agent AI system.
Break the user's high-level project request into a detailed, executable plan.

Respond ONLY with a JSON object of the form
{ "improvedPrompt": string, "tasks": Task[], "tools": Tool[] }.

Task rules:
1. Every task has a unique integer "id", starting from 0.
2. "dependencies" lists the ids of tasks that must finish before this task starts;
   use [] for independent tasks.
3. Keep each task small and focused on a single responsibility.
4. "priority" is one of "High", "Medium" or "Low", judged by how critical the task is
   and where it sits in the dependency chain; tasks on the critical path are "High".
   Justify it briefly in "priorityReasoning".
5. "tools" names the tools the task needs, taken from the top-level "tools" list.

When the user gives feedback, regenerate the ENTIRE plan, re-evaluating every task,
dependency and priority. Never add conversational text outside the JSON object.
"""

PLAN_SCHEMA = {
    "type": "object",
    "properties": {
        "improvedPrompt": {
            "type": "string",
            "description": "A detailed and improved prompt for the swarm to execute.",
        },
        "tasks": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "integer"},
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                    "tools": {"type": "array", "items": {"type": "string"}},
                    "dependencies": {"type": "array", "items": {"type": "integer"}},
                    "priority": {"type": "string", "enum": ["High", "Medium", "Low"]},
                    "priorityReasoning": {"type": "string"},
                },
                "required": [
                    "id", "name", "description", "tools",
                    "dependencies", "priority", "priorityReasoning",
                ],
            },
        },
        "tools": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                },
                "required": ["name", "description"],
            },
        },
    },
    "required": ["improvedPrompt", "tasks", "tools"],
}


class ProjectManager:
    """Conversational planner; every reply is a complete replacement plan."""

    def __init__(self, llm, policy: Optional[RetryPolicy] = None):
        self.llm = llm
        self.policy = policy or RetryPolicy()
        self.history: List[Dict[str, str]] = []

    def ask(self, message: str) -> MissionPlan:
        if not message.strip():
            raise PlanError("Mission description is empty")
        try:
            data = complete_structured(
                self.llm,
                message,
                system=PLANNER_SYSTEM_PROMPT,
                schema=PLAN_SCHEMA,
                schema_name="mission_plan",
                history=self.history,
                policy=self.policy,
                label="Planner",
            )
        except RemoteCallError as e:
            raise PlanError(f"Failed to get plan from Project Manager: {e}") from e

        plan = MissionPlan.from_dict(data)
        self.history.append({"role": "user", "content": message})
        self.history.append({"role": "assistant", "content": json.dumps(data)})
        _log.info("Planner produced %d task(s), %d tool(s)", len(plan.tasks), len(plan.tools))
        return plan

    def reset(self) -> None:
        self.history.clear()
