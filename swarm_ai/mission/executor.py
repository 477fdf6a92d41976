"""TaskExecutor: short-lived thread that streams one task's output into its result."""

import random
import threading
import time
import traceback
from dataclasses import replace
from typing import Optional

from ..errors import RemoteCallError, TaskExecutionError
from ..logger import get_logger
from .board import ResultBoard
from .messages import MessageBus, MessageType, MissionMessage
from .resilience import RetryPolicy, stream_with_retry
from .tasks import Task, TaskResult, TaskStatus

_log = get_logger(__name__)

TASK_PROMPT = """\
**Overall Mission:**
{objective}

---

**Your Task ({name}):**
{description}

**Task Priority:** {priority} ({reasoning})

**Tools available to you:**
{tools}

---

Now, please execute your task. Provide your output below."""


def build_task_prompt(task: Task, objective: str) -> str:
    return TASK_PROMPT.format(
        objective=objective,
        name=task.name,
        description=task.description,
        priority=task.priority.value,
        reasoning=task.priority_reasoning,
        tools=", ".join(task.tools) if task.tools else "None",
    )


class TaskExecutor(threading.Thread):
    """Runs a single task to a terminal status.

    The executor is the only writer of its task's result while it runs and
    never raises: every outcome, including unexpected exceptions, ends up on
    the result record. When run as a thread it reports back to the
    coordinator with a TASK_FINISHED message.
    """

    def __init__(
        self,
        task: Task,
        objective: str,
        board: ResultBoard,
        llm,
        policy: Optional[RetryPolicy] = None,
        bus: Optional[MessageBus] = None,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(name=f"task-{task.id}", daemon=True)
        self.task = task
        self.objective = objective
        self.board = board
        self.llm = llm
        self.policy = policy or RetryPolicy()
        self.bus = bus
        self.rng = rng or random.Random()

    def run(self):
        t0 = time.perf_counter()
        result = None
        try:
            result = self.execute()
        finally:
            if self.bus is not None:
                self.bus.send(MissionMessage(
                    type=MessageType.TASK_FINISHED,
                    task_id=self.task.id,
                    content=result.status.value if result else TaskStatus.ERROR.value,
                    metadata={"elapsed": time.perf_counter() - t0},
                ))

    def pick_tool(self) -> Optional[str]:
        """Simulated tool choice; display-only, has no effect on the call."""
        if not self.task.tools:
            return None
        return self.rng.choice(self.task.tools)

    def execute(self) -> TaskResult:
        task_id = self.task.id
        tool = self.pick_tool()
        if tool:
            self.board.update(task_id, lambda r: replace(r, active_tool=tool))

        prompt = build_task_prompt(self.task, self.objective)
        try:
            for event, data in stream_with_retry(
                self.llm, prompt, self.policy, label=f"task {task_id} stream",
            ):
                if event == "attempt":
                    # A retried attempt starts from scratch; drop the partial text.
                    self.board.update(task_id, lambda r: replace(r, content=""))
                elif event == "text":
                    self.board.update(
                        task_id, lambda r, chunk=data: replace(r, content=r.content + chunk),
                    )
        except RemoteCallError as e:
            return self._fail(tool, TaskExecutionError(
                task_id, str(e), detail=traceback.format_exc(),
            ))
        except Exception as e:
            _log.exception("Task %s: unexpected executor failure", task_id)
            return self._fail(tool, TaskExecutionError(
                task_id, f"{type(e).__name__}: {e}", detail=traceback.format_exc(),
            ))

        _log.info("Task %s (%s) succeeded", task_id, self.task.name)
        return self.board.update(task_id, lambda r: replace(
            r, status=TaskStatus.SUCCESS, active_tool=None, tool_used=tool,
        ))

    def _fail(self, tool: Optional[str], error: TaskExecutionError) -> TaskResult:
        _log.warning("Task %s (%s) failed: %s", error.task_id, self.task.name, error)
        return self.board.update(error.task_id, lambda r: replace(
            r,
            status=TaskStatus.ERROR,
            error=str(error) or "An unknown stream error occurred",
            error_detail=error.detail,
            active_tool=None,
            tool_used=tool,
        ))
