"""ResultBoard: the mission's task graph and its live, thread-safe result store."""

import threading
from typing import Callable, Dict, Iterable, List, Optional, Set

from .tasks import MissionPlan, Task, TaskResult, TaskStatus

ResultListener = Callable[[TaskResult], None]


class ResultBoard:
    """Owns one :class:`TaskResult` per task and the only path that mutates them.

    Every write goes through :meth:`update`, an atomic read-modify-write under
    the lock of that single id. Writers to different ids never contend, and
    nothing replaces the whole map.
    """

    def __init__(self, plan: MissionPlan):
        self._tasks: Dict[int, Task] = {t.id: t for t in plan.tasks}
        self._results: Dict[int, TaskResult] = {t.id: TaskResult(id=t.id) for t in plan.tasks}
        self._locks: Dict[int, threading.Lock] = {t.id: threading.Lock() for t in plan.tasks}
        self._listeners: List[ResultListener] = []
        self._listeners_lock = threading.Lock()

    # ── Tasks ─────────────────────────────────────────────────

    def get_task(self, task_id: int) -> Optional[Task]:
        return self._tasks.get(task_id)

    def __contains__(self, task_id: int) -> bool:
        return task_id in self._tasks

    def task_name(self, task_id: int) -> str:
        task = self._tasks.get(task_id)
        return task.name if task else f"ID {task_id}"

    # ── Listeners ─────────────────────────────────────────────

    def subscribe(self, listener: ResultListener) -> None:
        with self._listeners_lock:
            self._listeners.append(listener)

    def _notify(self, result: TaskResult) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(result.copy())

    # ── Mutation ──────────────────────────────────────────────

    def update(self, task_id: int, fn: Callable[[TaskResult], TaskResult]) -> TaskResult:
        """Apply ``fn`` to the current record of ``task_id`` atomically.

        ``fn`` receives a private copy and returns the new record. Returns a
        copy of the stored record. Raises ``KeyError`` for unknown ids.
        """
        lock = self._locks[task_id]
        with lock:
            new = fn(self._results[task_id].copy())
            if new.id != task_id:
                raise ValueError(f"Update for task {task_id} returned record for {new.id}")
            self._results[task_id] = new
            stored = new.copy()
        self._notify(stored)
        return stored

    def reset(self, task_ids: Iterable[int]) -> List[int]:
        """Reset each id to a fresh pending record."""
        reset_ids = []
        for task_id in sorted(set(task_ids)):
            self.update(task_id, lambda r: r.reset())
            reset_ids.append(task_id)
        return reset_ids

    # ── Queries ───────────────────────────────────────────────

    def get(self, task_id: int) -> TaskResult:
        with self._locks[task_id]:
            return self._results[task_id].copy()

    def snapshot(self) -> Dict[int, TaskResult]:
        """Copy of every record; each is read under its own lock."""
        return {task_id: self.get(task_id) for task_id in self._tasks}

    def ids_with_status(self, status: TaskStatus) -> Set[int]:
        return {tid for tid, r in self.snapshot().items() if r.status == status}

    def get_runnable(self, running: Set[int]) -> List[Task]:
        """Pending, not running, and every dependency has succeeded.

        Dependencies naming ids outside the plan are never satisfied.
        """
        snapshot = self.snapshot()
        completed = {tid for tid, r in snapshot.items() if r.status == TaskStatus.SUCCESS}
        return [
            task for task in self._tasks.values()
            if snapshot[task.id].status == TaskStatus.PENDING
            and task.id not in running
            and all(dep in completed for dep in task.dependencies)
        ]

    def dependents_closure(self, task_id: int) -> Set[int]:
        """``task_id`` plus every task depending on it, directly or transitively."""
        closure = {task_id}
        queue = [task_id]
        while queue:
            current = queue.pop()
            for tid, task in self._tasks.items():
                if tid not in closure and current in task.dependencies:
                    closure.add(tid)
                    queue.append(tid)
        return closure
