"""Coordinator: dependency-driven dispatch loop with deadlock detection and retry."""

import random
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Set

from ..errors import DependencyDeadlock, RetryRejectedError
from ..logger import get_logger
from .board import ResultBoard
from .executor import TaskExecutor
from .messages import MessageBus, MessageType, MissionMessage
from .resilience import RetryPolicy
from .tasks import MissionPlan, Task, TaskResult, TaskStatus

_log = get_logger(__name__)

DEADLOCK_MESSAGE = "Deadlock: dependency not met."

# How long the loop blocks on its inbox before re-checking state (seconds).
_DEFAULT_MESSAGE_TIMEOUT = 30.0


@dataclass
class MissionOutcome:
    """Terminal verdict of one run of the dispatch loop."""

    completed: bool
    deadlocked: bool = False
    error: Optional[DependencyDeadlock] = None
    results: Dict[int, TaskResult] = field(default_factory=dict)

    @property
    def succeeded(self) -> List[int]:
        return sorted(tid for tid, r in self.results.items() if r.status == TaskStatus.SUCCESS)

    @property
    def failed(self) -> List[int]:
        return sorted(tid for tid, r in self.results.items() if r.status == TaskStatus.ERROR)


class MissionListener:
    """Observer hooks called by the coordinator. All methods are optional no-ops.

    ``on_task_updated`` runs on whichever thread wrote the result (usually an
    executor); the others run on the coordinator loop thread.
    """

    def on_task_started(self, task: Task) -> None:
        pass

    def on_task_updated(self, result: TaskResult) -> None:
        pass

    def on_task_finished(self, task: Task, result: TaskResult) -> None:
        pass

    def on_mission_complete(self, outcome: MissionOutcome) -> None:
        pass

    def on_deadlock(self, error: DependencyDeadlock, outcome: MissionOutcome) -> None:
        pass


ExecutorFactory = Callable[[Task], threading.Thread]


class Coordinator:
    """Runs a mission: dispatches every ready task at once, rescans on each event.

    The runnable set is recomputed from scratch whenever an executor
    finishes or a retry resets state. The loop ends when nothing is running
    and nothing is pending (complete) or when nothing is running and no
    pending task can ever start (deadlock).
    """

    def __init__(
        self,
        plan: MissionPlan,
        llm,
        policy: Optional[RetryPolicy] = None,
        listeners: Optional[List[MissionListener]] = None,
        executor_factory: Optional[ExecutorFactory] = None,
        rng: Optional[random.Random] = None,
        message_timeout: float = _DEFAULT_MESSAGE_TIMEOUT,
    ):
        self.plan = plan
        self.llm = llm
        self.policy = policy or RetryPolicy()
        self.listeners: List[MissionListener] = list(listeners or [])
        self.rng = rng or random.Random()
        self.message_timeout = message_timeout
        self._executor_factory = executor_factory or self._default_executor
        self.board = ResultBoard(plan)
        self.bus = MessageBus()
        self._running: Set[int] = set()
        self._state_lock = threading.RLock()
        self._active = False
        self._loop_thread: Optional[threading.Thread] = None
        self._run_done = threading.Event()
        self._outcome: Optional[MissionOutcome] = None
        self.board.subscribe(self._on_result_changed)

    # ── Public API ────────────────────────────────────────────

    @property
    def running(self) -> Set[int]:
        with self._state_lock:
            return set(self._running)

    @property
    def is_active(self) -> bool:
        with self._state_lock:
            return self._active

    @property
    def outcome(self) -> Optional[MissionOutcome]:
        """Verdict of the most recent finished run (None before the first)."""
        with self._state_lock:
            return self._outcome

    def add_listener(self, listener: MissionListener) -> None:
        self.listeners.append(listener)

    def start(self) -> None:
        """Start the dispatch loop on a background thread (no-op if already active)."""
        with self._state_lock:
            if self._active:
                return
            self._active = True
            done = threading.Event()
            self._run_done = done
            self._loop_thread = threading.Thread(
                target=self._event_loop, args=(done,),
                name="mission-coordinator", daemon=True,
            )
            self._loop_thread.start()

    def wait(self, timeout: Optional[float] = None) -> Optional[MissionOutcome]:
        """Block until the current run ends. Returns None on timeout."""
        with self._state_lock:
            done = self._run_done
        if not done.wait(timeout):
            return None
        return self.outcome

    def run(self, timeout: Optional[float] = None) -> Optional[MissionOutcome]:
        self.start()
        return self.wait(timeout)

    def shutdown(self) -> None:
        """Stop the loop without a verdict. In-flight calls are not cancelled."""
        self.bus.send(MissionMessage(type=MessageType.SHUTDOWN))

    # ── Retry / re-arm ────────────────────────────────────────

    def retry_task(self, task_id: int) -> List[int]:
        """Reset ``task_id`` and everything downstream of it, then resume.

        Returns the reset ids. Raises :class:`RetryRejectedError` if the task
        is unknown, not terminal, or if any task to be reset is running.
        """
        with self._state_lock:
            self._reap_finished()
            if task_id not in self.board:
                raise RetryRejectedError(task_id, "unknown task")
            current = self.board.get(task_id)
            if not current.is_terminal:
                raise RetryRejectedError(task_id, f"task is still {current.status.value}")
            closure = self.board.dependents_closure(task_id)
            busy = closure & self._running
            if busy:
                raise RetryRejectedError(
                    task_id, f"task(s) still running: {', '.join(map(str, sorted(busy)))}",
                )
            reset_ids = self.board.reset(closure)
            _log.info("Retrying task %s; reset %s", task_id, reset_ids)
            self._resume()
        return reset_ids

    def retry_failed(self) -> List[int]:
        """Reset every failed task to pending (no cascade), then resume."""
        with self._state_lock:
            self._reap_finished()
            failed = self.board.ids_with_status(TaskStatus.ERROR) - self._running
            if not failed:
                return []
            reset_ids = self.board.reset(failed)
            _log.info("Retrying %d failed task(s): %s", len(reset_ids), reset_ids)
            self._resume()
        return reset_ids

    def _reap_finished(self) -> None:
        """Settle messages left in the inbox after the loop stopped.

        Executors still in flight at shutdown post TASK_FINISHED to an inbox
        nobody reads; their ids would otherwise stay in ``_running``. Stale
        SHUTDOWN or RESCAN messages are dropped with them. Caller holds
        _state_lock.
        """
        if self._active:
            return
        for msg in self.bus.drain():
            if msg.type == MessageType.TASK_FINISHED:
                self._running.discard(msg.task_id)

    def _resume(self) -> None:
        # Caller holds _state_lock.
        if self._active:
            self.bus.send(MissionMessage(type=MessageType.RESCAN))
        else:
            self.start()

    # ── Event loop ────────────────────────────────────────────

    def _event_loop(self, done: threading.Event) -> None:
        outcome: Optional[MissionOutcome] = None
        try:
            outcome = self._run_until_verdict()
            if outcome.deadlocked:
                self._emit("on_deadlock", outcome.error, outcome)
            elif outcome.completed:
                self._emit("on_mission_complete", outcome)
        finally:
            if outcome is None:
                # The loop died unexpectedly; never leave waiters hanging.
                with self._state_lock:
                    self._finish(MissionOutcome(completed=False, results=self.board.snapshot()))
            done.set()

    def _run_until_verdict(self) -> MissionOutcome:
        while True:
            with self._state_lock:
                outcome = self._step()
                if outcome is not None:
                    self._finish(outcome)
                    return outcome

            msg = self.bus.recv(timeout=self.message_timeout)
            if msg is None:
                continue
            if msg.type == MessageType.TASK_FINISHED:
                self._on_task_finished(msg)
            elif msg.type == MessageType.SHUTDOWN:
                with self._state_lock:
                    outcome = MissionOutcome(completed=False, results=self.board.snapshot())
                    self._finish(outcome)
                    in_flight = len(self._running)
                _log.info("Mission loop shut down with %d task(s) in flight", in_flight)
                return outcome
            # RESCAN needs no handling beyond the next _step().

    def _finish(self, outcome: MissionOutcome) -> None:
        # Caller holds _state_lock.
        self._active = False
        self._outcome = outcome

    def _step(self) -> Optional[MissionOutcome]:
        """Dispatch the ready layer or return a verdict. Caller holds _state_lock."""
        runnable = self.board.get_runnable(self._running)
        if runnable:
            for task in runnable:
                self._dispatch(task)
            return None
        if self._running:
            return None

        pending = sorted(self.board.ids_with_status(TaskStatus.PENDING))
        if not pending:
            outcome = MissionOutcome(completed=True, results=self.board.snapshot())
            _log.info("Mission complete: %d succeeded, %d failed",
                      len(outcome.succeeded), len(outcome.failed))
            return outcome

        error = DependencyDeadlock(pending, [self.board.task_name(tid) for tid in pending])
        _log.error("%s", error)
        for task_id in pending:
            self.board.update(task_id, lambda r: replace(
                r, status=TaskStatus.ERROR, error=DEADLOCK_MESSAGE, active_tool=None,
            ))
        return MissionOutcome(
            completed=False, deadlocked=True, error=error, results=self.board.snapshot(),
        )

    def _dispatch(self, task: Task) -> None:
        self._running.add(task.id)
        executor = self._executor_factory(task)
        _log.info("Dispatching task %s (%s)", task.id, task.name)
        self._emit("on_task_started", task)
        executor.start()

    def _default_executor(self, task: Task) -> threading.Thread:
        return TaskExecutor(
            task=task,
            objective=self.plan.objective,
            board=self.board,
            llm=self.llm,
            policy=self.policy,
            bus=self.bus,
            rng=self.rng,
        )

    # ── Message handlers ──────────────────────────────────────

    def _on_task_finished(self, msg: MissionMessage) -> None:
        with self._state_lock:
            self._running.discard(msg.task_id)
        task = self.board.get_task(msg.task_id)
        if task is not None:
            self._emit("on_task_finished", task, self.board.get(msg.task_id))

    def _on_result_changed(self, result: TaskResult) -> None:
        self._emit("on_task_updated", result)

    def _emit(self, hook: str, *args) -> None:
        for listener in list(self.listeners):
            try:
                getattr(listener, hook)(*args)
            except Exception:
                _log.exception("Listener %r failed in %s", listener, hook)
