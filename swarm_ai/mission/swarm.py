"""Swarm main entry point — wires config, planner, coordinator and summarizer."""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from rich.console import Console

from ..config import Config
from ..errors import SwarmError
from ..llm import LLMAdapter
from ..logger import get_logger, setup_logger
from ..theme import ACCENT as THEME_ACCENT, DIM as THEME_DIM, ERROR as THEME_ERROR
from .planner import ProjectManager
from .rendering import MissionRenderer, get_icon, set_use_unicode
from .resilience import RetryPolicy
from .scheduler import Coordinator, MissionListener, MissionOutcome
from .summarizer import DEFAULT_SNIPPET_CHARS, ExecutiveSummarizer, ExecutiveSummary
from .tasks import MissionPlan

_log = get_logger(__name__)


@dataclass
class SwarmConfig:
    """Retry and display settings for a mission.

    Parsed from the ``swarm:`` section of ``.swarm.conf.yml``.
    """

    max_retries: int = 5
    initial_delay: float = 1.0
    jitter_max: float = 1.0
    summary_retries: int = 3
    request_timeout: Optional[float] = None   # None = provider default
    snippet_chars: int = DEFAULT_SNIPPET_CHARS
    message_timeout: float = 30.0
    show_dag: bool = True

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "SwarmConfig":
        """Parse a SwarmConfig from a raw config dictionary (YAML swarm: section)."""
        if not data:
            return cls()

        display = data.get("display") or {}
        timeout = Config._coerce_seconds(data.get("request-timeout"), default=None)

        return cls(
            max_retries=Config._coerce_positive_int(
                data.get("max-retries", 5), default=5, min_value=1, max_value=20),
            initial_delay=Config._coerce_seconds(
                data.get("initial-delay"), default=1.0, max_value=60.0),
            jitter_max=Config._coerce_seconds(
                data.get("jitter-max"), default=1.0, max_value=60.0),
            summary_retries=Config._coerce_positive_int(
                data.get("summary-retries", 3), default=3, min_value=1, max_value=20),
            request_timeout=timeout or None,
            snippet_chars=Config._coerce_positive_int(
                data.get("snippet-chars", DEFAULT_SNIPPET_CHARS),
                default=DEFAULT_SNIPPET_CHARS, min_value=20, max_value=20000),
            message_timeout=Config._coerce_seconds(
                data.get("message-timeout"), default=30.0, max_value=600.0) or 30.0,
            show_dag=Config._coerce_bool(display.get("show-dag", True), default=True),
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(self.max_retries, self.initial_delay, self.jitter_max)

    def summary_policy(self) -> RetryPolicy:
        return RetryPolicy(self.summary_retries, self.initial_delay, self.jitter_max)


class Swarm:
    """Top-level mission interface: plan, launch, retry, summarize.

    One Swarm holds at most one plan and one coordinator at a time. The
    ``*_llm`` arguments replace the adapters built from config presets.
    """

    def __init__(
        self,
        config: Config,
        console: Optional[Console] = None,
        worker_llm=None,
        planner_llm=None,
        summary_llm=None,
        listeners: Optional[Iterable[MissionListener]] = None,
    ):
        self.config = config
        self.console = console or Console()

        swarm_raw = getattr(config, "swarm_config", None) or {}
        self.swarm_cfg = SwarmConfig.from_dict(swarm_raw)

        setup_logger(verbose=config.verbose, log_file=config.log_file)
        set_use_unicode(config.use_unicode)

        self.worker_llm = worker_llm or self._build_llm(config.worker_model)
        self.planner_llm = planner_llm or self._build_llm(config.planner_model)
        self.summary_llm = summary_llm or self._build_llm(config.summary_model)

        self.renderer = MissionRenderer(self.console, show_dag=self.swarm_cfg.show_dag)
        self.listeners: List[MissionListener] = list(listeners or [])
        self.planner = ProjectManager(self.planner_llm, self.swarm_cfg.retry_policy())
        self.summarizer = ExecutiveSummarizer(
            self.summary_llm,
            policy=self.swarm_cfg.summary_policy(),
            snippet_chars=self.swarm_cfg.snippet_chars,
        )
        self.current_plan: Optional[MissionPlan] = None
        self.coordinator: Optional[Coordinator] = None

    def _build_llm(self, preset_name: str) -> LLMAdapter:
        preset = self.config.get_preset(preset_name)
        return LLMAdapter(
            **preset.get_llm_kwargs(),
            request_timeout=self.swarm_cfg.request_timeout,
        )

    # ── Planning ──────────────────────────────────────────────

    def plan(self, message: str) -> MissionPlan:
        """Ask the planner for a (replacement) plan and show it."""
        if self.coordinator is not None and self.coordinator.is_active:
            raise SwarmError("Cannot re-plan while a mission is running")
        icon = get_icon("●")
        self.console.print(
            f"\n  [{THEME_ACCENT}]{icon} Swarm[/{THEME_ACCENT}] "
            f"[{THEME_DIM}]planning mission...[/{THEME_DIM}]"
        )
        plan = self.planner.ask(message)
        self.current_plan = plan
        self.coordinator = None
        self.renderer.render_plan(plan)
        return plan

    # ── Execution ─────────────────────────────────────────────

    def launch(self, plan: Optional[MissionPlan] = None) -> Coordinator:
        """Start executing ``plan`` (default: the last planned one) in the background."""
        if plan is not None:
            self.current_plan = plan
            self.renderer.render_plan(plan)
        if self.current_plan is None:
            raise SwarmError("No mission plan to launch")
        if self.coordinator is not None and self.coordinator.is_active:
            raise SwarmError("Mission is already running")

        self.coordinator = Coordinator(
            plan=self.current_plan,
            llm=self.worker_llm,
            policy=self.swarm_cfg.retry_policy(),
            listeners=[self.renderer, *self.listeners],
            message_timeout=self.swarm_cfg.message_timeout,
        )
        _log.info("Launching mission with %d task(s)", len(self.current_plan.tasks))
        self.coordinator.start()
        return self.coordinator

    def wait(self, timeout: Optional[float] = None) -> Optional[MissionOutcome]:
        return self._require_coordinator().wait(timeout)

    def run(self, message: str) -> Optional[MissionOutcome]:
        """Plan, launch and wait for one mission end-to-end."""
        if not message.strip():
            self.console.print(f"  [{THEME_DIM}]Usage: describe the mission to plan[/{THEME_DIM}]")
            return None
        self.plan(message)
        coordinator = self.launch()
        try:
            return coordinator.wait()
        except KeyboardInterrupt:
            coordinator.shutdown()
            self.console.print(f"\n  [{THEME_ERROR}]Mission interrupted by user[/{THEME_ERROR}]")
            return None

    # ── Retry ─────────────────────────────────────────────────

    def retry_task(self, task_id: int) -> List[int]:
        return self._require_coordinator().retry_task(task_id)

    def retry_failed(self) -> List[int]:
        return self._require_coordinator().retry_failed()

    # ── Reporting ─────────────────────────────────────────────

    def summarize(self) -> ExecutiveSummary:
        """Generate and show the executive summary of the finished mission."""
        coordinator = self._require_coordinator()
        if coordinator.is_active:
            raise SwarmError("Mission is still running")
        summary = self.summarizer.summarize(self.current_plan, coordinator.board.snapshot())
        self.renderer.render_executive_summary(summary)
        return summary

    def reset(self) -> None:
        """Forget the plan, planner history and results."""
        if self.coordinator is not None and self.coordinator.is_active:
            self.coordinator.shutdown()
        self.coordinator = None
        self.current_plan = None
        self.planner.reset()

    def _require_coordinator(self) -> Coordinator:
        if self.coordinator is None:
            raise SwarmError("No mission has been launched")
        return self.coordinator
