"""Mission console rendering: plan, per-task events, and end-of-mission tables."""

import threading
from typing import Dict, List, Mapping, Optional

from rich.console import Console, Group
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .. import theme
from ..errors import DependencyDeadlock
from .scheduler import MissionListener, MissionOutcome
from .summarizer import ExecutiveSummary
from .tasks import MissionPlan, Task, TaskResult, TaskStatus

# Flipped from config.use_unicode by the Swarm facade.
_USE_UNICODE = True

_ICON_MAP = {
    "✓": "[OK]",
    "✗": "[X]",
    "▸": ">",
    "○": "o",
    "●": "*",
    "↓": "|",
}


def set_use_unicode(enabled: bool) -> None:
    global _USE_UNICODE
    _USE_UNICODE = enabled


def get_icon(unicode_icon: str) -> str:
    if _USE_UNICODE:
        return unicode_icon
    return _ICON_MAP.get(unicode_icon, unicode_icon)


# Status display: (icon_char, color, label)
_STATUS_DISPLAY = {
    TaskStatus.PENDING: ("○", theme.DIM, "pending"),
    TaskStatus.SUCCESS: ("✓", theme.SUCCESS, "success"),
    TaskStatus.ERROR:   ("✗", theme.ERROR, "error"),
}


def _topo_layers(tasks: List[Task]) -> List[List[Task]]:
    """Group tasks into dependency layers; unresolvable leftovers form a final layer."""
    ids = {t.id for t in tasks}
    placed: set = set()
    layers: List[List[Task]] = []
    remaining = list(tasks)

    while remaining:
        layer = [
            t for t in remaining
            if all(d in placed or d not in ids for d in t.dependencies)
        ]
        if not layer:
            layer = remaining[:]  # cycle fallback
        for t in layer:
            placed.add(t.id)
        remaining = [t for t in remaining if t.id not in placed]
        layers.append(layer)
    return layers


class MissionRenderer(MissionListener):
    """Prints mission progress to a rich console. Safe to call from any thread."""

    def __init__(self, console: Optional[Console] = None, show_dag: bool = True):
        self.console = console or Console()
        self.show_dag = show_dag
        self._lock = threading.Lock()
        self._tasks: Dict[int, Task] = {}

    def _print(self, markup: str) -> None:
        with self._lock:
            self.console.print(f"  {markup}")

    # ── Plan ──────────────────────────────────────────────────

    def render_plan(self, plan: MissionPlan) -> None:
        self._tasks = {t.id: t for t in plan.tasks}
        table = Table(
            show_header=True,
            header_style=f"bold {theme.ACCENT}",
            border_style=theme.BORDER,
            padding=(0, 1),
        )
        table.add_column("ID", style="bold", justify="right")
        table.add_column("Task", min_width=16)
        table.add_column("Priority", min_width=8)
        table.add_column("Tools", min_width=10)
        table.add_column("Depends On", min_width=10)

        for task in plan.tasks:
            color = theme.PRIORITY_COLORS.get(task.priority.value, theme.DIM)
            table.add_row(
                str(task.id),
                task.name,
                f"[{color}]{task.priority.value}[/{color}]",
                ", ".join(task.tools) if task.tools else "-",
                ", ".join(map(str, task.dependencies)) if task.dependencies else "-",
            )

        parts = [table]
        if self.show_dag and plan.tasks:
            parts.extend([Text(""), self._build_layer_graph(plan.tasks)])

        with self._lock:
            self.console.print(Panel(
                Group(*parts),
                title=f"[bold {theme.ACCENT}] Mission Plan [/bold {theme.ACCENT}]",
                subtitle=f"[{theme.DIM}]{len(plan.tasks)} tasks, {len(plan.tools)} tools[/{theme.DIM}]",
                title_align="left",
                border_style=theme.BORDER,
                padding=(0, 1),
            ))

    def _build_layer_graph(
        self,
        tasks: List[Task],
        results: Optional[Mapping[int, TaskResult]] = None,
    ) -> Text:
        """One line per ready layer, e.g. ``○ 1 Api | ○ 2 Ui``, joined by ↓ rows."""
        text = Text()
        for i, layer in enumerate(_topo_layers(tasks)):
            if i > 0:
                text.append(f"  {get_icon('↓')}\n", style=theme.DIM)
            text.append("  ")
            for j, task in enumerate(layer):
                if j > 0:
                    text.append(" | ", style=theme.DIM)
                status = results[task.id].status if results and task.id in results else TaskStatus.PENDING
                icon_char, color, _ = _STATUS_DISPLAY[status]
                text.append(f"{get_icon(icon_char)} ", style=color)
                text.append(f"{task.id} {task.name}", style="bold")
            text.append("\n")
        return text

    # ── Listener hooks ────────────────────────────────────────

    def on_task_started(self, task: Task) -> None:
        self._tasks.setdefault(task.id, task)
        self._print(
            f"[{theme.INFO}]{get_icon('▸')} {task.name}[/{theme.INFO}] "
            f"[{theme.DIM}]starting task {task.id}[/{theme.DIM}]"
        )

    def on_task_finished(self, task: Task, result: TaskResult) -> None:
        tool = f" via {result.tool_used}" if result.tool_used else ""
        if result.status == TaskStatus.SUCCESS:
            self._print(
                f"[{theme.SUCCESS}]{get_icon('✓')}[/{theme.SUCCESS}] {task.name} "
                f"[{theme.DIM}]done ({len(result.content):,} chars{tool})[/{theme.DIM}]"
            )
        else:
            brief = (result.error or "unknown")[:60]
            self._print(
                f"[{theme.ERROR}]{get_icon('✗')}[/{theme.ERROR}] {task.name} "
                f"[{theme.ERROR}]{brief}[/{theme.ERROR}]"
            )

    def on_mission_complete(self, outcome: MissionOutcome) -> None:
        self.render_results(outcome.results)

    def on_deadlock(self, error: DependencyDeadlock, outcome: MissionOutcome) -> None:
        with self._lock:
            self.console.print(Panel(
                Text(str(error), style=theme.ERROR),
                title=f"[bold {theme.ERROR}] Mission Halted [/bold {theme.ERROR}]",
                title_align="left",
                border_style=theme.ERROR,
                padding=(0, 1),
            ))
        self.render_results(outcome.results)

    # ── Results ───────────────────────────────────────────────

    def render_results(self, results: Mapping[int, TaskResult]) -> None:
        table = Table(
            show_header=True,
            header_style=f"bold {theme.ACCENT}",
            border_style=theme.BORDER,
            padding=(0, 1),
        )
        table.add_column("ID", justify="right")
        table.add_column("Task", min_width=16)
        table.add_column("Status", min_width=8)
        table.add_column("Tool", min_width=8)
        table.add_column("Output", justify="right")

        succeeded = 0
        for task_id in sorted(results):
            r = results[task_id]
            task = self._tasks.get(task_id)
            icon_char, color, label = _STATUS_DISPLAY[r.status]
            if r.status == TaskStatus.SUCCESS:
                succeeded += 1
            table.add_row(
                str(task_id),
                task.name if task else f"ID {task_id}",
                f"[{color}]{get_icon(icon_char)} {label}[/{color}]",
                r.tool_used or "-",
                f"{len(r.content):,} chars" if r.content else "-",
            )

        footer = f"{succeeded}/{len(results)} succeeded"
        with self._lock:
            self.console.print(Panel(
                table,
                title=f"[bold {theme.ACCENT}] Mission Results [/bold {theme.ACCENT}]",
                subtitle=f"[{theme.DIM}]{footer}[/{theme.DIM}]",
                title_align="left",
                border_style=theme.BORDER,
                padding=(0, 1),
            ))

    def render_task_detail(self, task: Task, result: TaskResult) -> None:
        """Full output of one task, plus the error trace when it failed."""
        parts = [Markdown(result.content or "_(no output)_")]
        if result.status == TaskStatus.ERROR:
            parts.append(Text(""))
            parts.append(Text(result.error or "", style=f"bold {theme.ERROR}"))
            if result.error_detail:
                parts.append(Text(result.error_detail, style=theme.DIM))
        _, color, label = _STATUS_DISPLAY[result.status]
        with self._lock:
            self.console.print(Panel(
                Group(*parts),
                title=f"[bold]{task.id} {task.name}[/bold] [{color}]{label}[/{color}]",
                title_align="left",
                border_style=color,
                padding=(0, 1),
            ))

    def render_executive_summary(self, summary: ExecutiveSummary) -> None:
        kpis = Table(show_header=True, header_style=f"bold {theme.ACCENT}",
                     border_style=theme.BORDER, padding=(0, 1))
        kpis.add_column("KPI", min_width=12)
        kpis.add_column("Value", justify="right")
        kpis.add_column("Description")
        for kpi in summary.kpis:
            kpis.add_row(kpi.name, f"[bold]{kpi.value}[/bold]", kpi.description)

        usage = ", ".join(f"{u.name} x{u.count}" for u in summary.tool_usage) or "none"
        with self._lock:
            self.console.print(Panel(
                Group(
                    Text(summary.summary),
                    Text(""),
                    kpis,
                    Text(""),
                    Text(f"Tool usage: {usage}", style=theme.DIM),
                    Text(""),
                    Text("Recommendations", style=f"bold {theme.ACCENT}"),
                    Text(summary.recommendations),
                ),
                title=(
                    f"[bold {theme.ACCENT}] Executive Summary [/bold {theme.ACCENT}] "
                    f"[{theme.DIM}]{summary.overall_outcome}[/{theme.DIM}]"
                ),
                title_align="left",
                border_style=theme.BORDER,
                padding=(0, 1),
            ))
