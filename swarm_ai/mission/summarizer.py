"""Post-mission executive summary built from the final task results."""

import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..errors import RemoteCallError, SummaryError
from ..logger import get_logger
from .resilience import RetryPolicy, complete_structured
from .tasks import MissionPlan, TaskResult, TaskStatus

_log = get_logger(__name__)

# Characters of successful output passed to the summarizer per task.
DEFAULT_SNIPPET_CHARS = 200

SUMMARY_SYSTEM_PROMPT = """\
You are an AI project manager writing a post-mission executive summary.
From the mission objective, the final task results and the tool usage counts,
produce one JSON object that follows the provided schema.

Be insightful and critical:
- overallOutcome: judge from the number of successful vs. failed tasks.
- summary: what the system attempted and what it achieved, including significant failures.
- kpis: at least 3 KPIs, e.g. success rate, error rate, tool efficiency.
- toolUsage: go beyond counts and comment on whether the right tools were used.
- recommendations: specific next steps; what to fix after a failure, or what to
  build next after a success.
"""

SUMMARY_SCHEMA = {
    "type": "object",
    "properties": {
        "overallOutcome": {"type": "string"},
        "summary": {"type": "string"},
        "kpis": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "value": {"type": "string"},
                    "description": {"type": "string"},
                },
                "required": ["name", "value", "description"],
            },
        },
        "toolUsage": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "count": {"type": "integer"},
                },
                "required": ["name", "count"],
            },
        },
        "recommendations": {"type": "string"},
    },
    "required": ["overallOutcome", "summary", "kpis", "toolUsage", "recommendations"],
}


@dataclass
class KPI:
    name: str
    value: str
    description: str = ""


@dataclass
class ToolUsage:
    name: str
    count: int


@dataclass
class ExecutiveSummary:
    overall_outcome: str
    summary: str
    kpis: List[KPI] = field(default_factory=list)
    tool_usage: List[ToolUsage] = field(default_factory=list)
    recommendations: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutiveSummary":
        if not isinstance(data, dict):
            raise SummaryError("Summary must be a JSON object")
        try:
            tool_usage = [
                ToolUsage(name=str(t.get("name", "")), count=int(t.get("count", 0) or 0))
                for t in data.get("toolUsage") or [] if isinstance(t, dict)
            ]
        except (TypeError, ValueError) as e:
            raise SummaryError(f"Malformed tool usage in summary: {e}") from e
        return cls(
            overall_outcome=str(data.get("overallOutcome", "")),
            summary=str(data.get("summary", "")),
            kpis=[
                KPI(name=str(k.get("name", "")), value=str(k.get("value", "")),
                    description=str(k.get("description", "")))
                for k in data.get("kpis") or [] if isinstance(k, dict)
            ],
            tool_usage=tool_usage,
            recommendations=str(data.get("recommendations", "")),
        )


def tool_usage_counts(results: Mapping[int, TaskResult]) -> List[ToolUsage]:
    """Count ``tool_used`` across results, most used first."""
    counts = Counter(r.tool_used for r in results.values() if r.tool_used)
    return [ToolUsage(name=name, count=count) for name, count in counts.most_common()]


def format_task_results(
    plan: MissionPlan,
    results: Mapping[int, TaskResult],
    snippet_chars: int = DEFAULT_SNIPPET_CHARS,
) -> List[Dict[str, Any]]:
    formatted = []
    for task_id in sorted(results):
        result = results[task_id]
        task = plan.get_task(task_id)
        entry: Dict[str, Any] = {
            "id": task_id,
            "taskName": task.name if task else "Unknown Task",
            "status": result.status.value,
        }
        if result.status == TaskStatus.SUCCESS:
            entry["output_snippet"] = result.content[:snippet_chars] + "..."
        if result.error:
            entry["error"] = result.error
        formatted.append(entry)
    return formatted


def build_summary_prompt(
    plan: MissionPlan,
    results: Mapping[int, TaskResult],
    snippet_chars: int = DEFAULT_SNIPPET_CHARS,
) -> str:
    usage = tool_usage_counts(results)
    roster = ", ".join(f"{t.name} (Priority: {t.priority.value})" for t in plan.tasks)
    usage_text = (
        json.dumps([{"name": u.name, "count": u.count} for u in usage], indent=2)
        if usage else "No tools were used."
    )
    return (
        f"**Mission Objective:** {plan.objective}\n\n"
        f"**Task Roster:** {roster}\n\n"
        f"**Tool Usage Summary:**\n{usage_text}\n\n"
        f"**Final Task Results:**\n"
        f"{json.dumps(format_task_results(plan, results, snippet_chars), indent=2)}\n\n"
        "Please generate the executive summary based on these results."
    )


class ExecutiveSummarizer:
    """Generates the end-of-mission report with its own retry budget."""

    def __init__(self, llm, policy: Optional[RetryPolicy] = None,
                 snippet_chars: int = DEFAULT_SNIPPET_CHARS):
        self.llm = llm
        self.policy = policy or RetryPolicy(max_retries=3)
        self.snippet_chars = snippet_chars

    def summarize(self, plan: MissionPlan, results: Mapping[int, TaskResult]) -> ExecutiveSummary:
        prompt = build_summary_prompt(plan, results, self.snippet_chars)
        try:
            data = complete_structured(
                self.llm,
                prompt,
                system=SUMMARY_SYSTEM_PROMPT,
                schema=SUMMARY_SCHEMA,
                schema_name="executive_summary",
                policy=self.policy,
                label="Summary",
            )
        except RemoteCallError as e:
            raise SummaryError(f"Failed to generate executive summary: {e}") from e
        summary = ExecutiveSummary.from_dict(data)
        _log.info("Executive summary: %s", summary.overall_outcome)
        return summary
