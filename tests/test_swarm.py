"""Tests for SwarmConfig parsing and the Swarm facade."""

import io
import json

import pytest
from rich.console import Console

from swarm_ai.config import Config
from swarm_ai.errors import PlanError, RemoteCallError, SwarmError
from swarm_ai.llm import LLMAdapter
from swarm_ai.mission.scheduler import MissionListener
from swarm_ai.mission.swarm import Swarm, SwarmConfig
from swarm_ai.mission.tasks import TaskStatus


PLAN_DOC = {
    "improvedPrompt": "Write a report",
    "tasks": [
        {"id": 0, "name": "Research", "description": "Find facts", "tools": ["search"],
         "dependencies": [], "priority": "High", "priorityReasoning": "first"},
        {"id": 1, "name": "Draft", "description": "Write it", "tools": [],
         "dependencies": [0], "priority": "Medium", "priorityReasoning": "second"},
    ],
    "tools": [{"name": "search", "description": "Web search"}],
}

SUMMARY_DOC = {
    "overallOutcome": "Success",
    "summary": "All done.",
    "kpis": [{"name": "Success rate", "value": "100%", "description": "2/2"}],
    "toolUsage": [{"name": "search", "count": 1}],
    "recommendations": "Publish.",
}


class TestSwarmConfigDefaults:

    def test_defaults(self):
        cfg = SwarmConfig()
        assert cfg.max_retries == 5
        assert cfg.initial_delay == 1.0
        assert cfg.jitter_max == 1.0
        assert cfg.summary_retries == 3
        assert cfg.request_timeout is None
        assert cfg.snippet_chars == 200
        assert cfg.show_dag is True

    def test_from_none(self):
        assert SwarmConfig.from_dict(None) == SwarmConfig()


class TestSwarmConfigFromDict:

    def test_custom_values(self, sample_config_data):
        cfg = SwarmConfig.from_dict(sample_config_data["swarm"])
        assert cfg.max_retries == 4
        assert cfg.initial_delay == 0.5
        assert cfg.jitter_max == 0.25
        assert cfg.summary_retries == 2
        assert cfg.request_timeout == 45.0
        assert cfg.snippet_chars == 120
        assert cfg.show_dag is False

    def test_clamps_bad_values(self):
        cfg = SwarmConfig.from_dict({
            "max-retries": 0,
            "initial-delay": "fast",
            "request-timeout": 0,
            "summary-retries": 500,
        })
        assert cfg.max_retries == 1
        assert cfg.initial_delay == 1.0
        assert cfg.request_timeout is None
        assert cfg.summary_retries == 20

    def test_policies(self):
        cfg = SwarmConfig(max_retries=4, summary_retries=2, initial_delay=0.5, jitter_max=0.1)
        assert cfg.retry_policy().max_retries == 4
        assert cfg.summary_policy().max_retries == 2
        assert cfg.summary_policy().initial_delay == 0.5


def _config(**swarm):
    cfg = Config()
    cfg.models = Config.get_default_presets()
    cfg.log_file = False
    cfg.swarm_config = {"initial-delay": 0, "jitter-max": 0, **swarm}
    return cfg


def _swarm(scripted_llm, worker=None, replies=None, listeners=None, **swarm):
    buf = io.StringIO()
    scripted = scripted_llm(replies=replies or [])
    swarm_obj = Swarm(
        _config(**swarm),
        console=Console(file=buf, force_terminal=False, width=120),
        worker_llm=worker or scripted_llm(),
        planner_llm=scripted,
        summary_llm=scripted,
        listeners=listeners,
    )
    return swarm_obj, buf


class TestSwarmWiring:

    def test_builds_adapters_from_presets(self):
        cfg = _config(**{"request-timeout": 30})
        swarm = Swarm(cfg, console=Console(file=io.StringIO()))
        assert isinstance(swarm.worker_llm, LLMAdapter)
        assert swarm.worker_llm.model == "gemini/gemini-2.5-flash"
        assert swarm.planner_llm.model == "gemini/gemini-2.5-pro"
        assert swarm.worker_llm.request_timeout == 30.0

    def test_launch_without_plan(self, scripted_llm):
        swarm, _ = _swarm(scripted_llm)
        with pytest.raises(SwarmError):
            swarm.launch()

    def test_retry_before_launch(self, scripted_llm):
        swarm, _ = _swarm(scripted_llm)
        with pytest.raises(SwarmError):
            swarm.retry_failed()


class TestSwarmMission:

    def test_plan_launch_summarize(self, sleeps, scripted_llm):
        finished = []

        class Collector(MissionListener):
            def on_task_finished(self, task, result):
                finished.append(task.id)

        worker = scripted_llm(streams={"Research": [["facts"]], "Draft": [["report"]]})
        swarm, buf = _swarm(scripted_llm,
            worker=worker,
            replies=[json.dumps(PLAN_DOC), json.dumps(SUMMARY_DOC)],
            listeners=[Collector()],
        )

        plan = swarm.plan("report on bees")
        assert [t.name for t in plan.tasks] == ["Research", "Draft"]

        swarm.launch()
        outcome = swarm.wait(timeout=10)
        assert outcome.completed
        assert outcome.results[1].content == "report"
        assert finished == [0, 1]

        summary = swarm.summarize()
        assert summary.overall_outcome == "Success"
        output = buf.getvalue()
        assert "Mission Plan" in output
        assert "Mission Results" in output
        assert "Executive Summary" in output

    def test_run_end_to_end_with_retry(self, sleeps, scripted_llm):
        worker = scripted_llm(streams={
            "Research": [[RemoteCallError("401 Unauthorized")], ["facts"]],
            "Draft": [["report"]],
        })
        swarm, _ = _swarm(scripted_llm, worker=worker, replies=[json.dumps(PLAN_DOC)])

        outcome = swarm.run("report on bees")
        assert outcome.deadlocked
        assert outcome.results[0].status == TaskStatus.ERROR

        assert swarm.retry_task(0) == [0, 1]
        outcome = swarm.wait(timeout=10)
        assert outcome.completed
        assert outcome.succeeded == [0, 1]

    def test_plan_failure_propagates(self, sleeps, scripted_llm):
        swarm, _ = _swarm(scripted_llm, replies=["not json"])
        with pytest.raises(PlanError):
            swarm.plan("anything")
        assert swarm.current_plan is None

    def test_reset(self, sleeps, scripted_llm):
        swarm, _ = _swarm(scripted_llm, replies=[json.dumps(PLAN_DOC)])
        swarm.plan("report on bees")
        swarm.reset()
        assert swarm.current_plan is None
        assert swarm.coordinator is None
        assert swarm.planner.history == []

    def test_empty_run_is_noop(self, scripted_llm):
        swarm, buf = _swarm(scripted_llm)
        assert swarm.run("  ") is None
        assert "Usage" in buf.getvalue()
