"""Tests for plan parsing and the conversational ProjectManager."""

import json

import pytest

from swarm_ai.errors import PlanError, RemoteCallError
from swarm_ai.mission.planner import PLAN_SCHEMA, ProjectManager
from swarm_ai.mission.resilience import RetryPolicy
from swarm_ai.mission.tasks import MissionPlan, Priority, Task


PLAN_DOC = {
    "improvedPrompt": "Build a todo app with auth",
    "tasks": [
        {"id": 0, "name": "Schema", "description": "Design DB", "tools": ["DB Designer"],
         "dependencies": [], "priority": "High", "priorityReasoning": "Everything needs it"},
        {"id": 1, "name": "API", "description": "REST API", "tools": [],
         "dependencies": [0], "priority": "medium", "priorityReasoning": "Core"},
    ],
    "tools": [{"name": "DB Designer", "description": "Designs schemas"}],
}


class TestPlanParsing:

    def test_from_dict(self):
        plan = MissionPlan.from_dict(PLAN_DOC)
        assert plan.objective == "Build a todo app with auth"
        assert [t.id for t in plan.tasks] == [0, 1]
        assert plan.tasks[0].priority == Priority.HIGH
        assert plan.tasks[1].priority == Priority.MEDIUM
        assert plan.tasks[1].dependencies == [0]
        assert plan.tasks[0].priority_reasoning == "Everything needs it"
        assert plan.tools[0].name == "DB Designer"

    def test_round_trip_keys(self):
        plan = MissionPlan.from_dict(PLAN_DOC)
        assert plan.to_dict()["tasks"][0]["priorityReasoning"] == "Everything needs it"

    def test_unknown_priority_defaults_to_medium(self):
        task = Task.from_dict({"id": 3, "name": "x", "priority": "urgent"})
        assert task.priority == Priority.MEDIUM

    def test_missing_task_list(self):
        with pytest.raises(PlanError):
            MissionPlan.from_dict({"improvedPrompt": "x"})

    def test_task_without_id(self):
        with pytest.raises(PlanError):
            Task.from_dict({"name": "nameless"})

    def test_bad_dependencies(self):
        with pytest.raises(PlanError):
            Task.from_dict({"id": 1, "dependencies": ["first"]})

    @pytest.mark.parametrize("field,value", [
        ("tools", "search"),
        ("dependencies", "12"),
        ("tools", {"name": "search"}),
    ])
    def test_scalar_list_fields_rejected(self, field, value):
        with pytest.raises(PlanError, match="must be lists"):
            Task.from_dict({"id": 1, field: value})


class TestProjectManager:

    def _pm(self, scripted_llm, *replies):
        llm = scripted_llm(replies=list(replies))
        return ProjectManager(llm, RetryPolicy(max_retries=2, initial_delay=0, jitter_max=0)), llm

    def test_ask_returns_plan(self, sleeps, scripted_llm):
        pm, llm = self._pm(scripted_llm, "```json\n" + json.dumps(PLAN_DOC) + "\n```")
        plan = pm.ask("todo app")
        assert len(plan.tasks) == 2
        fmt = llm.chat_calls[0]["response_format"]
        assert fmt["json_schema"]["schema"] is PLAN_SCHEMA

    def test_history_carries_conversation(self, sleeps, scripted_llm):
        pm, llm = self._pm(scripted_llm, json.dumps(PLAN_DOC), json.dumps(PLAN_DOC))
        pm.ask("todo app")
        pm.ask("add a task for tests")
        second = llm.chat_calls[1]["messages"]
        roles = [m["role"] for m in second]
        assert roles == ["system", "user", "assistant", "user"]
        assert second[1]["content"] == "todo app"
        assert json.loads(second[2]["content"]) == PLAN_DOC
        assert len(pm.history) == 4

    def test_failure_wrapped(self, sleeps, scripted_llm):
        pm, _ = self._pm(scripted_llm, RemoteCallError("401 Unauthorized"))
        with pytest.raises(PlanError, match="Failed to get plan from Project Manager"):
            pm.ask("todo app")
        assert pm.history == []

    def test_malformed_reply_wrapped(self, sleeps, scripted_llm):
        pm, llm = self._pm(scripted_llm, "Sure! Here is your plan.")
        with pytest.raises(PlanError):
            pm.ask("todo app")
        assert len(llm.chat_calls) == 1

    def test_empty_message(self, scripted_llm):
        pm, llm = self._pm(scripted_llm)
        with pytest.raises(PlanError):
            pm.ask("   ")
        assert llm.chat_calls == []

    def test_reset_clears_history(self, sleeps, scripted_llm):
        pm, _ = self._pm(scripted_llm, json.dumps(PLAN_DOC))
        pm.ask("todo app")
        pm.reset()
        assert pm.history == []
