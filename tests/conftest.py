"""Shared fixtures for swarm-ai tests."""

import os
import threading
from collections import defaultdict

import pytest
import yaml

from swarm_ai.llm import LLMResponse
from swarm_ai.mission.resilience import RetryPolicy


class ScriptedLLM:
    """Stand-in for LLMAdapter with per-task scripted streams.

    ``streams`` maps a task name to a list of attempts. Each attempt is a
    list of text fragments, where an Exception item is raised at that point.
    The last attempt repeats once the list runs out. Unscripted prompts
    stream ``default``.

    ``hooks`` maps a task name to a callable run before its stream starts.
    ``replies`` is a queue of structured replies for ``chat``: strings or
    exceptions to raise.
    """

    def __init__(self, streams=None, default=("done",), hooks=None, replies=None):
        self.streams = streams or {}
        self.default = list(default)
        self.hooks = hooks or {}
        self.replies = list(replies or [])
        self.chat_calls = []
        self.stream_calls = []
        self.attempts = defaultdict(int)
        self._lock = threading.Lock()

    def _key_for(self, prompt):
        for name in list(self.streams) + list(self.hooks):
            if f"Your Task ({name})" in prompt:
                return name
        return None

    def chat_stream(self, messages):
        prompt = messages[-1]["content"]
        key = self._key_for(prompt)
        with self._lock:
            self.stream_calls.append(key)
            index = self.attempts[key]
            self.attempts[key] += 1
        hook = self.hooks.get(key)
        if hook is not None:
            hook()
        attempts = self.streams.get(key) or [self.default]
        for item in attempts[min(index, len(attempts) - 1)]:
            if isinstance(item, BaseException):
                raise item
            yield item

    def chat(self, messages, response_format=None):
        with self._lock:
            self.chat_calls.append({"messages": list(messages), "response_format": response_format})
            reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return LLMResponse(content=reply)


@pytest.fixture
def scripted_llm():
    """Factory for ScriptedLLM stand-ins."""
    return ScriptedLLM


@pytest.fixture
def tmp_dir(tmp_path):
    """Provide a temporary directory and cd into it."""
    orig = os.getcwd()
    os.chdir(tmp_path)
    yield tmp_path
    os.chdir(orig)


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff sleeps instead of waiting."""
    recorded = []
    monkeypatch.setattr("swarm_ai.mission.resilience.time.sleep", recorded.append)
    return recorded


@pytest.fixture
def fast_policy(sleeps):
    return RetryPolicy(max_retries=5, initial_delay=1.0, jitter_max=0.0)


@pytest.fixture
def sample_config_data():
    """Minimal .swarm.conf.yml data dict."""
    return {
        "worker-model": "local",
        "planner-model": "local",
        "summary-model": "local",
        "verbose": False,
        "use-unicode": True,
        "log-file": False,
        "swarm": {
            "max-retries": 4,
            "initial-delay": 0.5,
            "jitter-max": 0.25,
            "summary-retries": 2,
            "request-timeout": 45,
            "snippet-chars": 120,
            "display": {"show-dag": False},
        },
        "models": {
            "local": {
                "provider": "local",
                "model": "openai/model",
                "description": "Local test model",
                "temperature": 0.0,
                "max-tokens": 4096,
                "api-base": "http://localhost:8080/v1",
                "api-key": "not-needed",
            }
        },
    }


@pytest.fixture
def config_yaml_file(tmp_dir, sample_config_data):
    """Write a config YAML to tmp_dir and return its Path."""
    path = tmp_dir / ".swarm.conf.yml"
    with open(path, "w") as f:
        yaml.dump(sample_config_data, f, default_flow_style=False)
    return path
