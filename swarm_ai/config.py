"""
Configuration — model presets and mission settings.

Lookup order (first file found wins):
  1. <project>/.swarm.conf.yml
  2. <git root>/.swarm.conf.yml
  3. ~/.swarm-ai/config.yml

``.env`` files in ~/.swarm-ai and the project dir are loaded first, without
overriding the environment, so presets can name their key via ``api-key-env``.
``SWARM_*`` variables override whatever the file says.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

import yaml
from dotenv import load_dotenv

from .logger import get_logger

_log = get_logger(__name__)

CONFIG_DIR = Path.home() / ".swarm-ai"
CONFIG_FILE = CONFIG_DIR / "config.yml"
PROJECT_CONFIG_NAME = ".swarm.conf.yml"

# Provider → conventional API key variable, used when a preset names none.
_PROVIDER_KEY_ENV = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
}

_TRUE_WORDS = ("1", "true", "yes", "on")
_FALSE_WORDS = ("0", "false", "no", "off")


@dataclass
class ModelPreset:
    name: str
    provider: str
    model: str
    api_base: Optional[str] = None
    api_key: Optional[str] = None
    api_key_env: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 8192
    description: str = ""

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "ModelPreset":
        """Build a preset from one entry of the YAML ``models:`` mapping."""
        data = data or {}
        return cls(
            name=name,
            provider=data.get("provider", "openai"),
            model=data.get("model", "openai/gpt-4o-mini"),
            api_base=data.get("api-base"),
            api_key=data.get("api-key"),
            api_key_env=data.get("api-key-env"),
            temperature=float(data.get("temperature", 0.0)),
            max_tokens=int(data.get("max-tokens", 8192)),
            description=data.get("description", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "provider": self.provider,
            "model": self.model,
            "description": self.description,
            "temperature": self.temperature,
            "max-tokens": self.max_tokens,
        }
        for key, value in (("api-base", self.api_base), ("api-key", self.api_key),
                           ("api-key-env", self.api_key_env)):
            if value:
                entry[key] = value
        return entry

    def resolve_api_key(self) -> Optional[str]:
        if self.api_key:
            return self.api_key
        env_var = self.api_key_env or _PROVIDER_KEY_ENV.get(self.provider)
        return os.environ.get(env_var) if env_var else None

    def get_llm_kwargs(self) -> dict:
        """Keyword arguments for ``LLMAdapter``; keys are passed, not exported."""
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "api_base": self.api_base,
            "api_key": self.resolve_api_key(),
        }


@dataclass
class Config:
    worker_model: str = "gemini-flash"
    planner_model: str = "gemini-pro"
    summary_model: str = "gemini-pro"
    models: Dict[str, ModelPreset] = field(default_factory=dict)
    verbose: bool = False
    use_unicode: bool = True
    log_file: Any = None             # path, or False to disable file logging
    swarm_config: Dict = field(default_factory=dict)  # swarm: section from YAML
    project_root: Optional[str] = None
    _config_source: str = ""

    @classmethod
    def load(cls, project_dir: str = ".") -> "Config":
        config = cls()
        project_path = Path(project_dir).resolve()

        for env_path in (CONFIG_DIR / ".env", project_path / ".env"):
            if env_path.exists():
                load_dotenv(env_path, override=False)

        source = next(cls._candidate_files(project_path), None)
        if source is not None:
            config._load_yaml(source)
            config._config_source = str(source)
        if not config.models:
            config.models = cls.get_default_presets()

        config._apply_env()
        config.project_root = str(project_path)
        return config

    @classmethod
    def _candidate_files(cls, project_path: Path) -> Iterator[Path]:
        git_root = cls._find_git_root(project_path)
        candidates = [project_path / PROJECT_CONFIG_NAME]
        if git_root and git_root != project_path:
            candidates.append(git_root / PROJECT_CONFIG_NAME)
        candidates.append(CONFIG_FILE)
        return (path for path in candidates if path.exists())

    @classmethod
    def get_default_presets(cls) -> Dict[str, ModelPreset]:
        return {
            "gemini-flash": ModelPreset(
                name="gemini-flash", provider="gemini",
                model="gemini/gemini-2.5-flash",
                api_key_env="GEMINI_API_KEY",
                description="Gemini 2.5 Flash (task workers)",
            ),
            "gemini-pro": ModelPreset(
                name="gemini-pro", provider="gemini",
                model="gemini/gemini-2.5-pro",
                api_key_env="GEMINI_API_KEY",
                description="Gemini 2.5 Pro (planner and summary)",
            ),
            "local": ModelPreset(
                name="local", provider="local", model="openai/model",
                api_base="http://localhost:8080/v1", api_key="not-needed",
                description="OpenAI-compatible server on :8080",
                max_tokens=4096,
            ),
        }

    def _load_yaml(self, filepath: Path):
        try:
            with open(filepath) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            _log.warning("Ignoring unreadable config %s: %s", filepath, e)
            return
        if not isinstance(data, dict):
            _log.warning("Ignoring config %s: top level is not a mapping", filepath)
            return

        self.worker_model = str(data.get("worker-model", self.worker_model))
        self.planner_model = str(data.get("planner-model", self.planner_model))
        self.summary_model = str(data.get("summary-model", self.summary_model))
        self.verbose = self._coerce_bool(data.get("verbose"), default=False)
        self.use_unicode = self._coerce_bool(data.get("use-unicode"), default=True)
        self.log_file = data.get("log-file")
        self.swarm_config = data.get("swarm") or {}
        self.models = {
            name: ModelPreset.from_dict(name, entry)
            for name, entry in (data.get("models") or {}).items()
        }

    def _apply_env(self):
        for attr in ("worker_model", "planner_model", "summary_model"):
            value = os.environ.get(f"SWARM_{attr.upper()}")
            if value:
                setattr(self, attr, value)
        verbose = os.environ.get("SWARM_VERBOSE")
        if verbose:
            self.verbose = self._coerce_bool(verbose, default=self.verbose)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "worker-model": self.worker_model,
            "planner-model": self.planner_model,
            "summary-model": self.summary_model,
            "verbose": self.verbose,
            "use-unicode": self.use_unicode,
            "swarm": self.swarm_config,
            "models": {name: m.to_dict() for name, m in self.models.items()},
        }
        if self.log_file is not None:
            data["log-file"] = self.log_file
        return data

    def save(self, filepath: Optional[str] = None):
        if filepath:
            target = Path(filepath)
        elif self._config_source:
            target = Path(self._config_source)
        else:
            target = CONFIG_FILE
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False,
                      sort_keys=False, allow_unicode=True)
        self._config_source = str(target)

    def get_preset(self, name: str) -> ModelPreset:
        """Look up a preset by name; unknown names fall back to the first preset."""
        if name in self.models:
            return self.models[name]
        if not self.models:
            self.models = self.get_default_presets()
        fallback = next(iter(self.models.values()))
        _log.warning("Unknown model preset %r, using %r", name, fallback.name)
        return fallback

    @staticmethod
    def _coerce_bool(value, default: bool) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            word = value.strip().lower()
            if word in _TRUE_WORDS:
                return True
            if word in _FALSE_WORDS:
                return False
            return default
        if isinstance(value, (int, float)):
            return bool(value)
        return default

    @staticmethod
    def _coerce_positive_int(value, default: int, min_value: int = 1, max_value: int = 100000) -> int:
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            return default
        return min(max(parsed, min_value), max_value)

    @staticmethod
    def _coerce_seconds(value, default: Optional[float], max_value: float = 3600.0) -> Optional[float]:
        """Non-negative seconds; ``None``/unparseable keeps ``default``."""
        if value is None:
            return default
        try:
            parsed = float(value)
        except (TypeError, ValueError):
            return default
        return min(max(parsed, 0.0), max_value)

    @staticmethod
    def _find_git_root(path: Path) -> Optional[Path]:
        for candidate in (path, *path.parents):
            if (candidate / ".git").exists():
                return candidate
        return None
