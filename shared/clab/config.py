"""
Configuration for clab runs.

A single LabConfig value is built at the entry point and handed to every
component; nothing below the CLI reads the environment.

Sources, lowest priority first:
    1. Defaults
    2. YAML file: $CLAB_CONFIG or ~/.config/clab/config.yaml
    3. Environment variables (OPENROUTER_API_KEY, CLAB_MODEL, ...)
    4. CLI flags (applied with ``LabConfig.with_overrides``)

Example config.yaml:
    model: anthropic/claude-3.5-sonnet
    max_depth: 2
    max_workers: 4
    exclusions: [.git, node_modules, dist, build, vendor]
    agents: [architect, educator]
"""

import os
import time
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from clab_config import BaseConfig, HealthCheckResult, ValidationResult
from clab_config.utils import load_yaml_file, safe_bool, safe_float, safe_int, split_list
from clab_config.validators import (
    mask_secret,
    validate_non_empty,
    validate_positive,
    validate_range,
    validate_url,
)

from .errors import ConfigError, ServiceError
from .model import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    DEFAULT_TIMEOUT,
    OPENROUTER_URL,
    OpenRouterClient,
)
from .traversal import DEFAULT_EXCLUSIONS, DEFAULT_FILE_EXTENSIONS, MAX_FILE_SIZE


DEFAULT_PERSONAS_FILE = Path(__file__).parent / "data" / "personas.json"
DEFAULT_AGENTS = ("architect", "educator", "visionary", "philosopher")
DEFAULT_CONFIG_FILE = Path.home() / ".config" / "clab" / "config.yaml"

# Environment variable -> (field, parser)
_ENV_FIELDS: dict[str, tuple[str, Any]] = {
    "OPENROUTER_API_KEY": ("api_key", str),
    "CLAB_BASE_URL": ("base_url", str),
    "MODEL": ("model", str),
    "CLAB_MODEL": ("model", str),
    "CLAB_TEMPERATURE": ("temperature", float),
    "CLAB_MAX_TOKENS": ("max_tokens", int),
    "CLAB_TIMEOUT": ("timeout", float),
    "GITHUB_WORKSPACE": ("workspace", Path),
    "CLAB_WORKSPACE": ("workspace", Path),
    "CLAB_NOTES_DIR": ("notes_dir", Path),
    "CLAB_STATES_DIR": ("states_dir", Path),
    "CLAB_PERSONAS": ("personas_file", Path),
    "CLAB_MAX_DEPTH": ("max_depth", int),
    "CLAB_MAX_AGE_HOURS": ("max_age_hours", float),
    "CLAB_MAX_WORKERS": ("max_workers", int),
    "CLAB_EXCLUSIONS": ("exclusions", tuple),
    "CLAB_FILE_EXTENSIONS": ("file_extensions", tuple),
    "CLAB_MAX_FILE_SIZE": ("max_file_size", int),
    "CLAB_AGENTS": ("agents", tuple),
    "CLAB_SUMMARIZE": ("summarize", bool),
}


def _coerce(value: Any, kind: Any, current: Any) -> Any:
    if kind is int:
        return safe_int(value, current)
    if kind is float:
        return safe_float(value, current)
    if kind is bool:
        return safe_bool(value, current)
    if kind is tuple:
        return tuple(split_list(value))
    if kind is Path:
        return Path(str(value)).expanduser()
    return str(value)


@dataclass
class LabConfig(BaseConfig):
    """Settings for one clab invocation.

    Attributes:
        api_key: OpenRouter API key
        base_url: Chat-completions endpoint
        model: Default model id
        temperature: Sampling temperature for analysis calls
        max_tokens: Completion token limit per call
        timeout: Per-request timeout in seconds
        workspace: Repository root to analyze
        notes_dir: Notes cache directory (relative paths resolve against workspace)
        states_dir: Agent state directory (relative paths resolve against workspace)
        personas_file: Persona document (JSON or YAML)
        max_depth: Traversal depth bound
        max_age_hours: Notes younger than this are reused
        max_workers: Concurrent work items during a deep dive
        exclusions: Path substrings never traversed
        file_extensions: Only analyze files with these suffixes (empty = all)
        max_file_size: Skip files larger than this many bytes (0 = no limit)
        agents: Persona ids used by update and coaching
        summarize: Issue the deep-dive summary call
    """

    api_key: str = ""
    base_url: str = OPENROUTER_URL
    model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: float = DEFAULT_TIMEOUT
    workspace: Path = field(default_factory=Path.cwd)
    notes_dir: Path = Path(".agent-notes")
    states_dir: Path = Path(".agent-states")
    personas_file: Path = DEFAULT_PERSONAS_FILE
    max_depth: int = 3
    max_age_hours: float = 24.0
    max_workers: int = 1
    exclusions: tuple[str, ...] = DEFAULT_EXCLUSIONS
    file_extensions: tuple[str, ...] = DEFAULT_FILE_EXTENSIONS
    max_file_size: int = MAX_FILE_SIZE
    agents: tuple[str, ...] = DEFAULT_AGENTS
    summarize: bool = True

    @property
    def notes_path(self) -> Path:
        return self.notes_dir if self.notes_dir.is_absolute() else self.workspace / self.notes_dir

    @property
    def states_path(self) -> Path:
        return self.states_dir if self.states_dir.is_absolute() else self.workspace / self.states_dir

    def validate(self) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []

        ok, error = validate_non_empty(self.api_key, "OPENROUTER_API_KEY")
        if not ok:
            errors.append(error)

        ok, error = validate_url(self.base_url)
        if not ok:
            errors.append(f"base_url: {error}")

        for name, value, allow_zero in (
            ("max_depth", self.max_depth, True),
            ("max_workers", self.max_workers, False),
            ("max_tokens", self.max_tokens, False),
            ("timeout", self.timeout, False),
            ("max_age_hours", self.max_age_hours, True),
            ("max_file_size", self.max_file_size, True),
        ):
            ok, error = validate_positive(value, name, allow_zero=allow_zero)
            if not ok:
                errors.append(error)

        ok, error = validate_range(self.temperature, "temperature", 0.0, 2.0)
        if not ok:
            errors.append(error)

        if not self.workspace.is_dir():
            errors.append(f"workspace {self.workspace} is not a directory")
        if not self.personas_file.is_file():
            errors.append(f"personas file {self.personas_file} not found")
        if self.max_workers > 8:
            warnings.append(f"max_workers={self.max_workers} may hit provider rate limits")

        return ValidationResult.from_checks(errors, warnings)

    def require_valid(self, *, need_api_key: bool = True) -> None:
        """Raise ConfigError when the config cannot start a run."""
        result = self.validate()
        errors = result.errors
        if not need_api_key:
            errors = [e for e in errors if not e.startswith("OPENROUTER_API_KEY")]
        if errors:
            raise ConfigError("; ".join(errors))

    def health_check(self, timeout: float = 5.0) -> HealthCheckResult:
        """Verify the API key against the provider's models endpoint."""
        if not self.api_key:
            return HealthCheckResult(healthy=False, service_name="openrouter", message="API key not configured")

        start = time.time()
        try:
            client = OpenRouterClient(self.api_key, base_url=self.base_url, default_model=self.model)
            models = client.list_models(timeout=timeout)
        except ServiceError as e:
            return HealthCheckResult(healthy=False, service_name="openrouter", message=str(e))

        latency = (time.time() - start) * 1000
        message = f"OpenRouter reachable ({len(models)} models)"
        if models and self.model not in models:
            message += f"; model {self.model} not listed"
        return HealthCheckResult(healthy=True, service_name="openrouter", message=message, latency_ms=latency)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Path):
                value = str(value)
            elif isinstance(value, tuple):
                value = list(value)
            result[f.name] = value
        result["api_key"] = mask_secret(self.api_key)
        return result

    def with_overrides(self, **overrides: Any) -> "LabConfig":
        """Copy with the given non-None values applied (CLI flags)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, config_file: Path | None = None, environ: dict[str, str] | None = None) -> "LabConfig":
        """Build the config from defaults, the YAML file, and the environment.

        Raises:
            ConfigError: If the config file exists but is malformed.
        """
        environ = os.environ if environ is None else environ
        config = cls()

        if config_file is None and environ.get("CLAB_CONFIG"):
            config_file = Path(environ["CLAB_CONFIG"])
        path = config_file or DEFAULT_CONFIG_FILE
        try:
            data = load_yaml_file(Path(path).expanduser())
        except ValueError as e:
            raise ConfigError(str(e)) from e

        known = {f.name: f for f in fields(cls)}
        kinds = {name: kind for name, kind in _ENV_FIELDS.values()}
        for key, value in data.items():
            if key not in known:
                raise ConfigError(f"Unknown config key {key!r} in {path}")
            if value is None:
                continue
            config = replace(config, **{key: _coerce(value, kinds.get(key, str), getattr(config, key))})

        for env_name, (name, kind) in _ENV_FIELDS.items():
            value = environ.get(env_name)
            if value:
                config = replace(config, **{name: _coerce(value, kind, getattr(config, name))})

        return config
