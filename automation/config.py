"""Runner config — file locations, discovery and execution settings.

Loads YAML config into dataclasses.  Missing sections fall back to defaults.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(".automation-runner") / "config.yaml"


def _default_runbook_command() -> str:
    return f'"{sys.executable}" -m automation.runbook'


@dataclass
class PathsConfig:
    """Files the runner reads and writes."""
    state: str = ".automation-runner/state.json"
    event_log: str | None = None  # defaults to events.log beside the state file


@dataclass
class DiscoveryConfig:
    """Definition-file discovery settings."""
    extensions: list[str] = field(default_factory=lambda: ["toml"])
    skip_prefix: str = ".git"


@dataclass
class SchedulerConfig:
    """Tick-loop settings."""
    interval_seconds: int = 60
    min_interval_seconds: int = 10


@dataclass
class ExecutionConfig:
    """Handler execution settings."""
    shell: str | None = None
    timeout_seconds: float | None = None
    runbook_command: str = field(default_factory=_default_runbook_command)


@dataclass
class RunnerConfig:
    """Top-level runner configuration."""
    paths: PathsConfig = field(default_factory=PathsConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)


def load_config(path: str | Path) -> RunnerConfig:
    """Parse a YAML file into a RunnerConfig.

    Missing sections are filled with defaults.
    """
    path = Path(path)
    raw = yaml.safe_load(path.read_text()) or {}

    return RunnerConfig(
        paths=PathsConfig(**raw.get("paths", {})),
        discovery=DiscoveryConfig(**raw.get("discovery", {})),
        scheduler=SchedulerConfig(**raw.get("scheduler", {})),
        execution=ExecutionConfig(**raw.get("execution", {})),
    )


def default_config() -> RunnerConfig:
    """Return a RunnerConfig with all defaults."""
    return RunnerConfig()
