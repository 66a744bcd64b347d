"""Handlers — type-specific executors for command, runbook and prompt automations.

Each handler runs one automation in one working directory and returns True
on success.  Required fields are validated at dispatch time against a
per-type pydantic model; unknown fields are kept on the model untouched.
"""

from __future__ import annotations

import functools
import logging
import shlex
from dataclasses import dataclass, field
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from automation.config import ExecutionConfig
from automation.discovery import Automation, resolve_path
from automation.shell import run_shell
from core.errors import HandlerConfigError

logger = logging.getLogger(__name__)

ShellFn = Callable[[str, str], int]


# ---------------------------------------------------------------------------
# Per-type field models
# ---------------------------------------------------------------------------


class HandlerFields(BaseModel):
    """Base for handler field models: scalars are accepted as text."""

    model_config = ConfigDict(extra="allow")

    @field_validator("*", mode="before")
    @classmethod
    def _scalar_to_text(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value


class CommandFields(HandlerFields):
    command: str = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _accept_cmd(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("command") and data.get("cmd"):
            data = {**data, "command": data["cmd"]}
        return data


class RunbookFields(HandlerFields):
    runbook: str = Field(min_length=1)
    block: str = Field(min_length=1)


class PromptFields(HandlerFields):
    prompt: str = Field(min_length=1)
    runner: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _falsy_runner_is_unset(cls, data: Any) -> Any:
        if isinstance(data, dict) and "runner" in data and not data["runner"]:
            data = {**data, "runner": None}
        return data


def validate_fields(automation: Automation, model: type[HandlerFields]) -> HandlerFields:
    """Validate *automation*'s raw fields against *model*.

    Raises:
        HandlerConfigError: a required field is missing or empty.
    """
    try:
        return model.model_validate(automation.raw_fields)
    except ValidationError as exc:
        missing = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
        raise HandlerConfigError(automation.id, automation.source_path,
                                 missing or [model.__name__]) from None


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


@dataclass
class HandlerContext:
    """Everything a handler needs besides the automation itself."""
    dry_run: bool = False
    shell: ShellFn = run_shell
    runbook_command: str = field(default_factory=lambda: ExecutionConfig().runbook_command)

    def run(self, command: str, cwd: str) -> bool:
        return self.shell(command, cwd) == 0


def build_context(cfg: ExecutionConfig, *, dry_run: bool = False) -> HandlerContext:
    """Build a context whose shell honours the configured shell and timeout."""
    shell = functools.partial(run_shell, timeout=cfg.timeout_seconds, shell=cfg.shell)
    return HandlerContext(dry_run=dry_run, shell=shell, runbook_command=cfg.runbook_command)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


Handler = Callable[[Automation, str, HandlerContext], bool]


def handle_command(automation: Automation, cwd: str, ctx: HandlerContext) -> bool:
    fields = validate_fields(automation, CommandFields)
    if ctx.dry_run:
        print(f"[dry-run] {automation.id} -> {fields.command}")
        return True
    return ctx.run(fields.command, cwd)


def handle_runbook(automation: Automation, cwd: str, ctx: HandlerContext) -> bool:
    fields = validate_fields(automation, RunbookFields)
    runbook_path = resolve_path(automation.directory, fields.runbook)
    cmd = runbook_invocation(ctx.runbook_command, runbook_path, fields.block, ctx.dry_run)
    if ctx.dry_run:
        print(f"[dry-run] {automation.id} -> {cmd}")
        return True
    return ctx.run(cmd, cwd)


def handle_prompt(automation: Automation, cwd: str, ctx: HandlerContext) -> bool:
    fields = validate_fields(automation, PromptFields)
    if ctx.dry_run or not fields.runner:
        print(f"[prompt] {automation.id} ({cwd})")
        print(fields.prompt)
        return True
    return ctx.run(f"{fields.runner} {shlex.quote(fields.prompt)}", cwd)


def runbook_invocation(runbook_command: str, runbook_path: str, block: str, dry_run: bool) -> str:
    cmd = f"{runbook_command} {shlex.quote(runbook_path)} --block {shlex.quote(block)}"
    if dry_run:
        cmd += " --dry-run"
    return cmd


def build_handlers() -> dict[str, Handler]:
    """Return the dispatch table of built-in handlers."""
    return {
        "command": handle_command,
        "runbook": handle_runbook,
        "prompt": handle_prompt,
    }
