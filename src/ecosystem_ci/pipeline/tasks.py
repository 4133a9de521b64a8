"""Task runner — turns task specs into sequential executable steps."""
from __future__ import annotations

import inspect
import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

import structlog

from ecosystem_ci.core.config import ScriptTaskSpec, TaskSpec
from ecosystem_ci.core.exceptions import InvalidTaskError, UnknownScriptError

if TYPE_CHECKING:
    from ecosystem_ci.agents.base import PackageManagerAgent
    from ecosystem_ci.runtime.shell import ShellLike

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CommandTask:
    """A command line; runs as a manifest script when its first word names one."""

    command: str


@dataclass(frozen=True)
class ScriptTask:
    """An explicit manifest script reference. Never falls back to the shell."""

    script: str
    args: tuple[str, ...] = ()


@dataclass(frozen=True)
class CallbackTask:
    """A zero-argument callable, sync or async."""

    callback: Callable[[], Any]


Task = Union[CommandTask, ScriptTask, CallbackTask]

Executable = Callable[[Mapping[str, str]], Awaitable[None]]


def _strip_wrapping_quotes(command: str) -> str:
    """Unwrap a task given as one quoted token, e.g. ``'"pnpm test"'``.

    Anything else, including a command that merely starts and ends with
    quotes, is returned unchanged.
    """
    if len(command) < 2 or command[0] != command[-1] or command[0] not in "'\"":
        return command
    try:
        tokens = shlex.split(command)
    except ValueError:
        return command
    return tokens[0].strip() if len(tokens) == 1 else command


def normalize_tasks(spec: TaskSpec | Task | Any) -> list[Task]:
    """Flatten a task spec into an ordered list of :data:`Task` values.

    ``None``, empty and whitespace-only strings produce no tasks.

    Raises:
        InvalidTaskError: If *spec* has a shape that is not a task.
    """
    if spec is None:
        return []
    if isinstance(spec, (CommandTask, ScriptTask, CallbackTask)):
        return [spec]
    if isinstance(spec, str):
        command = _strip_wrapping_quotes(spec.strip())
        return [CommandTask(command)] if command else []
    if isinstance(spec, ScriptTaskSpec):
        return [ScriptTask(spec.script, tuple(spec.args))]
    if isinstance(spec, Mapping) and isinstance(spec.get("script"), str):
        return [ScriptTask(spec["script"], tuple(str(a) for a in spec.get("args") or ()))]
    if isinstance(spec, (list, tuple)):
        tasks: list[Task] = []
        for item in spec:
            tasks.extend(normalize_tasks(item))
        return tasks
    if callable(spec):
        return [CallbackTask(spec)]
    raise InvalidTaskError(
        f"invalid task, expected string, callable or {{script, args}} but got {type(spec).__name__}",
        code="INVALID_TASK",
    )


class TaskRunner:
    """Runs tasks inside one subject directory with one package manager.

    Args:
        shell: Shell used for every command.
        agent: Package manager that translates script invocations.
        cwd: Subject directory the commands run in.
    """

    def __init__(self, shell: ShellLike, agent: PackageManagerAgent, cwd: Path) -> None:
        self._shell = shell
        self._agent = agent
        self._cwd = cwd

    def __repr__(self) -> str:
        return f"TaskRunner(agent={self._agent.name!r}, cwd={str(self._cwd)!r})"

    def to_executable(self, spec: TaskSpec | Task) -> Executable:
        """Return a callable that runs *spec* against a script table.

        The tasks are normalised eagerly so a malformed spec fails before
        anything runs; they execute strictly in order and the first
        failure stops the rest.
        """
        tasks = normalize_tasks(spec)

        async def execute(scripts: Mapping[str, str]) -> None:
            for task in tasks:
                await self.run_task(task, scripts)

        return execute

    async def run(self, spec: TaskSpec | Task, scripts: Mapping[str, str]) -> None:
        await self.to_executable(spec)(scripts)

    async def run_task(self, task: Task, scripts: Mapping[str, str]) -> None:
        if isinstance(task, CommandTask):
            await self._shell.run(self._resolve_command(task.command, scripts), cwd=self._cwd)
        elif isinstance(task, ScriptTask):
            if task.script not in scripts:
                raise UnknownScriptError(
                    f'invalid task, script "{task.script}" does not exist in package.json',
                    code="UNKNOWN_SCRIPT",
                    details={"script": task.script, "available": sorted(scripts)},
                )
            command = self._agent.run_script_command(task.script, task.args)
            await self._shell.run(command, cwd=self._cwd)
        elif isinstance(task, CallbackTask):
            logger.debug("task_callback", callback=getattr(task.callback, "__name__", repr(task.callback)))
            result = task.callback()
            if inspect.isawaitable(result):
                await result
        else:
            raise InvalidTaskError(f"invalid task {task!r}", code="INVALID_TASK")

    def _resolve_command(self, command: str, scripts: Mapping[str, str]) -> str:
        parts = command.split(None, 1)
        if not parts or parts[0] not in scripts:
            return command
        head = parts[0]
        rest = parts[1] if len(parts) > 1 else ""
        try:
            args = shlex.split(rest)
        except ValueError as exc:
            raise InvalidTaskError(f"cannot parse arguments of task {command!r}: {exc}") from exc
        return self._agent.run_script_command(head, args)
