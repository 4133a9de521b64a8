"""Shell runner — spawns commands, streams their output, captures it."""
from __future__ import annotations

import asyncio
import codecs
import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, TextIO, runtime_checkable

import structlog

from ecosystem_ci.core.exceptions import CommandFailedError

if TYPE_CHECKING:
    from ecosystem_ci.core.config import EcosystemConfig

logger = structlog.get_logger(__name__)

_READ_CHUNK = 64 * 1024


def child_environment(
    config: EcosystemConfig,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Environment for every child process of a run.

    Starts from *base* (``os.environ`` by default) and forces CI mode,
    relaxes yarn's immutable installs, raises the node heap ceiling and
    sets ``ECOSYSTEM_CI`` so subject test suites can skip irrelevant tests.
    """
    env = dict(os.environ if base is None else base)
    env.update(
        {
            "CI": "true",
            "YARN_ENABLE_IMMUTABLE_INSTALLS": "false",
            "NODE_OPTIONS": f"--max-old-space-size={config.node_heap_mb}",
            "ECOSYSTEM_CI": config.upstream_package,
        }
    )
    return env


class Shell:
    """Runs shell command lines one at a time.

    Output of the child (stderr merged into stdout) is streamed to
    ``stream`` as it arrives and also returned once the child exits.

    Args:
        env: Environment for children. Defaults to ``os.environ``.
        stream: Where child output is echoed. Defaults to ``sys.stdout``.
        ci_groups: Wrap each command in GitHub Actions ``::group::``
            markers. Defaults to whether ``GITHUB_ACTIONS`` is set.
    """

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        *,
        stream: TextIO | None = None,
        ci_groups: bool | None = None,
    ) -> None:
        self._env = dict(os.environ if env is None else env)
        self._stream = stream
        self._ci_groups = "GITHUB_ACTIONS" in os.environ if ci_groups is None else ci_groups

    def __repr__(self) -> str:
        return f"Shell(ci_groups={self._ci_groups})"

    @classmethod
    def for_config(
        cls,
        config: EcosystemConfig,
        *,
        stream: TextIO | None = None,
        ci_groups: bool | None = None,
    ) -> Shell:
        return cls(child_environment(config), stream=stream, ci_groups=ci_groups)

    async def run(
        self,
        command: str,
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> str:
        """Run *command* in *cwd* and wait for it to exit.

        Returns:
            The combined output of the child, stripped of surrounding whitespace.

        Raises:
            CommandFailedError: If the child exits with a non-zero status.
        """
        out = self._stream or sys.stdout
        logger.info("shell_exec", cwd=str(cwd), command=command)
        if self._ci_groups:
            out.write(f"::group::{cwd} $> {command}\n")
            out.flush()

        child_env = {**self._env, **(env or {})}
        proc = await asyncio.create_subprocess_shell(
            command,
            cwd=str(cwd),
            env=child_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        chunks: list[str] = []
        try:
            assert proc.stdout is not None  # for mypy
            while True:
                raw = await proc.stdout.read(_READ_CHUNK)
                if not raw:
                    break
                text = decoder.decode(raw)
                chunks.append(text)
                out.write(text)
                out.flush()
            tail = decoder.decode(b"", final=True)
            if tail:
                chunks.append(tail)
                out.write(tail)
            exit_code = await proc.wait()
        finally:
            if self._ci_groups:
                out.write("::endgroup::\n")
                out.flush()

        output = "".join(chunks)
        if exit_code != 0:
            logger.error("shell_exec_failed", cwd=str(cwd), command=command, exit_code=exit_code)
            raise CommandFailedError(
                f"Command failed with exit code {exit_code}: {command}",
                command=command,
                cwd=cwd,
                exit_code=exit_code,
                output=output,
            )
        return output.strip()


@runtime_checkable
class ShellLike(Protocol):
    """Minimal shell interface the pipeline needs."""

    async def run(
        self,
        command: str,
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> str: ...
