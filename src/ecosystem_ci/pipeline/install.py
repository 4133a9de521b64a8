"""Frozen install with a single non-frozen fallback."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from ecosystem_ci.core.exceptions import CommandFailedError, OutdatedLockfileError

if TYPE_CHECKING:
    from ecosystem_ci.agents.base import PackageManagerAgent
    from ecosystem_ci.runtime.shell import ShellLike

logger = structlog.get_logger(__name__)


async def _install_frozen(shell: ShellLike, agent: PackageManagerAgent, cwd: Path) -> None:
    try:
        await shell.run(agent.install_command(frozen=True), cwd=cwd)
    except CommandFailedError as exc:
        if agent.is_outdated_lockfile(exc.output):
            raise OutdatedLockfileError(
                str(exc),
                command=exc.command,
                cwd=exc.cwd,
                exit_code=exc.exit_code,
                output=exc.output,
            ) from exc
        raise


async def frozen_install(shell: ShellLike, agent: PackageManagerAgent, cwd: Path) -> None:
    """Install with the lockfile frozen.

    When the package manager rejects the install because the lockfile is
    out of date, the install is retried once without freezing. Any other
    failure propagates.
    """
    try:
        await _install_frozen(shell, agent, cwd)
    except OutdatedLockfileError as exc:
        logger.warning(
            "frozen_install_outdated_lockfile",
            agent=str(agent.name),
            cwd=str(cwd),
            error=str(exc),
        )
        await shell.run(agent.install_command(frozen=False), cwd=cwd)
