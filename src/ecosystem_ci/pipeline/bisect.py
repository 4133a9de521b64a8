"""Bisection driver — finds the upstream commit that broke a subject."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable

import structlog

from ecosystem_ci.core.constants import BISECTING_PREFIX, NON_CODE_COMMIT, BisectVerdict

if TYPE_CHECKING:
    from ecosystem_ci.runtime.git import Git

logger = structlog.get_logger(__name__)

Verify = Callable[[], Awaitable[BaseException | None]]
"""Builds and checks the current candidate; returns the failure, if any."""


class Bisector:
    """Drives ``git bisect`` over the upstream checkout.

    Bisection is best-effort: a failure inside the loop is logged and ends
    the session, and teardown never raises.
    """

    def __init__(self, git: Git, directory: Path) -> None:
        self._git = git
        self._dir = directory

    def __repr__(self) -> str:
        return f"Bisector(dir={str(self._dir)!r})"

    async def bisect(self, good_ref: str, verify: Verify) -> None:
        """Bisect between ``HEAD`` (bad) and *good_ref*.

        Commits whose subject marks them as a release or docs change are
        skipped without calling *verify*.
        """
        logger.info("bisect_started", dir=str(self._dir), good=good_ref)
        try:
            await self._git.reset_worktree(self._dir)
            output = await self._git.bisect_start(self._dir, bad="HEAD", good=good_ref)
            bisecting = True
            while bisecting:
                subject = await self._git.head_subject(self._dir)
                if NON_CODE_COMMIT.match(subject):
                    logger.info("bisect_skip", subject=subject)
                    verdict = BisectVerdict.SKIP
                else:
                    error = await verify()
                    verdict = BisectVerdict.GOOD if error is None else BisectVerdict.BAD
                    logger.info("bisect_verdict", subject=subject, verdict=str(verdict))
                await self._git.reset_worktree(self._dir)
                output = await self._git.bisect_step(self._dir, verdict)
                bisecting = output.lower().startswith(BISECTING_PREFIX)
            logger.info("bisect_finished", result=output)
        except Exception:
            logger.error("bisect_failed", dir=str(self._dir), exc_info=True)
        finally:
            try:
                await self._git.bisect_reset(self._dir)
            except Exception:
                logger.error("bisect_reset_failed", dir=str(self._dir), exc_info=True)
