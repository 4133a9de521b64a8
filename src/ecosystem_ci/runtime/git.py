"""Git plumbing on top of :class:`~ecosystem_ci.runtime.shell.Shell`."""
from __future__ import annotations

import shlex
from pathlib import Path

import structlog

from ecosystem_ci.core.constants import BisectVerdict
from ecosystem_ci.runtime.shell import ShellLike

logger = structlog.get_logger(__name__)

_COMMITTER = "-c user.name=ecosystem-ci -c user.email=ecosystem-ci@users.noreply.github.com"


def repo_url(repo: str) -> str:
    """Expand GitHub ``owner/name`` shorthand into a clone URL."""
    if "://" in repo or repo.startswith("git@") or repo.startswith(("/", ".", "~")):
        return repo
    return f"https://github.com/{repo}.git"


class Git:
    """Thin async wrapper around the ``git`` CLI.

    Every method takes the repository directory explicitly; nothing here
    relies on the process-wide current directory.
    """

    def __init__(self, shell: ShellLike) -> None:
        self._shell = shell

    async def _git(self, cwd: Path, *args: str) -> str:
        return await self._shell.run(shlex.join(["git", *args]), cwd=cwd)

    async def clone_or_reuse(
        self,
        repo: str,
        directory: Path,
        *,
        branch: str = "main",
        tag: str | None = None,
        commit: str | None = None,
        shallow: bool = True,
    ) -> Path:
        """Clone *repo* into *directory*, or refresh an existing clone.

        The checkout ends up at *tag*, else *commit*, else the tip of
        *branch*. A commit checkout always fetches full history.
        """
        full_history = commit is not None or not shallow
        url = repo_url(repo)

        if not directory.exists():
            directory.parent.mkdir(parents=True, exist_ok=True)
            args = ["-c", "advice.detachedHead=false", "clone"]
            if not full_history:
                args += ["--depth=1", "--no-tags"]
            args += ["--branch", tag or branch, url, str(directory)]
            await self._git(directory.parent, *args)
            logger.info("git_cloned", repo=url, dir=str(directory))
        else:
            logger.info("git_reuse", repo=url, dir=str(directory))

        await self.clean(directory)

        depth = [] if full_history else ["--depth=1", "--no-tags"]
        if tag:
            await self._git(directory, "fetch", *depth, "origin", "tag", tag)
            await self._git(
                directory, "-c", "advice.detachedHead=false", "checkout", "--force", f"tags/{tag}"
            )
        elif commit:
            await self._git(directory, "fetch", "origin")
            await self._git(
                directory, "-c", "advice.detachedHead=false", "checkout", "--force", commit
            )
        else:
            await self._git(directory, "fetch", *depth, "origin", branch)
            await self._git(directory, "checkout", "--force", "-B", branch, "FETCH_HEAD")
        return directory

    async def current_ref(self, cwd: Path) -> str:
        """Current branch name, or the commit sha when HEAD is detached."""
        ref = await self._git(cwd, "rev-parse", "--abbrev-ref", "HEAD")
        if ref == "HEAD":
            ref = await self._git(cwd, "rev-parse", "HEAD")
        return ref

    async def checkout_branch(self, cwd: Path, name: str, *, create: bool = False) -> None:
        if create:
            await self._git(cwd, "checkout", "-b", name)
        else:
            await self._git(cwd, "checkout", name)

    async def clean(self, cwd: Path) -> None:
        """Remove untracked and ignored files, e.g. a previous install."""
        await self._git(cwd, "clean", "-fdxq")

    async def reset_worktree(self, cwd: Path) -> None:
        await self._git(cwd, "reset", "--hard", "--quiet")
        await self.clean(cwd)

    async def commit_all(self, cwd: Path, message: str) -> None:
        """Stage every change in the working tree and commit it."""
        await self._git(cwd, "add", "-A")
        await self._shell.run(
            f"git {_COMMITTER} commit --allow-empty --no-verify --quiet -m {shlex.quote(message)}",
            cwd=cwd,
        )

    async def head_subject(self, cwd: Path) -> str:
        return await self._git(cwd, "log", "-1", "--format=%s")

    async def bisect_start(self, cwd: Path, *, bad: str, good: str) -> str:
        return await self._git(cwd, "bisect", "start", bad, good)

    async def bisect_step(self, cwd: Path, verdict: BisectVerdict) -> str:
        """Mark the current candidate and return git's report."""
        return await self._git(cwd, "bisect", str(verdict))

    async def bisect_reset(self, cwd: Path) -> None:
        await self._git(cwd, "bisect", "reset")
