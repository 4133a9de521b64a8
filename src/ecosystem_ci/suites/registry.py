"""Suite registry — named subjects, one Python module each.

A suite module exposes::

    async def test(run: RunInRepo, options: RunOptions) -> None:
        await run(options, repo="vuejs/vitepress", build="build", test="test")

Modules whose name starts with ``_`` can be run by name but are not
listed.
"""
from __future__ import annotations

import inspect
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol

import structlog

from ecosystem_ci.core.exceptions import SuiteNotFoundError
from ecosystem_ci.utils.modules import load_module_from_path

if TYPE_CHECKING:
    from ecosystem_ci.core.config import RunOptions

logger = structlog.get_logger(__name__)

BUNDLED_SUITES_DIR = Path(__file__).resolve().parent / "bundled"


class RunInRepo(Protocol):
    def __call__(self, options: RunOptions, **repo: Any) -> Awaitable[Any]: ...


SuiteTest = Callable[["RunInRepo", "RunOptions"], Awaitable[Any]]


class SuiteRegistry:
    """Discovers suite modules in *directory* (bundled suites by default)."""

    def __init__(self, directory: Path | None = None) -> None:
        self.directory = directory or BUNDLED_SUITES_DIR

    def __repr__(self) -> str:
        return f"SuiteRegistry(directory={str(self.directory)!r})"

    def names(self) -> list[str]:
        """Listed suite names, sorted."""
        if not self.directory.is_dir():
            return []
        return sorted(
            path.stem for path in self.directory.glob("*.py") if not path.name.startswith("_")
        )

    def get(self, name: str) -> SuiteTest:
        """Load suite *name* and return its ``test`` coroutine function.

        Raises:
            SuiteNotFoundError: If no module is named *name* or it has no
                async ``test``.
        """
        path = self.directory / f"{name}.py"
        if not path.is_file():
            raise SuiteNotFoundError(
                f"Suite {name!r} not found in {self.directory}",
                code="SUITE_NOT_FOUND",
                details={"suite": name, "available": self.names()},
            )
        module = load_module_from_path(path, "ecosystem_ci_suites")
        test = getattr(module, "test", None)
        if test is None or not inspect.iscoroutinefunction(test):
            raise SuiteNotFoundError(
                f"Suite {name!r} must define 'async def test(run, options)'",
                code="SUITE_INVALID",
                details={"suite": name},
            )
        return test


async def run_suites(
    registry: SuiteRegistry,
    names: Iterable[str],
    run_in_repo: RunInRepo,
    options: RunOptions,
) -> list[str]:
    """Run suites one after another and return the names that failed.

    Each suite gets its own copy of *options*, so state resolved by one
    run (e.g. the detected agent) does not leak into the next.
    """
    failed: list[str] = []
    for name in names:
        logger.info("suite_started", suite=name)
        try:
            test = registry.get(name)
            await test(run_in_repo, options.model_copy(deep=True))
        except Exception as exc:
            logger.error("suite_failed", suite=name, error=str(exc))
            failed.append(name)
        else:
            logger.info("suite_passed", suite=name)
    return failed
