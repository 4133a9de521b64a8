from __future__ import annotations

from ecosystem_ci.core.config import RunOptions
from ecosystem_ci.suites.registry import RunInRepo


async def test(run: RunInRepo, options: RunOptions) -> None:
    await run(
        options,
        repo="vitejs/vite-plugin-vue",
        build="build",
        before_test="pnpm playwright install chromium",
        test=["test-serve", "test-build"],
    )
