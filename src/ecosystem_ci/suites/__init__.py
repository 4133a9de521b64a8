"""Named subjects run against the upstream."""
from __future__ import annotations

from ecosystem_ci.suites.registry import (
    BUNDLED_SUITES_DIR,
    RunInRepo,
    SuiteRegistry,
    SuiteTest,
    run_suites,
)

__all__ = ["BUNDLED_SUITES_DIR", "RunInRepo", "SuiteRegistry", "SuiteTest", "run_suites"]
