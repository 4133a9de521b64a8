from __future__ import annotations

import re
from enum import StrEnum


class AgentName(StrEnum):
    NPM = "npm"
    YARN = "yarn"
    YARN_BERRY = "yarn@berry"
    PNPM = "pnpm"
    PNPM6 = "pnpm@6"
    BUN = "bun"


class PipelineState(StrEnum):
    START = "start"
    BRANCH_CREATED = "branch_created"
    AGENT_RESOLVED = "agent_resolved"
    INSTALLED = "installed"
    PRE_VERIFIED = "pre_verified"
    OVERRIDES_APPLIED = "overrides_applied"
    BEFORE_BUILD_RAN = "before_build_ran"
    BUILT = "built"
    TEST_RAN = "test_ran"
    E2E_RAN = "e2e_ran"
    FINALIZED = "finalized"


class BisectVerdict(StrEnum):
    GOOD = "good"
    BAD = "bad"
    SKIP = "skip"


SUCCESS_COMMIT_MESSAGE = "ecosystem-ci: run succeeded"
FAILURE_COMMIT_MESSAGE = "ecosystem-ci: run failed"

BRANCH_PREFIX = "ecosystem-ci"

# git prints this while more revisions remain to be tested
BISECTING_PREFIX = "bisecting:"

NON_CODE_COMMIT = re.compile(r"^(?:release|docs)[:(]")

MANIFEST_FILE = "package.json"
