"""Shared test fixtures."""
from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pytest

from ecosystem_ci.core.config import EcosystemConfig
from ecosystem_ci.core.exceptions import CommandFailedError
from ecosystem_ci.runtime.git import Git


class FakeShell:
    """Records every command and answers from scripted responses.

    Responses and failures are matched by substring, first registered
    match wins. A response given several outputs returns them in turn and
    then keeps repeating the last one.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Path]] = []
        self._responses: list[tuple[str, list[str]]] = []
        self._failures: list[dict[str, Any]] = []

    @property
    def commands(self) -> list[str]:
        return [command for command, _ in self.calls]

    def respond(self, pattern: str, *outputs: str) -> None:
        self._responses.append((pattern, list(outputs)))

    def fail(
        self,
        pattern: str,
        output: str = "",
        *,
        exit_code: int = 1,
        times: int | None = None,
    ) -> None:
        self._failures.append(
            {"pattern": pattern, "output": output, "exit_code": exit_code, "times": times}
        )

    async def run(
        self,
        command: str,
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> str:
        self.calls.append((command, cwd))
        for failure in self._failures:
            if failure["pattern"] not in command or failure["times"] == 0:
                continue
            if failure["times"] is not None:
                failure["times"] -= 1
            raise CommandFailedError(
                f"Command failed with exit code {failure['exit_code']}: {command}",
                command=command,
                cwd=cwd,
                exit_code=failure["exit_code"],
                output=failure["output"],
            )
        for pattern, outputs in self._responses:
            if pattern in command:
                return outputs.pop(0) if len(outputs) > 1 else outputs[0]
        return ""


def write_manifest(directory: Path, data: dict[str, Any]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "package.json"
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path


def read_manifest(directory: Path) -> dict[str, Any]:
    return json.loads((directory / "package.json").read_text(encoding="utf-8"))


@pytest.fixture
def fake_shell() -> FakeShell:
    return FakeShell()


@pytest.fixture
def git(fake_shell: FakeShell) -> Git:
    return Git(fake_shell)


@pytest.fixture
def config(tmp_path: Path) -> EcosystemConfig:
    return EcosystemConfig(
        workspace=tmp_path,
        upstream_package="upstream-lib",
        upstream_package_dir="packages/upstream-lib",
        upstream_companions={},
        upstream_pins=[],
    )


@pytest.fixture
def subject_dir(tmp_path: Path) -> Path:
    """A pnpm subject with build and test scripts."""
    directory = tmp_path / "subject"
    write_manifest(
        directory,
        {
            "name": "subject",
            "scripts": {"build": "tsc", "test": "vitest run"},
            "dependencies": {"upstream-lib": "^2.0.0"},
        },
    )
    (directory / "pnpm-lock.yaml").write_text("lockfileVersion: '9.0'\n", encoding="utf-8")
    return directory
