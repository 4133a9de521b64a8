"""In-memory view of a subject's ``package.json``."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ecosystem_ci.core.constants import MANIFEST_FILE


class PackageManifest:
    """A ``package.json`` document that keeps key order and unknown fields.

    Mutations happen in place on the underlying mapping; :meth:`save`
    writes the mutated form back as pretty-printed JSON.
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.data: dict[str, Any] = data if data is not None else {}

    def __repr__(self) -> str:
        return f"PackageManifest(name={self.name!r})"

    @classmethod
    def load(cls, directory: Path) -> PackageManifest:
        path = directory / MANIFEST_FILE
        return cls(json.loads(path.read_text(encoding="utf-8")))

    def save(self, directory: Path) -> Path:
        path = directory / MANIFEST_FILE
        path.write_text(json.dumps(self.data, indent=2) + "\n", encoding="utf-8")
        return path

    @property
    def name(self) -> str | None:
        return self.data.get("name")

    @property
    def scripts(self) -> dict[str, str]:
        return dict(self.data.get("scripts") or {})

    @property
    def dependencies(self) -> dict[str, str]:
        return dict(self.data.get("dependencies") or {})

    @property
    def dev_dependencies(self) -> dict[str, str]:
        return dict(self.data.get("devDependencies") or {})

    @property
    def peer_dependencies(self) -> dict[str, str]:
        return dict(self.data.get("peerDependencies") or {})

    def dependency_names(self) -> set[str]:
        """Names declared as dependency, devDependency or peerDependency."""
        return {
            *self.dependencies,
            *self.dev_dependencies,
            *self.peer_dependencies,
        }

    def block(self, *path: str) -> dict[str, Any]:
        """Return the nested object at *path*, creating empty ones on the way.

        ``manifest.block("pnpm", "overrides")`` gives the live mapping that
        ends up under ``"pnpm": {"overrides": {...}}``.
        """
        node = self.data
        for key in path:
            child = node.get(key)
            if not isinstance(child, dict):
                child = {}
                node[key] = child
            node = child
        return node
