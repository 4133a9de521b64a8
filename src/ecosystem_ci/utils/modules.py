from __future__ import annotations

import importlib.util
import sys
from pathlib import Path
from types import ModuleType


def load_module_from_path(path: Path, namespace: str) -> ModuleType:
    """Import the Python file at *path* as ``<namespace>.<stem>``.

    Used for suite and build-definition modules, which live in plain
    directories rather than an installed package.

    Raises:
        ImportError: If no loader can be created for *path*.
    """
    module_name = f"{namespace}.{path.stem.replace('-', '_')}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load module from {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module
