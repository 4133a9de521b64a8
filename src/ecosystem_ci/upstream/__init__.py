"""Upstream checkout and build."""
from __future__ import annotations

from ecosystem_ci.upstream.builder import UpstreamBuilder

__all__ = ["UpstreamBuilder"]
