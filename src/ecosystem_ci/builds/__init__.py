"""Bundled sibling build definitions, loaded by file path."""
