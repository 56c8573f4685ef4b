"""Filesystem, JSON and platform validation helpers."""
