# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Conversion between absolute paths and scope-relative canonical paths."""

import os
from typing import Iterable, Optional


class Canonicalizer:
    """Maps absolute paths into the cache scope and back.

    Canonical paths are relative to the scope and always use ``/`` as the
    separator, so persisted documents compare equal across platforms.
    """

    def __init__(self, cache_scope: str, dependency_markers: Iterable[str] = ()) -> None:
        self.cache_scope = os.path.abspath(cache_scope)
        self._dependency_markers = frozenset(dependency_markers)

    def to_canonical(self, absolute_path: Optional[str]) -> Optional[str]:
        """Return the scope-relative form of a path.

        Returns:
            Relative path with ``/`` separators, or None if the path is empty
            or lies outside the scope.
        """
        if not absolute_path:
            return None
        try:
            relative = os.path.relpath(absolute_path, self.cache_scope)
        except ValueError:
            # Different drive on Windows
            return None

        if relative == os.pardir or relative.startswith(os.pardir + os.sep):
            return None
        return relative.replace(os.sep, "/")

    def to_absolute(self, canonical_path: str) -> str:
        return os.path.normpath(os.path.join(self.cache_scope, *canonical_path.split("/")))

    def is_dependency(self, canonical_path: str) -> bool:
        """Check whether a canonical path lives inside a dependency directory."""
        return any(part in self._dependency_markers for part in canonical_path.split("/"))
