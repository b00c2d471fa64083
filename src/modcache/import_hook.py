# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Import system integration.

ModuleLocationFinder sits in sys.meta_path immediately before PathFinder, so
builtin and frozen modules are handled by the finders ahead of it. For every
other import it asks a CachedResolver for the module's file:
- cache hit: the spec is rebuilt from the cached file location, skipping the
  sys.path directory walk
- cache miss: PathFinder runs as usual and its spec is returned unchanged

Caller context for an import is the search location owning the lookup: the
parent package's directory for submodules, the cache scope for top-level
imports (which always walk sys.path).
"""

import logging
import sys
import threading
from importlib.abc import MetaPathFinder
from importlib.machinery import ModuleSpec, PathFinder
from importlib.util import spec_from_file_location
from typing import Any, Optional, Sequence

from modcache.models import CallerContext
from modcache.resolver import CachedResolver, Resolver

logger = logging.getLogger(__name__)


class PathFinderResolver(Resolver):
    """Resolver over importlib's PathFinder.

    The spec found by the last resolve() call on the current thread is kept
    so the finder can return it as-is instead of rebuilding it.
    """

    def __init__(self) -> None:
        self._local = threading.local()

    def resolve(self, request: str, caller: Optional[CallerContext]) -> Optional[str]:
        search_path = caller.search_path if caller is not None else None
        target = caller.target if caller is not None else None
        spec = PathFinder.find_spec(request, search_path, target)
        if spec is None:
            raise ModuleNotFoundError(f"No module named {request!r}", name=request)

        self._local.spec = spec
        # Namespace packages have no single file to cache
        return spec.origin if spec.has_location else None

    def take_spec(self) -> Optional[ModuleSpec]:
        """Return and forget the spec found by the last resolve() on this thread."""
        spec = getattr(self._local, "spec", None)
        self._local.spec = None
        return spec


class ModuleLocationFinder(MetaPathFinder):
    """Meta path finder answering imports from the module location cache."""

    def __init__(
        self, cached_resolver: CachedResolver, path_resolver: PathFinderResolver, cache_scope: str
    ) -> None:
        self._cached_resolver = cached_resolver
        self._path_resolver = path_resolver
        self._cache_scope = cache_scope

    def find_spec(
        self,
        fullname: str,
        path: Optional[Sequence[str]] = None,
        target: Any = None,
    ) -> Optional[ModuleSpec]:
        caller = self._caller_for(path, target)
        self._path_resolver.take_spec()
        try:
            location = self._cached_resolver.resolve(fullname, caller)
        except ModuleNotFoundError:
            # Let the remaining finders have a go
            return None

        spec = self._path_resolver.take_spec()
        if spec is not None:
            return spec
        if location is None:
            return None
        return spec_from_file_location(fullname, location)

    def _caller_for(self, path: Optional[Sequence[str]], target: Any) -> CallerContext:
        if path is None:
            return CallerContext(self._cache_scope, None, target)
        entries = list(path)
        if not entries:
            return CallerContext(None, path, target)
        return CallerContext(entries[0], path, target)

    def install(self) -> None:
        """Insert the finder just ahead of PathFinder in sys.meta_path."""
        if self in sys.meta_path:
            return
        try:
            index = sys.meta_path.index(PathFinder)
        except ValueError:
            index = len(sys.meta_path)
        sys.meta_path.insert(index, self)
        logger.debug(f"Installed module location finder at sys.meta_path[{index}]")

    def uninstall(self) -> None:
        try:
            sys.meta_path.remove(self)
        except ValueError:
            return
        logger.debug("Removed module location finder from sys.meta_path")

    @property
    def installed(self) -> bool:
        return self in sys.meta_path
