# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Resolution engine: the cache hit / miss / not-cacheable decision.

Components:
- Resolver: interface every resolver implements
- DirectResolver: adapts a plain function to the interface
- CachedResolver: wraps another Resolver and memoizes its answers

Decision procedure for CachedResolver.resolve(request, caller):
1. No caller location -> delegate unchanged, no counters
2. Build the composite key from the caller's canonical path and the request
3. Cached entry whose file exists (existence memo first) -> cache hit
4. Otherwise delegate; store the answer only if it is inside the cache scope
   and inside a dependency directory (site-packages and friends), since
   first-party files change during development and must be re-resolved

Errors raised by the inner resolver always propagate unchanged.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Callable, Optional, Set

from modcache.canonical import Canonicalizer
from modcache.models import CallerContext
from modcache.status import StatusReporter
from modcache.store import CacheStore, make_key

logger = logging.getLogger(__name__)

ResolveFunction = Callable[[str, Optional[CallerContext]], Optional[str]]


class Resolver(ABC):
    """Maps a request string and caller context to an absolute path."""

    @abstractmethod
    def resolve(self, request: str, caller: Optional[CallerContext]) -> Optional[str]:
        """Resolve request on behalf of caller.

        Returns:
            Absolute path of the resolved module, or None when the request
            resolved to something without a file location.

        Raises:
            Exception: Resolver-specific error when the request cannot be
                satisfied (ModuleNotFoundError for the import resolver).
        """
        pass


class DirectResolver(Resolver):
    """Resolver backed by a plain function, with no caching."""

    def __init__(self, resolve_function: ResolveFunction) -> None:
        self._resolve_function = resolve_function

    def resolve(self, request: str, caller: Optional[CallerContext]) -> Optional[str]:
        return self._resolve_function(request, caller)


class CachedResolver(Resolver):
    """Memoizing decorator around another Resolver.

    Shares its store, canonicalizer, reporter and existence memo with the
    owning ModuleLocationCache, so several CachedResolvers can feed the same
    persisted document.
    """

    def __init__(
        self,
        inner: Resolver,
        store: CacheStore,
        canonicalizer: Canonicalizer,
        reporter: StatusReporter,
        existence_memo: Optional[Set[str]] = None,
    ) -> None:
        self.inner = inner
        self._store = store
        self._canonicalizer = canonicalizer
        self._reporter = reporter
        self._existence_memo: Set[str] = existence_memo if existence_memo is not None else set()

    def resolve(self, request: str, caller: Optional[CallerContext]) -> Optional[str]:
        if caller is None or caller.location is None:
            return self.inner.resolve(request, caller)

        canonical_caller = self._canonicalizer.to_canonical(caller.location)
        if canonical_caller is None:
            # Callers outside the scope cannot produce a persistable key
            filename = self.inner.resolve(request, caller)
            self._reporter.record_not_cached(filename or request)
            return filename

        key = make_key(canonical_caller, request)
        cached = self._store.get(key)
        if cached is not None:
            filename = self._canonicalizer.to_absolute(cached)
            if filename in self._existence_memo or os.path.exists(filename):
                self._existence_memo.add(filename)
                self._reporter.record_hit(filename)
                return filename
            logger.debug(f"Cached location for {key} no longer exists: {filename}")

        filename = self.inner.resolve(request, caller)
        canonical = self._canonicalizer.to_canonical(filename)
        if canonical is not None and self._canonicalizer.is_dependency(canonical):
            self._existence_memo.add(self._canonicalizer.to_absolute(canonical))
            self._store.set(key, canonical)
            self._reporter.record_miss(filename)
        else:
            self._reporter.record_not_cached(filename or request)
        return filename
