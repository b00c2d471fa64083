# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""ModuleLocationCache - owner of all cache components and the control surface.

Owned Components:
- Canonicalizer: scope-relative path conversion
- CacheStore: in-memory document
- DocumentPersistence: load, debounced save, startup seed
- StatusReporter: counters and status messages
- ModuleLocationFinder: the import hook

Lifecycle:
    cache = ModuleLocationCache(CacheConfig(cache_file="/tmp/locations.json"))
    cache.start()      # load persisted document, install import hook
    ...                # imports are answered from the cache
    cache.stop()       # remove import hook, flush document

The module-level start()/stop()/save_cache()/save_startup_seed()/get_stats()
functions drive a process-wide default instance for hosts that do not need
more than one.
"""

import atexit
import logging
from typing import Any, Optional, Set

from modcache.canonical import Canonicalizer
from modcache.config import CacheConfig
from modcache.import_hook import ModuleLocationFinder, PathFinderResolver
from modcache.models import CacheStatistics
from modcache.persistence import DocumentPersistence, SaveCallback
from modcache.resolver import CachedResolver, Resolver
from modcache.status import StatusReporter
from modcache.store import CacheStore

logger = logging.getLogger(__name__)


class ModuleLocationCache:
    """Explicit context object holding one cache's configuration and state."""

    def __init__(self, config: Optional[CacheConfig] = None) -> None:
        self.config = config if config is not None else CacheConfig()

        self.reporter = StatusReporter(self.config.status_callback)
        self.canonicalizer = Canonicalizer(
            self.config.cache_scope, self.config.dependency_markers
        )
        self.store = CacheStore(self.config.version_tag, on_change=self._on_store_change)
        self.persistence = DocumentPersistence(
            self.store,
            self.reporter,
            cache_file=self.config.cache_file,
            startup_file=self.config.startup_file,
            save_timeout=self.config.save_timeout,
        )
        self.existence_memo: Set[str] = set()

        self._path_resolver = PathFinderResolver()
        self.finder = ModuleLocationFinder(
            self.wrap(self._path_resolver), self._path_resolver, self.config.cache_scope
        )
        self._running = False

    def _on_store_change(self) -> None:
        self.persistence.schedule_save()

    def wrap(self, resolver: Resolver) -> CachedResolver:
        """Return a CachedResolver around resolver sharing this cache's state."""
        return CachedResolver(
            resolver, self.store, self.canonicalizer, self.reporter, self.existence_memo
        )

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Load the persisted document and install the import hook."""
        if self._running:
            logger.warning("Module location cache already started")
            return
        self.persistence.load()
        self.finder.install()
        atexit.register(self._flush_at_exit)
        self._running = True
        logger.info(
            f"Module location cache started (scope={self.config.cache_scope}, "
            f"{len(self.store)} entries, version tag {self.store.version_tag!r})"
        )

    def stop(self) -> None:
        """Remove the import hook and flush the document once."""
        if not self._running:
            return
        self.finder.uninstall()
        atexit.unregister(self._flush_at_exit)
        self._running = False
        self.persistence.save()
        stats = self.get_stats()
        logger.info(
            f"Module location cache stopped: hits={stats.cache_hit}, "
            f"misses={stats.cache_miss}, not_cached={stats.not_cached}",
            extra={"extra_fields": stats.to_dict()},
        )

    def _flush_at_exit(self) -> None:
        # The debounce timer is a daemon thread and dies with the interpreter
        if self.persistence.has_pending_save:
            self.persistence.save()

    def save_cache(self, callback: Optional[SaveCallback] = None) -> bool:
        return self.persistence.save(callback)

    def save_startup_seed(self, callback: Optional[SaveCallback] = None) -> bool:
        return self.persistence.save_startup_seed(callback)

    def get_stats(self) -> CacheStatistics:
        return self.reporter.snapshot(self.store.version_tag)

    def __enter__(self) -> "ModuleLocationCache":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()


_default_cache: Optional[ModuleLocationCache] = None


def _get_default() -> ModuleLocationCache:
    global _default_cache
    if _default_cache is None:
        _default_cache = ModuleLocationCache()
    return _default_cache


def start(config: Optional[CacheConfig] = None, **overrides: Any) -> ModuleLocationCache:
    """Start the process-wide cache, replacing any running one.

    Args:
        config: Complete configuration. Mutually exclusive with overrides.
        **overrides: Keyword options used to build a CacheConfig.

    Returns:
        The started ModuleLocationCache.
    """
    global _default_cache
    if config is not None and overrides:
        raise TypeError("Pass either a CacheConfig or keyword options, not both")

    if _default_cache is not None and _default_cache.running:
        _default_cache.stop()

    _default_cache = ModuleLocationCache(config if config is not None else CacheConfig(**overrides))
    _default_cache.start()
    return _default_cache


def stop() -> None:
    if _default_cache is not None:
        _default_cache.stop()


def save_cache(callback: Optional[SaveCallback] = None) -> bool:
    return _get_default().save_cache(callback)


def save_startup_seed(callback: Optional[SaveCallback] = None) -> bool:
    return _get_default().save_startup_seed(callback)


def get_stats() -> CacheStatistics:
    return _get_default().get_stats()
