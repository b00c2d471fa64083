# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Persistent cache of module import locations."""

from .canonical import Canonicalizer
from .config import DEFAULT_CACHE_FILE, DEFAULT_STARTUP_FILE, CacheConfig, ConfigurationError
from .import_hook import ModuleLocationFinder, PathFinderResolver
from .models import VERSION_FIELD, CacheStatistics, CallerContext, LoadStatus
from .persistence import DocumentPersistence, read_document, write_document
from .resolver import CachedResolver, DirectResolver, Resolver
from .service import (
    ModuleLocationCache,
    get_stats,
    save_cache,
    save_startup_seed,
    start,
    stop,
)
from .status import StatusReporter
from .store import CacheStore, make_key

from .version import __version__

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DEFAULT_CACHE_FILE",
    "DEFAULT_STARTUP_FILE",
    "Canonicalizer",
    "CacheStore",
    "make_key",
    "DocumentPersistence",
    "read_document",
    "write_document",
    "Resolver",
    "DirectResolver",
    "CachedResolver",
    "PathFinderResolver",
    "ModuleLocationFinder",
    "StatusReporter",
    "CallerContext",
    "CacheStatistics",
    "LoadStatus",
    "VERSION_FIELD",
    "ModuleLocationCache",
    "start",
    "stop",
    "save_cache",
    "save_startup_seed",
    "get_stats",
]
