# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Data models for the module location cache.

Defines the caller context handed to resolvers and the statistics snapshot
returned to operators and tests.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

# Reserved document key holding the version tag
VERSION_FIELD = "_cacheKiller"


@dataclass(frozen=True)
class CallerContext:
    """Identity of the location a resolution request originates from.

    Attributes:
        location: Absolute path identifying the caller. None means no
            composite key can be built and the cache is bypassed.
        search_path: Search locations the underlying resolver should probe
            (a parent package's ``__path__``), or None for the default.
        target: Module object being reloaded, passed through to the resolver.
    """

    location: Optional[str]
    search_path: Optional[Sequence[str]] = None
    target: Any = None


@dataclass
class LoadStatus:
    """Most recent load outcome for each candidate document."""

    cache_file: str = "did not attempt to load cache file"
    startup_file: str = "did not attempt to load startup file"

    def to_dict(self) -> Dict[str, str]:
        return {"cache_file": self.cache_file, "startup_file": self.startup_file}


@dataclass
class CacheStatistics:
    """Read-only snapshot of resolution counters and load status."""

    cache_hit: int = 0
    cache_miss: int = 0
    not_cached: int = 0
    version_tag: Optional[str] = None
    load_status: LoadStatus = field(default_factory=LoadStatus)

    @property
    def total(self) -> int:
        """Number of resolutions that went through the cache decision."""
        return self.cache_hit + self.cache_miss + self.not_cached

    @property
    def hit_rate(self) -> float:
        """Hit rate as percentage (0.0-100.0), or 0.0 if nothing was resolved."""
        if self.total == 0:
            return 0.0
        return (self.cache_hit / self.total) * 100.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "cache_hit": self.cache_hit,
            "cache_miss": self.cache_miss,
            "not_cached": self.not_cached,
            "version_tag": self.version_tag,
            "load_status": self.load_status.to_dict(),
        }
