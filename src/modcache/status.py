# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Resolution counters and the status message sink.

Every notable event (load outcome, hit, miss, save) is funnelled through
StatusReporter.report(), which logs it and forwards it to the configured
status callback. Nothing here feeds back into resolution decisions.
"""

import logging
from typing import Optional

from modcache.config import StatusCallback
from modcache.models import CacheStatistics, LoadStatus

logger = logging.getLogger(__name__)


class StatusReporter:
    """Passive counters plus the human-readable status stream."""

    def __init__(self, callback: Optional[StatusCallback] = None) -> None:
        self._callback = callback
        self.cache_hit = 0
        self.cache_miss = 0
        self.not_cached = 0
        self.load_status = LoadStatus()

    def report(self, message: str, level: int = logging.DEBUG) -> None:
        logger.log(level, message)
        if self._callback is None:
            return
        try:
            self._callback(message)
        except Exception as e:
            logger.error(f"Status callback failed for message {message!r}: {e}")

    def begin_load(self) -> None:
        self.load_status = LoadStatus()

    def record_load(self, source: str, message: str, level: int = logging.DEBUG) -> None:
        """Record the load outcome for source ("cache_file" or "startup_file")."""
        setattr(self.load_status, source, message)
        self.report(message, level)

    def record_hit(self, filename: str) -> None:
        self.cache_hit += 1
        self.report(f"cache hit on module [{filename}]")

    def record_miss(self, filename: str) -> None:
        self.cache_miss += 1
        self.report(f"cache miss on module [{filename}]")

    def record_not_cached(self, filename: str) -> None:
        self.not_cached += 1
        self.report(f"module [{filename}] not cached")

    def snapshot(self, version_tag: Optional[str]) -> CacheStatistics:
        return CacheStatistics(
            cache_hit=self.cache_hit,
            cache_miss=self.cache_miss,
            not_cached=self.not_cached,
            version_tag=version_tag,
            load_status=LoadStatus(
                cache_file=self.load_status.cache_file,
                startup_file=self.load_status.startup_file,
            ),
        )
