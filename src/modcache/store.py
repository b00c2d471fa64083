# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""In-memory cache document: composite keys to canonical paths.

Thread Safety:
- Resolution runs on the importing thread; the debounced save reads a
  snapshot from a timer thread. _lock protects _entries and _document_tag
  for writes and snapshots.
- get() is lock-free (single dict lookup, GIL-protected).
"""

import logging
from threading import Lock
from typing import Any, Callable, Dict, Mapping, Optional

from modcache.models import VERSION_FIELD

logger = logging.getLogger(__name__)


def make_key(canonical_caller: str, request: str) -> str:
    """Build the composite key identifying one resolution call site."""
    return f"{canonical_caller}:{request}"


class CacheStore:
    """Single source of truth for cached locations during the process lifetime.

    Entries only accumulate. The whole document may be replaced (reset/adopt)
    but individual entries are only ever overwritten, never partially updated.
    """

    def __init__(
        self,
        version_tag: Optional[str] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        """Initialize an empty document carrying version_tag.

        Args:
            version_tag: Configured invalidation token.
            on_change: Called after every set(), outside the lock.
        """
        self._configured_tag = version_tag
        self._on_change = on_change
        self._lock = Lock()
        self._entries: Dict[str, str] = {}
        self._document_tag = version_tag

    @property
    def configured_tag(self) -> Optional[str]:
        """Version tag a persisted document must carry to be accepted."""
        return self._configured_tag

    @property
    def version_tag(self) -> Optional[str]:
        """Version tag of the document currently held."""
        return self._document_tag

    def accepts(self, document: Mapping[str, Any]) -> bool:
        """Check whether a loaded document matches the configured version tag."""
        if not self._configured_tag:
            return True
        return document.get(VERSION_FIELD) == self._configured_tag

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def set(self, key: str, canonical_path: str) -> None:
        with self._lock:
            self._entries[key] = canonical_path
        if self._on_change is not None:
            self._on_change()

    def reset(self) -> None:
        """Replace the document with an empty one carrying the configured tag."""
        with self._lock:
            self._entries = {}
            self._document_tag = self._configured_tag
        logger.debug(f"Cache document reset (version tag {self._configured_tag!r})")

    def adopt(self, document: Mapping[str, Any]) -> None:
        """Replace the held document with a loaded one.

        Entries whose value is not a string are dropped.
        """
        entries: Dict[str, str] = {}
        skipped = 0
        for key, value in document.items():
            if key == VERSION_FIELD:
                continue
            if isinstance(value, str):
                entries[key] = value
            else:
                skipped += 1

        if skipped:
            logger.warning(f"Dropped {skipped} malformed cache entries while loading document")

        tag = document.get(VERSION_FIELD)
        with self._lock:
            self._entries = entries
            self._document_tag = tag if isinstance(tag, str) else self._configured_tag

    def snapshot(self) -> Dict[str, Any]:
        """Return a copy of the document in its persisted form."""
        with self._lock:
            document: Dict[str, Any] = {}
            if self._document_tag is not None:
                document[VERSION_FIELD] = self._document_tag
            document.update(self._entries)
            return document

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
