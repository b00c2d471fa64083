# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Loading and debounced saving of cache documents.

Two documents are involved:
- cache file: volatile, rewritten after every burst of cache misses
- startup file: stable seed, written only on request and usually committed
  alongside the host project

load() prefers the cache file and falls back to the startup file; a document
is adopted only if its version tag matches the configured one. Read and write
failures never escape this module: they become status messages and the
in-memory document stays authoritative.

Debouncing (schedule_save):
- At most one pending threading.Timer at a time
- Each cache mutation cancels the pending timer and starts a new one, so a
  burst of N misses produces a single write save_timeout ms after the last
"""

import json
import logging
import os
import tempfile
import threading
from typing import Any, Callable, Dict, Optional, Union

from modcache.status import StatusReporter
from modcache.store import CacheStore

logger = logging.getLogger(__name__)

SaveCallback = Callable[[Optional[Exception]], None]


class DocumentFormatError(ValueError):
    """Raised when a document parses as JSON but is not a JSON object."""

    pass


def read_document(path: str) -> Dict[str, Any]:
    """Read and parse a cache document.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the content is not valid JSON or not a JSON object.
    """
    with open(path, encoding="utf-8") as f:
        document = json.load(f)
    if not isinstance(document, dict):
        raise DocumentFormatError(f"expected a JSON object, got {type(document).__name__}")
    return document


def write_document(path: str, document: Dict[str, Any], indent: Optional[int] = None) -> None:
    """Atomically write a cache document.

    Content goes to a temporary file in the target directory first and is
    moved into place with os.replace, so readers never see a partial file.

    Raises:
        OSError: If the directory cannot be created or the file written.
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    payload = json.dumps(document, indent=indent, sort_keys=indent is not None)

    fd, tmp_path = tempfile.mkstemp(prefix=".modcache-", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_path, path)
    except OSError:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class DocumentPersistence:
    """Persistence layer for a CacheStore.

    Usage:
        persistence = DocumentPersistence(store, reporter, cache_file, startup_file)
        persistence.load()
        persistence.schedule_save()   # after each cache mutation
        persistence.save()            # explicit flush
    """

    def __init__(
        self,
        store: CacheStore,
        reporter: StatusReporter,
        cache_file: str,
        startup_file: str,
        save_timeout: Union[int, float] = 1000,
    ) -> None:
        """Initialize persistence.

        Args:
            store: Document to load into and save from.
            reporter: Status sink for load/save outcomes.
            cache_file: Path of the volatile cache document.
            startup_file: Path of the startup seed document.
            save_timeout: Debounce delay in milliseconds.
        """
        self._store = store
        self._reporter = reporter
        self.cache_file = cache_file
        self.startup_file = startup_file
        self.save_timeout = save_timeout

        self._timer: Optional[threading.Timer] = None
        self._timer_lock = threading.Lock()

    def load(self) -> bool:
        """Load the store from the cache file, else the startup file, else reset it.

        Returns:
            True if a persisted document was adopted.
        """
        self._reporter.begin_load()
        adopted = self._try_load(self.cache_file, "cache", "cache_file") or self._try_load(
            self.startup_file, "startup", "startup_file"
        )
        if not adopted:
            self._store.reset()
        return adopted

    def _try_load(self, path: str, caption: str, source: str) -> bool:
        try:
            if not os.path.exists(path):
                self._reporter.record_load(source, f"{caption} file not found at [{path}]")
                return False

            document = read_document(path)
            if not self._store.accepts(document):
                self._reporter.record_load(
                    source,
                    f"dismissed {caption} file from [{path}] because of different cache killer",
                    logging.INFO,
                )
                return False

            self._store.adopt(document)
            self._reporter.record_load(source, f"loaded {caption} file from [{path}]", logging.INFO)
            return True
        except (OSError, ValueError) as e:
            self._reporter.record_load(
                source,
                f"failed to load or parse {caption} file from [{path}] with error [{e}]",
                logging.WARNING,
            )
            return False

    def save(self, callback: Optional[SaveCallback] = None) -> bool:
        """Write the document to the cache file, cancelling any pending save.

        Args:
            callback: Called with the write error, or None on success.

        Returns:
            True if the document was written.
        """
        self.cancel_scheduled_save()
        return self._write(self.cache_file, "cache", callback)

    def save_startup_seed(self, callback: Optional[SaveCallback] = None) -> bool:
        """Write the document to the startup file.

        The seed is written indented with sorted keys so it diffs cleanly
        when committed.
        """
        return self._write(self.startup_file, "startup", callback, indent=2)

    def _write(
        self,
        path: str,
        caption: str,
        callback: Optional[SaveCallback],
        indent: Optional[int] = None,
    ) -> bool:
        error: Optional[Exception] = None
        try:
            write_document(path, self._store.snapshot(), indent=indent)
        except OSError as e:
            error = e
            self._reporter.report(
                f"failed to save {caption} file to [{path}] with error [{e}]", logging.WARNING
            )
        else:
            self._reporter.report(f"saved {caption} file to [{path}]")

        if callback is not None:
            callback(error)
        return error is None

    def schedule_save(self) -> None:
        """Arrange a save after save_timeout ms, replacing any pending one."""
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.save_timeout / 1000.0, self._on_timer)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel_scheduled_save(self) -> None:
        """Cancel a pending save without writing."""
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def has_pending_save(self) -> bool:
        return self._timer is not None

    def _on_timer(self) -> None:
        with self._timer_lock:
            # Superseded by a newer schedule or cancelled after firing
            if self._timer is not threading.current_thread():
                return
            self._timer = None
        self._write(self.cache_file, "cache", None)
