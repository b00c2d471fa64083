# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for the resolution engine (CachedResolver).

Covers the decision procedure for every request:
- no caller location: bypass
- cache hit (existence memo or filesystem)
- cache miss stored only for dependency files inside the scope
- not cached for first-party files and files outside the scope
- stale entries re-resolved transparently
- resolver errors propagated unchanged
"""

import json
import os
from pathlib import Path
from typing import Callable, Iterator, List

import pytest

from modcache.config import CacheConfig
from modcache.models import VERSION_FIELD, CallerContext
from modcache.resolver import DirectResolver
from modcache.service import ModuleLocationCache
from tests.conftest import RecordingResolver


@pytest.fixture
def cache(make_config: Callable[..., CacheConfig]) -> Iterator[ModuleLocationCache]:
    cache = ModuleLocationCache(make_config(save_timeout=60_000))
    cache.persistence.load()
    yield cache
    cache.persistence.cancel_scheduled_save()


def _run(
    config: CacheConfig, resolver: RecordingResolver, caller: CallerContext, requests: List[str]
) -> ModuleLocationCache:
    """Simulate one process run: load, resolve, flush."""
    run = ModuleLocationCache(config)
    run.persistence.load()
    cached = run.wrap(resolver)
    for request in requests:
        cached.resolve(request, caller)
    run.save_cache()
    return run


class TestBypass:
    """Requests without a caller location skip the cache entirely."""

    def test_no_caller(self, cache: ModuleLocationCache, resolver: RecordingResolver) -> None:
        cached = cache.wrap(resolver)

        result = cached.resolve("express", None)

        assert result == resolver.table["express"]
        assert resolver.calls == [("express", None)]
        stats = cache.get_stats()
        assert (stats.cache_hit, stats.cache_miss, stats.not_cached) == (0, 0, 0)
        assert len(cache.store) == 0

    def test_caller_without_location_passes_original_arguments(
        self, cache: ModuleLocationCache, resolver: RecordingResolver
    ) -> None:
        caller = CallerContext(None, search_path=["/somewhere"])

        cache.wrap(resolver).resolve("lodash", caller)

        assert resolver.calls == [("lodash", caller)]
        assert cache.get_stats().total == 0

    def test_caller_outside_scope_is_not_cached(
        self, cache: ModuleLocationCache, resolver: RecordingResolver, project: Path
    ) -> None:
        caller = CallerContext(str(project.parent / "elsewhere" / "shared.py"))

        result = cache.wrap(resolver).resolve("express", caller)

        assert result == resolver.table["express"]
        assert cache.get_stats().not_cached == 1
        assert len(cache.store) == 0


class TestMissAndHit:
    """Cache miss stores dependency locations; the next lookup hits."""

    def test_miss_then_hit(
        self, cache: ModuleLocationCache, resolver: RecordingResolver, project: Path
    ) -> None:
        cached = cache.wrap(resolver)
        caller = CallerContext(str(project))

        first = cached.resolve("express", caller)
        second = cached.resolve("express", caller)

        assert first == second == resolver.table["express"]
        assert resolver.requests() == ["express"]
        stats = cache.get_stats()
        assert stats.cache_miss == 1
        assert stats.cache_hit == 1
        assert cache.store.get(".:express") == ".venv/lib/python3/site-packages/express/__init__.py"

    def test_miss_schedules_save(
        self, cache: ModuleLocationCache, resolver: RecordingResolver, project: Path
    ) -> None:
        assert not cache.persistence.has_pending_save

        cache.wrap(resolver).resolve("lodash", CallerContext(str(project)))

        assert cache.persistence.has_pending_save

    def test_keys_are_per_caller(
        self, cache: ModuleLocationCache, resolver: RecordingResolver, project: Path
    ) -> None:
        cached = cache.wrap(resolver)

        cached.resolve("express", CallerContext(str(project)))
        cached.resolve("express", CallerContext(str(project / "app" / "main.py")))

        assert resolver.requests() == ["express", "express"]
        assert ".:express" in cache.store
        assert "app/main.py:express" in cache.store

    def test_hit_uses_existence_memo(
        self,
        cache: ModuleLocationCache,
        resolver: RecordingResolver,
        project: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        cached = cache.wrap(resolver)
        caller = CallerContext(str(project))
        cached.resolve("express", caller)

        probes: List[str] = []
        monkeypatch.setattr(
            "modcache.resolver.os.path.exists", lambda path: probes.append(path) or True
        )
        cached.resolve("express", caller)
        cached.resolve("express", caller)

        assert probes == []
        assert cache.get_stats().cache_hit == 2

    def test_hit_from_loaded_document_probes_once(
        self,
        make_config: Callable[..., CacheConfig],
        resolver: RecordingResolver,
        project: Path,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        state = tmp_path / "state"
        state.mkdir()
        (state / "cache.json").write_text(
            json.dumps(
                {
                    VERSION_FIELD: "1.0.0",
                    ".:express": ".venv/lib/python3/site-packages/express/__init__.py",
                }
            )
        )
        cache = ModuleLocationCache(make_config(save_timeout=60_000))
        cache.persistence.load()
        cached = cache.wrap(resolver)

        probes: List[str] = []
        real_exists = os.path.exists
        monkeypatch.setattr(
            "modcache.resolver.os.path.exists",
            lambda path: probes.append(path) or real_exists(path),
        )
        for _ in range(3):
            cached.resolve("express", CallerContext(str(project)))

        assert resolver.calls == []
        assert len(probes) == 1
        assert cache.get_stats().cache_hit == 3


class TestNotCached:
    """Locations that must always be freshly resolved."""

    def test_first_party_file(
        self, cache: ModuleLocationCache, resolver: RecordingResolver, project: Path
    ) -> None:
        cached = cache.wrap(resolver)
        caller = CallerContext(str(project / "app" / "main.py"))

        cached.resolve("./helpers", caller)
        cached.resolve("./helpers", caller)

        assert resolver.requests() == ["./helpers", "./helpers"]
        assert cache.get_stats().not_cached == 2
        assert len(cache.store) == 0
        assert not cache.persistence.has_pending_save

    def test_file_outside_scope(
        self, cache: ModuleLocationCache, resolver: RecordingResolver, project: Path
    ) -> None:
        result = cache.wrap(resolver).resolve("shared", CallerContext(str(project)))

        assert result == resolver.table["shared"]
        assert cache.get_stats().not_cached == 1
        assert len(cache.store) == 0

    def test_resolution_without_file(
        self, cache: ModuleLocationCache, project: Path
    ) -> None:
        cached = cache.wrap(DirectResolver(lambda request, caller: None))

        assert cached.resolve("namespace_pkg", CallerContext(str(project))) is None
        assert cache.get_stats().not_cached == 1

    def test_status_messages(
        self,
        make_config: Callable[..., CacheConfig],
        resolver: RecordingResolver,
        project: Path,
    ) -> None:
        messages: List[str] = []
        cache = ModuleLocationCache(make_config(save_timeout=60_000, status_callback=messages.append))
        cached = cache.wrap(resolver)
        caller = CallerContext(str(project))

        cached.resolve("express", caller)
        cached.resolve("express", caller)
        cached.resolve("shared", caller)
        cache.persistence.cancel_scheduled_save()

        express = resolver.table["express"]
        assert f"cache miss on module [{express}]" in messages
        assert f"cache hit on module [{express}]" in messages
        assert f"module [{resolver.table['shared']}] not cached" in messages


class TestStaleEntries:
    """Recorded paths that no longer exist are re-resolved."""

    def test_missing_file_is_re_resolved(
        self,
        cache: ModuleLocationCache,
        resolver: RecordingResolver,
        project: Path,
        site_packages: Path,
    ) -> None:
        cache.store.adopt(
            {VERSION_FIELD: "1.0.0", ".:express": ".venv/lib/python3/site-packages/gone/__init__.py"}
        )

        result = cache.wrap(resolver).resolve("express", CallerContext(str(project)))

        assert result == str(site_packages / "express" / "__init__.py")
        assert resolver.requests() == ["express"]
        stats = cache.get_stats()
        assert stats.cache_hit == 0
        assert stats.cache_miss == 1
        assert cache.store.get(".:express") == ".venv/lib/python3/site-packages/express/__init__.py"


class TestErrors:
    """Resolver failures are never masked."""

    def test_resolver_error_propagates(
        self, cache: ModuleLocationCache, resolver: RecordingResolver, project: Path
    ) -> None:
        cached = cache.wrap(resolver)

        with pytest.raises(ModuleNotFoundError):
            cached.resolve("does-not-exist", CallerContext(str(project)))
        with pytest.raises(ModuleNotFoundError):
            cached.resolve("does-not-exist", None)

        assert cache.get_stats().total == 0

    def test_custom_error_is_not_translated(
        self, cache: ModuleLocationCache, project: Path
    ) -> None:
        class LookupFailed(Exception):
            pass

        def fail(request: str, caller: object) -> str:
            raise LookupFailed(request)

        with pytest.raises(LookupFailed):
            cache.wrap(DirectResolver(fail)).resolve("x", CallerContext(str(project)))


class TestPersistedRuns:
    """Behaviour across simulated process runs sharing document files."""

    def test_cold_run_counts(
        self,
        make_config: Callable[..., CacheConfig],
        resolver: RecordingResolver,
        project: Path,
    ) -> None:
        requests = ["express", "lodash", "./helpers", "shared"]
        run = _run(make_config(), resolver, CallerContext(str(project)), requests)

        stats = run.get_stats()
        assert stats.cache_hit == 0
        assert stats.cache_miss + stats.not_cached == len(requests)
        assert stats.cache_miss == 2

    def test_version_tag_scenario(
        self,
        make_config: Callable[..., CacheConfig],
        resolver: RecordingResolver,
        project: Path,
        tmp_path: Path,
    ) -> None:
        caller = CallerContext(str(project))

        run_a = _run(make_config(version_tag="1.0.0"), resolver, caller, ["express"])
        assert run_a.get_stats().cache_miss == 1
        document = json.loads((tmp_path / "state" / "cache.json").read_text())
        assert document[VERSION_FIELD] == "1.0.0"
        assert ".:express" in document

        resolver.calls.clear()
        run_b = _run(make_config(version_tag="1.0.0"), resolver, caller, ["express"])
        assert run_b.get_stats().cache_hit == 1
        assert resolver.calls == []

        run_c = _run(make_config(version_tag="1.0.1"), resolver, caller, ["express"])
        stats = run_c.get_stats()
        assert stats.cache_hit == 0
        assert stats.cache_miss == 1
        assert stats.version_tag == "1.0.1"
        assert resolver.requests() == ["express"]

    def test_uncacheable_locations_are_never_persisted(
        self,
        make_config: Callable[..., CacheConfig],
        resolver: RecordingResolver,
        project: Path,
        tmp_path: Path,
    ) -> None:
        _run(make_config(), resolver, CallerContext(str(project)), ["express", "./helpers", "shared"])

        document = json.loads((tmp_path / "state" / "cache.json").read_text())
        assert set(document) == {VERSION_FIELD, ".:express"}

    def test_startup_seed_used_when_cache_file_deleted(
        self,
        make_config: Callable[..., CacheConfig],
        resolver: RecordingResolver,
        project: Path,
        tmp_path: Path,
    ) -> None:
        caller = CallerContext(str(project))
        run_a = _run(make_config(), resolver, caller, ["express", "lodash"])
        run_a.save_startup_seed()
        (tmp_path / "state" / "cache.json").unlink()

        resolver.calls.clear()
        run_b = _run(make_config(), resolver, caller, ["express", "lodash"])

        stats = run_b.get_stats()
        assert stats.cache_hit == 2
        assert resolver.calls == []
        assert stats.load_status.startup_file.startswith("loaded startup file")

    def test_corrupt_cache_file_still_resolves(
        self,
        make_config: Callable[..., CacheConfig],
        resolver: RecordingResolver,
        project: Path,
        tmp_path: Path,
    ) -> None:
        state = tmp_path / "state"
        state.mkdir()
        (state / "cache.json").write_text("{{{ definitely not json")

        run = _run(make_config(), resolver, CallerContext(str(project)), ["express"])

        stats = run.get_stats()
        assert stats.cache_miss == 1
        assert stats.load_status.cache_file.startswith("failed to load or parse cache file")
