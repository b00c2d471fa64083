# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for modcache tests.

Provides a representative project layout with a virtualenv-style
site-packages directory, a config factory pointing every document at tmp_path,
and a fake resolver that records its calls.
"""

from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from modcache.config import CacheConfig
from modcache.models import CallerContext
from modcache.resolver import Resolver


class RecordingResolver(Resolver):
    """Resolver answering from a fixed table and recording every call."""

    def __init__(self, table: Dict[str, str]) -> None:
        self.table = table
        self.calls: List[Tuple[str, Optional[CallerContext]]] = []

    def resolve(self, request: str, caller: Optional[CallerContext]) -> Optional[str]:
        self.calls.append((request, caller))
        if request not in self.table:
            raise ModuleNotFoundError(f"No module named {request!r}", name=request)
        return self.table[request]

    def requests(self) -> List[str]:
        return [request for request, _ in self.calls]


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create a project with first-party code and installed dependencies.

    Layout:
        project/
            app/main.py
            app/helpers.py
            .venv/lib/python3/site-packages/express/__init__.py
            .venv/lib/python3/site-packages/express/router.py
            .venv/lib/python3/site-packages/lodash.py
    """
    root = tmp_path / "project"
    app = root / "app"
    app.mkdir(parents=True)
    (app / "main.py").write_text("import express\n")
    (app / "helpers.py").write_text("")

    site_packages = root / ".venv" / "lib" / "python3" / "site-packages"
    express = site_packages / "express"
    express.mkdir(parents=True)
    (express / "__init__.py").write_text("")
    (express / "router.py").write_text("")
    (site_packages / "lodash.py").write_text("")

    outside = tmp_path / "elsewhere"
    outside.mkdir()
    (outside / "shared.py").write_text("")
    return root


@pytest.fixture
def site_packages(project: Path) -> Path:
    return project / ".venv" / "lib" / "python3" / "site-packages"


@pytest.fixture
def resolver(project: Path, site_packages: Path) -> RecordingResolver:
    return RecordingResolver(
        {
            "express": str(site_packages / "express" / "__init__.py"),
            "express/router": str(site_packages / "express" / "router.py"),
            "lodash": str(site_packages / "lodash.py"),
            "./helpers": str(project / "app" / "helpers.py"),
            "shared": str(project.parent / "elsewhere" / "shared.py"),
        }
    )


@pytest.fixture
def make_config(tmp_path: Path, project: Path) -> Callable[..., CacheConfig]:
    """Factory for configs whose documents live under tmp_path."""

    def factory(**overrides: object) -> CacheConfig:
        overrides.setdefault("cache_scope", str(project))
        overrides.setdefault("cache_file", str(tmp_path / "state" / "cache.json"))
        overrides.setdefault("startup_file", str(tmp_path / "state" / "startup.json"))
        overrides.setdefault("version_tag", "1.0.0")
        return CacheConfig(config_path=tmp_path / "no-config.yml", **overrides)

    return factory
