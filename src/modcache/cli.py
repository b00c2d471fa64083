# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Command line tool for inspecting and maintaining cache documents.

Usage:
    python -m modcache show                 # entries in the cache file
    python -m modcache show --startup       # entries in the startup seed
    python -m modcache check                # report entries whose file is gone
    python -m modcache seed                 # copy the cache file into the startup seed
    python -m modcache clear                # delete the cache file

Paths default to the values from .modcache.yml in the working directory.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from modcache.canonical import Canonicalizer
from modcache.config import CacheConfig, ConfigurationError
from modcache.logging_setup import setup_logging
from modcache.models import VERSION_FIELD
from modcache.persistence import read_document, write_document

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="modcache",
        description="Inspect and maintain module location cache documents.",
    )
    parser.add_argument("--scope", help="Cache scope directory (default: from config or cwd)")
    parser.add_argument("--cache-file", help="Cache document path")
    parser.add_argument("--startup-file", help="Startup seed document path")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    parser.add_argument("--log-file", type=Path, help="Also write JSON logs to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    show = subparsers.add_parser("show", help="Print the entries of a document")
    show.add_argument("--startup", action="store_true", help="Read the startup seed instead")
    show.add_argument("--json", action="store_true", help="Print the raw document as JSON")

    check = subparsers.add_parser("check", help="Report entries whose file no longer exists")
    check.add_argument("--startup", action="store_true", help="Check the startup seed instead")

    subparsers.add_parser("seed", help="Copy the cache document into the startup seed")

    clear = subparsers.add_parser("clear", help="Delete a document")
    clear.add_argument("--startup", action="store_true", help="Delete the startup seed instead")

    return parser.parse_args(argv)


def _load(path: str) -> Optional[Dict[str, Any]]:
    if not os.path.exists(path):
        print(f"No document at {path}", file=sys.stderr)
        return None
    try:
        return read_document(path)
    except (OSError, ValueError) as e:
        print(f"Failed to read {path}: {e}", file=sys.stderr)
        return None


def _entries(document: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in document.items() if key != VERSION_FIELD}


def cmd_show(config: CacheConfig, args: argparse.Namespace) -> int:
    path = config.startup_file if args.startup else config.cache_file
    document = _load(path)
    if document is None:
        return 1

    if args.json:
        print(json.dumps(document, indent=2, sort_keys=True))
        return 0

    entries = _entries(document)
    print(f"Document:    {path}")
    print(f"Version tag: {document.get(VERSION_FIELD)}")
    print(f"Entries:     {len(entries)}")
    for key in sorted(entries):
        print(f"  {key} -> {entries[key]}")
    return 0


def cmd_check(config: CacheConfig, args: argparse.Namespace) -> int:
    path = config.startup_file if args.startup else config.cache_file
    document = _load(path)
    if document is None:
        return 1

    canonicalizer = Canonicalizer(config.cache_scope)
    stale = []
    for key, value in sorted(_entries(document).items()):
        if not isinstance(value, str) or not os.path.exists(canonicalizer.to_absolute(value)):
            stale.append((key, value))

    for key, value in stale:
        print(f"stale: {key} -> {value}")
    print(f"{len(stale)} stale of {len(_entries(document))} entries in {path}")
    return 1 if stale else 0


def cmd_seed(config: CacheConfig, args: argparse.Namespace) -> int:
    document = _load(config.cache_file)
    if document is None:
        return 1
    try:
        write_document(config.startup_file, document, indent=2)
    except OSError as e:
        print(f"Failed to write {config.startup_file}: {e}", file=sys.stderr)
        return 1
    print(f"Seeded {config.startup_file} with {len(_entries(document))} entries")
    return 0


def cmd_clear(config: CacheConfig, args: argparse.Namespace) -> int:
    path = config.startup_file if args.startup else config.cache_file
    try:
        os.remove(path)
    except FileNotFoundError:
        print(f"No document at {path}")
        return 0
    except OSError as e:
        print(f"Failed to delete {path}: {e}", file=sys.stderr)
        return 1
    print(f"Deleted {path}")
    return 0


COMMANDS = {
    "show": cmd_show,
    "check": cmd_check,
    "seed": cmd_seed,
    "clear": cmd_clear,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(log_file=args.log_file, log_level=getattr(logging, args.log_level))

    try:
        config = CacheConfig(
            cache_scope=args.scope,
            cache_file=args.cache_file,
            startup_file=args.startup_file,
        )
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    logger.debug(f"Using {config!r}")
    return COMMANDS[args.command](config, args)
