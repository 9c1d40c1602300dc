#!/usr/bin/env python3
"""Inspect and back up a local portaria store.

Usage
-----
    python scripts/portaria_admin.py status
    python scripts/portaria_admin.py export backup.json
    python scripts/portaria_admin.py import backup.json
    python scripts/portaria_admin.py --data-dir /srv/portaria --backend sqlite status

Store location and backend default to the ``PORTARIA_*`` environment
variables (see ``PortariaConfig.from_env``).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from portaria import BackupFormatError, LocalDatabase, PortariaConfig, PortariaError


def _status(db: LocalDatabase) -> int:
    width = max(len(table) for table in db.syncable)
    print(f"{'table'.ljust(width)}  unsynced")
    for table, key in db.syncable.items():
        print(f"{table.ljust(width)}  {len(db.get_unsynced_items(key))}")
    print(f"\npending deletions: {len(db.get_deleted_queue())}")
    return 0


def _export(db: LocalDatabase, path: Path) -> int:
    path.write_text(db.export_backup(), encoding="utf-8")
    print(f"Backup written to {path}")
    return 0


def _import(db: LocalDatabase, path: Path) -> int:
    try:
        written = db.import_backup(path.read_bytes())
    except BackupFormatError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    print(f"Restored: {', '.join(written) or 'nothing'}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Inspect and back up a local portaria store.")
    parser.add_argument("--data-dir", type=Path, help="Store directory (default: $PORTARIA_DATA_DIR or ~/.portaria)")
    parser.add_argument("--backend", choices=["file", "sqlite"], help="Storage backend (default: $PORTARIA_BACKEND)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable DEBUG logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show unsynced record and pending deletion counts")
    export_cmd = sub.add_parser("export", help="Write a full backup to a file")
    export_cmd.add_argument("path", type=Path)
    import_cmd = sub.add_parser("import", help="Restore a full backup from a file")
    import_cmd.add_argument("path", type=Path)

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides: dict[str, Any] = {}
    if args.data_dir is not None:
        overrides["data_dir"] = args.data_dir
    if args.backend is not None:
        overrides["backend"] = args.backend

    try:
        db = LocalDatabase.open(PortariaConfig.from_env(**overrides))
        if args.command == "status":
            return _status(db)
        if args.command == "export":
            return _export(db, args.path)
        return _import(db, args.path)
    except (PortariaError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
