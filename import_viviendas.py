#!/usr/bin/env python3
"""
Import viviendas from an .xlsx or .csv spreadsheet.

Every run gets its own log directory under ``logs/imports/<run_id>/``
(``import.log`` + ``summary.json``) and one line in the import ledger.

Usage:
    python import_viviendas.py viviendas.xlsx --user-id u1
    python import_viviendas.py viviendas.csv --backend sqlite --db viviendas.sqlite
    python import_viviendas.py viviendas.xlsx --preview          # validate only

Exit codes:
    0  every row imported
    2  some rows failed (see the log); the rest were imported
    1  the import could not run at all
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from inventario.exceptions import InventarioError
from inventario.session import UserSession
from pipeline.importer import PREVIEW_ROWS, ViviendaImporter, preview_rows
from pipeline.logging import ImportRunLogger
from pipeline.run_ledger import append_to_ledger
from store import create_repository
from utils.config import BACKENDS, AppConfig
from utils.spreadsheet import UNREADABLE_FILE_ERRORS, read_rows

logger = logging.getLogger("import_viviendas")

_RUN_ERRORS = (InventarioError, OSError) + UNREADABLE_FILE_ERRORS


def _progress(done: int, total: int) -> None:
    if done == total or done % 50 == 0:
        print(f"  [{done}/{total}] rows processed", flush=True)


def run_preview(path: Path, limit: int) -> int:
    preview = preview_rows(read_rows(path, path.name), limit=limit)
    print(f"{path.name}: {preview['total_rows']} data rows")
    for row in preview["rows"]:
        status = "OK" if not row["errors"] else "; ".join(row["errors"])
        print(f"  fila {row['row']}: {json.dumps(row['data'], ensure_ascii=False)}")
        print(f"    -> {status}")
    return 0


def run_import(path: Path, config: AppConfig, session: UserSession,
               logs_dir: Path) -> int:
    """Import one file; returns the process exit code."""
    run_logger = ImportRunLogger(logs_dir)
    run_logger.args_dict = {
        "file": str(path),
        "backend": config.backend,
        "user_id": session.user_id,
        "role": session.role.value,
    }
    report = run_logger.start(path.name)
    exit_code = 1
    repo = None
    try:
        rows = read_rows(path, path.name)
        repo = create_repository(config)
        importer = ViviendaImporter(repo, report=report, progress=_progress)
        result = importer.run(rows, path.name, session)
        exit_code = 2 if result.errors else 0
        for err in result.details:
            logger.info("fila %d: %s", err.row, err.error)
    except _RUN_ERRORS as e:
        report.status = "failed"
        report.detail = str(e)
        logger.error("Import of %s failed: %s", path.name, e)
    finally:
        if repo is not None:
            repo.close()
        run_logger.finish(report)
        run_logger.write_summary()

    if config.ledger_path is not None:
        append_to_ledger(report, exit_code, config.ledger_path,
                         run_id=run_logger.run_id,
                         extra={"source": "cli", "actor": session.user_id})

    print(f"\n{report.console_summary()}")
    print(f"Log: {run_logger.run_dir / 'import.log'}")
    return exit_code


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Import viviendas from an .xlsx or .csv spreadsheet.",
    )
    parser.add_argument("file", type=Path, help="Spreadsheet to import")
    parser.add_argument("--backend", choices=BACKENDS, default=None,
                        help="Storage backend (default: APP_BACKEND env var)")
    parser.add_argument("--db", type=Path, default=None,
                        help="SQLite database for --backend sqlite")
    parser.add_argument("--user-id", default=os.getenv("IMPORT_USER_ID", "cli"),
                        help="Actor recorded on the audit trail (default: cli)")
    parser.add_argument("--role", default="admin",
                        help="Role of the acting user (default: admin)")
    parser.add_argument("--preview", action="store_true",
                        help="Only show the first rows and their validation")
    parser.add_argument("--limit", type=int, default=PREVIEW_ROWS,
                        help=f"Rows shown by --preview (default: {PREVIEW_ROWS})")
    parser.add_argument("--logs-dir", type=Path, default=Path("logs/imports"),
                        help="Per-run log directory root (default: logs/imports)")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s %(message)s")

    if not args.file.exists():
        print(f"ERROR: file not found: {args.file}")
        sys.exit(1)

    if args.preview:
        try:
            sys.exit(run_preview(args.file, args.limit))
        except UNREADABLE_FILE_ERRORS as e:
            print(f"ERROR: {e}")
            sys.exit(1)

    if args.backend is not None:
        os.environ["APP_BACKEND"] = args.backend
    if args.db is not None:
        os.environ["APP_DB_PATH"] = str(args.db)
    config = AppConfig.from_env()
    session = UserSession(user_id=args.user_id, role=args.role)
    sys.exit(run_import(args.file, config, session, args.logs_dir))


if __name__ == "__main__":
    main()
