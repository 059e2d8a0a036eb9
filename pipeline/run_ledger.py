"""
Import Run Ledger: append-only JSONL history of import runs.

Every import, whether started from the API or from ``import_viviendas.py``,
appends one JSON line to the ledger (``IMPORT_LEDGER_PATH``).  Review recent
history with::

    tail -5 import_runs/run_ledger.jsonl | python -m json.tool

The ledger is append-only and never truncated.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pipeline.logging import ImportReport

_write_lock = threading.Lock()


def append_to_ledger(
    report: ImportReport,
    exit_code: int,
    ledger_path: Path,
    run_id: str | None = None,
    extra: dict[str, Any] | None = None,
) -> Path:
    """Append a one-line JSON record summarising an import run.

    Args:
        report: The finished report of the run.
        exit_code: 0 = all rows imported, 2 = some rows failed, 1 = aborted.
        ledger_path: JSONL file to append to (parents are created).
        run_id: Identifier of the run; defaults to the current UTC time.
        extra: Additional fields (actor, source) merged into the record.

    Returns:
        The path to the ledger file.
    """
    now = datetime.now(timezone.utc)
    record = {
        "run_id": run_id or now.strftime("%Y-%m-%dT%H-%M-%S"),
        "timestamp": now.isoformat(),
        "exit_code": exit_code,
        "filename": report.filename,
        "status": report.status,
        "elapsed": round(report.elapsed_seconds, 1),
        "rows": report.rows_total,
        "imported": report.rows_imported,
        "skipped": report.rows_skipped,
    }
    skip_cats = report.skip_counts_by_category()
    if skip_cats:
        record["skip_categories"] = skip_cats
    if report.metrics:
        record["metrics"] = report.metrics
    if extra:
        record.update(extra)

    ledger_path = Path(ledger_path)
    ledger_path.parent.mkdir(parents=True, exist_ok=True)
    line = json.dumps(record, separators=(",", ":"), ensure_ascii=False, default=str)
    with _write_lock, open(ledger_path, "a", encoding="utf-8") as f:
        f.write(line + "\n")

    return ledger_path


def read_ledger(ledger_path: Path, limit: int | None = None) -> list[dict[str, Any]]:
    """Most recent ledger records, newest first."""
    ledger_path = Path(ledger_path)
    if not ledger_path.exists():
        return []
    with open(ledger_path, encoding="utf-8") as f:
        records = [json.loads(line) for line in f if line.strip()]
    records.reverse()
    return records[:limit] if limit else records
