"""
Import Logging: per-run log files and structured skip/error accounting.

Provides:
  - ImportRunLogger: manages a ``logs/imports/`` directory with one folder
    per import run holding ``import.log`` and ``summary.json``.
  - ImportReport: dataclass capturing what one import did, which rows it
    skipped, and why.
  - SkipRecord: single skipped row with a category and detail string.

Usage inside import_viviendas.py::

    from pipeline.logging import ImportRunLogger

    rl = ImportRunLogger()                  # creates logs/imports/<run_id>/
    report = rl.start("viviendas.xlsx")     # attaches import.log handler
    ...                                      # importer fills the report
    rl.finish(report)                       # detaches handler, finalises report
    rl.write_summary()                      # writes summary.json

Skip categories (for SkipRecord.category):
    validation     : row failed the spreadsheet validator
    upsert_error   : backend rejected the row's upsert
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


# ── Data structures ───────────────────────────────────────────────────────────


@dataclass
class SkipRecord:
    """One row that was not imported, with a machine-readable category."""

    category: str          # "validation" or "upsert_error"
    detail: str            # human-readable explanation
    row: int = 0           # 1-based sheet row number

    def to_dict(self) -> dict[str, Any]:
        return {"category": self.category, "detail": self.detail, "row": self.row}


@dataclass
class ImportReport:
    """Structured summary of one spreadsheet import."""

    filename: str
    status: str = "not_started"               # started | completed | failed
    elapsed_seconds: float = 0.0
    rows_total: int = 0
    rows_imported: int = 0
    skips: list[SkipRecord] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    detail: str = ""

    @property
    def rows_skipped(self) -> int:
        return len(self.skips)

    # ── helpers ───────────────────────────────────────────────────────────

    def add_skip(self, category: str, detail: str, row: int = 0) -> None:
        self.skips.append(SkipRecord(category=category, detail=detail, row=row))

    def skip_counts_by_category(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for s in self.skips:
            counts[s.category] = counts.get(s.category, 0) + 1
        return counts

    def console_summary(self) -> str:
        """One-line summary suitable for the terminal."""
        parts: list[str] = [f"{self.rows_total:,} rows"]
        if self.rows_imported:
            parts.append(f"{self.rows_imported:,} imported")
        if self.skips:
            cats = self.skip_counts_by_category()
            skip_parts = [f"{v} {k.replace('_', ' ')}" for k, v in sorted(cats.items())]
            parts.append(f"{self.rows_skipped:,} skipped ({', '.join(skip_parts)})")
        if self.detail:
            parts.append(self.detail)
        return " | ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        d = {
            "filename": self.filename,
            "status": self.status,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "rows_total": self.rows_total,
            "rows_imported": self.rows_imported,
            "rows_skipped": self.rows_skipped,
            "metrics": self.metrics,
        }
        if self.detail:
            d["detail"] = self.detail
        if self.skips:
            d["skip_categories"] = self.skip_counts_by_category()
            d["skips"] = [s.to_dict() for s in self.skips]
        return d


# ── ImportRunLogger ───────────────────────────────────────────────────────────


class ImportRunLogger:
    """Manages per-run log files under ``logs/imports/``.

    Creates a directory like::

        logs/imports/2026-02-22T14-30-00/
            import.log
            summary.json
    """

    def __init__(self, logs_dir: Path | str = "logs/imports") -> None:
        self.logs_root = Path(logs_dir)
        self.run_id = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        self.run_dir = self.logs_root / self.run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)

        self._handler: logging.FileHandler | None = None
        self._started = time.monotonic()
        self.report: ImportReport | None = None
        self.args_dict: dict[str, Any] = {}

    def start(self, filename: str) -> ImportReport:
        """Attach ``import.log`` to the root logger and open a report."""
        handler = logging.FileHandler(self.run_dir / "import.log", encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s  %(levelname)-7s  %(name)s  %(message)s",
            datefmt="%H:%M:%S",
        ))
        logging.getLogger().addHandler(handler)
        self._handler = handler
        self._started = time.monotonic()
        self.report = ImportReport(filename=filename, status="started")
        return self.report

    def finish(self, report: ImportReport | None = None) -> ImportReport:
        """Detach the log handler and finalise the report."""
        report = report or self.report or ImportReport(filename="")
        report.elapsed_seconds = time.monotonic() - self._started
        if report.status == "started":
            report.status = "completed"
        self.report = report

        if self._handler is not None:
            stream = self._handler.stream
            stream.write(f"\n{'=' * 60}\n")
            stream.write(f"IMPORT SUMMARY: {report.filename}\n")
            stream.write(f"  Status:    {report.status}\n")
            stream.write(f"  Elapsed:   {report.elapsed_seconds:.1f}s\n")
            stream.write(f"  Rows:      {report.rows_total}\n")
            stream.write(f"  Imported:  {report.rows_imported}\n")
            stream.write(f"  Skipped:   {report.rows_skipped}\n")
            for skip in report.skips[:20]:
                stream.write(f"    - fila {skip.row}: {skip.detail}\n")
            if len(report.skips) > 20:
                stream.write(f"    ... and {len(report.skips) - 20} more\n")
            stream.write(f"{'=' * 60}\n")
            self._handler.close()
            logging.getLogger().removeHandler(self._handler)
            self._handler = None
        return report

    def write_summary(self) -> Path:
        """Write a JSON summary of the run to the run directory."""
        summary = {
            "run_id": self.run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "args": self.args_dict,
            "report": self.report.to_dict() if self.report else None,
        }
        path = self.summary_path
        with open(path, "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2, ensure_ascii=False)
        return path

    @property
    def summary_path(self) -> Path:
        return self.run_dir / "summary.json"
