"""
Tests for utils/config.py, utils/http.py, pipeline/logging.py and
pipeline/run_ledger.py
"""
import json
import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pipeline.logging import ImportReport, ImportRunLogger
from pipeline.run_ledger import append_to_ledger, read_ledger
from utils.config import AppConfig
from utils.http import RetryStrategy, SessionManager, error_message


class TestAppConfig:
    def test_defaults(self, monkeypatch):
        for var in ("APP_BACKEND", "APP_DB_PATH", "SUPABASE_URL", "SUPABASE_ANON_KEY",
                    "NOTIFY_ENABLED", "NOTIFY_URL", "IMPORT_LEDGER_PATH", "HTTP_TIMEOUT"):
            monkeypatch.delenv(var, raising=False)
        cfg = AppConfig.from_env()
        assert cfg.backend == "memory"
        assert cfg.db_path == Path("viviendas.sqlite")
        assert cfg.notify_enabled is False
        assert cfg.notify_url is None
        assert cfg.ledger_path == Path("import_runs/run_ledger.jsonl")
        assert cfg.http_timeout == 10.0

    def test_empty_ledger_path_disables(self, monkeypatch):
        monkeypatch.setenv("IMPORT_LEDGER_PATH", "")
        assert AppConfig.from_env().ledger_path is None

    def test_cors_origins_list(self, monkeypatch):
        monkeypatch.setenv("APP_CORS_ORIGINS", "https://a.es, https://b.es")
        assert AppConfig.from_env().cors_origins == ["https://a.es", "https://b.es"]

    def test_to_dict_masks_keys(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SUPABASE_ANON_KEY", "secret")
        cfg = AppConfig.from_env()
        assert cfg.to_dict()["supabase_key"] == "***"
        out = tmp_path / "cfg" / "config.json"
        cfg.save_json(out)
        assert json.loads(out.read_text())["supabase_key"] == "***"


class TestHttp:
    def test_only_reads_are_retried(self):
        retry = RetryStrategy().get_retry_object()
        assert "POST" not in retry.allowed_methods
        assert "GET" in retry.allowed_methods

    def test_session_cached_and_closed(self):
        with SessionManager(headers={"X-Client": "viviendas"}) as sm:
            assert sm.session is sm.session
            assert sm.session.headers["X-Client"] == "viviendas"
        assert sm._session is None

    def test_error_message_prefers_backend_message(self):
        resp = MagicMock(status_code=409, text="raw")
        resp.json.return_value = {"message": "duplicate key", "code": "23505"}
        assert error_message(resp) == "duplicate key"

    def test_error_message_falls_back_to_text(self):
        resp = MagicMock(status_code=502, text="  Bad gateway ")
        resp.json.side_effect = ValueError()
        assert error_message(resp) == "Bad gateway"


class TestImportReport:
    def test_console_summary(self):
        report = ImportReport(filename="x.xlsx", rows_total=3, rows_imported=2)
        report.add_skip("validation", "Portal es obligatorio", 4)
        summary = report.console_summary()
        assert "3 rows" in summary
        assert "2 imported" in summary
        assert "1 skipped (1 validation)" in summary

    def test_to_dict_includes_skips(self):
        report = ImportReport(filename="x.xlsx")
        report.add_skip("upsert_error", "duplicate key", 2)
        d = report.to_dict()
        assert d["rows_skipped"] == 1
        assert d["skips"][0] == {"category": "upsert_error", "detail": "duplicate key", "row": 2}


class TestRunLogger:
    def test_log_file_and_summary(self, tmp_path):
        rl = ImportRunLogger(tmp_path / "logs")
        rl.args_dict = {"file": "x.xlsx"}
        report = rl.start("x.xlsx")
        logging.getLogger("pipeline.importer").warning("fila 3 rechazada")
        report.rows_total = 1
        rl.finish(report)
        path = rl.write_summary()

        log_text = (rl.run_dir / "import.log").read_text(encoding="utf-8")
        assert "fila 3 rechazada" in log_text
        assert "IMPORT SUMMARY: x.xlsx" in log_text
        summary = json.loads(path.read_text(encoding="utf-8"))
        assert summary["args"] == {"file": "x.xlsx"}
        assert summary["report"]["status"] == "completed"


class TestRunLedger:
    def test_append_and_read(self, tmp_path):
        ledger = tmp_path / "runs" / "run_ledger.jsonl"
        first = ImportReport(filename="a.xlsx", status="completed", rows_total=2,
                             rows_imported=2)
        second = ImportReport(filename="b.xlsx", status="completed", rows_total=2,
                              rows_imported=1)
        second.add_skip("validation", "Letra es obligatoria", 3)
        append_to_ledger(first, 0, ledger, run_id="r1")
        append_to_ledger(second, 2, ledger, run_id="r2", extra={"actor": "u-admin"})

        records = read_ledger(ledger)
        assert [r["run_id"] for r in records] == ["r2", "r1"]
        assert records[0]["exit_code"] == 2
        assert records[0]["skip_categories"] == {"validation": 1}
        assert records[0]["actor"] == "u-admin"
        assert read_ledger(ledger, limit=1)[0]["filename"] == "b.xlsx"

    def test_missing_ledger(self, tmp_path):
        assert read_ledger(tmp_path / "none.jsonl") == []
