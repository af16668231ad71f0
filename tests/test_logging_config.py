"""Tests for structured logging setup."""
import json
import logging

from api import logging_config
from api.config import settings
from api.logging_config import JSONFormatter, setup_logging


def test_json_formatter_includes_correlation_ids():
    record = logging.LogRecord("services.commissions", logging.INFO, __file__, 10, "Commission created", None, None)
    record.affiliate_id = 7
    record.invoice_id = "in_1"

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "Commission created"
    assert data["level"] == "INFO"
    assert data["affiliate_id"] == 7
    assert data["invoice_id"] == "in_1"
    assert "charge_id" not in data


def test_setup_logging_writes_json_files(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "log_dir", str(tmp_path / "logs"))
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level

    try:
        setup_logging()
        logging.getLogger("services.referrals").error("sweep failed", extra={"referral_id": "tok"})
        for handler in root.handlers:
            handler.flush()
        assert logging.getLogger("sqlalchemy.engine").level == logging_config.QUIET_LOGGERS["sqlalchemy.engine"]
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)

    lines = (tmp_path / "logs" / "errors.log").read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[-1])["referral_id"] == "tok"
    assert (tmp_path / "logs" / "affiliates.log").exists()
