import logging

import pytest

from loan_amortizer.config import DEFAULT_DATABASE_URL, DEFAULT_MAX_ROWS, load_settings


def test_defaults(monkeypatch):
    for name in ("LOAN_AMORTIZER_DATABASE_URL", "LOAN_AMORTIZER_LOG_LEVEL", "LOAN_AMORTIZER_MAX_ROWS"):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.database_url == DEFAULT_DATABASE_URL
    assert settings.log_level == "WARNING"
    assert settings.max_rows == DEFAULT_MAX_ROWS


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LOAN_AMORTIZER_DATABASE_URL", "sqlite:///other.sqlite3")
    monkeypatch.setenv("LOAN_AMORTIZER_LOG_LEVEL", "debug")
    monkeypatch.setenv("LOAN_AMORTIZER_MAX_ROWS", "10")
    settings = load_settings()
    assert settings.database_url == "sqlite:///other.sqlite3"
    assert settings.log_level == "DEBUG"
    assert settings.max_rows == 10


@pytest.mark.parametrize("value", ["lots", "0", "-5"])
def test_bad_max_rows_falls_back_with_warning(monkeypatch, caplog, value):
    monkeypatch.setenv("LOAN_AMORTIZER_MAX_ROWS", value)
    with caplog.at_level(logging.WARNING, logger="loan_amortizer.config"):
        assert load_settings().max_rows == DEFAULT_MAX_ROWS
    assert "LOAN_AMORTIZER_MAX_ROWS" in caplog.text


def test_unknown_log_level_falls_back_with_warning(monkeypatch, caplog):
    monkeypatch.setenv("LOAN_AMORTIZER_LOG_LEVEL", "loud")
    with caplog.at_level(logging.WARNING, logger="loan_amortizer.config"):
        assert load_settings().log_level == "WARNING"
    assert "LOAN_AMORTIZER_LOG_LEVEL" in caplog.text
