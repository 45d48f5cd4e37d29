"""Tests for configuration loading."""

import logging

from roomflow.config import configure_logging, load_config


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "roomflow.yaml"
    config_path.write_text(
        """
log_level: debug
ledger_url: sqlite:///audit.db
assets:
  base_url: https://assets.example.com
  timeout: 3
checks:
  attempts: 5
stages:
  inspection: [first_look, sign_off]
permissions:
  inspection:
    0: [inspector]
    1: [ops_manager]
"""
    )
    monkeypatch.setenv("ROOMFLOW_CONFIG", str(config_path))
    monkeypatch.delenv("ROOMFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("ROOMFLOW_LEDGER_URL", raising=False)

    config = load_config()
    assert config.log_level == "debug"
    assert config.ledger_url == "sqlite:///audit.db"
    assert config.assets.base_url == "https://assets.example.com"
    assert config.assets.timeout == 3
    assert config.checks.attempts == 5
    assert config.checks.backoff_base == 1.5
    assert config.stages_for("inspection") == ["first_look", "sign_off"]
    assert config.stages_for("installation") == [
        "ops_review",
        "art_review",
        "business_review",
        "final_review",
    ]
    assert config.permissions["inspection"][1] == ["ops_manager"]


def test_env_overrides_database_urls(tmp_path, monkeypatch):
    monkeypatch.setenv("ROOMFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv("DATABASE_URL", "sqlite:///generic.db")
    monkeypatch.setenv("ROOMFLOW_DATABASE_URL", "sqlite:///specific.db")
    monkeypatch.setenv("ROOMFLOW_LEDGER_URL", "sqlite:///audit.db")

    config = load_config()
    assert config.database_url == "sqlite:///specific.db"
    assert config.ledger_url == "sqlite:///audit.db"
    assert config.log_level == "INFO"


def test_configure_logging_sets_package_level():
    configure_logging("warning")
    assert logging.getLogger("roomflow").level == logging.WARNING
    configure_logging("INFO")
    assert logging.getLogger("roomflow").level == logging.INFO
