"""Tests for Settings constraints and the structlog setup."""

import logging

import pytest
import structlog
from pydantic import ValidationError
from structlog.testing import capture_logs

from trade_risk.core.config import Settings
from trade_risk.core.utils import logging_config
from trade_risk.core.utils.logging_config import configure_logging, get_logger


@pytest.fixture
def fresh_logging(monkeypatch):
    """Let configure_logging run again and restore structlog defaults after."""
    monkeypatch.setattr(logging_config, "_configured", False)
    yield
    structlog.reset_defaults()


class TestSettings:
    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.trade_conflict_retries == 1
        assert s.cache_ttl_risk == 300
        assert s.log_level == "INFO"

    @pytest.mark.parametrize("field", ["trade_conflict_retries", "side_effect_workers"])
    def test_negative_counts_rejected(self, field):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: -1})


class TestConfigureLogging:
    def test_json_outside_debug(self, fresh_logging):
        configure_logging(debug=False)
        renderer = structlog.get_config()["processors"][-1]
        assert isinstance(renderer, structlog.processors.JSONRenderer)

    def test_console_in_debug(self, fresh_logging):
        configure_logging(debug=True)
        renderer = structlog.get_config()["processors"][-1]
        assert isinstance(renderer, structlog.dev.ConsoleRenderer)

    def test_only_first_call_applies(self, fresh_logging):
        configure_logging(debug=False)
        configure_logging(debug=True)
        renderer = structlog.get_config()["processors"][-1]
        assert isinstance(renderer, structlog.processors.JSONRenderer)

    @pytest.mark.parametrize(
        "name, expected",
        [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("bogus", logging.INFO)],
    )
    def test_level_names(self, name, expected):
        assert logging_config._level(name) == expected


def test_get_logger_binds_name():
    with capture_logs() as logs:
        get_logger("trade_risk.engine.sample").info("sample_event", portfolio_id=1)

    assert logs == [
        {
            "event": "sample_event",
            "log_level": "info",
            "logger_name": "trade_risk.engine.sample",
            "portfolio_id": 1,
        }
    ]
