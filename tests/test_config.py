"""
Unit tests for settings and the run-scoped decision config
"""

import json
import logging
from unittest.mock import patch

from bid_engine.config import GlobalConfig, Settings
from bid_engine.logger import JsonFormatter, get_logger


class TestSettings:
    def test_defaults(self):
        config = Settings().global_config()
        assert config == GlobalConfig()

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("OPERATING_MODE", "s_mode")
        monkeypatch.setenv("MIN_BID", "5")
        monkeypatch.setenv("MAX_CHANGE_RATE_SMODE_TOS", "2.5")

        config = Settings().global_config()

        assert config.mode == "S_MODE"
        assert config.min_bid == 5.0
        assert config.max_change_rate_smode_tos == 2.5

    def test_unknown_mode_falls_back(self, monkeypatch):
        monkeypatch.setenv("OPERATING_MODE", "TURBO")
        assert Settings().global_config().mode == "NORMAL"

    def test_guard_switch_defaults(self, monkeypatch):
        monkeypatch.delenv("EXECUTION_MODE", raising=False)
        settings = Settings()
        assert settings.execution_mode == "SHADOW"
        assert settings.event_mode == "NONE"
        assert settings.inventory_guard_mode == "NORMAL"
        assert settings.require_down_confirmation is False


class TestLogger:
    def test_json_output_with_extra(self):
        record = logging.makeLogRecord({
            "name": "bid_engine.test",
            "levelname": "INFO",
            "msg": "computed %d",
            "args": (3,),
            "summary": {"total": 3},
        })
        payload = json.loads(JsonFormatter().format(record))

        assert payload["message"] == "computed 3"
        assert payload["severity"] == "INFO"
        assert payload["summary"] == {"total": 3}

    def test_single_handler(self):
        logger = get_logger("bid_engine.test_single")
        again = get_logger("bid_engine.test_single")
        assert logger is again
        assert len(again.handlers) == 1
        assert logger.propagate is False

    @patch('bid_engine.logger.settings')
    def test_level_from_settings(self, mock_settings):
        mock_settings.log_level = "debug"
        assert get_logger("bid_engine.test_debug").level == logging.DEBUG

        mock_settings.log_level = "chatty"
        assert get_logger("bid_engine.test_unknown_level").level == logging.INFO
