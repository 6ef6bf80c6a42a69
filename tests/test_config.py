"""
Tests for configuration and structured logging
"""

import json
import logging
from decimal import Decimal

from life_banking import config as config_module
from life_banking.config import EconomyConfig
from life_banking.logging_config import JSONFormatter, get_logger, log_action, setup_logging


class TestEconomyConfig:
    """Test settings defaults and environment overrides"""

    def test_defaults(self):
        settings = EconomyConfig()
        assert settings.base_rate == Decimal("0.03")
        assert settings.max_base_rate == Decimal("0.20")
        assert settings.starting_credit_score == 650

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("LIFEBANK_BASE_RATE", "0.045")
        monkeypatch.setenv("LIFEBANK_RANDOM_SEED", "17")
        settings = config_module.reload_config()
        try:
            assert settings.base_rate == Decimal("0.045")
            assert settings.random_seed == 17
            assert config_module.get_config() is settings
        finally:
            monkeypatch.delenv("LIFEBANK_BASE_RATE")
            monkeypatch.delenv("LIFEBANK_RANDOM_SEED")
            config_module.reload_config()


class TestStructuredLogging:
    """Test the JSON formatter and log_action"""

    def test_json_formatter_includes_structured_fields(self):
        logger = logging.getLogger("life_banking.test")
        record = logger.makeRecord(logger.name, logging.INFO, __name__, 0, "Deposited 10.00", (), None)
        record.account_id = "ACC000001"
        record.year = 2030

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "Deposited 10.00"
        assert payload["account_id"] == "ACC000001"
        assert payload["year"] == 2030
        assert "action" not in payload

    def test_log_action_emits_record(self, caplog):
        logger = logging.getLogger("lifebank_test_action")
        with caplog.at_level(logging.INFO, logger="lifebank_test_action"):
            log_action(logger, "info", "Yearly update complete", action="yearly_update", year=2031)

        record = caplog.records[-1]
        assert record.action == "yearly_update"
        assert record.year == 2031

    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging("DEBUG", logger_name="life_banking.setup_test")
        logger = setup_logging("WARNING", logger_name="life_banking.setup_test", log_format="text")
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_get_logger_returns_engine_loggers(self):
        from life_banking import api

        assert get_logger().name == "life_banking"
        assert get_logger("life_banking.api") is api.logger
