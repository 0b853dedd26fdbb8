"""
Testes de Configuração e Logging
================================
"""

import logging

import pytest

from src.core.config import Config, validate_config
from src.core.logging_config import CorrelationIdFilter
from src.core.middleware.correlation import correlation_id_var


def make_config(**overrides) -> Config:
    values = {
        "SANITY_PROJECT_ID": "proj",
        "SANITY_API_TOKEN": "tok",
        "ENVIRONMENT": "test",
    }
    values.update(overrides)
    return Config(**values)


class TestConfig:

    def test_valid_config(self):
        validate_config(make_config())

    def test_blank_project_is_rejected(self):
        with pytest.raises(ValueError, match="SANITY_PROJECT_ID"):
            validate_config(make_config(SANITY_PROJECT_ID="  "))

    def test_invalid_environment_and_timeout(self):
        with pytest.raises(ValueError) as exc_info:
            validate_config(make_config(ENVIRONMENT="staging", SANITY_TIMEOUT_SECONDS=0))

        message = str(exc_info.value)
        assert "ENVIRONMENT" in message
        assert "SANITY_TIMEOUT_SECONDS" in message

    def test_allowed_origins_list(self):
        cfg = make_config(ALLOWED_ORIGINS="https://loja.com, https://admin.loja.com,,")
        assert cfg.get_allowed_origins_list() == ["https://loja.com", "https://admin.loja.com"]

    def test_development_adds_localhost(self):
        cfg = make_config(ENVIRONMENT="development", ALLOWED_ORIGINS="http://localhost:3000")
        assert cfg.get_allowed_origins_list() == ["http://localhost:3000", "http://127.0.0.1:3000"]


class TestCorrelationLogging:

    def test_filter_uses_current_correlation_id(self):
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "msg", None, None)
        token = correlation_id_var.set("req-42")
        try:
            assert CorrelationIdFilter().filter(record) is True
        finally:
            correlation_id_var.reset(token)

        assert record.correlation_id == "req-42"

    def test_filter_default(self):
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "msg", None, None)
        CorrelationIdFilter().filter(record)
        assert record.correlation_id == "-"
