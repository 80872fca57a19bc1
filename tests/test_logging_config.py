"""
Tests for the process logging configuration.
"""

import logging
import logging.config
import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from wasilet.logging_config import HealthCheckFilter, get_logging_config


def access_record(method: str, path: str, status: int = 200) -> logging.LogRecord:
    return logging.LogRecord(
        name="uvicorn.access",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg='%s - "%s %s HTTP/%s" %d',
        args=("10.0.0.1:5000", method, path, "1.1", status),
        exc_info=None,
    )


class TestHealthCheckFilter:

    @pytest.mark.parametrize("path", ["/healthz", "/", "/healthz?verbose=1"])
    def test_drops_health_checks(self, path):
        assert HealthCheckFilter().filter(access_record("GET", path)) is False

    @pytest.mark.parametrize(
        "method, path",
        [
            ("GET", "/containerLogs/default/pod/main"),
            ("POST", "/exec/default/pod/main?command=add"),
            ("POST", "/"),
        ],
    )
    def test_keeps_kubelet_traffic(self, method, path):
        assert HealthCheckFilter().filter(access_record(method, path)) is True

    def test_ignores_other_loggers(self):
        record = logging.LogRecord(
            "wasilet.api", logging.INFO, __file__, 1, "GET /healthz", None, None
        )
        assert HealthCheckFilter().filter(record) is True


class TestGetLoggingConfig:

    def test_runtime_logs_carry_thread_name(self):
        config = get_logging_config()

        runtime = config["loggers"]["wasilet.runtime"]
        formatter = config["handlers"][runtime["handlers"][0]]["formatter"]
        assert "%(threadName)s" in config["formatters"][formatter]["format"]
        assert runtime["propagate"] is False

    def test_runtime_level_defaults_to_level(self):
        config = get_logging_config("debug")

        assert config["loggers"]["wasilet"]["level"] == "DEBUG"
        assert config["loggers"]["wasilet.runtime"]["level"] == "DEBUG"

    def test_runtime_level_override(self):
        config = get_logging_config("INFO", runtime_level="warning")

        assert config["loggers"]["wasilet"]["level"] == "INFO"
        assert config["loggers"]["wasilet.runtime"]["level"] == "WARNING"

    def test_access_handler_is_filtered(self):
        config = get_logging_config()
        assert config["handlers"]["access"]["filters"] == ["health_check_filter"]

    def test_applies_with_dict_config(self):
        logging.config.dictConfig(get_logging_config("DEBUG", runtime_level="INFO"))

        runtime = logging.getLogger("wasilet.runtime.worker")
        assert runtime.getEffectiveLevel() == logging.INFO
        assert logging.getLogger("wasilet.api").getEffectiveLevel() == logging.DEBUG
