import json
import logging

import pytest

from app.config import Settings
from app.logging import JSONFormatter


def test_json_formatter_includes_context_fields():
    record = logging.LogRecord(
        "app.services.network.pool", logging.INFO, __file__, 1, "Generated pool", None, None
    )
    record.subnet_id = "abc"
    record.cidr = "10.0.0.0/24"
    entry = json.loads(JSONFormatter().format(record))
    assert entry["level"] == "INFO"
    assert entry["logger"] == "app.services.network.pool"
    assert entry["message"] == "Generated pool"
    assert entry["subnet_id"] == "abc"
    assert entry["cidr"] == "10.0.0.0/24"
    assert "request_id" not in entry


def test_settings_defaults():
    settings = Settings()
    assert settings.ipam_min_prefix == 8
    assert settings.ipam_max_prefix == 30
    assert settings.ipam_gateway_convention in ("first", "last")


def test_settings_reject_unknown_gateway_convention():
    with pytest.raises(ValueError):
        Settings(ipam_gateway_convention="middle")


def test_settings_reject_inverted_prefix_band():
    with pytest.raises(ValueError):
        Settings(ipam_min_prefix=24, ipam_max_prefix=16)
