"""
Unit Tests for Configuration Module

These tests verify that the configuration system works correctly:
- Default values are applied when needed
- Comma-separated strings are parsed into lists
- Testnet / production switching picks the right credentials and URLs
- Validation catches invalid configurations

Run with:
    pytest tests/unit/test_config.py -v
"""

import pytest
from core.config import Settings, VALID_INTERVALS, settings, validate_configuration


def make_settings(**overrides) -> Settings:
    """Settings built from explicit values only (ignores .env)"""
    return Settings(_env_file=None, **overrides)


class TestConfigurationLoading:
    """Test that configuration loads correctly"""

    def test_binance_base_url_loaded(self):
        """Verify Binance API URL is set"""
        assert "binance" in settings.binance_base_url.lower()
        assert settings.binance_base_url.startswith("http")

    def test_app_port_is_valid_integer(self):
        assert isinstance(settings.app_port, int)
        assert 1 <= settings.app_port <= 65535

    def test_defaults(self):
        s = make_settings()

        assert s.app_port == 3000
        assert s.default_candle_limit == 100
        assert s.max_candle_limit == 1000
        assert s.binance_testnet is False
        assert s.static_dir == "www"
        assert s.cors_origins_list == ["http://maia.maiascript.com"]

    def test_environment_variables_override_defaults(self, monkeypatch):
        monkeypatch.setenv("APP_PORT", "8080")
        monkeypatch.setenv("BINANCE_TESTNET", "true")

        s = make_settings()

        assert s.app_port == 8080
        assert s.binance_testnet is True


class TestIntervalsParsing:
    """Test that intervals are parsed correctly"""

    def test_intervals_list_not_empty(self):
        assert len(settings.intervals_list) > 0

    def test_intervals_are_stripped_not_lowercased(self):
        """'1M' (month) and '1m' (minute) are different intervals"""
        s = make_settings(supported_intervals=" 1m , 1M,,1h ")

        assert s.intervals_list == ["1m", "1M", "1h"]

    def test_default_intervals_are_valid(self):
        for interval in make_settings().intervals_list:
            assert interval in VALID_INTERVALS


class TestEnvironmentSelection:
    """Test testnet / production switching"""

    def test_production_values(self):
        s = make_settings(
            binance_testnet=False,
            binance_api_key="prod-key",
            binance_api_secret="prod-secret"
        )

        assert s.active_api_key == "prod-key"
        assert s.active_api_secret == "prod-secret"
        assert s.active_base_url == "https://api.binance.com"
        assert s.active_ws_url == "wss://stream.binance.com:9443/ws"
        assert s.has_credentials is True

    def test_testnet_values(self):
        s = make_settings(
            binance_testnet=True,
            binance_api_key="prod-key",
            binance_api_secret="prod-secret",
            binance_testnet_api_key="test-key"
        )

        assert s.active_api_key == "test-key"
        assert s.active_api_secret == ""
        assert s.active_base_url == "https://testnet.binance.vision"
        assert s.active_ws_url == "wss://testnet.binance.vision/ws"
        assert s.has_credentials is False

    def test_cors_origins_list(self):
        s = make_settings(cors_origins="http://a.example, http://b.example")

        assert s.cors_origins_list == ["http://a.example", "http://b.example"]


class TestValidateConfiguration:
    """Test validate_configuration() against the global settings"""

    def test_valid_configuration_passes(self, monkeypatch):
        monkeypatch.setattr(settings, "supported_intervals", "1m,1h")
        monkeypatch.setattr(settings, "app_port", 3000)
        monkeypatch.setattr(settings, "default_candle_limit", 100)
        monkeypatch.setattr(settings, "max_candle_limit", 1000)
        monkeypatch.setattr(settings, "log_level", "INFO")

        validate_configuration()

    def test_invalid_interval_rejected(self, monkeypatch):
        monkeypatch.setattr(settings, "supported_intervals", "1m,7x")

        with pytest.raises(ValueError, match="Invalid interval"):
            validate_configuration()

    def test_empty_intervals_rejected(self, monkeypatch):
        monkeypatch.setattr(settings, "supported_intervals", " , ")

        with pytest.raises(ValueError, match="at least one interval"):
            validate_configuration()

    def test_invalid_port_rejected(self, monkeypatch):
        monkeypatch.setattr(settings, "supported_intervals", "1m")
        monkeypatch.setattr(settings, "app_port", 70000)

        with pytest.raises(ValueError, match="Invalid port"):
            validate_configuration()

    def test_default_limit_above_max_rejected(self, monkeypatch):
        monkeypatch.setattr(settings, "supported_intervals", "1m")
        monkeypatch.setattr(settings, "app_port", 3000)
        monkeypatch.setattr(settings, "default_candle_limit", 2000)
        monkeypatch.setattr(settings, "max_candle_limit", 1000)

        with pytest.raises(ValueError, match="DEFAULT_CANDLE_LIMIT"):
            validate_configuration()

    def test_invalid_log_level_rejected(self, monkeypatch):
        monkeypatch.setattr(settings, "supported_intervals", "1m")
        monkeypatch.setattr(settings, "app_port", 3000)
        monkeypatch.setattr(settings, "default_candle_limit", 100)
        monkeypatch.setattr(settings, "max_candle_limit", 1000)
        monkeypatch.setattr(settings, "log_level", "VERBOSE")

        with pytest.raises(ValueError, match="LOG_LEVEL"):
            validate_configuration()
