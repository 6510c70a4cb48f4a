"""
Tests for engine settings and logging setup.
"""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from revops_triage.core import configure_logging
from revops_triage.core.config import Settings, get_settings


class TestSettings:

    def test_defaults(self, settings):
        assert settings.touch_window_business_days == 5
        assert settings.touch_target == 6
        assert settings.commitment_min_days == 1
        assert settings.commitment_max_days == 30
        assert settings.high_value_amount == 50000.0
        assert settings.internal_email_domain is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv('TOUCH_TARGET', '8')
        monkeypatch.setenv('INTERNAL_EMAIL_DOMAIN', 'example.com')
        get_settings.cache_clear()

        settings = get_settings()

        assert settings.touch_target == 8
        assert settings.internal_email_domain == 'example.com'

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()

    @pytest.mark.parametrize('name', [
        'TOUCH_WINDOW_BUSINESS_DAYS',
        'TOUCH_TARGET',
        'NEXT_STEP_FRESHNESS_DAYS',
        'MAX_WORKERS',
    ])
    def test_zero_thresholds_are_rejected(self, monkeypatch, name):
        monkeypatch.setenv(name, '0')
        get_settings.cache_clear()

        with pytest.raises(ValidationError):
            get_settings()

    def test_negative_amount_is_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, high_value_amount=-1)


class TestConfigureLogging:

    def test_uses_settings_level(self, monkeypatch):
        monkeypatch.setenv('LOG_LEVEL', 'debug')
        get_settings.cache_clear()

        with patch('revops_triage.core.logging.basicConfig') as basic_config:
            configure_logging()

        assert basic_config.call_args.kwargs['level'] == 'DEBUG'

    def test_explicit_level_wins(self):
        with patch('revops_triage.core.logging.basicConfig') as basic_config:
            configure_logging('warning')

        assert basic_config.call_args.kwargs['level'] == 'WARNING'
