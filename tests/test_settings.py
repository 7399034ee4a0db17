"""
Tests for environment-dependent settings.
"""

from config.settings import Settings


class TestEnvironmentSettings:
    def test_development(self):
        settings = Settings(environment="development")
        assert settings.is_development is True
        assert settings.app_url == "http://localhost:8910"
        assert settings.trial_plan_id == "Alpha-USD-Monthly"
        assert settings.webauthn_domain == "localhost"

    def test_production(self):
        settings = Settings(environment="production")
        assert settings.is_development is False
        assert settings.app_url == "https://shepherdpro.com"
        assert settings.trial_plan_id == "alpha-usd-monthly"
        assert settings.webauthn_domain == "shepherdpro.com"
