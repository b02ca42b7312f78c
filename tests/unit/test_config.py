"""Unit tests for settings validation."""

import pytest
from pydantic import ValidationError

from nakka.config import Settings


def test_defaults():
    config = Settings(_env_file=None)

    assert config.nakka_base_url == "https://n01darts.com/n01/tournament"
    assert config.nakka_completed_status == 40
    assert config.scrape_max_retries == 3
    assert config.scrape_trust_api_date is False


def test_log_level_is_normalized():
    assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        Settings(_env_file=None, log_level="chatty")


def test_urls_lose_trailing_slash():
    config = Settings(_env_file=None, nakka_base_url="https://mirror.example/n01/tournament/")
    assert config.nakka_base_url == "https://mirror.example/n01/tournament"


def test_retry_ceiling_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, scrape_max_retries=0)


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SCRAPE_CONSTRAINED", "true")
    monkeypatch.setenv("NAKKA_COMPLETED_STATUS", "50")
    config = Settings(_env_file=None)

    assert config.scrape_constrained is True
    assert config.nakka_completed_status == 50
