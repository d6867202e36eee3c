import pytest
from app.config import Settings, get_settings
from pydantic import ValidationError


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_env_overrides_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BUSINESS_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("MIN_LEAD_MINUTES", "15")
    monkeypatch.setenv("ECHO_SQL", "1")
    settings = get_settings()
    assert settings.business_timezone == "Europe/Berlin"
    assert settings.min_lead_minutes == 15
    assert settings.echo_sql is True


def test_unknown_timezone_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(business_timezone="Mars/Olympus")


def test_negative_lead_time_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(min_lead_minutes=-5)
