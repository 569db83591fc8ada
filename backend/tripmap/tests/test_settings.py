import pytest
from pydantic import ValidationError

from tripmap.utils.settings import Settings, get_settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("CACHE_PERSISTENCE", raising=False)
    settings = Settings(_env_file=None)

    assert settings.cache_snapshot_every == 25
    assert settings.cache_sweep_interval_seconds == 600
    assert settings.cache_persistence is True
    assert settings.google_directions_url.endswith("/directions/json")


def test_blank_secrets_become_none():
    settings = Settings(GOOGLE_MAPS_API_KEY="   ", GOOGLE_PLACES_API_KEY="")
    assert settings.google_maps_api_key is None
    assert settings.resolved_places_api_key is None


def test_places_key_prefers_its_own_value():
    settings = Settings(GOOGLE_MAPS_API_KEY="maps", GOOGLE_PLACES_API_KEY="places")
    assert settings.resolved_places_api_key == "places"


def test_cors_origins_split():
    settings = Settings(ALLOWED_ORIGINS="http://a.test, http://b.test,,")
    assert settings.cors_origins == ["http://a.test", "http://b.test"]


def test_unknown_cache_backend_rejected():
    with pytest.raises(ValidationError):
        Settings(CACHE_BACKEND="memcached")


def test_snapshot_every_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(CACHE_SNAPSHOT_EVERY=0)


def test_production_requires_maps_key():
    with pytest.raises(ValidationError):
        Settings(APP_ENV="production", GOOGLE_MAPS_API_KEY="")


def test_get_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("CACHE_SNAPSHOT_EVERY", "5")
    get_settings.cache_clear()

    assert get_settings().cache_snapshot_every == 5
