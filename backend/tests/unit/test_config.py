"""Settings validation."""

from pydantic import ValidationError
import pytest

from bookati.core.config import Settings


def test_defaults_are_consistent():
    config = Settings(_env_file=None)

    assert config.lock_min_ttl_seconds <= config.lock_default_ttl_seconds
    assert config.lock_default_ttl_seconds <= config.lock_max_ttl_seconds
    assert config.resolved_result_backend == config.celery_broker_url


def test_log_level_is_normalised():
    assert Settings(_env_file=None, log_level=" debug ").log_level == "DEBUG"


def test_default_ttl_must_fall_inside_bounds():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, lock_default_ttl_seconds=1000, lock_max_ttl_seconds=900)


def test_max_ttl_cannot_be_below_min():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, lock_min_ttl_seconds=10, lock_max_ttl_seconds=5)


def test_sqlite_detection():
    assert Settings(_env_file=None, database_url="sqlite:///./x.db").is_sqlite is True
    assert Settings(_env_file=None, database_url="postgresql://u@h/db").is_sqlite is False
