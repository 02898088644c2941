"""Unit tests for the background worker configuration."""

import pytest
from libs.common.arq_config import get_redis_settings
from libs.common.config import get_settings


@pytest.fixture
def redis_url(monkeypatch):
    def _set(url: str):
        monkeypatch.setenv("REDIS_URL", url)
        get_settings.cache_clear()

    yield _set
    get_settings.cache_clear()


@pytest.mark.unit
def test_redis_settings_from_url(redis_url):
    redis_url("redis://:s3cret@cache.internal:6380/2")

    settings = get_redis_settings()

    assert settings.host == "cache.internal"
    assert settings.port == 6380
    assert settings.database == 2
    assert settings.password == "s3cret"
    assert settings.ssl is False


@pytest.mark.unit
def test_redis_settings_defaults_and_tls(redis_url):
    redis_url("rediss://cache.internal")

    settings = get_redis_settings()

    assert (settings.port, settings.database, settings.ssl) == (6379, 0, True)


@pytest.mark.unit
def test_outbox_dispatch_runs_every_minute():
    from services.store_service.worker import WorkerSettings, task_dispatch_outbox

    assert task_dispatch_outbox in WorkerSettings.functions
    (job,) = WorkerSettings.cron_jobs
    assert job.coroutine is task_dispatch_outbox
    assert job.minute == set(range(60))
    assert job.run_at_startup is True
