"""Root pytest configuration for glacier-archive tests."""
import pytest

from glacier_archive.client import GlacierClient
from glacier_archive.planner import ONE_MIB
from glacier_archive.settings import Settings
from tests.fakes.fake_glacier import DEFAULT_VAULT, FakeGlacierService


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow (may take significant time)"
    )


@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Keep the developer's GLACIER_* environment out of tests."""
    for key in (
        "GLACIER_REGION", "GLACIER_ENDPOINT_URL", "GLACIER_ACCOUNT_ID", "GLACIER_HTTP_TIMEOUT",
        "GLACIER_RETRY_MAX_ATTEMPTS", "GLACIER_RETRY_BASE_DELAY", "GLACIER_RETRY_MAX_DELAY",
        "GLACIER_PART_SIZE", "GLACIER_MAX_CONCURRENCY", "GLACIER_PAGE_SIZE", "GLACIER_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)


# Standardized test fixtures
@pytest.fixture
def settings():
    """Standard test settings: 1 MiB parts, three attempts per call."""
    return Settings(
        endpoint_url="http://glacier.test",
        part_size=ONE_MIB,
        retry_max_attempts=3,
        retry_base_delay_s=0.5,
        retry_max_delay_s=4.0,
    )


@pytest.fixture
def service():
    """Fake service with one empty vault."""
    fake = FakeGlacierService()
    fake.add_vault(DEFAULT_VAULT)
    return fake


@pytest.fixture
def sleeps():
    """Retry delays recorded instead of slept."""
    return []


@pytest.fixture
def client(service, settings, sleeps):
    """Client over the fake service that never really sleeps."""
    return GlacierClient(service, settings, sleep=sleeps.append)

