import pytest
from typer.testing import CliRunner
from unittest.mock import MagicMock

from callguard.domain.interfaces.user_interface import UserInterface
from callguard.domain.models.resilience import BreakerConfig
from callguard.infrastructure.cli.display import ConsoleDisplay
from callguard.infrastructure.config import settings
from callguard.infrastructure.resilience.api_retry import ApiRetryService
from callguard.infrastructure.resilience.circuit_breaker import CircuitBreakerRegistry


class FakeClock:
    """Manually advanced epoch-ms clock for cooldown tests."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0):
        self.now = start_ms

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingSleep:
    """Stands in for the executor's wait and records every requested delay."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay_ms: float) -> None:
        self.delays.append(delay_ms)


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def events():
    return []


@pytest.fixture
def registry(clock, events):
    """Registry with the default threshold (5) and a 60s cooldown on a fake clock."""
    return CircuitBreakerRegistry(
        config=BreakerConfig(failure_threshold=5, cooldown_ms=60000),
        clock=clock,
        event_listener=events.append,
    )


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def retry_service(registry, recording_sleep, events):
    return ApiRetryService(registry=registry, sleep=recording_sleep, event_listener=events.append)


@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)


@pytest.fixture
def mock_console_display(mocker):
    """Mocks the ConsoleDisplay where the composition root creates it."""
    mock = mocker.MagicMock(spec=ConsoleDisplay)
    mocker.patch('callguard.main.ConsoleDisplay', return_value=mock)
    return mock


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keeps tests independent of the developer's environment and config files."""
    for var in ("OPENAI_API_KEY", "GROQ_API_KEY", "AI_DEFAULT_PROVIDER"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(settings, "_loaded", True)
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr("callguard.main.setup_logging", lambda **kwargs: None)
    yield
    settings.clear_test_config()
