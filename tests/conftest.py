"""Shared fixtures for errors-and-echoes tests."""

from datetime import UTC, datetime

import pytest

from echoes.api import ErrorsAndEchoes
from echoes.config import EchoesConfig, EndpointConfig
from echoes.errors import TransmissionFault
from echoes.host import ExtensionInfo, HookBus, StaticHost
from echoes.models import ReportResponse
from echoes.reporting import inline_dispatcher
from echoes.settings import MemorySettingsStore

START_TIME = datetime(2025, 3, 14, 12, 0, 0, tzinfo=UTC).timestamp()

DEMO_ENDPOINT_URL = "https://reports.example.com/report/demo"


class ManualClock:
    """Clock advanced explicitly by tests."""

    def __init__(self, start: float = START_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """Records every post and answers with a canned response or fault."""

    def __init__(self, response: ReportResponse | None = None):
        self.calls: list[dict] = []
        self.response = response or ReportResponse(success=True, event_id="evt-1")
        self.fault: Exception | None = None

    def post(self, url, body, headers=None, timeout=None):
        self.calls.append({"url": url, "body": body, "headers": headers or {}, "timeout": timeout})
        if self.fault is not None:
            raise self.fault
        return self.response

    def fail_with(self, reason: str = "boom", retry_after: float | None = None) -> None:
        self.fault = TransmissionFault("https://reports.example.com", reason, 503, retry_after)

    @property
    def bodies(self) -> list[dict]:
        return [call["body"] for call in self.calls]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def settings():
    return MemorySettingsStore()


@pytest.fixture
def host():
    return StaticHost(
        version="5.4.1",
        subsystem=("dnd5e", "3.1.2"),
        extensions=[
            ExtensionInfo(id="demo-ext", version="1.2.0", authors=[{"name": "Jane Doe", "github": "janedoe"}]),
            ExtensionInfo(id="other-ext", version="0.3.0", author="someone"),
        ],
        scene="scene-42",
    )


@pytest.fixture
def hooks():
    return HookBus()


@pytest.fixture
def config():
    return EchoesConfig(endpoints=[
        EndpointConfig(name="Demo", url=DEMO_ENDPOINT_URL, extensions=["demo-ext"]),
    ])


@pytest.fixture
def echoes(config, host, settings, transport, hooks, clock):
    """Facade wired with in-memory collaborators and synchronous dispatch."""
    instance = ErrorsAndEchoes(
        config=config,
        host=host,
        settings=settings,
        transport=transport,
        hooks=hooks,
        clock=clock,
        dispatcher=inline_dispatcher,
        stack_provider=lambda: "",
    )
    yield instance
    instance.stop()
