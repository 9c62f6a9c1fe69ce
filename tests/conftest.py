"""Shared pytest configuration and fixtures."""

from collections.abc import Callable, Generator
from unittest.mock import patch

import pytest

from cerebro.analysis.simulator import AnalysisSimulator
from cerebro.config import Settings, get_settings
from cerebro.dialogue.engine import DialogueEngine
from cerebro.store.models import Attachment, MessageRole
from cerebro.store.store import HelpdeskStore

# Long enough that no scheduled analysis fires on its own during a test;
# tests run pending analyses explicitly with simulator.flush().
TEST_ANALYSIS_DELAY = 60.0

Say = Callable[..., str]


@pytest.fixture(autouse=True)
def _no_dotenv() -> Generator[None]:
    """Block .env loading so a developer's local settings never leak into tests."""
    get_settings.cache_clear()
    original = Settings.model_config.get("env_file")
    Settings.model_config["env_file"] = None

    try:
        yield
    finally:
        Settings.model_config["env_file"] = original
        get_settings.cache_clear()


@pytest.fixture
def mock_settings() -> Generator[Settings]:
    """Provide explicit settings for tests that build the whole app.

    Patches get_settings at every import site so cached references are overridden.
    """
    fake_settings = Settings(
        store_db_path=":memory:",
        ticket_number_seed=48200,
        analysis_delay_seconds=TEST_ANALYSIS_DELAY,
        on_demand_analysis_delay_seconds=TEST_ANALYSIS_DELAY,
        demo_user_id="demo-user",
        demo_user_name="Demo User",
        technician_default_name="IT Support",
        api_url="http://api.test",
    )
    with (
        patch("cerebro.config.get_settings", return_value=fake_settings),
        patch("cerebro.api.main.get_settings", return_value=fake_settings),
        patch("cerebro.service.get_settings", return_value=fake_settings),
        patch("cerebro.cli.get_settings", return_value=fake_settings),
    ):
        yield fake_settings


@pytest.fixture
def store() -> Generator[HelpdeskStore]:
    """A freshly seeded in-memory store."""
    s = HelpdeskStore(":memory:")
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def simulator(store: HelpdeskStore) -> Generator[AnalysisSimulator]:
    """A simulator whose scheduler is never started; use flush() to run jobs."""
    sim = AnalysisSimulator(store, delay_seconds=TEST_ANALYSIS_DELAY)
    try:
        yield sim
    finally:
        sim.shutdown()


@pytest.fixture
def engine(store: HelpdeskStore, simulator: AnalysisSimulator) -> DialogueEngine:
    return DialogueEngine(store, simulator)


@pytest.fixture
def say(store: HelpdeskStore, engine: DialogueEngine) -> Say:
    """Send one user message the way the service does: store it, run the engine, store the reply."""

    def _say(conversation_id: str, text: str, attachment: Attachment | None = None) -> str:
        store.create_message(conversation_id=conversation_id, role=MessageRole.USER, content=text)
        reply = engine.process_message(conversation_id, text, attachment)
        if reply:
            store.create_message(conversation_id=conversation_id, role=MessageRole.CEREBRO, content=reply)
        return reply

    return _say
