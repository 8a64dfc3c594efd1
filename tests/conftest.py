"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from gatechat.config import Settings
from gatechat.gateway import StaticGateway
from gatechat.orchestrator import ChatOrchestrator
from gatechat.reconciler import RunReconciler
from gatechat.store import ChatStore


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the fixtures directory path."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def streamed_run_log(fixtures_dir: Path) -> Path:
    """Return path to streamed_run.jsonl fixture."""
    return fixtures_dir / "streamed_run.jsonl"


@pytest.fixture
def with_errors_log(fixtures_dir: Path) -> Path:
    """Return path to with_errors.jsonl fixture."""
    return fixtures_dir / "with_errors.jsonl"


@pytest.fixture
def history_file(fixtures_dir: Path) -> Path:
    """Return path to history.json fixture."""
    return fixtures_dir / "history.json"


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the environment."""
    return Settings(_env_file=None, session_key="main")


@pytest.fixture
def store() -> ChatStore:
    """An empty transcript store."""
    return ChatStore()


@pytest.fixture
def reconciler(store: ChatStore, settings: Settings) -> RunReconciler:
    """Reconciler bound to the ``store`` fixture."""
    return RunReconciler(store, settings)


@pytest.fixture
def gateway() -> StaticGateway:
    """Gateway acking sends with run ids r1, r2, r3."""
    return StaticGateway(history_messages=[], run_ids=["r1", "r2", "r3"])


@pytest.fixture
def orchestrator(gateway: StaticGateway, settings: Settings) -> ChatOrchestrator:
    """Orchestrator over the ``gateway`` fixture."""
    return ChatOrchestrator(gateway, settings)
