"""Shared pytest configuration and fixtures.

Puts src/ on sys.path so tests import modules the same way the application
does (``from config import ServerConfig``), and provides fakes for the
collaborators at each seam: status queries, the Discord transport, and the
enrichment adapter.
"""

from typing import Dict, List, Optional, Sequence, Union
from unittest.mock import MagicMock, AsyncMock
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from config import ServerConfig  # noqa: E402
from enrichment import EnrichmentResult  # noqa: E402
from status_source import PollResult, QueryFailure, ServerSnapshot  # noqa: E402


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "asyncio: mark test as async (deselect with '-m \"not asyncio\"')"
    )


# ════════════════════════════════════════════════════════════════════════════
# FAKE COLLABORATORS
# ════════════════════════════════════════════════════════════════════════════


Outcome = Union[Sequence[str], Exception]


class ScriptedStatusSource:
    """Status source that replays a scripted outcome per poll, per server.

    Each outcome is either a list of player names (reachable) or an
    exception instance (raised as QueryFailure by query_status and turned
    into a failure PollResult by poll()).
    """

    def __init__(self, script: Optional[Dict[str, List[Outcome]]] = None) -> None:
        self.script: Dict[str, List[Outcome]] = {k: list(v) for k, v in (script or {}).items()}
        self.calls: List[str] = []

    def push(self, name: str, outcome: Outcome) -> None:
        self.script.setdefault(name, []).append(outcome)

    def _next(self, name: str) -> Outcome:
        queue = self.script.get(name) or []
        if not queue:
            raise AssertionError(f"No scripted outcome left for {name}")
        return queue.pop(0)

    async def query_status(self, host: str, port: int) -> ServerSnapshot:
        self.calls.append(host)
        outcome = self._next(host)
        if isinstance(outcome, Exception):
            if isinstance(outcome, QueryFailure):
                raise outcome
            raise QueryFailure(str(outcome))
        players = tuple(outcome)
        return ServerSnapshot(
            reachable=True,
            players=players,
            online_count=len(players),
            motd="A Minecraft Server",
            version="1.21.1",
        )

    async def poll(self, server: ServerConfig) -> PollResult:
        try:
            snapshot = await self.query_status(server.host, server.port)
        except QueryFailure as e:
            return PollResult.failure(server, e.reason)
        return PollResult.success(server, snapshot)


class RecordingInterface:
    """Discord interface double that records every message it is asked to send."""

    def __init__(self, succeed: bool = True, raise_error: Optional[Exception] = None) -> None:
        self.messages: List[str] = []
        self.succeed = succeed
        self.raise_error = raise_error

    async def send_message(self, message: str) -> bool:
        self.messages.append(message)
        if self.raise_error is not None:
            raise self.raise_error
        return self.succeed

    @property
    def is_connected(self) -> bool:
        return True


class StubEnricher:
    """Enricher returning a fixed result and remembering what it was asked."""

    def __init__(self, result: EnrichmentResult) -> None:
        self.result = result
        self.calls: List[List[str]] = []

    async def summarize(self, names: Sequence[str]) -> EnrichmentResult:
        self.calls.append(list(names))
        return self.result


# ════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def alpha() -> ServerConfig:
    """Server whose host doubles as its key in ScriptedStatusSource."""
    return ServerConfig(name="Alpha", host="alpha", port=25565)


@pytest.fixture
def beta() -> ServerConfig:
    return ServerConfig(name="Beta", host="beta", port=25566)


@pytest.fixture
def servers(alpha: ServerConfig, beta: ServerConfig) -> Dict[str, ServerConfig]:
    return {alpha.name: alpha, beta.name: beta}


@pytest.fixture
def status_source() -> ScriptedStatusSource:
    return ScriptedStatusSource()


@pytest.fixture
def interface() -> RecordingInterface:
    return RecordingInterface()


@pytest.fixture
def mock_interaction() -> MagicMock:
    """Discord interaction with an un-acknowledged response."""
    interaction = MagicMock()
    interaction.user.name = "steve"
    interaction.user.id = 42
    interaction.response.is_done = MagicMock(return_value=False)
    interaction.response.defer = AsyncMock()
    interaction.response.send_message = AsyncMock()
    interaction.edit_original_response = AsyncMock()
    return interaction
