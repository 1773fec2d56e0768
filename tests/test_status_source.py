"""Tests for status_source.py (mcstatus wrapper)."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mcstatus import JavaServer

from config import ServerConfig
from status_source import (
    PollResult,
    QueryFailure,
    ServerSnapshot,
    StatusSource,
    snapshot_from_status,
    unique_names,
)


def make_status(names=None, online=None, motd="A Minecraft Server", version="1.21.1"):
    """Shape-compatible stand-in for mcstatus.JavaStatusResponse."""
    sample = None if names is None else [SimpleNamespace(name=n, id=f"id-{n}") for n in names]
    motd_obj = MagicMock()
    motd_obj.to_plain.return_value = motd
    return SimpleNamespace(
        players=SimpleNamespace(
            online=len(names or []) if online is None else online,
            max=20,
            sample=sample,
        ),
        motd=motd_obj,
        version=SimpleNamespace(name=version, protocol=767),
        latency=12.5,
    )


@pytest.fixture
def java_server():
    """Patch JavaServer so no packets leave the test process."""
    with patch("status_source.JavaServer") as server_cls:
        instance = MagicMock()
        instance.async_status = AsyncMock()
        server_cls.return_value = instance
        server_cls.async_lookup = AsyncMock(return_value=instance)
        yield server_cls, instance


class TestUniqueNames:
    def test_drops_blanks_and_duplicates(self):
        assert unique_names(["a", "", None, "b", "a"]) == ("a", "b")

    def test_empty(self):
        assert unique_names([]) == ()


class TestSnapshotFromStatus:
    def test_full_status(self):
        snapshot = snapshot_from_status(make_status(["Alice", "Bob"]))

        assert snapshot == ServerSnapshot(
            reachable=True,
            players=("Alice", "Bob"),
            online_count=2,
            motd="A Minecraft Server",
            version="1.21.1",
        )

    def test_missing_sample_means_no_names(self):
        snapshot = snapshot_from_status(make_status(None, online=3))
        assert snapshot.players == ()
        assert snapshot.online_count == 3

    def test_sample_smaller_than_online_count(self):
        snapshot = snapshot_from_status(make_status(["Alice"], online=40))
        assert snapshot.players == ("Alice",)
        assert snapshot.online_count == 40

    def test_duplicate_sample_entries(self):
        snapshot = snapshot_from_status(make_status(["Alice", "Alice"]))
        assert snapshot.players == ("Alice",)


class TestStatusSourceQuery:
    @pytest.mark.asyncio
    async def test_success(self, java_server):
        server_cls, instance = java_server
        instance.async_status.return_value = make_status(["Bob"])

        snapshot = await StatusSource(timeout=3).query_status("mc.example.org", 25570)

        server_cls.assert_called_once_with("mc.example.org", 25570, timeout=3)
        assert snapshot.players == ("Bob",)
        assert snapshot.reachable is True

    @pytest.mark.asyncio
    async def test_connection_error_becomes_query_failure(self, java_server):
        _, instance = java_server
        instance.async_status.side_effect = ConnectionRefusedError("refused")

        with pytest.raises(QueryFailure) as exc_info:
            await StatusSource().query_status("down.example.org", 25565)

        assert exc_info.value.reason == "refused"

    @pytest.mark.asyncio
    async def test_error_without_message_uses_type_name(self, java_server):
        _, instance = java_server
        instance.async_status.side_effect = OSError()

        with pytest.raises(QueryFailure, match="OSError"):
            await StatusSource().query_status("down.example.org", 25565)

    @pytest.mark.asyncio
    async def test_slow_server_times_out(self, java_server):
        _, instance = java_server

        async def hang():
            await asyncio.sleep(5)

        instance.async_status.side_effect = hang

        with pytest.raises(QueryFailure, match="Timed out"):
            await StatusSource(timeout=0.05).query_status("slow.example.org", 25565)

    @pytest.mark.asyncio
    async def test_constructor_error_becomes_query_failure(self, java_server):
        server_cls, _ = java_server
        server_cls.side_effect = ValueError("bad address")

        with pytest.raises(QueryFailure, match="bad address"):
            await StatusSource().query_status("", 0)


class TestSrvResolution:
    @pytest.mark.asyncio
    async def test_default_port_follows_srv_record(self, java_server):
        server_cls, instance = java_server
        instance.async_status.return_value = make_status(["Ann"])

        snapshot = await StatusSource(timeout=3).query_status("chiwei.aternos.me", 25565)

        server_cls.async_lookup.assert_awaited_once_with("chiwei.aternos.me", timeout=3)
        server_cls.assert_not_called()
        assert snapshot.players == ("Ann",)

    @pytest.mark.asyncio
    async def test_explicit_port_skips_srv(self, java_server):
        server_cls, instance = java_server
        instance.async_status.return_value = make_status([])

        await StatusSource(timeout=3).query_status("mc.example.org", 41234)

        server_cls.async_lookup.assert_not_called()
        server_cls.assert_called_once_with("mc.example.org", 41234, timeout=3)

    @pytest.mark.asyncio
    async def test_lookup_uses_resolved_address(self):
        status = make_status(["Ann"])
        contacted = []

        async def fake_status(server, *args, **kwargs):
            contacted.append((server.address.host, server.address.port))
            return status

        with patch(
            "mcstatus.server.async_minecraft_srv_address_lookup",
            new=AsyncMock(return_value=SimpleNamespace(host="real.node.aternos.host", port=41234)),
        ), patch.object(JavaServer, "async_status", fake_status):
            snapshot = await StatusSource().query_status("chiwei.aternos.me", 25565)

        assert contacted == [("real.node.aternos.host", 41234)]
        assert snapshot.players == ("Ann",)

    @pytest.mark.asyncio
    async def test_lookup_failure_becomes_query_failure(self, java_server):
        server_cls, _ = java_server
        server_cls.async_lookup.side_effect = OSError("NXDOMAIN")

        with pytest.raises(QueryFailure, match="NXDOMAIN"):
            await StatusSource().query_status("nowhere.invalid", 25565)

    @pytest.mark.asyncio
    async def test_slow_lookup_times_out(self, java_server):
        server_cls, _ = java_server

        async def hang(*args, **kwargs):
            await asyncio.sleep(5)

        server_cls.async_lookup.side_effect = hang

        with pytest.raises(QueryFailure, match="Timed out"):
            await StatusSource(timeout=0.05).query_status("slow.example.org", 25565)


class TestStatusSourcePoll:
    @pytest.mark.asyncio
    async def test_success_result(self, java_server):
        _, instance = java_server
        instance.async_status.return_value = make_status(["Bob"])
        server = ServerConfig(name="A", host="a")

        result = await StatusSource().poll(server)

        assert isinstance(result, PollResult)
        assert result.ok
        assert result.server is server
        assert result.snapshot.players == ("Bob",)
        assert result.error is None

    @pytest.mark.asyncio
    async def test_failure_result(self, java_server):
        _, instance = java_server
        instance.async_status.side_effect = OSError("no route to host")

        result = await StatusSource().poll(ServerConfig(name="A", host="a"))

        assert not result.ok
        assert result.snapshot is None
        assert result.error == "no route to host"


class TestQueryFailure:
    def test_default_reason(self):
        assert QueryFailure("").reason == "Server not reachable"

    def test_failure_result_default_reason(self):
        result = PollResult.failure(ServerConfig(name="A", host="a"), "")
        assert result.error == "Server not reachable"
