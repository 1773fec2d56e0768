"""Periodic player/connectivity monitoring across all configured servers."""

import asyncio
from typing import Any, Dict, List, Optional, Set

import structlog

from config import ServerConfig
from server_state import RosterDiff, ServerStateStore, diff_rosters
from status_source import PollResult

logger = structlog.get_logger()


class PlayerMonitor:
    """Poll every server on a fixed interval and notify on state transitions."""

    def __init__(
        self,
        servers: Dict[str, ServerConfig],
        status_source: Any,
        dispatcher: Any,
        state_store: Optional[ServerStateStore] = None,
        interval: float = 30.0,
        announce_initial_roster: bool = True,
    ) -> None:
        """
        Initialize player monitor.

        Args:
            servers: Server name -> ServerConfig to watch
            status_source: StatusSource with async poll(server) -> PollResult
            dispatcher: NotificationDispatcher for outgoing messages
            state_store: Per-server runtime state (created if omitted)
            interval: Seconds between sweeps
            announce_initial_roster: Announce players found by a server's first
                successful poll as joined. If False that poll only records a baseline.
        """
        self.servers = servers
        self.status_source = status_source
        self.dispatcher = dispatcher
        self.state = state_store if state_store is not None else ServerStateStore()
        self.interval = interval
        self.announce_initial_roster = announce_initial_roster

        self.monitor_task: Optional[asyncio.Task] = None
        self._sweep_tasks: Set[asyncio.Task] = set()
        self._in_flight: Dict[str, object] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the sweep timer."""
        if not self.monitor_task:
            self._running = True
            self.monitor_task = asyncio.create_task(self._monitor_loop())
            logger.info(
                "player_monitoring_started",
                servers=list(self.servers),
                interval=self.interval,
            )

    async def stop(self) -> None:
        """Stop the timer and cancel sweeps still in progress."""
        self._running = False

        if self.monitor_task:
            self.monitor_task.cancel()
            try:
                await self.monitor_task
            except asyncio.CancelledError:
                pass
            self.monitor_task = None

        pending = list(self._sweep_tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._sweep_tasks.clear()

        logger.info("player_monitoring_stopped")

    async def _monitor_loop(self) -> None:
        """Spawn one sweep per tick without waiting for the previous one."""
        while self._running:
            try:
                task = asyncio.create_task(self.run_sweep())
                self._sweep_tasks.add(task)
                task.add_done_callback(self._sweep_tasks.discard)
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                logger.info("player_monitor_cancelled")
                break

    async def run_sweep(self) -> List[PollResult]:
        """Poll all servers concurrently. Returns results of the servers polled."""
        configs = [c for c in self.servers.values() if c.name not in self._in_flight]
        skipped = [name for name in self.servers if name in self._in_flight]
        if skipped:
            logger.warning("poll_skipped_still_in_flight", servers=skipped)

        # Claim before any await so an overlapping sweep sees these as busy.
        token = object()
        for config in configs:
            self._in_flight[config.name] = token
        try:
            outcomes = await asyncio.gather(
                *(self._poll_claimed(config, token) for config in configs),
                return_exceptions=True,
            )
        finally:
            for config in configs:
                self._release(config.name, token)

        results: List[PollResult] = []
        for config, outcome in zip(configs, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    "poll_task_crashed",
                    server_name=config.name,
                    error=str(outcome),
                    exc_info=outcome,
                )
                continue
            results.append(outcome)

        logger.debug(
            "sweep_complete",
            polled=len(configs),
            reachable=sum(1 for r in results if r.ok),
        )
        return results

    def _release(self, name: str, token: object) -> None:
        """Drop a claim, unless a later sweep has since taken the server."""
        if self._in_flight.get(name) is token:
            del self._in_flight[name]

    async def _poll_claimed(self, server: ServerConfig, token: object) -> PollResult:
        try:
            return await self.poll_server(server)
        finally:
            self._release(server.name, token)

    async def poll_server(self, server: ServerConfig) -> PollResult:
        """Query one server and run the result through the notification pipeline."""
        try:
            result = await self.status_source.poll(server)
        except Exception as e:
            logger.error(
                "status_poll_raised",
                server_name=server.name,
                error=str(e),
                exc_info=True,
            )
            result = PollResult.failure(server, str(e) or type(e).__name__)

        await self.process_result(result)
        return result

    async def process_result(self, result: PollResult) -> None:
        """
        Apply recovery, join, leave, and unreachable rules in that order,
        then record the new state.
        """
        server = result.server
        state = self.state.get(server.name)

        if not result.ok:
            if not state.unreachable:
                await self.dispatcher.notify_unreachable(server)
            else:
                logger.debug("unreachable_already_notified", server_name=server.name)
            self.state.mark_unreachable(server.name)
            return

        assert result.snapshot is not None
        current = result.snapshot.players

        if state.unreachable:
            await self.dispatcher.notify_recovered(server)

        if not state.baseline_established and not self.announce_initial_roster:
            diff = RosterDiff()
            logger.info(
                "roster_baseline_recorded",
                server_name=server.name,
                players=list(current),
            )
        else:
            diff = diff_rosters(state.last_players, current)

        if diff.joined:
            await self.dispatcher.notify_joined(server, diff.joined)

        if diff.left:
            await self.dispatcher.notify_left(server, diff.left)

        if diff.changed:
            logger.info(
                "roster_changed",
                server_name=server.name,
                joined=list(diff.joined),
                left=list(diff.left),
            )

        self.state.update(server.name, current, unreachable=False)
