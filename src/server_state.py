# Copyright (c) 2025 Stephen Clau
#
# This file is part of MC Player Watch.
#
# MC Player Watch is dual-licensed:
#
# 1. GNU Affero General Public License v3.0 (AGPL-3.0)
#    See LICENSE file for full terms
#
# 2. Commercial License
#    For proprietary use without AGPL requirements
#    Contact: licensing@laudiversified.com
#
# SPDX-License-Identifier: AGPL-3.0-only OR Commercial

"""Per-server runtime memory and roster diffing."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, Tuple

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class ServerRuntimeState:
    """Last known roster and reachability of one server."""

    last_players: Tuple[str, ...] = ()
    unreachable: bool = False
    baseline_established: bool = False


@dataclass(frozen=True)
class RosterDiff:
    """Players that appeared and disappeared between two observations."""

    joined: Tuple[str, ...] = ()
    left: Tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.joined or self.left)


def diff_rosters(previous: Iterable[str], current: Iterable[str]) -> RosterDiff:
    """
    Compute joined = current - previous and left = previous - current.

    Each side keeps the order of the roster it was taken from.
    """
    previous = tuple(previous)
    current = tuple(current)
    previous_set = set(previous)
    current_set = set(current)

    return RosterDiff(
        joined=tuple(name for name in current if name not in previous_set),
        left=tuple(name for name in previous if name not in current_set),
    )


class ServerStateStore:
    """
    Owns every ServerRuntimeState, keyed by server name.

    States are immutable values; each mutation swaps in a new value for the key,
    so a reader never sees players and the unreachable flag out of step.
    """

    def __init__(self) -> None:
        self._states: Dict[str, ServerRuntimeState] = {}

    def get(self, name: str) -> ServerRuntimeState:
        """Return the state for a server, creating the default on first access."""
        state = self._states.get(name)
        if state is None:
            state = ServerRuntimeState()
            self._states[name] = state
            logger.debug("server_state_initialized", server_name=name)
        return state

    def update(self, name: str, players: Iterable[str], unreachable: bool) -> ServerRuntimeState:
        """Replace roster and reachability together after a poll."""
        state = ServerRuntimeState(
            last_players=tuple(players),
            unreachable=unreachable,
            baseline_established=True,
        )
        self._states[name] = state
        return state

    def mark_unreachable(self, name: str) -> ServerRuntimeState:
        """Flag a server unreachable while keeping its last known roster."""
        state = replace(self.get(name), unreachable=True)
        self._states[name] = state
        return state

    def snapshot(self) -> Dict[str, ServerRuntimeState]:
        return dict(self._states)

    def __contains__(self, name: object) -> bool:
        return name in self._states

    def __len__(self) -> int:
        return len(self._states)
