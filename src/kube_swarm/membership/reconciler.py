"""Membership reconciler: diff discovered peers against the known set.

Each tick:
  1. Fetch the current candidate set from the discovery source
  2. added = discovered - current, removed = current - discovered
  3. Log every removed peer (observation only, no disconnect)
  4. Attempt a connection to every added peer
  5. Replace the known set with the discovered set

A failed round reads as "no peers"; peers still present on the next round
are re-added with a fresh connection attempt, so connecting an already
connected peer must be a harmless no-op.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from kube_swarm.network.connector import ConnectOutcome, Connector
from kube_swarm.network.discovery import DiscoveryResult
from kube_swarm.network.errors import DiscoveryError, TransportError
from kube_swarm.network.peer import PeerId

logger = logging.getLogger(__name__)


class DiscoverySource(Protocol):
    async def fetch(self) -> DiscoveryResult: ...


def diff(
    current: frozenset[PeerId],
    discovered: frozenset[PeerId],
) -> tuple[frozenset[PeerId], frozenset[PeerId]]:
    """Return (added, removed) going from ``current`` to ``discovered``."""
    return discovered - current, current - discovered


@dataclass
class ReconcilerState:
    """The reconciler's belief about the cluster. In memory only."""

    current: frozenset[PeerId] = frozenset()
    ticks: int = 0
    last_tick: float = 0.0
    last_error: DiscoveryError | None = None


@dataclass
class TickReport:
    """What happened during one reconciliation tick."""

    added: frozenset[PeerId] = frozenset()
    removed: frozenset[PeerId] = frozenset()
    outcomes: list[ConnectOutcome] = field(default_factory=list)
    error: DiscoveryError | None = None

    @property
    def connected(self) -> list[PeerId]:
        return [o.peer for o in self.outcomes if o.connected]

    @property
    def failed(self) -> list[PeerId]:
        return [o.peer for o in self.outcomes if not o.connected]


class Reconciler:
    """Owns the known peer set and reconciles it once per tick.

    Only ``tick()`` mutates the state, and ticks are never run
    concurrently (see Scheduler), so no locking is needed.
    """

    def __init__(self, source: DiscoverySource, connector: Connector) -> None:
        self.source = source
        self.connector = connector
        self.state = ReconcilerState()

    @property
    def current(self) -> frozenset[PeerId]:
        return self.state.current

    async def tick(self) -> TickReport:
        """Run one reconciliation round. Never raises.

        Removed peers are logged before any added peer is connected, and the
        known set is replaced only after all connect attempts.

        Returns:
            A TickReport with the added and removed peers, the connect
            outcomes and the discovery error, if any.
        """
        result = await self._discover()
        added, removed = diff(self.state.current, result.peers)

        for peer in sorted(removed):
            logger.debug("Disconnected from %s", peer.name)

        outcomes = []
        for peer in sorted(added):
            outcomes.append(await self.connector.attempt(peer))

        self.state.current = result.peers
        self.state.ticks += 1
        self.state.last_tick = time.time()
        self.state.last_error = result.error

        if added or removed:
            logger.info(
                "Membership changed: +%d -%d (known=%d)",
                len(added), len(removed), len(result.peers),
            )
        return TickReport(added=added, removed=removed, outcomes=outcomes, error=result.error)

    async def _discover(self) -> DiscoveryResult:
        try:
            return await self.source.fetch()
        except Exception as e:
            logger.exception("Discovery source raised")
            return DiscoveryResult.failed(TransportError(repr(e)))

    def get_stats(self) -> dict[str, Any]:
        return {
            "known_peers": sorted(p.name for p in self.state.current),
            "ticks": self.state.ticks,
            "last_tick": self.state.last_tick,
            "last_error": repr(self.state.last_error) if self.state.last_error else None,
        }
