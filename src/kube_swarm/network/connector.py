"""Connector: issue connection attempts to discovered peers.

Failures are reported, logged at debug level and never raised or retried;
the next discovery round is the retry mechanism.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from kube_swarm.network.errors import ConnectError
from kube_swarm.network.peer import PeerId

logger = logging.getLogger(__name__)

ConnectFn = Callable[[PeerId], Awaitable[bool]]


@dataclass(frozen=True)
class ConnectOutcome:
    """Result of one connection attempt."""

    peer: PeerId
    connected: bool
    error: ConnectError | None = None

    def __bool__(self) -> bool:
        return self.connected


class Connector:
    """Wraps a connect primitive so that every attempt yields an outcome."""

    def __init__(self, connect_fn: ConnectFn) -> None:
        self._connect_fn = connect_fn
        self.attempts = 0
        self.successes = 0

    async def attempt(self, peer: PeerId) -> ConnectOutcome:
        """Try to connect to a peer once.

        Args:
            peer: Peer to connect to.

        Returns:
            The outcome; a refusal or raised exception is recorded as a
            ConnectError on it rather than propagated.
        """
        self.attempts += 1
        try:
            ok = await self._connect_fn(peer)
        except Exception as e:
            outcome = ConnectOutcome(peer, False, ConnectError(peer, repr(e)))
        else:
            if ok:
                outcome = ConnectOutcome(peer, True)
            else:
                outcome = ConnectOutcome(peer, False, ConnectError(peer, "refused"))

        if outcome.connected:
            self.successes += 1
            logger.debug("Connected to %s", peer.name)
        else:
            logger.debug(
                "Attempted to connect to %s, but failed: %s",
                peer.name, outcome.error.reason if outcome.error else "unknown",
            )
        return outcome

    async def connect(self, peer: PeerId) -> bool:
        """Attempt a connection, returning only whether it succeeded."""
        return (await self.attempt(peer)).connected
