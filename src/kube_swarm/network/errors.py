"""Error kinds for discovery and connection attempts.

These are carried as values on DiscoveryResult / ConnectOutcome rather than
raised across the reconciliation loop; only ConfigError is raised to callers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kube_swarm.network.peer import PeerId


class SwarmError(Exception):
    """Base class for kube-swarm errors."""


class ConfigError(SwarmError):
    """Invalid or missing node configuration."""


class DiscoveryError(SwarmError):
    """A discovery round could not produce a peer list."""


class AuthorizationError(DiscoveryError):
    """The control plane rejected our credentials."""


class QueryError(DiscoveryError):
    """The control plane answered with an unexpected status."""

    def __init__(self, status: int, reason: str = "", body: str = "") -> None:
        super().__init__(f"{status} {reason}".strip())
        self.status = status
        self.reason = reason
        self.body = body


class TransportError(DiscoveryError):
    """No response was received from the control plane."""


class DecodeError(DiscoveryError):
    """The response body did not have the expected shape."""


class ConnectError(SwarmError):
    """A connection attempt to a peer failed."""

    def __init__(self, peer: PeerId, reason: str = "") -> None:
        super().__init__(f"{peer.name}: {reason}" if reason else peer.name)
        self.peer = peer
        self.reason = reason
