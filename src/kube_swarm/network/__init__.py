"""Networking layer: peer identity, discovery and connection primitives."""

from kube_swarm.network.connector import ConnectOutcome, Connector
from kube_swarm.network.peer import PeerId
from kube_swarm.network.transport import Transport

__all__ = ["ConnectOutcome", "Connector", "PeerId", "Transport"]
