"""Swarm node: ties transport, discovery and membership reconciliation.

A node:
1. Listens for peer handshakes via the transport layer
2. Discovers running peers through the Kubernetes pods API
3. Connects to newly discovered peers every poll interval
"""

from __future__ import annotations

import logging
from typing import Any

from kube_swarm.config import ClusterConfig
from kube_swarm.membership.reconciler import Reconciler, TickReport
from kube_swarm.membership.scheduler import Scheduler
from kube_swarm.network.connector import Connector
from kube_swarm.network.discovery import KubernetesDiscovery
from kube_swarm.network.transport import Transport

logger = logging.getLogger(__name__)


class SwarmNode:
    """A cluster peer that keeps itself connected to its discovered peers."""

    def __init__(self, config: ClusterConfig) -> None:
        self.config = config

        self.transport = Transport(
            node_name=config.node_name,
            host=config.host,
            port=config.port,
            peer_port=config.peer_port,
        )
        self.discovery = KubernetesDiscovery(config)
        self.connector = Connector(self.transport.connect)
        self.reconciler = Reconciler(self.discovery, self.connector)
        self.scheduler = Scheduler(
            self.reconciler,
            interval=config.poll_interval,
            initial_delay=config.initial_delay,
        )
        self.transport.on_status(self.get_status)

    @property
    def node_name(self) -> str:
        return self.config.node_name

    async def start(self, *, reconcile: bool = True) -> None:
        """Start the transport and, unless disabled, the reconciliation loop."""
        await self.transport.start()
        if reconcile:
            self.scheduler.start()
        logger.info(
            "Swarm node started: name=%s port=%d selector=%r interval=%.1fs",
            self.node_name,
            self.config.port,
            self.config.selector,
            self.config.poll_interval,
        )

    async def reconcile_once(self) -> TickReport:
        """Run a single discovery-and-connect round."""
        return await self.scheduler.run_once()

    async def stop(self) -> None:
        """Stop the node gracefully."""
        await self.scheduler.stop()
        await self.transport.stop()
        logger.info("Swarm node stopped")

    def get_status(self) -> dict[str, Any]:
        return {
            "membership": self.reconciler.get_stats(),
            "discovery": self.discovery.get_stats(),
            "connector": {
                "attempts": self.connector.attempts,
                "successes": self.connector.successes,
            },
        }
