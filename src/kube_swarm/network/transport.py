"""Transport layer: the node-to-node connection primitive.

Each node runs a small aiohttp server. Connecting to a peer is a
``POST /hello`` handshake carrying our node name; the peer answers with its
own name and both sides record the other as connected. Repeating the
handshake with an already connected peer is harmless.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from aiohttp import ClientSession, ClientTimeout, web

from kube_swarm.network.peer import PeerId

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = ClientTimeout(total=10)


class Transport:
    """HTTP-based transport for peer-to-peer connections.

    Runs an aiohttp server for incoming handshakes and uses an aiohttp
    client session for outgoing ones.
    """

    def __init__(
        self,
        node_name: str,
        host: str = "0.0.0.0",
        port: int = 8470,
        peer_port: int = 8470,
    ) -> None:
        self.node_name = node_name
        self.host = host
        self.port = port
        self.peer_port = peer_port
        self._app = web.Application()
        self._runner: web.AppRunner | None = None
        self._session: ClientSession | None = None
        self._connected: set[str] = set()
        self._status_fn: Callable[[], dict[str, Any]] | None = None

        self._app.router.add_post("/hello", self._handle_hello)
        self._app.router.add_get("/health", self._handle_health)
        self._app.router.add_get("/peers", self._handle_peers)
        self._app.router.add_get("/status", self._handle_status)

    @property
    def connected(self) -> frozenset[str]:
        """Names of peers that completed a handshake in either direction."""
        return frozenset(self._connected)

    def on_status(self, fn: Callable[[], dict[str, Any]]) -> None:
        """Set the callable whose result is served under ``/status``."""
        self._status_fn = fn

    async def start(self) -> None:
        """Start the HTTP server and client session."""
        self._session = ClientSession(timeout=DEFAULT_TIMEOUT)
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Transport listening on %s:%d as %s", self.host, self.port, self.node_name)

    async def stop(self) -> None:
        """Gracefully shut down transport."""
        if self._session:
            await self._session.close()
            self._session = None
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        logger.info("Transport stopped")

    async def connect(self, peer: PeerId) -> bool:
        """Handshake with a peer.

        Args:
            peer: Peer to greet on its ``peer_port``.

        Returns:
            True if the peer accepted the handshake, False if it answered
            with an error status.

        Raises:
            aiohttp.ClientError: if the peer could not be reached.
        """
        if peer.name == self.node_name:
            return True
        if not self._session:
            logger.error("Transport not started")
            return False

        url = f"http://{peer.endpoint(self.peer_port)}/hello"
        async with self._session.post(url, json={"node": self.node_name}) as resp:
            if resp.status != 200:
                return False
            data = await resp.json()
        remote = data.get("node") if isinstance(data, dict) else None
        if remote and remote != peer.name:
            logger.debug("Peer at %s identifies as %s, expected %s",
                         peer.address, remote, peer.name)
            return False
        self._connected.add(peer.name)
        return True

    async def _handle_hello(self, request: web.Request) -> web.Response:
        """Accept an incoming handshake."""
        try:
            data = await request.json()
            node = PeerId.parse(data["node"])
        except (AttributeError, KeyError, TypeError, ValueError):
            return web.json_response(
                {"status": "error", "detail": "invalid handshake"},
                status=400,
            )
        if node.name not in self._connected:
            logger.debug("Accepted connection from %s", node.name)
        self._connected.add(node.name)
        return web.json_response({"node": self.node_name})

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({"status": "healthy", "node": self.node_name})

    async def _handle_peers(self, request: web.Request) -> web.Response:
        """List peers that completed a handshake."""
        return web.json_response({"peers": sorted(self._connected)})

    async def _handle_status(self, request: web.Request) -> web.Response:
        """Node status, as reported by the owning node."""
        status: dict[str, Any] = {"node": self.node_name, "connected": len(self._connected)}
        if self._status_fn:
            status.update(self._status_fn())
        return web.json_response(status)
