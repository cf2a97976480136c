"""Multi-node test: two swarm nodes on loopback addresses discover each other
through a fake Kubernetes API and complete real handshakes over HTTP.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import pytest
from aiohttp import ClientSession, test_utils, web

from kube_swarm.config import ClusterConfig
from kube_swarm.network.peer import PeerId
from kube_swarm.node import SwarmNode


# ── Helpers ──────────────────────────────────────────────────────

class FakeApi:
    """Kubernetes pods endpoint whose running pod IPs can be changed."""

    def __init__(self) -> None:
        self.running: list[str] = []

    async def handle(self, request: web.Request) -> web.Response:
        items = [{"status": {"phase": "Running", "podIP": ip}} for ip in self.running]
        return web.json_response({"items": items})


@asynccontextmanager
async def serve(api: FakeApi) -> AsyncIterator[str]:
    app = web.Application()
    app.router.add_get("/{tail:.*}", api.handle)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield f"http://{server.host}:{server.port}"
    finally:
        await server.close()


def make_config(address: str, port: int, api_url: str, tmp_path, **kwargs: Any) -> ClusterConfig:
    (tmp_path / "namespace").write_text("swarm")
    return ClusterConfig(
        node_basename="app",
        selector="app=swarm",
        api_url=api_url,
        service_account_path=str(tmp_path),
        host=address,
        port=port,
        peer_port=port,
        node_address=address,
        **kwargs,
    )


A = PeerId("app", "127.0.0.1")
B = PeerId("app", "127.0.0.2")


# ── Tests ────────────────────────────────────────────────────────

class TestSwarmNode:
    @pytest.mark.asyncio
    async def test_nodes_connect_and_observe_removal(self, tmp_path):
        api = FakeApi()
        api.running = ["127.0.0.1", "127.0.0.2"]
        port = test_utils.unused_port()
        async with serve(api) as url:
            node_a = SwarmNode(make_config("127.0.0.1", port, url, tmp_path))
            node_b = SwarmNode(make_config("127.0.0.2", port, url, tmp_path))
            await node_a.start(reconcile=False)
            await node_b.start(reconcile=False)
            try:
                report = await node_a.reconcile_once()
                assert report.added == {A, B}
                assert set(report.connected) == {A, B}
                assert node_a.reconciler.current == {A, B}
                assert "app@127.0.0.1" in node_b.transport.connected

                # B stops running: observed, not actively disconnected
                api.running = ["127.0.0.1"]
                report = await node_a.reconcile_once()
                assert report.removed == {B}
                assert report.added == frozenset()
                assert node_a.reconciler.current == {A}
                assert "app@127.0.0.2" in node_a.transport.connected
            finally:
                await node_a.stop()
                await node_b.stop()

    @pytest.mark.asyncio
    async def test_unreachable_peer_is_retried_next_round(self, tmp_path):
        api = FakeApi()
        api.running = ["127.0.0.2"]
        port = test_utils.unused_port()
        async with serve(api) as url:
            node_a = SwarmNode(make_config("127.0.0.1", port, url, tmp_path))
            await node_a.start(reconcile=False)
            try:
                report = await node_a.reconcile_once()
                assert report.failed == [B]

                api.running = []
                await node_a.reconcile_once()

                node_b = SwarmNode(make_config("127.0.0.2", port, url, tmp_path))
                await node_b.start(reconcile=False)
                try:
                    api.running = ["127.0.0.2"]
                    report = await node_a.reconcile_once()
                    assert report.connected == [B]
                finally:
                    await node_b.stop()
            finally:
                await node_a.stop()

    @pytest.mark.asyncio
    async def test_background_loop_and_status(self, tmp_path):
        api = FakeApi()
        api.running = ["127.0.0.1"]
        port = test_utils.unused_port()
        async with serve(api) as url:
            node = SwarmNode(make_config("127.0.0.1", port, url, tmp_path, poll_interval=0.05))
            await node.start()
            try:
                await asyncio.sleep(0.3)
                async with ClientSession() as session:
                    async with session.get(f"http://127.0.0.1:{port}/status") as resp:
                        status = await resp.json()
            finally:
                await node.stop()

        assert status["node"] == "app@127.0.0.1"
        assert status["membership"]["known_peers"] == ["app@127.0.0.1"]
        assert status["membership"]["ticks"] >= 2
        assert status["discovery"]["failures"] == 0
        assert status["connector"]["attempts"] == 1

    @pytest.mark.asyncio
    async def test_api_down_empties_membership(self, tmp_path):
        port = test_utils.unused_port()
        dead_api = f"http://127.0.0.1:{test_utils.unused_port()}"
        node = SwarmNode(make_config("127.0.0.1", port, dead_api, tmp_path))
        node.reconciler.state.current = frozenset({A})
        await node.start(reconcile=False)
        try:
            report = await node.reconcile_once()
        finally:
            await node.stop()
        assert report.removed == {A}
        assert node.reconciler.current == frozenset()
        assert report.error is not None
