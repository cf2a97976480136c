"""Tests for the kube-swarm CLI."""

from __future__ import annotations

import json

import pytest
from aiohttp import test_utils, web

from kube_swarm.cli import build_overrides, main, parse_args, run_once
from kube_swarm.config import ClusterConfig


class TestArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.config is None
        assert args.once is False
        assert args.log_level == "INFO"

    def test_overrides(self):
        args = parse_args(["-b", "app", "-s", "app=swarm", "-p", "9000", "--interval", "2"])
        assert build_overrides(args) == {
            "node_basename": "app",
            "selector": "app=swarm",
            "port": 9000,
            "poll_interval": 2.0,
        }

    def test_missing_basename_exits(self, monkeypatch, capsys):
        monkeypatch.delenv("SWARM_NODE_BASENAME", raising=False)
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 1
        assert "node_basename is required" in capsys.readouterr().err

    def test_bad_config_value_exits(self, tmp_path, monkeypatch, capsys):
        monkeypatch.delenv("SWARM_POLL_INTERVAL", raising=False)
        path = tmp_path / "swarm.json"
        path.write_text(json.dumps({"node_basename": "app", "poll_interval": [5]}))
        with pytest.raises(SystemExit) as exc:
            main(["--config", str(path), "--once"])
        assert exc.value.code == 1
        assert "poll_interval" in capsys.readouterr().err


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_prints_running_peers(self, tmp_path, capsys):
        async def handler(request: web.Request) -> web.Response:
            return web.json_response({"items": [
                {"status": {"phase": "Running", "podIP": "10.0.0.2"}},
                {"status": {"phase": "Running", "podIP": "10.0.0.1"}},
                {"status": {"phase": "Pending", "podIP": "10.0.0.3"}},
            ]})

        app = web.Application()
        app.router.add_get("/{tail:.*}", handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        try:
            cfg = ClusterConfig(
                node_basename="app",
                api_url=f"http://{server.host}:{server.port}",
                service_account_path=str(tmp_path),
                node_address="10.0.0.1",
            )
            code = await run_once(cfg)
        finally:
            await server.close()

        assert code == 0
        assert capsys.readouterr().out.splitlines() == ["app@10.0.0.1", "app@10.0.0.2"]

    @pytest.mark.asyncio
    async def test_failure_exit_code(self, tmp_path):
        cfg = ClusterConfig(
            node_basename="app",
            api_url=f"http://127.0.0.1:{test_utils.unused_port()}",
            service_account_path=str(tmp_path),
        )
        assert await run_once(cfg) == 2
