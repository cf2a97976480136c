"""CLI entry point for launching a swarm node.

Usage:
    kube-swarm --basename myapp --selector app=myapp
    kube-swarm --config swarm.json --port 8471
    kube-swarm --config swarm.json --once

Environment variables:
    SWARM_NODE_BASENAME:  Base name shared by all nodes
    SWARM_SELECTOR:       Kubernetes label selector for peer pods
    SWARM_API_URL:        Control-plane URL override
    SWARM_POLL_INTERVAL:  Seconds between discovery rounds
    SWARM_PORT:           Listening port
    POD_IP:               This pod's address (usually set via the downward API)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any

from kube_swarm.config import ClusterConfig, load_config
from kube_swarm.network.errors import ConfigError
from kube_swarm.node import SwarmNode


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Join a peer cluster by discovering pods through the Kubernetes API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to JSON config file",
    )
    parser.add_argument(
        "--basename", "-b",
        help="Node base name shared by all peers",
    )
    parser.add_argument(
        "--selector", "-s",
        help="Label selector for peer pods (e.g. app=myapp)",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        help="Override listening port",
    )
    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between discovery rounds (default: 5)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single discovery round, print the peers and exit",
    )
    parser.add_argument(
        "--log-level", "-l",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Map CLI flags onto config keys."""
    return {
        "node_basename": args.basename,
        "selector": args.selector,
        "port": args.port,
        "poll_interval": args.interval,
    }


async def run_once(config: ClusterConfig) -> int:
    """Run one discovery round and print the running peers."""
    node = SwarmNode(config)
    result = await node.discovery.fetch()
    for peer in sorted(result.peers):
        print(peer.name)
    return 0 if result.ok else 2


async def run_node(node: SwarmNode) -> None:
    """Start the node and run until interrupted."""
    await node.start()

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def handle_signal() -> None:
        print("\nShutting down...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    await stop_event.wait()
    await node.stop()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        config = load_config(args.config, build_overrides(args))
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.once:
        sys.exit(asyncio.run(run_once(config)))

    print("=" * 60)
    print("  kube-swarm node")
    print("=" * 60)
    print(f"  Node: {config.node_name}")
    print(f"  Port: {config.port}")
    print(f"  Selector: {config.selector or '(none)'}")
    print(f"  API: {config.api_url}")
    print(f"  Poll interval: {config.poll_interval}s")
    print("=" * 60 + "\n")

    asyncio.run(run_node(SwarmNode(config)))


if __name__ == "__main__":
    main()
