"""Kubernetes peer discovery: list running pods sharing a label selector.

Each round reads the pod's service-account token and namespace, queries

    GET <api>/api/v1/namespaces/<namespace>/pods?labelSelector=<selector>

and turns every pod in the ``Running`` phase into a PeerId built from the
configured base name and the pod IP. It assumes all nodes share a base name
and are unique by address.

A round never raises: unauthorized responses, other error statuses,
unreachable API servers and malformed bodies all yield an empty peer set,
a log line, and an error value on the DiscoveryResult.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from aiohttp import ClientError, ClientSession, ClientTimeout
from yarl import URL

from kube_swarm.network.credentials import read_namespace, read_token
from kube_swarm.network.errors import (
    AuthorizationError,
    DecodeError,
    DiscoveryError,
    QueryError,
    TransportError,
)
from kube_swarm.network.peer import PeerId

if TYPE_CHECKING:
    from kube_swarm.config import ClusterConfig

logger = logging.getLogger(__name__)

RUNNING_PHASE = "Running"
UNAUTHORIZED_STATUSES = (401, 403)

# Reserved URI characters stay literal so selectors like "app=swarm,tier!=db"
# reach the API server as written.
_SELECTOR_SAFE = ":/?#[]@!$&'()*+,;="


@dataclass(frozen=True)
class DiscoveryResult:
    """Peers found by one discovery round, plus the error that emptied it."""

    peers: frozenset[PeerId] = frozenset()
    error: DiscoveryError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, error: DiscoveryError) -> DiscoveryResult:
        return cls(peers=frozenset(), error=error)


def encode_selector(selector: str) -> str:
    """URL-encode a label selector, leaving reserved characters intact.

    Args:
        selector: Kubernetes label selector, e.g. ``app=swarm,tier!=db``.

    Returns:
        The selector with only non-reserved characters percent-encoded.
    """
    return quote(selector, safe=_SELECTOR_SAFE)


def pods_url(api_url: str, namespace: str, selector: str) -> URL:
    """Build the already-encoded pod list URL.

    Args:
        api_url: Base URL of the API server.
        namespace: Namespace whose pods are listed.
        selector: Raw label selector; encoded here.

    Returns:
        A URL marked as encoded so aiohttp sends it unchanged.
    """
    base = api_url.rstrip("/")
    path = f"{base}/api/v1/namespaces/{namespace}/pods?labelSelector={encode_selector(selector)}"
    return URL(path, encoded=True)


def parse_pod_list(data: Any, basename: str) -> frozenset[PeerId]:
    """Extract running peers from a decoded PodList document.

    Raises:
        DecodeError: if the document is not an object with an ``items`` list.
    """
    if not isinstance(data, dict):
        raise DecodeError(f"expected a JSON object, got {type(data).__name__}")
    items = data.get("items")
    if items is None:
        raise DecodeError("response has no 'items' field")
    if not isinstance(items, list):
        raise DecodeError(f"'items' is {type(items).__name__}, expected a list")

    peers = set()
    for item in items:
        if not isinstance(item, dict):
            continue
        status = item.get("status")
        if not isinstance(status, dict):
            continue
        pod_ip = status.get("podIP")
        if status.get("phase") == RUNNING_PHASE and pod_ip:
            peers.add(PeerId(basename=basename, address=str(pod_ip)))
    return frozenset(peers)


def _api_message(body: str) -> str:
    """The ``message`` field of a Kubernetes Status body, else the raw body."""
    try:
        data = json.loads(body)
    except ValueError:
        return body
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return body


class KubernetesDiscovery:
    """Discovery source backed by the Kubernetes pods API.

    If no session is supplied, each round opens and closes its own
    ClientSession.
    """

    def __init__(
        self,
        config: ClusterConfig,
        session: ClientSession | None = None,
    ) -> None:
        self.config = config
        self._session = session
        self.rounds = 0
        self.failures = 0

    async def fetch(self) -> DiscoveryResult:
        """Run one discovery round. Never raises."""
        self.rounds += 1
        result = await self._fetch()
        if not result.ok:
            self.failures += 1
        return result

    async def _fetch(self) -> DiscoveryResult:
        loop = asyncio.get_event_loop()
        sa_path = self.config.service_account_path
        try:
            token = await loop.run_in_executor(None, read_token, sa_path)
            namespace = await loop.run_in_executor(None, read_namespace, sa_path)
            url = pods_url(self.config.api_url, namespace, self.config.selector)
            if self._session is not None:
                status, reason, body = await self._get(self._session, url, token)
            else:
                async with ClientSession() as session:
                    status, reason, body = await self._get(session, url, token)
        except (ClientError, asyncio.TimeoutError, OSError) as e:
            logger.error("Request to kubernetes failed: %r", e)
            return DiscoveryResult.failed(TransportError(repr(e)))

        if 200 <= status < 300:
            return self._decode(body)

        text = body.decode("utf-8", errors="replace")
        if status in UNAUTHORIZED_STATUSES:
            message = _api_message(text)
            logger.warning("Cannot query kubernetes (unauthorized): %s", message)
            return DiscoveryResult.failed(AuthorizationError(message))

        logger.warning("Cannot query kubernetes (%d %s): %r", status, reason, text)
        return DiscoveryResult.failed(QueryError(status, reason, text))

    async def _get(self, session: ClientSession, url: URL, token: str) -> tuple[int, str, bytes]:
        headers = {"authorization": f"Bearer {token}"}
        kwargs: dict[str, Any] = {"headers": headers, "ssl": False}
        if self.config.request_timeout is not None:
            kwargs["timeout"] = ClientTimeout(total=self.config.request_timeout)
        async with session.get(url, **kwargs) as resp:
            body = await resp.read()
            return resp.status, resp.reason or "", body

    def _decode(self, body: bytes) -> DiscoveryResult:
        # json.loads detects the encoding; undecodable bytes raise ValueError
        try:
            peers = parse_pod_list(json.loads(body), self.config.node_basename)
        except (ValueError, DecodeError) as e:
            error = e if isinstance(e, DecodeError) else DecodeError(str(e))
            logger.warning("Cannot decode kubernetes response: %s", error)
            return DiscoveryResult.failed(error)
        logger.debug("Kubernetes discovery found %d running peers", len(peers))
        return DiscoveryResult(peers=peers)

    def get_stats(self) -> dict[str, Any]:
        return {
            "rounds": self.rounds,
            "failures": self.failures,
            "selector": self.config.selector,
        }
