"""Service-account credentials mounted into every pod."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_PATH = "/var/run/secrets/kubernetes.io/serviceaccount"


def _read_trimmed(path: Path) -> str:
    if not path.exists():
        return ""
    try:
        return path.read_text(encoding="utf-8").strip()
    except UnicodeDecodeError:
        logger.warning("Ignoring %s: not valid UTF-8", path)
        return ""


def read_token(service_account_path: str | Path = SERVICE_ACCOUNT_PATH) -> str:
    """Bearer token for the control-plane API, or "" if none is mounted."""
    return _read_trimmed(Path(service_account_path) / "token")


def read_namespace(service_account_path: str | Path = SERVICE_ACCOUNT_PATH) -> str:
    """Namespace this pod runs in, or "" if none is mounted."""
    return _read_trimmed(Path(service_account_path) / "namespace")
