from __future__ import annotations

import logging
import urllib.parse

import requests

from src.readiness.gate import is_connection_refused

logger = logging.getLogger(__name__)


def app_port_in_use(url: str, *, session: requests.Session | None = None, timeout: float = 5.0) -> bool:
    """Return True if something already answers on ``url``.

    Only an actively refused connection counts as free; any response or other
    error is treated as "in use" so we never start a second server on top of
    an unknown process.
    """
    http = session or requests.Session()
    try:
        http.get(url, timeout=timeout)
    except (requests.exceptions.RequestException, OSError) as exc:
        if is_connection_refused(exc):
            return False
        logger.debug("Port probe on %s failed with %s; assuming in use", url, exc)
        return True
    return True


def port_of(url: str, *, default: int = 3000) -> int:
    parsed = urllib.parse.urlparse(url or "")
    try:
        return parsed.port or default
    except ValueError:
        return default


def valid_port(raw: str | int) -> int | None:
    try:
        port = int(str(raw).strip())
    except ValueError:
        return None
    return port if 0 < port < 65536 else None


def with_port(url: str, port: int) -> str:
    parsed = urllib.parse.urlparse(url)
    host = parsed.hostname or "localhost"
    if ":" in host:
        host = f"[{host}]"
    return urllib.parse.urlunparse(parsed._replace(netloc=f"{host}:{int(port)}"))
