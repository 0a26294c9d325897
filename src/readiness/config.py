from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_ELASTICSEARCH_URL = "http://localhost:9200"
DEFAULT_REQUIRED_VERSION = "7"
DEFAULT_ELASTICSEARCH_IMAGE = "docker.elastic.co/elasticsearch/elasticsearch-oss:7.6.0"
DEFAULT_CONTAINER_NAME = "elasticsearch-rails-searchapp"
DEFAULT_APP_URL = "http://localhost:3000"

COMPARISON_MODES = ("semantic", "lexical")


def _env_bool(name: str, *, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    return default


def _env_float(name: str, *, default: float, minimum: float = 0.0) -> float:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid number for %s=%r, using default %s", name, raw, default)
        return default
    if value < minimum:
        logger.warning("Out of range value for %s=%r, using default %s", name, raw, default)
        return default
    return value


def _env_int(name: str, *, default: int, minimum: int = 0) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r, using default %d", name, raw, default)
        return default
    if value < minimum:
        logger.warning("Out of range value for %s=%r, using default %d", name, raw, default)
        return default
    return value


def elasticsearch_url() -> str:
    return (
        (os.environ.get("ELASTICSEARCH_URL") or DEFAULT_ELASTICSEARCH_URL)
        .strip()
        .rstrip("/")
    ) or DEFAULT_ELASTICSEARCH_URL


def required_elasticsearch_version() -> str:
    return (
        os.environ.get("SEARCHAPP_REQUIRED_ES_VERSION") or DEFAULT_REQUIRED_VERSION
    ).strip() or DEFAULT_REQUIRED_VERSION


def gate_timeout_s() -> float:
    return _env_float("SEARCHAPP_GATE_TIMEOUT_S", default=30.0, minimum=0.001)


def gate_retries() -> int:
    return _env_int("SEARCHAPP_GATE_RETRIES", default=0)


def gate_retry_backoff_s() -> float:
    return _env_float("SEARCHAPP_GATE_RETRY_BACKOFF_S", default=1.0)


def version_comparison_mode() -> str:
    v = (os.environ.get("SEARCHAPP_VERSION_COMPARISON") or "semantic").strip().lower()
    if v not in COMPARISON_MODES:
        logger.warning("Unknown SEARCHAPP_VERSION_COMPARISON=%r, using 'semantic'", v)
        return "semantic"
    return v


def elasticsearch_image() -> str:
    return (
        os.environ.get("SEARCHAPP_ELASTICSEARCH_IMAGE") or DEFAULT_ELASTICSEARCH_IMAGE
    ).strip() or DEFAULT_ELASTICSEARCH_IMAGE


def app_url() -> str:
    return (
        (os.environ.get("SEARCHAPP_APP_URL") or DEFAULT_APP_URL).strip().rstrip("/")
    ) or DEFAULT_APP_URL


def server_start_disabled() -> bool:
    # The Rails template honoured RAILS_NO_SERVER_START (any value); keep it as a fallback.
    if "SEARCHAPP_NO_SERVER_START" in os.environ:
        return _env_bool("SEARCHAPP_NO_SERVER_START", default=True)
    return "RAILS_NO_SERVER_START" in os.environ
