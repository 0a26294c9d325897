from __future__ import annotations

import shlex
import urllib.parse

from src.readiness import config
from src.readiness.gate import GateOutcome, OutcomeKind

DOCKER_HINT = (
    "The easiest way of launching Elasticsearch is by running it with Docker "
    "(https://www.docker.com/get-docker):"
)


def _published_port(endpoint: str) -> int:
    parsed = urllib.parse.urlparse(endpoint or "")
    try:
        port = parsed.port
    except ValueError:
        port = None
    return port or 9200


def docker_command(
    endpoint: str,
    *,
    image: str | None = None,
    container_name: str = config.DEFAULT_CONTAINER_NAME,
) -> str:
    port = _published_port(endpoint)
    parts = [
        "docker",
        "run",
        "--name",
        container_name,
        "--publish",
        f"{port}:9200",
        "--env",
        "discovery.type=single-node",
        "--env",
        "cluster.name=elasticsearch-rails",
        "--env",
        "cluster.routing.allocation.disk.threshold_enabled=false",
        "--rm",
        image or config.elasticsearch_image(),
    ]
    return " ".join(shlex.quote(p) for p in parts)


def render_failure_message(outcome: GateOutcome, *, docker_cmd: str | None = None) -> str:
    """Terminal text for a failed gate outcome; empty for a passing one."""
    if outcome.ok:
        return ""

    cmd = docker_cmd or docker_command(outcome.endpoint)
    lines = [outcome.message, ""]

    if outcome.kind is OutcomeKind.UNREACHABLE:
        lines.append(
            "The application requires an Elasticsearch cluster running, "
            f"but no cluster has been found on <{outcome.endpoint}>."
        )
        lines += [DOCKER_HINT, "", cmd]
    elif outcome.kind is OutcomeKind.VERSION_TOO_LOW:
        lines += [DOCKER_HINT, "", cmd]
    elif outcome.kind is OutcomeKind.MALFORMED_RESPONSE:
        if outcome.detail:
            lines.append(f"Reason: {outcome.detail}")
        if outcome.body is not None:
            lines.append(outcome.body or "<empty response body>")
    elif outcome.detail and outcome.detail not in outcome.message:
        lines.append(outcome.detail)

    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines)
