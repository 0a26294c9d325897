from __future__ import annotations

import errno
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

import requests

from src.readiness import config
from src.readiness.versioning import VersionParseError, meets_minimum, parse_version

logger = logging.getLogger(__name__)

_BODY_EXCERPT_CHARS = 500


class OutcomeKind(str, Enum):
    READY = "ready"
    UNREACHABLE = "unreachable"
    MALFORMED_RESPONSE = "malformed_response"
    VERSION_TOO_LOW = "version_too_low"
    TRANSPORT_ERROR = "transport_error"


_RETRYABLE = frozenset({OutcomeKind.UNREACHABLE, OutcomeKind.TRANSPORT_ERROR})


@dataclass(frozen=True)
class GateConfig:
    endpoint: str = config.DEFAULT_ELASTICSEARCH_URL
    minimum_version: str = config.DEFAULT_REQUIRED_VERSION
    # None means "whatever the transport does", i.e. no timeout at all.
    timeout_s: float | None = 30.0
    retries: int = 0
    retry_backoff_s: float = 1.0
    comparison: str = "semantic"

    def __post_init__(self) -> None:
        if self.comparison not in config.COMPARISON_MODES:
            raise ValueError(f"Unknown comparison mode: {self.comparison!r}")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.retry_backoff_s < 0:
            raise ValueError("retry_backoff_s must be >= 0")
        if self.comparison == "semantic":
            try:
                parse_version(self.minimum_version)
            except VersionParseError as exc:
                raise ValueError(f"Invalid minimum version: {self.minimum_version!r}") from exc

    @classmethod
    def from_env(cls, **overrides: Any) -> GateConfig:
        values: dict[str, Any] = {
            "endpoint": config.elasticsearch_url(),
            "minimum_version": config.required_elasticsearch_version(),
            "timeout_s": config.gate_timeout_s(),
            "retries": config.gate_retries(),
            "retry_backoff_s": config.gate_retry_backoff_s(),
            "comparison": config.version_comparison_mode(),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class GateError(RuntimeError):
    def __init__(self, outcome: GateOutcome):
        super().__init__(outcome.message)
        self.outcome = outcome


@dataclass(frozen=True)
class GateOutcome:
    kind: OutcomeKind
    endpoint: str
    minimum_version: str
    message: str
    version: str | None = None
    detail: str | None = None
    status_code: int | None = None
    body: str | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.READY

    def raise_for_outcome(self) -> None:
        if not self.ok:
            raise GateError(self)


def is_connection_refused(exc: BaseException) -> bool:
    # requests wraps urllib3 errors which wrap the socket error; walk the chain.
    seen: set[int] = set()
    stack: list[Any] = [exc]
    while stack:
        cur = stack.pop()
        if not isinstance(cur, BaseException) or id(cur) in seen:
            continue
        seen.add(id(cur))
        if isinstance(cur, ConnectionRefusedError):
            return True
        if isinstance(cur, OSError) and cur.errno == errno.ECONNREFUSED:
            return True
        stack.extend([cur.__cause__, cur.__context__, getattr(cur, "reason", None)])
        stack.extend(cur.args)
    return "connection refused" in str(exc).lower()


def _excerpt(text: str) -> str:
    if len(text) <= _BODY_EXCERPT_CHARS:
        return text
    return text[:_BODY_EXCERPT_CHARS] + "..."


class ReadinessGate:
    """Preflight check against a search cluster's root endpoint.

    The gate performs a GET on the endpoint and expects an Elasticsearch-style
    status document (``{"version": {"number": "7.6.0"}}``). It never raises for
    network or payload problems; every result is returned as a `GateOutcome`.
    """

    def __init__(
        self,
        cfg: GateConfig,
        *,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._cfg = cfg
        self._http = session or requests.Session()
        self._sleep = sleep

    @property
    def cfg(self) -> GateConfig:
        return self._cfg

    def _outcome(self, kind: OutcomeKind, message: str, **kw: Any) -> GateOutcome:
        return GateOutcome(
            kind=kind,
            endpoint=self._cfg.endpoint,
            minimum_version=self._cfg.minimum_version,
            message=message,
            **kw,
        )

    def _attempt(self) -> GateOutcome:
        url = self._cfg.endpoint
        try:
            res = self._http.get(url, timeout=self._cfg.timeout_s)
        except requests.exceptions.Timeout as exc:
            return self._outcome(
                OutcomeKind.UNREACHABLE,
                f"Timed out connecting to Elasticsearch on <{url}>",
                detail=str(exc),
            )
        except (requests.exceptions.RequestException, OSError) as exc:
            if is_connection_refused(exc):
                return self._outcome(
                    OutcomeKind.UNREACHABLE,
                    f"Cannot connect to Elasticsearch on <{url}>",
                    detail=str(exc),
                )
            return self._outcome(
                OutcomeKind.TRANSPORT_ERROR,
                f"{type(exc).__name__}: {exc}",
                detail=str(exc),
            )

        status_code = getattr(res, "status_code", None)
        text = res.text or ""
        try:
            doc = json.loads(text)
        except (ValueError, RecursionError) as exc:
            return self._outcome(
                OutcomeKind.MALFORMED_RESPONSE,
                f"Cannot parse the response from <{url}> as JSON",
                detail=f"parse_error: {exc}",
                status_code=status_code,
                body=_excerpt(text),
            )

        version_info = doc.get("version") if isinstance(doc, dict) else None
        number = version_info.get("number") if isinstance(version_info, dict) else None
        if not isinstance(number, str) or not number.strip():
            return self._outcome(
                OutcomeKind.MALFORMED_RESPONSE,
                f"Cannot determine Elasticsearch version from <{url}>",
                detail="missing_version",
                status_code=status_code,
                body=_excerpt(text),
            )

        minimum = self._cfg.minimum_version
        try:
            ok = meets_minimum(number, minimum, mode=self._cfg.comparison)
        except VersionParseError as exc:
            return self._outcome(
                OutcomeKind.MALFORMED_RESPONSE,
                f"Cannot determine Elasticsearch version from <{url}>",
                version=number,
                detail=f"invalid_version: {exc}",
                status_code=status_code,
                body=_excerpt(text),
            )
        if not ok:
            return self._outcome(
                OutcomeKind.VERSION_TOO_LOW,
                f"The application requires Elasticsearch version {minimum} or higher, "
                f"found version {number}.",
                version=number,
                status_code=status_code,
            )
        return self._outcome(
            OutcomeKind.READY,
            f"Elasticsearch {number} is available on <{url}>",
            version=number,
            status_code=status_code,
        )

    def check(self) -> GateOutcome:
        attempts = 0
        while True:
            attempts += 1
            outcome = self._attempt()
            if outcome.kind not in _RETRYABLE or attempts > self._cfg.retries:
                break
            delay = self._cfg.retry_backoff_s * attempts
            logger.info(
                "Readiness check attempt %d/%d failed (%s), retrying in %.1fs",
                attempts,
                self._cfg.retries + 1,
                outcome.kind.value,
                delay,
            )
            if delay > 0:
                self._sleep(delay)

        outcome = replace(outcome, attempts=attempts)
        if outcome.ok:
            logger.debug("Readiness check passed: %s", outcome.message)
        else:
            logger.warning(
                "Readiness check failed (%s): %s", outcome.kind.value, outcome.message
            )
        return outcome


def check(
    endpoint: str,
    minimum_version: str,
    *,
    timeout_s: float | None = 30.0,
    retries: int = 0,
    retry_backoff_s: float = 1.0,
    comparison: str = "semantic",
    session: requests.Session | None = None,
) -> GateOutcome:
    cfg = GateConfig(
        endpoint=endpoint.strip().rstrip("/") or config.DEFAULT_ELASTICSEARCH_URL,
        minimum_version=minimum_version,
        timeout_s=timeout_s,
        retries=retries,
        retry_backoff_s=retry_backoff_s,
        comparison=comparison,
    )
    return ReadinessGate(cfg, session=session).check()
