"""Preflight readiness gate for the search cluster a provisioned app depends on."""

from __future__ import annotations

from src.readiness.gate import (
    GateConfig,
    GateError,
    GateOutcome,
    OutcomeKind,
    ReadinessGate,
    check,
)

__all__ = [
    "GateConfig",
    "GateError",
    "GateOutcome",
    "OutcomeKind",
    "ReadinessGate",
    "check",
]
