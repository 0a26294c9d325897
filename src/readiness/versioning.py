"""Version comparison for the readiness gate.

Two modes are supported:

* ``semantic`` parses both sides into ``(major, minor, patch)`` integer tuples.
  Missing components count as zero and trailing qualifiers such as
  ``-SNAPSHOT`` are ignored.
* ``lexical`` compares the raw strings. This reproduces the behaviour of the
  original Rails template (``"6.8.0" < "7"``), including its flaw that
  ``"10.0.0" < "7"``. It exists for compatibility only.
"""

from __future__ import annotations

import re

_VERSION_RE = re.compile(r"^\s*v?(\d+)(?:\.(\d+))?(?:\.(\d+))?")


class VersionParseError(ValueError):
    pass


def parse_version(value: str) -> tuple[int, int, int]:
    m = _VERSION_RE.match(value or "")
    if not m:
        raise VersionParseError(f"Not a version string: {value!r}")
    major, minor, patch = (int(g) if g is not None else 0 for g in m.groups())
    return (major, minor, patch)


def semantic_at_least(version: str, minimum: str) -> bool:
    return parse_version(version) >= parse_version(minimum)


def lexical_at_least(version: str, minimum: str) -> bool:
    return not (version < minimum)


def meets_minimum(version: str, minimum: str, *, mode: str = "semantic") -> bool:
    """Return True when ``version`` satisfies ``minimum`` under ``mode``.

    Raises :class:`VersionParseError` in semantic mode when either side has no
    leading numeric component.
    """
    if mode == "lexical":
        return lexical_at_least(version, minimum)
    if mode == "semantic":
        return semantic_at_least(version, minimum)
    raise ValueError(f"Unknown comparison mode: {mode!r}")
