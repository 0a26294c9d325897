from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


class CommandRunner(Protocol):
    def run(
        self,
        args: list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]: ...


@dataclass
class SubprocessRunner:
    # Long-running commands (bundle install, rails server) should stream to the
    # operator's terminal instead of being buffered.
    capture_output: bool = True

    def run(
        self,
        args: list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        logger.debug("run: %s (cwd=%s)", format_command(args), cwd)
        return subprocess.run(
            args,
            cwd=cwd,
            env=env,
            text=True,
            capture_output=self.capture_output,
            check=check,
        )


def format_command(args: list[str]) -> str:
    return " ".join(shlex.quote(a) for a in args)
