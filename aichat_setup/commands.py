"""The single place where external commands are run."""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    args: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    elapsed_ms: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def error_summary(self) -> str:
        """Last non-empty line of stderr (or stdout), for one-line reports."""
        for stream in (self.stderr, self.stdout):
            lines = [line.strip() for line in stream.splitlines() if line.strip()]
            if lines:
                return lines[-1]
        return f"exit code {self.returncode}"


def run_command(
    args: Sequence[str],
    *,
    timeout: Optional[float] = 10,
    capture: bool = True,
) -> CommandResult:
    """Run ``args`` and return its result.

    A missing executable is reported as return code 127, one that cannot be
    started (permissions, elevation) as 126 and a timeout as 124, mirroring the
    shell, so callers only have to look at ``ok``.
    """
    logger.debug("running %s", " ".join(args))
    start = time.monotonic()
    try:
        completed = subprocess.run(
            list(args),
            capture_output=capture,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError:
        return CommandResult(args, 127, "", f"{args[0]}: command not found", _elapsed(start))
    except subprocess.TimeoutExpired:
        logger.warning("%s timed out after %ss", args[0], timeout)
        return CommandResult(args, 124, "", f"{args[0]}: timed out after {timeout}s", _elapsed(start))
    except OSError as exc:
        logger.warning("could not run %s: %s", args[0], exc)
        return CommandResult(args, 126, "", f"{args[0]}: {exc}", _elapsed(start))

    result = CommandResult(
        args=args,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
        elapsed_ms=_elapsed(start),
    )
    logger.debug("%s exited %d in %dms", args[0], result.returncode, result.elapsed_ms)
    return result


def _elapsed(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
