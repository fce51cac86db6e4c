"""cf CLI subprocess runner scoped to one isolated home directory."""

from __future__ import annotations

import os
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, TextIO

import structlog

logger = structlog.get_logger()

# Flags whose values may carry credentials
_SECRET_FLAGS = {"-c"}


@dataclass
class CommandResult:
    """Captured result of one cf invocation."""

    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    error: Optional[str] = field(default=None)

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def lines(self) -> List[str]:
        return self.stdout.splitlines()

    def describe(self) -> str:
        """Short failure description without command output."""
        if self.error:
            return self.error
        return f"cf {self.args[0] if self.args else ''} exited with status {self.returncode}"


def _redact(args: List[str]) -> List[str]:
    redacted = []
    hide_next = False
    for arg in args:
        redacted.append("[REDACTED]" if hide_next else arg)
        hide_next = arg in _SECRET_FLAGS
    return redacted


class CloudFoundryCLI:
    """Runs `cf` with CF_HOME pointing at one run's session directory.

    The home directory is passed in the child's environment mapping only, so
    concurrent runs never share or mutate process-wide state.
    """

    def __init__(
        self,
        home: Path,
        binary: str = "cf",
        mirror: Optional[TextIO] = None,
        timeout: Optional[float] = None,
    ):
        self.home = Path(home)
        self.binary = binary
        self.mirror = mirror if mirror is not None else sys.stderr
        self.timeout = timeout

    def env(self) -> dict:
        return {
            **os.environ,
            "CF_HOME": str(self.home),
            "CF_COLOR": "false",
        }

    def run(self, *args: str) -> CommandResult:
        """Run one cf command and capture its output.

        A binary that cannot be started or a command that exceeds the timeout
        yields a failed result rather than an exception.
        """
        argv = [str(a) for a in args]
        cmd = [self.binary, *argv]
        logger.info("Running cf command", command=" ".join(_redact(cmd)), cf_home=str(self.home))

        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                env=self.env(),
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("cf command timed out", command=argv[0] if argv else "", timeout=self.timeout)
            return CommandResult(argv, -1, error=f"cf {argv[0] if argv else ''} timed out")
        except OSError as e:
            logger.error("Failed to start cf", binary=self.binary, error=str(e))
            return CommandResult(argv, 127, error=f"Failed to start {self.binary}: {e}")

        result = CommandResult(argv, proc.returncode, proc.stdout or "", proc.stderr or "")
        self._mirror(result)
        logger.debug(
            "cf command finished",
            command=argv[0] if argv else "",
            returncode=result.returncode,
            output=result.lines()[-40:],
        )
        return result

    def _mirror(self, result: CommandResult) -> None:
        """Echo CLI output to the operator's error stream."""
        for text in (result.stdout, result.stderr):
            if text:
                self.mirror.write(text if text.endswith("\n") else text + "\n")
        self.mirror.flush()
