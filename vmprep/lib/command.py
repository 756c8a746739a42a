from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _describe(argv: Sequence[str]) -> str:
    return subprocess.list2cmdline(list(argv))


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    timeout: float | None = None,
    log_argv: Sequence[str] | None = None,
) -> CmdResult:
    """Run a host tool (normally powershell.exe) on behalf of a feature.

    Feature scripts are passed inline, so ``log_argv`` lets the caller log a
    short form instead of the whole script. Output is kept on the result for
    features to parse or return as data. A timeout is the feature's choice;
    the engine waits for every call to finish.
    """

    shown = _describe(log_argv if log_argv is not None else argv)
    logger.info("exec %s", shown)

    proc = subprocess.run(
        list(argv),
        capture_output=True,
        text=True,
        cwd=cwd,
        env={**os.environ, **(env or {})},
        timeout=timeout,
    )
    result = CmdResult(argv=list(argv), returncode=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)

    for stream, text in (("stdout", result.stdout), ("stderr", result.stderr)):
        if text.strip():
            logger.debug("%s of %s: %s", stream, shown, text.strip())

    if check and not result.ok:
        detail = result.stderr.strip() or result.stdout.strip() or "no output"
        raise RuntimeError(f"{shown} exited with {result.returncode}: {detail}")

    return result
