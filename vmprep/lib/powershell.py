from __future__ import annotations

import ctypes
import json
import logging
import platform
import shutil
from typing import Any, List, Optional

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)


POWERSHELL_CANDIDATES = ("pwsh.exe", "powershell.exe", "pwsh")


def find_powershell() -> Optional[str]:
    for exe in POWERSHELL_CANDIDATES:
        found = shutil.which(exe)
        if found:
            return found
    return None


def is_windows() -> bool:
    return platform.system() == "Windows"


def is_admin() -> bool:
    """True when running with an elevated token (Windows only)."""

    if not is_windows():
        return False
    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
    except (AttributeError, OSError):
        return False


def quote_ps(value: Any) -> str:
    """Single-quoted PowerShell literal."""
    return "'" + str(value).replace("'", "''") + "'"


def run_powershell(script: str, *, check: bool = True, timeout: Optional[float] = None) -> CmdResult:
    exe = find_powershell()
    if exe is None:
        raise RuntimeError("PowerShell not found on PATH")
    first_line = script.strip().splitlines()[0] if script.strip() else ""
    return run_cmd(
        [exe, "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass", "-Command", script],
        check=check,
        timeout=timeout,
        log_argv=[exe, "-Command", first_line + (" ..." if "\n" in script.strip() else "")],
    )


def run_powershell_json(script: str, *, timeout: Optional[float] = None) -> Any:
    """Run a script whose output is piped through ConvertTo-Json; empty output -> None."""

    r = run_powershell(f"{script} | ConvertTo-Json -Depth 4 -Compress", timeout=timeout)
    out = r.stdout.strip()
    if not out:
        return None
    return json.loads(out)


def as_list(value: Any) -> List[Any]:
    # ConvertTo-Json emits a bare object for single-item pipelines.
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def host_issues() -> List[str]:
    """Common prerequisite checks for features that change the host."""

    issues: List[str] = []
    if not is_windows():
        issues.append(f"Windows host required (running on {platform.system() or 'unknown'})")
        return issues
    if not is_admin():
        issues.append("Administrator privileges required")
    if find_powershell() is None:
        issues.append("PowerShell not found on PATH")
    return issues
