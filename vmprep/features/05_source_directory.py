from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from vmprep.lib.powershell import host_issues, quote_ps, run_powershell

logger = logging.getLogger(__name__)


FEATURE = {
    "name": "Source directory",
    "description": "Creates the source code directory on the data volume and excludes it from Defender scans.",
    "version": "1.0.0",
    "prerequisites": ["Data volume from storage-spaces", "Administrator privileges"],
    "depends_on": ["storage-spaces"],
    "config_section": "SourceDirectory",
    "defaults": {
        "path": "F:\\src",
        "defender_exclusion": True,
    },
}


def check_prerequisites() -> List[str]:
    return host_issues()


def install(config: Mapping[str, Any]) -> Dict[str, Any]:
    path = str(config["path"])
    drive = path.split(":", 1)[0] if ":" in path else ""

    lines = ["$ErrorActionPreference = 'Stop'"]
    if drive:
        lines.append(f"if (-not (Get-Volume -DriveLetter {quote_ps(drive)} -ErrorAction SilentlyContinue)) {{ throw 'Volume {drive}: not found' }}")
    lines.append(f"New-Item -ItemType Directory -Force -Path {quote_ps(path)} | Out-Null")
    if config["defender_exclusion"]:
        lines.append(f"Add-MpPreference -ExclusionPath {quote_ps(path)}")
    run_powershell("\n".join(lines))

    logger.info("Source directory ready at %s (defender exclusion=%s)", path, bool(config["defender_exclusion"]))
    return {
        "success": True,
        "message": f"{path} created",
        "data": {"path": path, "defender_exclusion": bool(config["defender_exclusion"])},
    }
