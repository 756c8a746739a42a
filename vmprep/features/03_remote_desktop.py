from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from vmprep.lib.powershell import host_issues, quote_ps, run_powershell, run_powershell_json

logger = logging.getLogger(__name__)


FEATURE = {
    "name": "Remote desktop application",
    "description": "Downloads and silently installs the remote desktop client MSI.",
    "version": "1.0.0",
    "prerequisites": ["Administrator privileges", "Internet access"],
    "config_section": "RemoteDesktop",
    "defaults": {
        "display_name": "Remote Desktop",
        "download_url": "https://go.microsoft.com/fwlink/?linkid=2068602",
        "installer_name": "RemoteDesktop.msi",
        "msi_arguments": ["/qn", "/norestart", "ALLUSERS=1"],
        "timeout_seconds": 900,
    },
}


def check_prerequisites() -> List[str]:
    return host_issues()


def _installed_version(display_name: str) -> str | None:
    found = run_powershell_json(
        "Get-ItemProperty 'HKLM:\\Software\\Microsoft\\Windows\\CurrentVersion\\Uninstall\\*',"
        " 'HKLM:\\Software\\WOW6432Node\\Microsoft\\Windows\\CurrentVersion\\Uninstall\\*'"
        f" -ErrorAction SilentlyContinue | Where-Object {{ $_.DisplayName -like {quote_ps(display_name + '*')} }}"
        " | Select-Object -First 1 DisplayVersion"
    )
    if isinstance(found, dict) and found.get("DisplayVersion"):
        return str(found["DisplayVersion"])
    return None


def install(config: Mapping[str, Any]) -> Dict[str, Any]:
    name = str(config["display_name"])
    current = _installed_version(name)
    if current:
        return {"success": True, "message": f"{name} {current} already installed", "data": {"version": current}}

    msi_args = " ".join(str(a) for a in config["msi_arguments"])
    run_powershell(
        "\n".join(
            [
                "$ErrorActionPreference = 'Stop'",
                f"$msi = Join-Path $env:TEMP {quote_ps(config['installer_name'])}",
                f"Invoke-WebRequest -Uri {quote_ps(config['download_url'])} -OutFile $msi -UseBasicParsing",
                f"$p = Start-Process msiexec.exe -ArgumentList @('/i', $msi, {quote_ps(msi_args)}) -Wait -PassThru",
                "Remove-Item $msi -Force -ErrorAction SilentlyContinue",
                "if ($p.ExitCode -notin 0, 3010) { throw \"msiexec exited with $($p.ExitCode)\" }",
                "exit 0",
            ]
        ),
        timeout=float(config["timeout_seconds"]),
    )

    version = _installed_version(name)
    if not version:
        return {"success": False, "message": f"{name} not found after install", "data": {}}
    logger.info("Installed %s %s", name, version)
    return {"success": True, "message": f"{name} {version} installed", "data": {"version": version}}
