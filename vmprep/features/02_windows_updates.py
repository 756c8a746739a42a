from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from vmprep.lib.powershell import as_list, host_issues, quote_ps, run_powershell, run_powershell_json

logger = logging.getLogger(__name__)


FEATURE = {
    "name": "Windows Updates",
    "description": "Installs pending Windows updates through the PSWindowsUpdate module.",
    "version": "1.1.0",
    "requires_reboot": False,
    "prerequisites": ["Administrator privileges", "Internet access to Windows Update"],
    "config_section": "WindowsUpdates",
    "defaults": {
        "install_module": True,
        "microsoft_update": True,
        "categories": ["Security Updates", "Critical Updates", "Updates"],
        "exclude_kbs": [],
        "timeout_seconds": 7200,
    },
}


def check_prerequisites() -> List[str]:
    return host_issues()


def _list_arg(values: Any) -> str:
    return ",".join(quote_ps(v) for v in as_list(values))


def install(config: Mapping[str, Any]) -> Dict[str, Any]:
    timeout = float(config["timeout_seconds"])

    if config["install_module"]:
        run_powershell(
            "\n".join(
                [
                    "$ErrorActionPreference = 'Stop'",
                    "if (-not (Get-Module -ListAvailable -Name PSWindowsUpdate)) {",
                    "  Install-PackageProvider -Name NuGet -Force | Out-Null",
                    "  Install-Module -Name PSWindowsUpdate -Force -Scope AllUsers",
                    "}",
                ]
            ),
            timeout=timeout,
        )

    args = ["-AcceptAll", "-Install", "-IgnoreReboot"]
    if config["microsoft_update"]:
        args.append("-MicrosoftUpdate")
    if config["categories"]:
        args.append(f"-Category {_list_arg(config['categories'])}")
    if config["exclude_kbs"]:
        args.append(f"-NotKBArticleID {_list_arg(config['exclude_kbs'])}")

    installed = as_list(
        run_powershell_json(
            "Import-Module PSWindowsUpdate; Get-WindowsUpdate " + " ".join(args) + " | Select-Object KB, Title, Result",
            timeout=timeout,
        )
    )
    reboot = bool(run_powershell_json("Import-Module PSWindowsUpdate; Get-WURebootStatus -Silent"))

    kbs = [str(u.get("KB") or "") for u in installed if isinstance(u, dict)]
    logger.info("Installed %d update(s); reboot required=%s", len(kbs), reboot)
    return {
        "success": True,
        "message": f"{len(kbs)} update(s) installed" if kbs else "No updates pending",
        "data": {"installed": kbs, "reboot_required": reboot},
    }
