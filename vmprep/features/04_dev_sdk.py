from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from vmprep.lib.powershell import host_issues, quote_ps, run_powershell

logger = logging.getLogger(__name__)


FEATURE = {
    "name": ".NET SDK",
    "description": "Installs the .NET SDK with the official dotnet-install script.",
    "version": "1.0.0",
    "prerequisites": ["Administrator privileges", "Internet access"],
    "config_section": "DevSdk",
    "defaults": {
        "channel": "LTS",
        "version": "",
        "install_dir": "C:\\Program Files\\dotnet",
        "script_url": "https://dot.net/v1/dotnet-install.ps1",
        "add_to_path": True,
        "timeout_seconds": 1200,
    },
}


def check_prerequisites() -> List[str]:
    return host_issues()


def install(config: Mapping[str, Any]) -> Dict[str, Any]:
    install_dir = str(config["install_dir"])
    target = f"-Version {quote_ps(config['version'])}" if config["version"] else f"-Channel {quote_ps(config['channel'])}"

    lines = [
        "$ErrorActionPreference = 'Stop'",
        "$script = Join-Path $env:TEMP 'dotnet-install.ps1'",
        f"Invoke-WebRequest -Uri {quote_ps(config['script_url'])} -OutFile $script -UseBasicParsing",
        f"& $script {target} -InstallDir {quote_ps(install_dir)} -NoPath",
        "Remove-Item $script -Force -ErrorAction SilentlyContinue",
    ]
    if config["add_to_path"]:
        lines += [
            "$machine = [Environment]::GetEnvironmentVariable('Path', 'Machine')",
            f"if (($machine -split ';') -notcontains {quote_ps(install_dir)}) {{",
            f"  [Environment]::SetEnvironmentVariable('Path', $machine + ';' + {quote_ps(install_dir)}, 'Machine')",
            "}",
        ]
    run_powershell("\n".join(lines), timeout=float(config["timeout_seconds"]))

    r = run_powershell(f"& (Join-Path {quote_ps(install_dir)} 'dotnet.exe') --version", check=False)
    if not r.ok:
        return {"success": False, "message": "dotnet --version failed after install", "data": {"stderr": r.stderr.strip()}}

    version = r.stdout.strip()
    logger.info(".NET SDK %s installed to %s", version, install_dir)
    return {"success": True, "message": f".NET SDK {version} installed", "data": {"version": version, "install_dir": install_dir}}
