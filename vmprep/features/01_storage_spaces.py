from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from vmprep.lib.powershell import as_list, host_issues, quote_ps, run_powershell, run_powershell_json

logger = logging.getLogger(__name__)


FEATURE = {
    "name": "Storage Spaces striped volume",
    "description": "Pools the attached data disks and creates a simple (striped) volume on them.",
    "version": "1.2.0",
    "requires_reboot": False,
    "prerequisites": [
        "Windows Server or Windows 10/11 with Storage Spaces",
        "Administrator privileges",
        "At least two poolable data disks",
    ],
    "config_section": "Storage",
    "defaults": {
        "pool_name": "DataPool",
        "virtual_disk_name": "DataDisk",
        "volume_label": "Data",
        "drive_letter": "F",
        "file_system": "NTFS",
        "allocation_unit_size": 65536,
        "min_disks": 2,
        "number_of_columns": 2,
    },
}

_DEFAULTS: Mapping[str, Any] = FEATURE["defaults"]


def check_prerequisites() -> List[str]:
    issues = host_issues()
    if issues:
        return issues

    # Any non-primordial pool means the stripe was already applied, whatever it was named.
    pools = as_list(run_powershell_json("Get-StoragePool -IsPrimordial $false | Select-Object FriendlyName"))
    names = [str(p.get("FriendlyName")) for p in pools if isinstance(p, dict)]
    if names:
        issues.append(f"Already applied: storage pool(s) present: {', '.join(names)}")
        return issues

    disks = as_list(run_powershell_json("Get-PhysicalDisk -CanPool $true | Select-Object DeviceId, Size"))
    if len(disks) < int(_DEFAULTS["min_disks"]):
        issues.append(f"Need at least {_DEFAULTS['min_disks']} poolable disks, found {len(disks)}")
    return issues


def install(config: Mapping[str, Any]) -> Dict[str, Any]:
    pool = quote_ps(config["pool_name"])
    vdisk = quote_ps(config["virtual_disk_name"])
    letter = str(config["drive_letter"]).rstrip(":").upper()

    disks = as_list(run_powershell_json("Get-PhysicalDisk -CanPool $true | Select-Object DeviceId"))
    if len(disks) < int(config["min_disks"]):
        return {"success": False, "message": f"Only {len(disks)} poolable disk(s) available", "data": {}}

    script = "\n".join(
        [
            "$ErrorActionPreference = 'Stop'",
            "$disks = Get-PhysicalDisk -CanPool $true",
            "$sub = Get-StorageSubSystem | Select-Object -First 1",
            f"New-StoragePool -FriendlyName {pool} -StorageSubSystemUniqueId $sub.UniqueId -PhysicalDisks $disks | Out-Null",
            f"New-VirtualDisk -StoragePoolFriendlyName {pool} -FriendlyName {vdisk}"
            f" -ResiliencySettingName Simple -NumberOfColumns {int(config['number_of_columns'])}"
            " -UseMaximumSize -ProvisioningType Fixed | Out-Null",
            f"$disk = Get-VirtualDisk -FriendlyName {vdisk} | Get-Disk",
            "Initialize-Disk -Number $disk.Number -PartitionStyle GPT",
            f"New-Partition -DiskNumber $disk.Number -UseMaximumSize -DriveLetter {letter} | Out-Null",
            f"Format-Volume -DriveLetter {letter} -FileSystem {config['file_system']}"
            f" -NewFileSystemLabel {quote_ps(config['volume_label'])}"
            f" -AllocationUnitSize {int(config['allocation_unit_size'])} -Confirm:$false | Out-Null",
        ]
    )
    run_powershell(script)

    logger.info("Created striped volume %s: across %d disk(s)", letter, len(disks))
    return {
        "success": True,
        "message": f"Volume {letter}: created on pool {config['pool_name']}",
        "data": {"drive_letter": letter, "disk_count": len(disks), "pool_name": config["pool_name"]},
    }
