from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .engine import BLOCKED_KIND, ExecutionResult, Outcome
from .registry import FeatureDescriptor

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_STRUCTURAL = 2

@dataclass(frozen=True)
class RunReport:
    success_count: int
    failure_count: int
    skipped_count: int
    reboot_required: bool
    results: Tuple[ExecutionResult, ...]
    completed_at: datetime

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def blocked_count(self) -> int:
        """NotRun entries held back by unmet dependencies."""
        return sum(1 for r in self.results if r.error_kind == BLOCKED_KIND)

    @property
    def exit_code(self) -> int:
        if not self.results:
            return EXIT_STRUCTURAL
        return EXIT_FAILURES if self.failure_count or self.blocked_count else EXIT_OK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed_at": self.completed_at.isoformat(),
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "skipped_count": self.skipped_count,
            "blocked_count": self.blocked_count,
            "reboot_required": self.reboot_required,
            "results": [
                {
                    "feature_id": r.feature_id,
                    "outcome": r.outcome.value,
                    "message": r.message,
                    "data": dict(r.data),
                    "reboot_required": r.reboot_required,
                    "error_kind": r.error_kind,
                    "duration_seconds": round(r.duration_seconds, 3),
                }
                for r in self.results
            ],
        }


def summarize(
    results: Mapping[str, ExecutionResult],
    descriptors: Sequence[FeatureDescriptor],
    *,
    completed_at: Optional[datetime] = None,
) -> RunReport:
    """Aggregate per-feature results in descriptor order."""

    ordered: List[ExecutionResult] = []
    reboot = False
    for d in descriptors:
        r = results.get(d.id)
        if r is None:
            r = ExecutionResult(feature_id=d.id, outcome=Outcome.NOT_RUN, message="Not attempted")
        ordered.append(r)
        if r.outcome is Outcome.SUCCESS and (r.reboot_required or d.requires_reboot):
            reboot = True

    return RunReport(
        success_count=sum(1 for r in ordered if r.outcome is Outcome.SUCCESS),
        failure_count=sum(1 for r in ordered if r.outcome is Outcome.FAILURE),
        skipped_count=sum(1 for r in ordered if r.outcome.is_skipped),
        reboot_required=reboot,
        results=tuple(ordered),
        completed_at=completed_at or datetime.now(timezone.utc),
    )


_MARKS = {
    Outcome.SUCCESS: "OK",
    Outcome.FAILURE: "FAIL",
    Outcome.DRY_RUN_SKIPPED: "DRY",
    Outcome.NOT_RUN: "SKIP",
}


def render_report(report: RunReport) -> str:
    lines = ["", "=== Run summary ==="]
    for r in report.results:
        line = f"  [{_MARKS[r.outcome]:>4}] {r.feature_id}"
        if r.message:
            line += f": {r.message}"
        lines.append(line)
    lines.append(
        f"Succeeded: {report.success_count}  Failed: {report.failure_count}  Skipped: {report.skipped_count}"
    )
    if report.blocked_count:
        lines.append(f"{report.blocked_count} feature(s) held back by unmet dependencies.")
    if report.reboot_required:
        lines.append("A reboot is required to complete installation.")
    lines.append(f"Completed at {report.completed_at.isoformat()}")
    return "\n".join(lines)


def render_catalog(descriptors: Sequence[FeatureDescriptor]) -> str:
    if not descriptors:
        return "No features found."
    lines = ["Available features:"]
    for n, d in enumerate(descriptors, start=1):
        flags = []
        if d.requires_reboot:
            flags.append("reboot")
        if d.degraded:
            flags.append("metadata-missing")
        if d.depends_on:
            flags.append("after " + ",".join(sorted(d.depends_on)))
        suffix = f" ({'; '.join(flags)})" if flags else ""
        lines.append(f"  {n:>2}. {d.id} v{d.version} - {d.name}{suffix}")
        lines.append(f"      {d.description}")
        for p in d.prerequisites:
            lines.append(f"      requires: {p}")
    return "\n".join(lines)


def save_report(path: str, report: RunReport) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(report.to_dict(), indent=2, sort_keys=True, default=str) + "\n", encoding="utf-8")
