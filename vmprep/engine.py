from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from .errors import FeatureError, InstallFailure, PrerequisiteFailure, UnexpectedFault
from .registry import FeatureDescriptor
from .settings import ConfigDocument, resolve_feature_config
from .units import FeatureUnit, InstallResult, load_unit, normalize_issues

logger = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    SUCCESS = "Success"
    FAILURE = "Failure"
    DRY_RUN_SKIPPED = "DryRunSkipped"
    NOT_RUN = "NotRun"

    @property
    def is_skipped(self) -> bool:
        return self in (Outcome.DRY_RUN_SKIPPED, Outcome.NOT_RUN)


@dataclass(frozen=True)
class ExecutionResult:
    feature_id: str
    outcome: Outcome
    message: str = ""
    data: Mapping[str, Any] = field(default_factory=dict)
    reboot_required: bool = False
    error_kind: Optional[str] = None
    duration_seconds: float = 0.0


@dataclass(frozen=True)
class RunOptions:
    dry_run: bool = False
    continue_on_error: bool = True
    # Off by default: ordering alone governs execution unless asked otherwise.
    enforce_dependencies: bool = False


# error_kind of a NotRun result held back by unmet dependencies.
BLOCKED_KIND = "dependencies"

Loader = Callable[[FeatureDescriptor], FeatureUnit]


def _attempt(descriptor: FeatureDescriptor, unit_loader: Loader, config: Mapping[str, Any]) -> InstallResult:
    """Prerequisites then install. Raises FeatureError subclasses on failure."""

    try:
        unit = unit_loader(descriptor)
    except Exception as e:
        raise UnexpectedFault(f"cannot load unit: {type(e).__name__}: {e}") from e

    try:
        issues = normalize_issues(unit.check_prerequisites())
    except Exception as e:
        raise UnexpectedFault(f"prerequisite check faulted: {type(e).__name__}: {e}") from e

    if issues:
        raise PrerequisiteFailure("prerequisites not met: " + "; ".join(str(i) for i in issues))

    try:
        result = InstallResult.coerce(unit.install(config))
    except Exception as e:
        raise UnexpectedFault(f"install faulted: {type(e).__name__}: {e}") from e

    if not result.success:
        raise InstallFailure(result.message or "install reported failure", data=result.data)
    return result


def run_features(
    features: Sequence[FeatureDescriptor],
    document: Optional[ConfigDocument] = None,
    options: Optional[RunOptions] = None,
    *,
    loader: Loader = load_unit,
) -> Dict[str, ExecutionResult]:
    """Run features sequentially in the given order.

    Every selected feature gets exactly one result. A failure is contained to
    its feature; with continue_on_error off the remaining features are
    recorded as NotRun.
    """

    opts = options or RunOptions()
    doc = document or ConfigDocument.empty()
    results: Dict[str, ExecutionResult] = {}

    for index, descriptor in enumerate(features):
        fid = descriptor.id
        config = resolve_feature_config(fid, descriptor.defaults, doc, section=descriptor.section)

        if opts.dry_run:
            logger.info("[%s] dry run: would install %s %s with %s", fid, descriptor.name, descriptor.version, dict(config))
            results[fid] = ExecutionResult(
                feature_id=fid,
                outcome=Outcome.DRY_RUN_SKIPPED,
                message="Dry run: prerequisites and install not invoked",
                data={"config": dict(config)},
            )
            continue

        if opts.enforce_dependencies:
            unmet = sorted(
                dep for dep in descriptor.depends_on
                if dep not in results or results[dep].outcome is not Outcome.SUCCESS
            )
            if unmet:
                logger.warning("[%s] not run: dependencies not satisfied: %s", fid, ", ".join(unmet))
                results[fid] = ExecutionResult(
                    feature_id=fid,
                    outcome=Outcome.NOT_RUN,
                    message="Dependencies not satisfied: " + ", ".join(unmet),
                    error_kind=BLOCKED_KIND,
                )
                continue

        logger.info("[%s] running %s (%d/%d)", fid, descriptor.name, index + 1, len(features))
        started = time.monotonic()
        try:
            installed = _attempt(descriptor, loader, config)
        except FeatureError as e:
            elapsed = time.monotonic() - started
            if isinstance(e, UnexpectedFault):
                logger.error("[%s] %s", fid, e, exc_info=e.__cause__)
            else:
                logger.error("[%s] %s", fid, e)
            results[fid] = ExecutionResult(
                feature_id=fid,
                outcome=Outcome.FAILURE,
                message=str(e),
                data=e.data,
                error_kind=e.kind,
                duration_seconds=elapsed,
            )
        else:
            elapsed = time.monotonic() - started
            reboot = bool(installed.data.get("reboot_required")) or descriptor.requires_reboot
            logger.info("[%s] succeeded in %.1fs: %s", fid, elapsed, installed.message or "ok")
            results[fid] = ExecutionResult(
                feature_id=fid,
                outcome=Outcome.SUCCESS,
                message=installed.message,
                data=installed.data,
                reboot_required=reboot,
                duration_seconds=elapsed,
            )

        if results[fid].outcome is Outcome.FAILURE and not opts.continue_on_error:
            remaining = features[index + 1 :]
            logger.warning("Stopping after %s failed; %d feature(s) not run", fid, len(remaining))
            for rest in remaining:
                results[rest.id] = ExecutionResult(
                    feature_id=rest.id,
                    outcome=Outcome.NOT_RUN,
                    message=f"Not attempted: stopped after {fid} failed",
                )
            break

    return results
