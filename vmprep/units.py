from __future__ import annotations

import importlib.util
import logging
import sys
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Dict, List, Mapping, Protocol

from .errors import FeatureLoadError
from .registry import FeatureDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallResult:
    success: bool
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, value: Any) -> "InstallResult":
        """Accept an InstallResult or a {success, message, data} mapping."""
        if isinstance(value, InstallResult):
            return value
        if isinstance(value, Mapping) and "success" in value:
            data = value.get("data") or {}
            if not isinstance(data, Mapping):
                raise TypeError(f"install() data must be a mapping, got {type(data).__name__}")
            return cls(success=bool(value["success"]), message=str(value.get("message") or ""), data=dict(data))
        raise TypeError(f"install() must return InstallResult or a mapping with 'success', got {type(value).__name__}")


def normalize_issues(value: Any) -> List[str]:
    """check_prerequisites() output as a list of issue strings.

    A bare string is a single issue. Anything other than None, a list or a
    tuple breaks the contract and raises TypeError.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"check_prerequisites() must return a list of strings, got {type(value).__name__}")
    return [str(i) for i in value]


class FeatureUnit(Protocol):
    """What the engine requires from every feature."""

    def check_prerequisites(self) -> List[str]:
        ...

    def install(self, config: Mapping[str, Any]) -> Any:
        ...


class ModuleFeature:
    """Adapts a loaded feature module's functions to FeatureUnit."""

    def __init__(self, module: ModuleType) -> None:
        self.module = module

    def check_prerequisites(self) -> List[str]:
        return normalize_issues(self.module.check_prerequisites())

    def install(self, config: Mapping[str, Any]) -> Any:
        return self.module.install(config)


REQUIRED_CALLABLES = ("check_prerequisites", "install")


def _module_name(descriptor: FeatureDescriptor) -> str:
    return "vmprep_feature_" + descriptor.id.replace("-", "_")


def load_unit(descriptor: FeatureDescriptor) -> FeatureUnit:
    """Import a feature file by path and validate the contract."""

    path = descriptor.source
    if path is None:
        raise FeatureLoadError(f"[{descriptor.id}] no source location")

    name = _module_name(descriptor)
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise FeatureLoadError(f"[{descriptor.id}] cannot import {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(name, None)
        raise FeatureLoadError(f"[{descriptor.id}] import of {path.name} failed: {type(e).__name__}: {e}") from e

    missing = [fn for fn in REQUIRED_CALLABLES if not callable(getattr(module, fn, None))]
    if missing:
        raise FeatureLoadError(f"[{descriptor.id}] {path.name} does not define: {', '.join(missing)}")

    logger.debug("[%s] loaded unit from %s", descriptor.id, path)
    return ModuleFeature(module)
