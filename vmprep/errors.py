from __future__ import annotations

from typing import Any, Dict, Optional


class VmprepError(Exception):
    """Base class for orchestration errors."""


class DiscoveryError(VmprepError):
    """The features directory is missing; no catalog can be built."""


class MetadataExtractionError(VmprepError):
    """A unit's FEATURE block could not be read. Degrades that one descriptor."""


class ConfigLoadError(VmprepError):
    """The configuration document exists but cannot be used."""


class FeatureLoadError(VmprepError):
    """A unit could not be imported or does not satisfy the feature contract."""


class FeatureError(VmprepError):
    """Per-feature failure. Contained to that feature's result, never raised out of the engine."""

    kind = "feature"

    def __init__(self, message: str, *, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.data: Dict[str, Any] = dict(data or {})


class PrerequisiteFailure(FeatureError):
    kind = "prerequisites"


class InstallFailure(FeatureError):
    kind = "install"


class UnexpectedFault(FeatureError):
    kind = "fault"
