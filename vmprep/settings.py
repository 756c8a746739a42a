from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigLoadError

logger = logging.getLogger(__name__)


LOGGING_SECTION = "Logging"


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


@dataclass(frozen=True)
class ConfigDocument:
    """Named sections of key/value settings, loaded once per run.

    Sections that are not present read as an empty mapping.
    """

    raw: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    source: Optional[str] = None

    @classmethod
    def empty(cls) -> "ConfigDocument":
        return cls(raw={}, source=None)

    @property
    def section_names(self) -> list[str]:
        return list(self.raw.keys())

    def section(self, name: str) -> Mapping[str, Any]:
        return MappingProxyType(dict(self.raw.get(name) or {}))

    def __bool__(self) -> bool:
        return bool(self.raw)


def load_document(path: Optional[str]) -> ConfigDocument:
    """Load the configuration document.

    A missing file is not an error and yields an empty document. A file that
    exists but cannot be parsed, or whose shape is not a mapping of mappings,
    raises ConfigLoadError; callers log it and continue with defaults.
    """

    if path is None:
        return ConfigDocument.empty()

    p = Path(path)
    if not p.exists():
        logger.info("No configuration document at %s; using feature defaults", p)
        return ConfigDocument.empty()

    fmt = _detect_format(p)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigLoadError(f"Cannot read configuration document {p}: {e}") from e

    data: Any
    if fmt in {"yaml", "yml"}:
        try:
            import yaml  # type: ignore
        except Exception as e:  # pragma: no cover
            raise RuntimeError(
                "YAML configuration requested but PyYAML is not available. "
                "Use a JSON document or install PyYAML."
            ) from e
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigLoadError(f"Malformed YAML in {p}: {e}") from e
    else:
        try:
            data = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as e:
            raise ConfigLoadError(f"Malformed JSON in {p}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigLoadError(f"Configuration document must be a mapping of sections, got {type(data).__name__}")

    sections: Dict[str, Mapping[str, Any]] = {}
    for name, body in data.items():
        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise ConfigLoadError(f"Section {name!r} must be a mapping, got {type(body).__name__}")
        sections[str(name)] = dict(body)

    logger.info("Loaded configuration document %s (sections=%s)", p, ",".join(sections) or "-")
    return ConfigDocument(raw=sections, source=str(p))


def section_name_for(feature_id: str) -> str:
    """Conventional section name for a feature id: windows-updates -> WindowsUpdates."""

    parts = [p for p in re.split(r"[-_\s]+", feature_id) if p]
    return "".join(p[:1].upper() + p[1:] for p in parts)


def whitelist_merge(defaults: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(defaults)
    for key, value in overrides.items():
        if key in merged:
            merged[key] = value
    return merged


def resolve_feature_config(
    feature_id: str,
    defaults: Mapping[str, Any],
    document: Optional[ConfigDocument],
    *,
    section: Optional[str] = None,
) -> Mapping[str, Any]:
    """Overlay a feature's defaults with its document section.

    Only keys already present in ``defaults`` can be overridden; unknown keys
    in the section are dropped so a typo never injects state into a feature.
    Values pass through without coercion.
    """

    if not document:
        return MappingProxyType(dict(defaults))

    section_name = section or section_name_for(feature_id)
    overrides = document.section(section_name)

    ignored = sorted(str(k) for k in overrides if k not in defaults)
    if ignored:
        logger.debug("[%s] ignoring unknown keys in section %s: %s", feature_id, section_name, ", ".join(ignored))

    return MappingProxyType(whitelist_merge(defaults, overrides))
