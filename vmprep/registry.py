from __future__ import annotations

import ast
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import DiscoveryError, MetadataExtractionError
from .settings import section_name_for

logger = logging.getLogger(__name__)


METADATA_NAME = "FEATURE"
DEFAULT_DESCRIPTION = "No description available"
DEFAULT_VERSION = "1.0.0"

_ORDER_PREFIX = re.compile(r"^\d+[_-]")


@dataclass(frozen=True)
class FeatureDescriptor:
    """Identity and metadata for one discovered feature unit."""

    id: str
    name: str
    description: str = DEFAULT_DESCRIPTION
    version: str = DEFAULT_VERSION
    requires_reboot: bool = False
    prerequisites: Tuple[str, ...] = ()
    depends_on: FrozenSet[str] = frozenset()
    config_section: str = ""
    defaults: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    source: Optional[Path] = None
    degraded: bool = False

    @property
    def section(self) -> str:
        return self.config_section or section_name_for(self.id)


def feature_id_from_path(path: Path) -> str:
    """01_storage_spaces.py -> storage-spaces"""
    stem = _ORDER_PREFIX.sub("", path.stem)
    return (stem or path.stem).replace("_", "-").lower()


def _read_metadata_literal(path: Path) -> Dict[str, Any]:
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise MetadataExtractionError(f"{path.name}: cannot read source: {e}") from e

    try:
        tree = ast.parse(source, filename=str(path))
    except SyntaxError as e:
        raise MetadataExtractionError(f"{path.name}: syntax error at line {e.lineno}: {e.msg}") from e

    for node in tree.body:
        target: Optional[ast.expr] = None
        value: Optional[ast.expr] = None
        if isinstance(node, ast.Assign) and len(node.targets) == 1:
            target, value = node.targets[0], node.value
        elif isinstance(node, ast.AnnAssign) and node.value is not None:
            target, value = node.target, node.value
        if not (isinstance(target, ast.Name) and target.id == METADATA_NAME):
            continue
        try:
            data = ast.literal_eval(value)
        except (ValueError, TypeError, SyntaxError) as e:
            raise MetadataExtractionError(f"{path.name}: {METADATA_NAME} is not a literal: {e}") from e
        if not isinstance(data, dict):
            raise MetadataExtractionError(f"{path.name}: {METADATA_NAME} must be a dict, got {type(data).__name__}")
        return data

    raise MetadataExtractionError(f"{path.name}: no module-level {METADATA_NAME} block")


def _type_name(kind: Any) -> str:
    if isinstance(kind, tuple):
        return " or ".join(k.__name__ for k in kind)
    return kind.__name__


def _expect(path: Path, data: Mapping[str, Any], key: str, kind: Any, default: Any) -> Any:
    if key not in data or data[key] is None:
        return default
    value = data[key]
    # bool is an int subclass; keep the check strict both ways.
    if not isinstance(value, kind) or (kind is not bool and isinstance(value, bool)):
        raise MetadataExtractionError(
            f"{path.name}: {METADATA_NAME}[{key!r}] must be {_type_name(kind)}, got {type(value).__name__}"
        )
    return value


def _str_list(path: Path, data: Mapping[str, Any], key: str) -> List[str]:
    items = _expect(path, data, key, (list, tuple), [])
    if not all(isinstance(i, str) for i in items):
        raise MetadataExtractionError(f"{path.name}: {METADATA_NAME}[{key!r}] must be a list of strings")
    return list(items)


def parse_metadata(path: Path) -> FeatureDescriptor:
    """Build a descriptor from a unit's FEATURE block without executing the file."""

    data = _read_metadata_literal(path)
    fid = feature_id_from_path(path)

    defaults = _expect(path, data, "defaults", dict, {})
    bad_keys = [k for k in defaults if not isinstance(k, str)]
    if bad_keys:
        raise MetadataExtractionError(f"{path.name}: {METADATA_NAME}['defaults'] keys must be strings")

    return FeatureDescriptor(
        id=fid,
        name=_expect(path, data, "name", str, path.stem),
        description=_expect(path, data, "description", str, DEFAULT_DESCRIPTION),
        version=str(_expect(path, data, "version", (str, int, float), DEFAULT_VERSION)),
        requires_reboot=_expect(path, data, "requires_reboot", bool, False),
        prerequisites=tuple(_str_list(path, data, "prerequisites")),
        depends_on=frozenset(d.lower() for d in _str_list(path, data, "depends_on")),
        config_section=_expect(path, data, "config_section", str, ""),
        defaults=MappingProxyType(dict(defaults)),
        source=path,
    )


def fallback_descriptor(path: Path) -> FeatureDescriptor:
    return FeatureDescriptor(
        id=feature_id_from_path(path),
        name=path.stem,
        source=path,
        degraded=True,
    )


def _candidates(directory: Path) -> List[Path]:
    return sorted(
        (p for p in directory.iterdir() if p.is_file() and p.suffix == ".py" and not p.name.startswith("_")),
        key=lambda p: p.name,
    )


def discover(directory: str | Path) -> List[FeatureDescriptor]:
    """Scan a directory for feature units, ordered by file name.

    One malformed unit never fails discovery: it is replaced by a descriptor
    derived from its file name.
    """

    d = Path(directory)
    if not d.is_dir():
        raise DiscoveryError(f"Features directory not found: {d}")

    descriptors: List[FeatureDescriptor] = []
    seen: Dict[str, Path] = {}

    for path in _candidates(d):
        try:
            desc = parse_metadata(path)
        except MetadataExtractionError as e:
            logger.warning("Metadata extraction failed, using file name defaults: %s", e)
            desc = fallback_descriptor(path)

        if desc.id in seen:
            logger.warning("Skipping %s: feature id %r already provided by %s", path.name, desc.id, seen[desc.id].name)
            continue
        seen[desc.id] = path
        descriptors.append(desc)

    logger.info("Discovered %d feature(s) in %s", len(descriptors), d)
    return descriptors


def _split_names(names: Optional[Iterable[str]]) -> List[str]:
    out: List[str] = []
    for n in names or []:
        out.extend(part.strip().lower() for part in str(n).split(",") if part.strip())
    return out


def select_features(
    descriptors: Sequence[FeatureDescriptor],
    *,
    include: Optional[Iterable[str]] = None,
    exclude: Optional[Iterable[str]] = None,
) -> List[FeatureDescriptor]:
    """Filter by include/exclude lists, keeping discovery order. Exclude wins."""

    inc = _split_names(include)
    exc = _split_names(exclude)
    known = {d.id for d in descriptors}

    for name in inc + exc:
        if name not in known:
            logger.warning("Unknown feature %r ignored (known: %s)", name, ", ".join(sorted(known)) or "-")

    selected = [d for d in descriptors if (not inc or d.id in inc) and d.id not in exc]
    logger.info("Selected %d of %d feature(s): %s", len(selected), len(descriptors), ",".join(d.id for d in selected))
    return selected
