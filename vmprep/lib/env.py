from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


def _bundled_features() -> str:
    # vmprep/lib/env.py -> vmprep/features
    return str(Path(__file__).resolve().parents[1] / "features")


@dataclass(frozen=True)
class Paths:
    features_dir: str = _bundled_features()
    config_default: str = "vmprep.yaml"


PATHS = Paths()
