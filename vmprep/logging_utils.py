from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from .settings import whitelist_merge

FALLBACK_LOG_NAME = "vmprep.log"

_HANDLER_MARK = "_vmprep_handler"


@dataclass(frozen=True)
class LogSettings:
    """Logging configuration, built once at startup and passed explicitly."""

    path: Optional[str] = None
    level: str = "INFO"
    timestamps: bool = True
    console: bool = True

    @classmethod
    def from_section(cls, section: Mapping[str, Any]) -> "LogSettings":
        base = cls()
        defaults = {f.name: getattr(base, f.name) for f in fields(cls)}
        merged = whitelist_merge(defaults, section)
        return cls(
            path=str(merged["path"]) if merged["path"] else None,
            level=str(merged["level"]).upper(),
            timestamps=bool(merged["timestamps"]),
            console=bool(merged["console"]),
        )

    def override(self, **changes: Any) -> "LogSettings":
        """Apply CLI overrides; None means 'not given'."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @property
    def level_no(self) -> int:
        value = logging.getLevelName(self.level.upper())
        return value if isinstance(value, int) else logging.INFO


def _formatter(settings: LogSettings) -> logging.Formatter:
    if settings.timestamps:
        return logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    return logging.Formatter(fmt="%(levelname)s %(name)s: %(message)s")


def configure_logging(settings: LogSettings) -> Optional[str]:
    """Configure root logging from an explicit LogSettings value.

    Notes:
    - The log file is append-only. If the requested location is not writable
      we fall back to a file in the working directory and return that path.
    - Calling this twice does not duplicate handlers.

    Returns the actual log file path, or None when file logging is off.
    """

    root = logging.getLogger()
    root.setLevel(settings.level_no)

    existing = [h for h in root.handlers if getattr(h, _HANDLER_MARK, False)]
    if existing:
        return getattr(existing[0], "_vmprep_log_path", None)

    fmt = _formatter(settings)
    handlers: list[logging.Handler] = []
    chosen_path: Optional[str] = None

    if settings.path:
        try:
            Path(os.path.dirname(settings.path) or ".").mkdir(parents=True, exist_ok=True)
            file_handler: logging.Handler = logging.FileHandler(settings.path, mode="a", encoding="utf-8")
            chosen_path = settings.path
        except OSError:
            # Fall back to a writable location.
            chosen_path = str(Path.cwd() / FALLBACK_LOG_NAME)
            file_handler = logging.FileHandler(chosen_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(fmt)
        handlers.append(file_handler)

    if settings.console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        handlers.append(console)

    for h in handlers:
        setattr(h, _HANDLER_MARK, True)
        setattr(h, "_vmprep_log_path", chosen_path)
        root.addHandler(h)

    logging.getLogger(__name__).debug(
        "Logging initialized (requested=%s, actual=%s, level=%s)", settings.path, chosen_path, settings.level
    )
    return chosen_path


def reset_logging() -> None:
    """Remove handlers installed by configure_logging (used between runs in one process)."""

    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, _HANDLER_MARK, False):
            root.removeHandler(h)
            h.close()
