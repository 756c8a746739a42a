from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from vmprep.registry import FeatureDescriptor


class FakeUnit:
    """Test double that records how often each operation was called."""

    def __init__(
        self,
        *,
        issues: Optional[List[str]] = None,
        result: Any = None,
        prereq_error: Optional[Exception] = None,
        install_error: Optional[Exception] = None,
    ) -> None:
        self.issues = issues or []
        self.result = result if result is not None else {"success": True, "message": "done", "data": {}}
        self.prereq_error = prereq_error
        self.install_error = install_error
        self.prereq_calls = 0
        self.install_calls = 0
        self.configs: List[Mapping[str, Any]] = []

    def check_prerequisites(self) -> List[str]:
        self.prereq_calls += 1
        if self.prereq_error is not None:
            raise self.prereq_error
        return list(self.issues)

    def install(self, config: Mapping[str, Any]) -> Any:
        self.install_calls += 1
        self.configs.append(config)
        if self.install_error is not None:
            raise self.install_error
        return self.result


def descriptor(fid: str, **kw: Any) -> FeatureDescriptor:
    kw.setdefault("name", fid)
    return FeatureDescriptor(id=fid, **kw)


class FakeLoader:
    def __init__(self, units: Dict[str, FakeUnit]) -> None:
        self.units = units
        self.loaded: List[str] = []

    def __call__(self, d: FeatureDescriptor) -> FakeUnit:
        self.loaded.append(d.id)
        return self.units[d.id]


