import logging
from types import MappingProxyType

import pytest

from vmprep.engine import ExecutionResult, Outcome, RunOptions, run_features
from vmprep.errors import FeatureLoadError
from vmprep.report import summarize
from vmprep.settings import ConfigDocument
from vmprep.units import InstallResult

from .helpers import FakeLoader, FakeUnit, descriptor


def _three(b_unit: FakeUnit):
    features = [descriptor("a"), descriptor("b"), descriptor("c")]
    units = {"a": FakeUnit(), "b": b_unit, "c": FakeUnit()}
    return features, units


def test_prerequisite_issue_continues_by_default():
    features, units = _three(FakeUnit(issues=["volume not found"]))
    results = run_features(features, None, loader=FakeLoader(units))

    assert {k: r.outcome for k, r in results.items()} == {
        "a": Outcome.SUCCESS,
        "b": Outcome.FAILURE,
        "c": Outcome.SUCCESS,
    }
    assert "volume not found" in results["b"].message
    assert results["b"].error_kind == "prerequisites"
    assert units["b"].install_calls == 0

    report = summarize(results, features)
    assert (report.success_count, report.failure_count, report.skipped_count) == (2, 1, 0)


def test_stop_on_error_marks_rest_not_run():
    features, units = _three(FakeUnit(issues=["volume not found"]))
    results = run_features(features, None, RunOptions(continue_on_error=False), loader=FakeLoader(units))

    assert [r.outcome for r in results.values()] == [Outcome.SUCCESS, Outcome.FAILURE, Outcome.NOT_RUN]
    assert units["c"].prereq_calls == 0
    assert "stopped after b" in results["c"].message

    report = summarize(results, features)
    assert (report.success_count, report.failure_count, report.skipped_count) == (1, 1, 1)


@pytest.mark.parametrize("fail_at", [0, 2, 4])
def test_stop_on_error_positions(fail_at):
    ids = [f"f{i}" for i in range(5)]
    features = [descriptor(i) for i in ids]
    units = {i: FakeUnit() for i in ids}
    units[ids[fail_at]] = FakeUnit(result={"success": False, "message": "nope"})

    results = run_features(features, None, RunOptions(continue_on_error=False), loader=FakeLoader(units))

    assert list(results) == ids
    for pos, fid in enumerate(ids):
        if pos < fail_at:
            assert results[fid].outcome is Outcome.SUCCESS
        elif pos == fail_at:
            assert results[fid].outcome is Outcome.FAILURE
        else:
            assert results[fid].outcome is Outcome.NOT_RUN


def test_continue_on_error_attempts_every_feature():
    ids = ["a", "b", "c", "d"]
    units = {i: FakeUnit(install_error=RuntimeError("boom")) for i in ids}
    loader = FakeLoader(units)
    results = run_features([descriptor(i) for i in ids], None, loader=loader)

    assert loader.loaded == ids
    assert all(u.install_calls == 1 for u in units.values())
    assert all(r.outcome is Outcome.FAILURE for r in results.values())


def test_dry_run_invokes_nothing():
    ids = ["a", "b", "c"]
    units = {i: FakeUnit() for i in ids}
    loader = FakeLoader(units)
    results = run_features([descriptor(i) for i in ids], None, RunOptions(dry_run=True), loader=loader)

    assert all(r.outcome is Outcome.DRY_RUN_SKIPPED for r in results.values())
    assert loader.loaded == []
    assert all(u.prereq_calls == 0 and u.install_calls == 0 for u in units.values())


def test_faults_become_failures_with_detail(caplog):
    features = [descriptor("prereq"), descriptor("install"), descriptor("load"), descriptor("ok")]
    units = {
        "prereq": FakeUnit(prereq_error=OSError("registry unavailable")),
        "install": FakeUnit(install_error=ValueError("bad drive letter")),
        "ok": FakeUnit(),
    }

    def loader(d):
        if d.id == "load":
            raise FeatureLoadError("[load] does not define: install")
        return units[d.id]

    with caplog.at_level(logging.ERROR, logger="vmprep.engine"):
        results = run_features(features, None, loader=loader)

    assert results["prereq"].outcome is Outcome.FAILURE
    assert "OSError: registry unavailable" in results["prereq"].message
    assert results["install"].error_kind == "fault"
    assert "ValueError: bad drive letter" in results["install"].message
    assert "does not define" in results["load"].message
    assert results["ok"].outcome is Outcome.SUCCESS
    assert units["prereq"].install_calls == 0


def test_install_failure_keeps_data():
    unit = FakeUnit(result=InstallResult(success=False, message="msiexec 1603", data={"exit": 1603}))
    results = run_features([descriptor("rdp")], None, loader=FakeLoader({"rdp": unit}))
    r = results["rdp"]
    assert r.outcome is Outcome.FAILURE
    assert r.error_kind == "install"
    assert r.message == "msiexec 1603"
    assert dict(r.data) == {"exit": 1603}


def test_malformed_install_return_is_a_fault():
    unit = FakeUnit(result="done")
    results = run_features([descriptor("x")], None, loader=FakeLoader({"x": unit}))
    assert results["x"].outcome is Outcome.FAILURE
    assert results["x"].error_kind == "fault"


def test_keyboard_interrupt_propagates():
    unit = FakeUnit(install_error=KeyboardInterrupt())
    with pytest.raises(KeyboardInterrupt):
        run_features([descriptor("x")], None, loader=FakeLoader({"x": unit}))


def test_install_receives_resolved_config():
    d = descriptor("storage", config_section="Storage", defaults=MappingProxyType({"drive_letter": "F", "label": "Data"}))
    doc = ConfigDocument(raw={"Storage": {"drive_letter": "G", "unknown": 1}})
    unit = FakeUnit()
    run_features([d], doc, loader=FakeLoader({"storage": unit}))
    assert dict(unit.configs[0]) == {"drive_letter": "G", "label": "Data"}


def test_reboot_signal_from_data_or_descriptor():
    features = [descriptor("updates"), descriptor("declared", requires_reboot=True), descriptor("plain")]
    units = {
        "updates": FakeUnit(result={"success": True, "data": {"reboot_required": True}}),
        "declared": FakeUnit(),
        "plain": FakeUnit(),
    }
    results = run_features(features, None, loader=FakeLoader(units))
    assert results["updates"].reboot_required
    assert results["declared"].reboot_required
    assert not results["plain"].reboot_required


def test_dependencies_not_enforced_by_default():
    features = [descriptor("storage"), descriptor("src", depends_on=frozenset({"storage"}))]
    units = {"storage": FakeUnit(issues=["no disks"]), "src": FakeUnit()}
    results = run_features(features, None, loader=FakeLoader(units))
    assert results["src"].outcome is Outcome.SUCCESS


def test_enforced_dependencies_mark_not_run():
    features = [descriptor("storage"), descriptor("src", depends_on=frozenset({"storage"})), descriptor("sdk")]
    units = {"storage": FakeUnit(issues=["no disks"]), "src": FakeUnit(), "sdk": FakeUnit()}
    results = run_features(features, None, RunOptions(enforce_dependencies=True), loader=FakeLoader(units))

    assert results["src"].outcome is Outcome.NOT_RUN
    assert "storage" in results["src"].message
    assert results["src"].error_kind == "dependencies"
    assert units["src"].prereq_calls == 0
    assert results["sdk"].outcome is Outcome.SUCCESS


def test_enforced_dependency_on_unselected_feature():
    features = [descriptor("src", depends_on=frozenset({"storage"}))]
    results = run_features(features, None, RunOptions(enforce_dependencies=True), loader=FakeLoader({"src": FakeUnit()}))
    assert results["src"].outcome is Outcome.NOT_RUN


def test_empty_selection():
    assert run_features([], None) == {}


def test_results_are_immutable():
    results = run_features([descriptor("a")], None, loader=FakeLoader({"a": FakeUnit()}))
    with pytest.raises(AttributeError):
        results["a"].outcome = Outcome.FAILURE  # type: ignore[misc]
    assert isinstance(results["a"], ExecutionResult)
