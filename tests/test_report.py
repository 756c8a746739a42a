import json
from datetime import datetime, timezone

from vmprep.engine import BLOCKED_KIND, ExecutionResult, Outcome
from vmprep.report import EXIT_FAILURES, EXIT_OK, EXIT_STRUCTURAL, render_catalog, render_report, save_report, summarize

from .helpers import descriptor

WHEN = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _r(fid, outcome, **kw):
    return ExecutionResult(feature_id=fid, outcome=outcome, **kw)


def test_summary_follows_descriptor_order_not_mapping_order():
    descs = [descriptor("a"), descriptor("b"), descriptor("c")]
    results = {
        "c": _r("c", Outcome.SUCCESS),
        "a": _r("a", Outcome.FAILURE, message="bad"),
        "b": _r("b", Outcome.DRY_RUN_SKIPPED),
    }
    report = summarize(results, descs, completed_at=WHEN)
    assert [r.feature_id for r in report.results] == ["a", "b", "c"]
    assert (report.success_count, report.failure_count, report.skipped_count) == (1, 1, 1)
    assert report.completed_at == WHEN
    assert report.exit_code == EXIT_FAILURES


def test_missing_results_are_not_run():
    report = summarize({}, [descriptor("a")], completed_at=WHEN)
    assert report.results[0].outcome is Outcome.NOT_RUN
    assert report.skipped_count == 1


def test_reboot_only_counts_successes():
    descs = [descriptor("a", requires_reboot=True), descriptor("b")]
    failed = summarize(
        {"a": _r("a", Outcome.FAILURE), "b": _r("b", Outcome.FAILURE, reboot_required=True)}, descs
    )
    assert not failed.reboot_required

    declared = summarize({"a": _r("a", Outcome.SUCCESS), "b": _r("b", Outcome.SUCCESS)}, descs)
    assert declared.reboot_required

    signalled = summarize(
        {"a": _r("a", Outcome.FAILURE), "b": _r("b", Outcome.SUCCESS, reboot_required=True)}, descs
    )
    assert signalled.reboot_required

    quiet = summarize({"b": _r("b", Outcome.SUCCESS)}, [descriptor("b")])
    assert not quiet.reboot_required


def test_exit_codes():
    assert summarize({}, []).exit_code == EXIT_STRUCTURAL
    assert summarize({"a": _r("a", Outcome.DRY_RUN_SKIPPED)}, [descriptor("a")]).exit_code == EXIT_OK
    assert summarize({"a": _r("a", Outcome.SUCCESS)}, [descriptor("a")]).exit_code == EXIT_OK


def test_render_report_lists_every_feature():
    descs = [descriptor("a"), descriptor("b")]
    report = summarize(
        {"a": _r("a", Outcome.SUCCESS, message="done", reboot_required=True), "b": _r("b", Outcome.NOT_RUN)},
        descs,
        completed_at=WHEN,
    )
    text = render_report(report)
    assert "[  OK] a: done" in text
    assert "[SKIP] b" in text
    assert "Succeeded: 1  Failed: 0  Skipped: 1" in text
    assert "reboot is required" in text


def test_render_catalog():
    assert render_catalog([]) == "No features found."
    text = render_catalog(
        [descriptor("storage", name="Storage", version="1.2.0", requires_reboot=True, prerequisites=("Two disks",))]
    )
    assert "1. storage v1.2.0 - Storage (reboot)" in text
    assert "requires: Two disks" in text


def test_save_report_writes_json(tmp_path):
    report = summarize(
        {"a": _r("a", Outcome.SUCCESS, data={"drive_letter": "F"})}, [descriptor("a")], completed_at=WHEN
    )
    out = tmp_path / "reports" / "run.json"
    save_report(str(out), report)
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["success_count"] == 1
    assert data["results"][0]["outcome"] == "Success"
    assert data["results"][0]["data"] == {"drive_letter": "F"}
    assert data["completed_at"] == WHEN.isoformat()


def test_dependency_blocked_results_fail_the_run():
    blocked = _r("src", Outcome.NOT_RUN, message="Dependencies not satisfied: storage", error_kind=BLOCKED_KIND)
    report = summarize({"src": blocked}, [descriptor("src")], completed_at=WHEN)
    assert report.failure_count == 0
    assert report.blocked_count == 1
    assert report.exit_code == EXIT_FAILURES
    assert "held back by unmet dependencies" in render_report(report)

    stopped = summarize({"a": _r("a", Outcome.NOT_RUN)}, [descriptor("a")])
    assert stopped.blocked_count == 0
    assert stopped.exit_code == EXIT_OK
