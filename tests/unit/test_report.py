import json
import pytest
from pathlib import Path
from rich.console import Console
from vcc.compliance.planner import RemediationPlanner
from vcc.compliance.scorer import score
from vcc.domain.models import ContentCategory, FileError, FileOutcome, FileStatus, VideoFile
from vcc.pipeline.summary import SummaryAccumulator
from vcc.reporting.formatting import format_duration, format_kbps_human, format_size
from vcc.reporting.report import build_report, render_result, render_summary, write_report


@pytest.fixture
def summary(make_profile, catalog):
    acc = SummaryAccumulator("default", "1")
    acc.discovered(3)
    good = score(make_profile(), ContentCategory.LIVE_ACTION, catalog)
    bad = score(make_profile(container="mkv", video_bitrate_kbps=4000.0), ContentCategory.LIVE_ACTION, catalog)
    acc.add(FileOutcome(file=VideoFile(path=Path("/m/good.mp4"), size_bytes=10, index=0), status=FileStatus.SCORED, result=good))
    acc.add(FileOutcome(
        file=VideoFile(path=Path("/m/bad.mkv"), size_bytes=20, index=1),
        status=FileStatus.FAILED,
        result=bad,
        plan=RemediationPlanner(catalog).plan(bad),
        error=FileError(index=1, path="/m/bad.mkv", stage="encode", error_type="EncodeError", message="boom", scored=True),
    ))
    acc.add(FileOutcome(
        file=VideoFile(path=Path("/m/[broken].mp4"), size_bytes=5, index=2),
        status=FileStatus.FAILED,
        error=FileError(index=2, path="/m/[broken].mp4", stage="probe", error_type="ProbeError", message="moov atom not found"),
    ))
    return acc.snapshot()


def _console():
    return Console(record=True, width=160, force_terminal=False)


def test_build_report_structure(summary):
    report = build_report(summary)

    assert report["catalog"] == {"name": "default", "version": "1"}
    assert report["files"] == {"discovered": 3, "processed": 3, "scored": 2, "unscored": 1, "remediated": 0}
    assert report["lowest_score"] == 65
    assert report["verdicts"]["compliant"] == 1
    assert report["verdicts"]["partially_compliant"] == 1
    assert report["severities"] == {"critical": 1, "warning": 1, "info": 0}
    assert report["histograms"]["resolutions"] == {"1920x1080": 2}
    assert report["totals"]["size_bytes"] == 35
    assert report["interrupted"] is False


def test_report_keeps_unscored_apart_from_non_compliant(summary):
    report = build_report(summary)

    assert [f["path"] for f in report["non_compliant"]] == ["/m/bad.mkv"]
    assert report["non_compliant"][0]["verdict"] == "partially_compliant"
    assert [e["path"] for e in report["unscored"]] == ["/m/[broken].mp4"]
    assert [e["path"] for e in report["remediation_errors"]] == ["/m/bad.mkv"]


def test_report_lists_recommended_fixes(summary):
    [flagged] = build_report(summary)["non_compliant"]
    assert "Write into an MP4 container" in flagged["recommendations"]


def test_report_is_json_serializable(summary):
    json.dumps(build_report(summary))


def test_write_report(summary, tmp_path):
    path = write_report(summary, tmp_path / "out" / "compliance_report.json")
    data = json.loads(path.read_text())
    assert data == json.loads(json.dumps(build_report(summary)))


def test_render_summary(summary):
    console = _console()
    render_summary(summary, console)
    text = console.export_text()

    assert "Compliance summary" in text
    assert "Scored, not compliant" in text
    assert "/m/bad.mkv" in text
    assert "Could not be scored" in text
    assert "/m/[broken].mp4" in text
    assert "Remediation failed" in text
    assert "Recommended fixes for /m/bad.mkv" in text
    assert "1. " in text


def test_render_interrupted_summary():
    console = _console()
    render_summary(SummaryAccumulator().snapshot(interrupted=True), console)
    assert "interrupted" in console.export_text()


def test_render_result(make_profile, catalog):
    result = score(make_profile(source_name="[clip].mp4", container="mkv"), ContentCategory.LIVE_ACTION, catalog)
    console = _console()
    render_result(result, console)
    text = console.export_text()

    assert "[clip].mp4" in text
    assert "critical" in text
    assert "container mkv is not accepted" in text
    assert "Recommendations" not in text


def test_render_result_with_plan(make_profile, catalog):
    result = score(make_profile(container="mkv"), ContentCategory.LIVE_ACTION, catalog)
    console = _console()
    render_result(result, console, RemediationPlanner(catalog).plan(result))
    text = console.export_text()

    assert "Recommendations:" in text
    assert "1. Write into an MP4 container" in text


def test_render_result_without_automatic_fix(make_profile, catalog):
    result = score(make_profile(width=640, height=360), ContentCategory.LIVE_ACTION, catalog)
    console = _console()
    render_result(result, console, RemediationPlanner(catalog).plan(result))
    assert "No automatic fix available" in console.export_text()


@pytest.mark.parametrize("kbps,expected", [(None, "—"), (320, "320 kbps"), (12500, "12.5 Mbps")])
def test_format_kbps_human(kbps, expected):
    assert format_kbps_human(kbps) == expected


def test_format_size_and_duration():
    assert format_size(0) == "0B"
    assert format_size(1536) == "1.5KB"
    assert format_duration(59) == "59s"
    assert format_duration(61) == "01m 01s"
    assert format_duration(3660) == "1h 01m"
    assert format_duration(None) == "--:--"
