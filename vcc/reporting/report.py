"""Structured and human-readable renderings of a ProcessingSummary.

build_report() is the machine surface (JSON-ready dict); render_summary()
and render_result() print to a rich Console. Both read only the summary
or result they are given.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from vcc.compliance.planner import describe_plan
from vcc.domain.models import ComplianceResult, EncodePlan, ProcessingSummary, Severity, Verdict
from vcc.reporting.formatting import format_duration, format_kbps_human, format_size

VERDICT_STYLES = {
    Verdict.COMPLIANT.value: "green",
    Verdict.MOSTLY_COMPLIANT.value: "yellow",
    Verdict.PARTIALLY_COMPLIANT.value: "dark_orange",
    Verdict.NON_COMPLIANT.value: "red",
}
SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.WARNING: "yellow",
    Severity.INFO: "cyan",
}


def build_report(summary: ProcessingSummary) -> Dict[str, Any]:
    data = summary.model_dump(mode="json")
    return {
        "catalog": {"name": data["catalog_name"], "version": data["catalog_version"]},
        "started_at": data["started_at"],
        "finished_at": data["finished_at"],
        "interrupted": data["interrupted"],
        "files": {
            "discovered": data["files_discovered"],
            "processed": data["files_total"],
            "scored": data["files_scored"],
            "unscored": data["files_unscored"],
            "remediated": data["files_remediated"],
        },
        "mean_score": data["mean_score"],
        "lowest_score": data["lowest_score"],
        "verdicts": data["verdict_counts"],
        "severities": data["severity_counts"],
        "histograms": {
            "video_codecs": data["video_codecs"],
            "audio_codecs": data["audio_codecs"],
            "resolutions": data["resolutions"],
            "categories": data["categories"],
        },
        "totals": {
            "size_bytes": data["total_size_bytes"],
            "duration_s": data["total_duration_s"],
        },
        "non_compliant": data["flagged"],
        "unscored": [e for e in data["errors"] if not e["scored"]],
        "remediation_errors": [e for e in data["errors"] if e["scored"]],
        "errors": data["errors"],
    }


def write_report(summary: ProcessingSummary, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(build_report(summary), f, indent=2)
    return path


def _histogram_table(title: str, histogram: Dict[str, int]) -> Table:
    table = Table(title=title, box=None, padding=(0, 1), title_justify="left")
    table.add_column("Value")
    table.add_column("Files", justify="right")
    for key, count in histogram.items():
        table.add_row(key, str(count))
    return table


def render_summary(summary: ProcessingSummary, console: Console) -> None:
    mean = "—" if summary.mean_score is None else f"{summary.mean_score:.1f}"
    header = Text()
    header.append(f"Catalog: {summary.catalog_name} v{summary.catalog_version}\n")
    header.append(
        f"Files: {summary.files_total}/{summary.files_discovered} processed | "
        f"{summary.files_scored} scored | {summary.files_unscored} unscored | "
        f"{summary.files_remediated} remediated\n"
    )
    header.append(
        f"Mean score: {mean} | Total: {format_size(summary.total_size_bytes)}, "
        f"{format_duration(summary.total_duration_s)}"
    )
    if summary.interrupted:
        header.append("\nRun was interrupted; totals are partial.", style="bold yellow")
    console.print(Panel(header, title="Compliance summary", expand=False))

    verdicts = Table(box=None, padding=(0, 1))
    verdicts.add_column("Verdict")
    verdicts.add_column("Files", justify="right")
    for verdict, count in summary.verdict_counts.items():
        verdicts.add_row(Text(verdict, style=VERDICT_STYLES.get(verdict, "")), str(count))
    console.print(verdicts)

    for title, histogram in (
        ("Video codecs", summary.video_codecs),
        ("Audio codecs", summary.audio_codecs),
        ("Resolutions", summary.resolutions),
    ):
        if histogram:
            console.print(_histogram_table(title, histogram))

    if summary.flagged:
        flagged = Table(title="Scored, not compliant", title_justify="left")
        flagged.add_column("File", overflow="fold")
        flagged.add_column("Category")
        flagged.add_column("Score", justify="right")
        flagged.add_column("Verdict")
        flagged.add_column("C/W/I", justify="right")
        for f in summary.flagged:
            flagged.add_row(
                escape(f.path), f.category.value, str(f.score),
                Text(f.verdict.value, style=VERDICT_STYLES.get(f.verdict.value, "")),
                f"{f.critical}/{f.warning}/{f.info}",
            )
        console.print(flagged)

        pending = [f for f in summary.flagged if f.recommendations and f.output_path is None]
        for f in pending:
            console.print(f"[bold]Recommended fixes for {escape(f.path)}[/]", highlight=False)
            _print_steps(f.recommendations, console)

    for title, errors in (
        ("Could not be scored", summary.unscored_errors),
        ("Remediation failed", summary.remediation_errors),
    ):
        if not errors:
            continue
        table = Table(title=title, title_justify="left")
        table.add_column("File", overflow="fold")
        table.add_column("Stage")
        table.add_column("Error", overflow="fold")
        for e in errors:
            table.add_row(escape(e.path), e.stage, escape(f"{e.error_type}: {e.message}"))
        console.print(table)


def _print_steps(steps, console: Console) -> None:
    for i, step in enumerate(steps, 1):
        console.print(f"  {i}. {escape(step)}", highlight=False)


def render_result(result: ComplianceResult, console: Console, plan: Optional[EncodePlan] = None) -> None:
    profile = result.profile
    style = VERDICT_STYLES.get(result.verdict.value, "")
    console.print(
        f"[bold]{escape(profile.source_name or '')}[/] {profile.resolution} {profile.frame_rate}fps "
        f"{profile.video_codec} {format_kbps_human(profile.video_bitrate_kbps)} "
        f"({result.category.value}) -> [{style}]{result.score} {result.verdict.value}[/]"
    )
    for v in result.violations:
        console.print(
            f"  [{SEVERITY_STYLES[v.severity]}]{v.severity.value:<8}[/] {v.dimension.value:<16} "
            f"{escape(v.explanation)} (expected {escape(v.expected)})",
            highlight=False,
        )
    for note in result.notes:
        console.print(f"  [dim]note     {escape(note)}[/]", highlight=False)
    if plan is None:
        return
    steps = describe_plan(plan)
    if steps:
        console.print("  Recommendations:")
        _print_steps(steps, console)
    elif result.violations:
        console.print("  [dim]No automatic fix available; review manually.[/]")
