import json
import logging
import typer
from pathlib import Path
from typing import Optional
from pydantic import ValidationError
from rich.console import Console
from vcc.config.input_dirs import build_input_dir_lines, evaluate_input_dirs, normalize_input_dir_entries, parse_cli_input_dirs
from vcc.config.loader import load_catalog, load_config
from vcc.config.models import AppConfig
from vcc.domain.errors import CatalogError
from vcc.domain.events import FileFailed, FileRemediated, FileScored
from vcc.domain.models import EncoderCapabilities
from vcc.infrastructure.event_bus import EventBus
from vcc.infrastructure.ffmpeg import FFmpegAdapter, hardware_encoder_available
from vcc.infrastructure.ffprobe import FFprobeAdapter
from vcc.infrastructure.file_scanner import FileScanner
from vcc.infrastructure.housekeeping import HousekeepingService
from vcc.infrastructure.logging import setup_logging
from vcc.infrastructure.remote import MountedRemoteSource
from vcc.pipeline.orchestrator import BatchOrchestrator
from vcc.reporting.report import build_report, render_result, render_summary, write_report

DEFAULT_CONFIG = Path("conf/vcc.yaml")

EXIT_FATAL = 1
EXIT_CONFIG = 2
EXIT_GATE = 3
EXIT_INTERRUPTED = 130

app = typer.Typer(help="VCC (Video Compliance Check) - audit and remediate media against a delivery standard")


def _config_error(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=EXIT_CONFIG)


@app.command()
def audit(
    input_dirs_arg: Optional[str] = typer.Argument(
        None,
        help="Directory or comma-separated directories to audit (optional if set in config)"
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help=f"Path to YAML config (default: {DEFAULT_CONFIG} if present)"),
    catalog_path: Optional[Path] = typer.Option(None, "--catalog", help="Path to a YAML standards catalog"),
    remediate: Optional[bool] = typer.Option(None, "--remediate/--no-remediate", help="Re-encode non-compliant files"),
    threads: Optional[int] = typer.Option(None, "--threads", "-t", min=1, help="Override number of worker threads"),
    encode_jobs: Optional[int] = typer.Option(None, "--encode-jobs", min=1, max=8, help="Concurrent encoder sessions"),
    gpu: Optional[bool] = typer.Option(None, "--gpu/--cpu", help="Use the NVENC hardware encoder"),
    no_primary_audio: bool = typer.Option(False, "--no-primary-audio", help="Primary audio codec is unavailable; use the secondary"),
    probe_keyframes: Optional[bool] = typer.Option(None, "--probe-keyframes/--no-probe-keyframes", help="Measure keyframe spacing (slower)"),
    remote_dir: Optional[Path] = typer.Option(None, "--remote-dir", help="Audit a mounted remote share instead of local folders"),
    staging_dir: Optional[Path] = typer.Option(None, "--staging-dir", help="Local staging directory for remote files"),
    report_path: Optional[Path] = typer.Option(None, "--report", help="Write the JSON report to this path"),
    json_output: bool = typer.Option(False, "--json", help="Print the JSON report to stdout"),
    min_score: Optional[int] = typer.Option(None, "--min-score", min=0, max=100, help="Exit 3 if any file scores below this or cannot be scored"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print every file's violations"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging")
):
    """Score media files against the standards catalog and optionally remediate them."""
    console = Console(stderr=json_output)

    try:
        try:
            if config_path is not None:
                config = load_config(config_path)
            elif DEFAULT_CONFIG.exists():
                config = load_config(DEFAULT_CONFIG)
            else:
                config = AppConfig()
            catalog_file = catalog_path or (Path(config.catalog_path) if config.catalog_path else None)
            catalog = load_catalog(catalog_file)
        except (FileNotFoundError, ValidationError, CatalogError) as e:
            _config_error(str(e))

        # Apply CLI overrides
        general = config.general
        if remediate is not None: general.remediate = remediate
        if threads: general.threads = threads
        if encode_jobs: general.encode_jobs = encode_jobs
        if gpu is not None: general.hardware_encoder = gpu
        if no_primary_audio: general.primary_audio_feasible = False
        if probe_keyframes is not None: general.probe_keyframes = probe_keyframes
        if log_path is not None: general.log_path = str(log_path)
        if debug: general.debug = True
        if remote_dir is not None: config.remote.root = str(remote_dir)
        if staging_dir is not None: config.remote.staging_dir = str(staging_dir)

        remote_root = Path(config.remote.root).expanduser() if config.remote.root else None
        input_dirs = []
        if remote_root is None:
            requested = parse_cli_input_dirs(input_dirs_arg) if input_dirs_arg is not None else normalize_input_dir_entries(config.input_dirs)
            if not requested:
                typer.secho("Error: No input directories provided in CLI or config.", fg=typer.colors.RED, err=True)
                raise typer.Exit(code=EXIT_FATAL)
            try:
                input_dirs, status_entries = evaluate_input_dirs(requested, remediate=general.remediate)
            except ValueError as exc:
                _config_error(str(exc))
            if not json_output:
                for line in build_input_dir_lines(status_entries):
                    console.print(line)
            if not input_dirs:
                typer.secho("Error: No valid input directories found (missing or inaccessible).", fg=typer.colors.RED, err=True)
                raise typer.Exit(code=EXIT_FATAL)

        log_file = Path(general.log_path) if general.log_path else None
        logger = setup_logging(Path.cwd(), debug=general.debug, log_path=log_file)
        logger.info(f"VCC started: input_folders={input_dirs or [remote_root]}, catalog={catalog.name} v{catalog.version}")
        logger.info(
            f"Config: threads={general.threads}, encode_jobs={general.encode_jobs}, remediate={general.remediate}, "
            f"gpu={general.hardware_encoder}, debug={general.debug}"
        )

        if general.remediate and general.hardware_encoder and not hardware_encoder_available():
            logger.warning("NVENC not available, falling back to CPU encoding")
            console.print("[yellow]NVENC not available, falling back to CPU encoding[/]")
            general.hardware_encoder = False

        if general.remediate:
            housekeeper = HousekeepingService(output_subdir=general.output_subdir)
            for input_dir in input_dirs:
                housekeeper.cleanup_temp_files(input_dir)

        bus = EventBus()

        @bus.subscribe(FileScored)
        def _on_scored(event: FileScored):
            if verbose:
                render_result(event.result, console, event.plan)

        @bus.subscribe(FileFailed)
        def _on_failed(event: FileFailed):
            console.print(f"[red]✗ {event.file.path.name}: {event.error.stage} - {event.error.message}[/]", highlight=False)

        @bus.subscribe(FileRemediated)
        def _on_remediated(event: FileRemediated):
            console.print(f"[green]✓ {event.file.path.name} -> {event.output_path}[/]", highlight=False)

        scanner = FileScanner(
            extensions=general.extensions,
            min_size_bytes=general.min_size_bytes,
            output_subdir=general.output_subdir,
        )
        ffprobe = FFprobeAdapter(timeout_s=general.probe_timeout_s, probe_keyframes=general.probe_keyframes)
        ffmpeg = FFmpegAdapter(
            hardware_encoder=general.hardware_encoder,
            timeout_s=general.encode_timeout_s,
            debug=general.debug,
        ) if general.remediate else None

        orchestrator = BatchOrchestrator(
            config=config,
            catalog=catalog,
            event_bus=bus,
            file_scanner=scanner,
            ffprobe_adapter=ffprobe,
            ffmpeg_adapter=ffmpeg,
            capabilities=EncoderCapabilities(primary_audio_feasible=general.primary_audio_feasible),
        )

        if remote_root is not None:
            source = MountedRemoteSource(
                remote_root,
                extensions=general.extensions,
                min_size_bytes=general.min_size_bytes,
                output_subdir=config.remote.upload_subdir,
            )
            summary = orchestrator.run_remote(source, Path(config.remote.staging_dir), source_label=str(remote_root))
        else:
            summary = orchestrator.run(input_dirs)

        if report_path is None and general.remediate and input_dirs:
            report_path = input_dirs[0] / general.output_subdir / general.report_name
        if report_path is not None:
            written = write_report(summary, report_path)
            logger.info(f"Report written: {written}")

        if json_output:
            typer.echo(json.dumps(build_report(summary), indent=2))
        else:
            render_summary(summary, console)
            if report_path is not None:
                console.print(f"Report: {report_path}")

        if summary.interrupted:
            typer.secho("\n✓ Audit stopped by user (Ctrl+C); partial report above", fg=typer.colors.YELLOW, err=True)
            raise typer.Exit(code=EXIT_INTERRUPTED)

        if min_score is not None:
            below = summary.lowest_score is not None and summary.lowest_score < min_score
            if below or summary.files_unscored:
                typer.secho(
                    f"Gate failed: lowest score {summary.lowest_score}, unscored files {summary.files_unscored} "
                    f"(minimum {min_score})",
                    fg=typer.colors.RED,
                    err=True,
                )
                raise typer.Exit(code=EXIT_GATE)

    except KeyboardInterrupt:
        typer.secho("\n✓ Audit stopped by user (Ctrl+C)", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=EXIT_INTERRUPTED)

    except typer.Exit:
        raise

    except Exception as e:
        logging.getLogger(__name__).exception("Fatal error")
        typer.secho(f"Fatal Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_FATAL)

if __name__ == "__main__":
    app()
