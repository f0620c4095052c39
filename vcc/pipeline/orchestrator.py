"""Batch orchestrator for compliance audits and remediation.

Drives probe -> normalize -> classify -> score -> (plan -> encode -> verify)
for every discovered file and folds each outcome into a SummaryAccumulator.

Key responsibilities:
- Discover media files in local directories or on a RemoteSource
- Submit files to a thread pool with the submit-on-demand pattern
  (at most prefetch_factor * threads futures in flight)
- Bound concurrent encoder sessions with a semaphore (encode_jobs)
- Turn every per-file failure into a FileError; nothing aborts the batch
- Write remediated files only into the output subfolder, never over a source
- On interrupt, stop dispatching, kill running encodes and still return
  the partial ProcessingSummary
"""

import threading
import concurrent.futures
import logging
import time
from collections import deque
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Union
from vcc.compliance.catalog import StandardsCatalog
from vcc.compliance.classifier import classify
from vcc.compliance.normalizer import normalize
from vcc.compliance.planner import RemediationPlanner
from vcc.compliance.scorer import score
from vcc.config.models import AppConfig
from vcc.domain.errors import EncodeError, EncodeInterrupted, UploadError, VccError, VerifyError
from vcc.domain.events import (
    DiscoveryFinished,
    DiscoveryStarted,
    FileFailed,
    FileRemediated,
    FileScored,
    FileStarted,
    InterruptRequested,
    ProcessingFinished,
    RemediationStarted,
)
from vcc.domain.models import (
    ComplianceResult,
    EncodePlan,
    EncoderCapabilities,
    FileError,
    FileOutcome,
    FileStatus,
    ProcessingSummary,
    Verdict,
    VideoFile,
)
from vcc.infrastructure.event_bus import EventBus
from vcc.infrastructure.ffmpeg import FFmpegAdapter, temp_path_for
from vcc.infrastructure.ffprobe import FFprobeAdapter
from vcc.infrastructure.file_scanner import FileScanner
from vcc.infrastructure.remote import RemoteFile, RemoteSource
from vcc.pipeline.naming import output_path_for, remote_destination_for
from vcc.pipeline.summary import SummaryAccumulator


class BatchOrchestrator:
    """Compliance pipeline orchestrator.

    Per-file stages (normalize, classify, score, plan) are pure; only probe,
    encode and remote I/O block. The summary accumulator is the single piece
    of shared mutable state and is lock-guarded.

    Args:
        config: AppConfig with threads, prefetch, remediation and output settings.
        catalog: StandardsCatalog snapshot used for every file in the batch.
        event_bus: EventBus for publishing per-file lifecycle events.
        file_scanner: FileScanner for local discovery.
        ffprobe_adapter: FFprobeAdapter returning raw probe JSON.
        ffmpeg_adapter: FFmpegAdapter; only needed when remediation is enabled.
        capabilities: Encoder capability flags passed to the planner.
    """

    def __init__(
        self,
        config: AppConfig,
        catalog: StandardsCatalog,
        event_bus: EventBus,
        file_scanner: FileScanner,
        ffprobe_adapter: FFprobeAdapter,
        ffmpeg_adapter: Optional[FFmpegAdapter] = None,
        capabilities: Optional[EncoderCapabilities] = None,
    ):
        self.config = config
        self.catalog = catalog
        self.event_bus = event_bus
        self.file_scanner = file_scanner
        self.ffprobe_adapter = ffprobe_adapter
        self.ffmpeg_adapter = ffmpeg_adapter
        self.planner = RemediationPlanner(catalog, capabilities)
        self.logger = logging.getLogger(__name__)

        self.summary = SummaryAccumulator(catalog.name, catalog.version)

        # Shutdown coordination
        self._shutdown_requested = False
        self._thread_lock = threading.Condition()
        self._shutdown_event = threading.Event()  # Signal workers/encoders to stop
        self._encode_slots = threading.BoundedSemaphore(config.general.encode_jobs)

        # Output ownership for the batch: two sources never share an output file
        self._claims_lock = threading.Lock()
        self._sources: Set[Path] = set()
        self._output_owners: Dict[Path, Path] = {}
        self._claimed_outputs: Dict[Path, Path] = {}

        self.event_bus.subscribe(InterruptRequested, self._on_interrupt_requested)

    def _on_interrupt_requested(self, event: InterruptRequested):
        self.request_shutdown()

    def request_shutdown(self):
        """Stops dispatching new files and kills running encodes."""
        self.logger.info("Shutdown requested - stopping orchestrator...")
        self._shutdown_event.set()
        with self._thread_lock:
            self._shutdown_requested = True
            self._thread_lock.notify_all()

    # ---- per-file stages -----------------------------------------------------

    def analyze(self, path: Path) -> ComplianceResult:
        """probe -> normalize -> classify -> score for one local file."""
        raw = self.ffprobe_adapter.probe(path)
        profile = normalize(raw, path)
        category = classify(profile, self.catalog)
        return score(profile, category, self.catalog)

    def _claim_output(self, source_path: Path, output_path: Path) -> None:
        """Reserves output_path for source_path or raises EncodeError.

        A container change can map clip.mkv onto the name of its sibling
        clip.mp4; the sibling keeps its own name, whatever the completion order.
        """
        source_key = source_path.resolve()
        output_key = output_path.resolve()
        sibling = source_path.with_name(output_path.name).resolve()
        with self._claims_lock:
            if sibling != source_key and sibling in self._sources:
                raise EncodeError(
                    f"Output {output_path.name} is reserved for source {sibling.name} in the same folder",
                    source_path,
                )
            owner = self._output_owners.get(output_key)
            if owner is not None and owner != source_key:
                raise EncodeError(f"Output {output_path} is already claimed by {owner.name}", source_path)
            self._output_owners[output_key] = source_key
            self._claimed_outputs[source_key] = output_path

    def _encode(self, source_path: Path, plan: EncodePlan, output_path: Path) -> Path:
        if self.ffmpeg_adapter is None:
            raise EncodeError("Remediation requested but no encoder is configured", source_path)
        with self._encode_slots:
            if self._shutdown_event.is_set():
                raise EncodeInterrupted("Interrupted before encoding started", source_path)
            produced = self.ffmpeg_adapter.encode(
                source_path, plan, output_path, shutdown_event=self._shutdown_event
            )
        if not produced.exists() or produced.stat().st_size == 0:
            raise VerifyError(f"Encoder produced no usable output at {produced}", source_path)
        return produced

    def _failed(self, video_file: VideoFile, error: VccError, scored: bool, result=None, plan=None) -> FileOutcome:
        status = FileStatus.INTERRUPTED if isinstance(error, EncodeInterrupted) else FileStatus.FAILED
        file_error = FileError(
            index=video_file.index,
            path=str(video_file.path),
            stage=error.stage,
            error_type=type(error).__name__,
            message=error.message,
            scored=scored,
        )
        self.logger.error(f"FILE_FAILED: {video_file.path.name} stage={error.stage} {error.message}")
        self.event_bus.publish(FileFailed(file=video_file, error=file_error))
        return FileOutcome(file=video_file, status=status, result=result, plan=plan, error=file_error)

    def _evaluate(
        self,
        video_file: VideoFile,
        local_path: Path,
        deliver: Optional[Callable[[Path, EncodePlan], Optional[str]]] = None,
    ) -> FileOutcome:
        """Scores local_path and, if requested, remediates it. deliver() ships the output elsewhere."""
        try:
            result = self.analyze(local_path)
        except VccError as e:
            return self._failed(video_file, e, scored=False)

        # Planned for every non-compliant file so audit-only runs still recommend fixes
        plan = self.planner.plan(result) if result.verdict != Verdict.COMPLIANT else None
        self.event_bus.publish(FileScored(file=video_file, result=result, plan=plan))
        self.logger.info(
            f"SCORED: {video_file.path.name} category={result.category.value} "
            f"score={result.score} verdict={result.verdict.value}"
        )
        if plan is None or not self.config.general.remediate:
            return FileOutcome(file=video_file, status=FileStatus.SCORED, result=result, plan=plan)

        if plan.is_noop:
            self.logger.info(f"PLAN_NOOP: {video_file.path.name} (nothing the encoder can fix)")
            return FileOutcome(file=video_file, status=FileStatus.SCORED, result=result, plan=plan)

        # analysis stands even when remediation fails
        try:
            try:
                output_path = output_path_for(local_path, self.config.general.output_subdir, plan)
            except ValueError as e:
                raise EncodeError(str(e), local_path) from e
            self._claim_output(local_path, output_path)
            self.event_bus.publish(RemediationStarted(file=video_file, plan=plan, output_path=output_path))
            produced = self._encode(local_path, plan, output_path)
            remote_handle = deliver(produced, plan) if deliver else None
        except VccError as e:
            return self._failed(video_file, e, scored=True, result=result, plan=plan)
        except OSError as e:
            error = EncodeError(f"{type(e).__name__}: {e}", local_path)
            return self._failed(video_file, error, scored=True, result=result, plan=plan)

        self.event_bus.publish(FileRemediated(file=video_file, output_path=produced, remote_handle=remote_handle))
        return FileOutcome(
            file=video_file,
            status=FileStatus.REMEDIATED,
            result=result,
            plan=plan,
            output_path=produced,
            remote_handle=remote_handle,
        )

    def _run_one(self, worker: Callable[[VideoFile], Optional[FileOutcome]], video_file: VideoFile) -> None:
        filename = video_file.path.name
        start_time = time.monotonic() if self.config.general.debug else None
        if self.config.general.debug:
            self.logger.debug(f"PROCESS_START: {filename} (thread {threading.get_ident()})")

        if self._shutdown_event.is_set():
            self.logger.debug(f"PROCESS_SKIP: {filename} (shutdown)")
            return

        self.event_bus.publish(FileStarted(file=video_file))
        try:
            outcome = worker(video_file)
        except Exception as e:
            # A bug in one file's handling must not take the batch down
            self.logger.exception(f"Unexpected failure processing {video_file.path}")
            outcome = self._failed(video_file, VccError(f"{type(e).__name__}: {e}", video_file.path), scored=False)
        if outcome is not None:
            self.summary.add(outcome)

        if start_time is not None:
            elapsed = time.monotonic() - start_time
            self.logger.debug(f"PROCESS_END: {filename} elapsed={elapsed:.2f}s")

    # ---- dispatch ------------------------------------------------------------

    def _dispatch(self, files: List[VideoFile], worker: Callable[[VideoFile], Optional[FileOutcome]]) -> bool:
        """Runs worker over files with submit-on-demand. Returns True if the run was interrupted."""
        pending = deque(files)
        in_flight = {}  # future -> VideoFile
        threads = self.config.general.threads

        with concurrent.futures.ThreadPoolExecutor(max_workers=threads) as executor:
            def submit_batch():
                """Submit files up to max_inflight limit"""
                max_inflight = self.config.general.prefetch_factor * threads
                while len(in_flight) < max_inflight and pending and not self._shutdown_requested:
                    vf = pending.popleft()
                    future = executor.submit(self._run_one, worker, vf)
                    in_flight[future] = vf

            try:
                submit_batch()

                while in_flight:
                    done, _ = concurrent.futures.wait(
                        set(in_flight.keys()),
                        timeout=1.0,
                        return_when=concurrent.futures.FIRST_COMPLETED
                    )
                    for future in done:
                        future.result()
                        del in_flight[future]

                    submit_batch()

                    if self._shutdown_requested and not in_flight:
                        self.logger.info("Shutdown requested, exiting processing loop")
                        break

            except KeyboardInterrupt:
                self.logger.info("Ctrl+C detected - stopping new tasks and interrupting active encodes...")
                self.event_bus.publish(InterruptRequested())
                self.request_shutdown()

                # Cancel all pending futures (not yet started)
                for future in list(in_flight.keys()):
                    if not future.done():
                        future.cancel()

                # Wait for running tasks to see shutdown_event (max 10 seconds)
                self.logger.info("Waiting for active ffmpeg processes to terminate (max 10s)...")
                deadline = time.monotonic() + 10.0
                while True:
                    running = [future for future in in_flight if not future.done()]
                    if not running:
                        break
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    concurrent.futures.wait(
                        running,
                        timeout=min(0.2, remaining),
                        return_when=concurrent.futures.FIRST_COMPLETED
                    )

                executor.shutdown(wait=False, cancel_futures=True)
                self.logger.info("Shutdown complete")

        return self._shutdown_requested

    def _finish(self, interrupted: bool) -> ProcessingSummary:
        summary = self.summary.snapshot(interrupted=interrupted)
        self.logger.info(
            f"Processing finished: scored={summary.files_scored} unscored={summary.files_unscored} "
            f"remediated={summary.files_remediated} mean_score={summary.mean_score} interrupted={interrupted}"
        )
        self.event_bus.publish(ProcessingFinished(summary=summary))
        return summary

    # ---- local ---------------------------------------------------------------

    def _discover(self, input_dirs: List[Path]) -> List[VideoFile]:
        files: List[VideoFile] = []
        seen = set()
        for input_dir in input_dirs:
            self.event_bus.publish(DiscoveryStarted(directory=input_dir))
            for vf in self.file_scanner.scan(input_dir):
                key = vf.path.resolve()
                if key in seen:
                    continue
                seen.add(key)
                self._sources.add(key)
                files.append(vf.model_copy(update={"index": len(files)}))
        return files

    def _process_local(self, video_file: VideoFile) -> FileOutcome:
        return self._evaluate(video_file, video_file.path)

    def run(self, input_dirs: Union[Path, List[Path]]) -> ProcessingSummary:
        if not isinstance(input_dirs, (list, tuple)):
            input_dirs = [input_dirs]
        input_dirs = [Path(p) for p in input_dirs]

        self.logger.info(f"Discovery started: {len(input_dirs)} folders")
        files = self._discover(input_dirs)
        self.summary.discovered(len(files))
        self.logger.info(f"Discovery finished: to_process={len(files)}, ignored_small={self.file_scanner.ignored_small}")
        self.event_bus.publish(DiscoveryFinished(
            files_found=len(files) + self.file_scanner.ignored_small,
            files_to_process=len(files),
            ignored_small=self.file_scanner.ignored_small,
            source_folders_count=len(input_dirs),
        ))

        if not files:
            self.logger.info("No files to process")
            return self._finish(interrupted=False)

        interrupted = self._dispatch(files, self._process_local)
        return self._finish(interrupted)

    # ---- remote --------------------------------------------------------------

    def run_remote(self, source: RemoteSource, staging_dir: Path, source_label: str = "remote") -> ProcessingSummary:
        """Audits a RemoteSource: fetch into staging_dir, score, remediate, store back."""
        staging_dir = Path(staging_dir)
        self.event_bus.publish(DiscoveryStarted(directory=Path(source_label)))
        try:
            remote_files = source.list()
        except VccError as e:
            self.logger.error(f"Remote listing failed: {e.message}")
            self.summary.record_error(FileError(
                index=0, path=source_label, stage="discover",
                error_type=type(e).__name__, message=e.message, scored=False,
            ))
            return self._finish(interrupted=False)

        files = [
            VideoFile(path=Path(rf.handle), size_bytes=rf.size_bytes, index=i)
            for i, rf in enumerate(remote_files)
        ]
        # Staged copies mirror the remote layout, so sibling checks work on staging paths
        self._sources.update((staging_dir / vf.path).resolve() for vf in files)
        self.summary.discovered(len(files))
        self.event_bus.publish(DiscoveryFinished(files_found=len(files), files_to_process=len(files)))
        if not files:
            return self._finish(interrupted=False)

        def worker(video_file: VideoFile) -> FileOutcome:
            return self._process_remote(source, video_file, staging_dir)

        interrupted = self._dispatch(files, worker)
        return self._finish(interrupted)

    def _process_remote(self, source: RemoteSource, video_file: VideoFile, staging_dir: Path) -> FileOutcome:
        handle = video_file.path.as_posix()
        remote_file = RemoteFile(handle=handle, size_bytes=video_file.size_bytes)
        try:
            local_path = source.fetch(remote_file, staging_dir)
        except VccError as e:
            return self._failed(video_file, e, scored=False)

        def deliver(produced: Path, plan: EncodePlan) -> str:
            try:
                destination = remote_destination_for(handle, self.config.remote.upload_subdir, plan)
            except ValueError as e:
                raise UploadError(str(e), produced) from e
            try:
                return source.store(produced, destination)
            except OSError as e:
                raise UploadError(f"Cannot store {destination}: {e}", produced) from e

        try:
            return self._evaluate(video_file, local_path, deliver=deliver)
        finally:
            self._cleanup_staged(local_path)

    def _cleanup_staged(self, local_path: Path) -> None:
        """Removes the staged copy and its local remediation output; the remote original is never touched."""
        staged = [local_path]
        output_path = self._claimed_outputs.get(local_path.resolve())
        if output_path is not None:
            staged += [output_path, temp_path_for(output_path)]
        for path in staged:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                self.logger.warning(f"Cannot remove staged file {path}: {e}")
