import threading
from collections import Counter
from datetime import datetime
from typing import List, Optional
from vcc.compliance.planner import describe_plan
from vcc.domain.models import (
    FileError,
    FileOutcome,
    FileStatus,
    FlaggedFile,
    ProcessingSummary,
    Severity,
    Verdict,
)


def _histogram(counter: Counter) -> dict:
    # Highest count first, then by name, independent of completion order
    return dict(sorted(counter.items(), key=lambda item: (-item[1], item[0])))


class SummaryAccumulator:
    """Mutex-guarded running totals for one batch.

    Workers call add() concurrently; snapshot() returns a frozen
    ProcessingSummary and can be taken at any time, including after an
    interrupt.
    """

    def __init__(self, catalog_name: str = "", catalog_version: str = ""):
        self._lock = threading.Lock()
        self.catalog_name = catalog_name
        self.catalog_version = catalog_version
        self.started_at = datetime.now()
        self._discovered = 0
        self._total = 0
        self._scored = 0
        self._remediated = 0
        self._score_sum = 0
        self._lowest: Optional[int] = None
        self._size = 0
        self._duration = 0.0
        self._verdicts: Counter = Counter()
        self._video_codecs: Counter = Counter()
        self._audio_codecs: Counter = Counter()
        self._resolutions: Counter = Counter()
        self._categories: Counter = Counter()
        self._severities: Counter = Counter()
        self._flagged: List[FlaggedFile] = []
        self._errors: List[FileError] = []

    def discovered(self, count: int) -> None:
        with self._lock:
            self._discovered += count

    def record_error(self, error: FileError) -> None:
        """Errors not tied to one processed file (e.g. a source that cannot be listed)."""
        with self._lock:
            self._errors.append(error)

    def add(self, outcome: FileOutcome) -> None:
        with self._lock:
            self._total += 1
            self._size += outcome.file.size_bytes
            if outcome.status == FileStatus.REMEDIATED:
                self._remediated += 1
            if outcome.error is not None:
                self._errors.append(outcome.error)

            result = outcome.result
            if result is None:
                return

            profile = result.profile
            self._scored += 1
            self._score_sum += result.score
            self._lowest = result.score if self._lowest is None else min(self._lowest, result.score)
            self._duration += profile.duration_s
            self._verdicts[result.verdict.value] += 1
            self._categories[result.category.value] += 1
            self._video_codecs[profile.video_codec or "unknown"] += 1
            self._audio_codecs[profile.audio_codec or "none"] += 1
            self._resolutions[str(profile.resolution)] += 1
            for violation in result.violations:
                self._severities[violation.severity.value] += 1

            if result.verdict != Verdict.COMPLIANT:
                self._flagged.append(FlaggedFile(
                    index=outcome.file.index,
                    path=str(outcome.file.path),
                    category=result.category,
                    score=result.score,
                    verdict=result.verdict,
                    critical=result.count(Severity.CRITICAL),
                    warning=result.count(Severity.WARNING),
                    info=result.count(Severity.INFO),
                    output_path=str(outcome.output_path) if outcome.output_path else None,
                    recommendations=describe_plan(outcome.plan) if outcome.plan else [],
                ))

    def snapshot(self, interrupted: bool = False) -> ProcessingSummary:
        with self._lock:
            unscored = sum(1 for e in self._errors if not e.scored)
            return ProcessingSummary(
                catalog_name=self.catalog_name,
                catalog_version=self.catalog_version,
                started_at=self.started_at,
                finished_at=datetime.now(),
                files_discovered=self._discovered,
                files_total=self._total,
                files_scored=self._scored,
                files_unscored=unscored,
                files_remediated=self._remediated,
                verdict_counts={v.value: self._verdicts.get(v.value, 0) for v in Verdict},
                mean_score=round(self._score_sum / self._scored, 2) if self._scored else None,
                lowest_score=self._lowest,
                video_codecs=_histogram(self._video_codecs),
                audio_codecs=_histogram(self._audio_codecs),
                resolutions=_histogram(self._resolutions),
                categories=_histogram(self._categories),
                severity_counts={s.value: self._severities.get(s.value, 0) for s in Severity},
                total_size_bytes=self._size,
                total_duration_s=round(self._duration, 3),
                flagged=sorted(self._flagged, key=lambda f: f.index),
                errors=sorted(self._errors, key=lambda e: e.index),
                interrupted=interrupted,
            )
