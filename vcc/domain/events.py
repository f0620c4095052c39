"""Domain events for the compliance pipeline.

Events flow through the EventBus so the orchestrator never talks to the
console directly. See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from pathlib import Path
from typing import Optional
from pydantic import BaseModel
from .models import ComplianceResult, EncodePlan, FileError, ProcessingSummary, VideoFile


class Event(BaseModel):
    """Base class for all domain events.

    Events are validated Pydantic models. They are not frozen by default.
    """

    pass


class FileEvent(Event):
    """Base class for events related to a single file."""

    file: VideoFile


class DiscoveryStarted(Event):
    """Emitted when file discovery begins for a directory or remote source."""

    directory: Path


class DiscoveryFinished(Event):
    """Emitted after discovery and filtering is complete."""

    files_found: int
    files_to_process: int = 0
    ignored_small: int = 0
    source_folders_count: int = 1


class FileStarted(FileEvent):
    pass


class FileScored(FileEvent):
    """Emitted once a file has a ComplianceResult."""

    result: ComplianceResult
    plan: Optional[EncodePlan] = None


class RemediationStarted(FileEvent):
    plan: EncodePlan
    output_path: Path


class FileRemediated(FileEvent):
    """Emitted when the encoder produced a verified output file."""

    output_path: Path
    remote_handle: Optional[str] = None


class FileFailed(FileEvent):
    """Emitted when any stage fails for a file; the batch continues."""

    error: FileError


class InterruptRequested(Event):
    """Emitted when the user interrupts the run (Ctrl+C)."""

    pass


class ProcessingFinished(Event):
    """Emitted when the batch ends, normally or after an interrupt."""

    summary: ProcessingSummary
