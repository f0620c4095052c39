from datetime import datetime
from enum import Enum
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

# Two frame rates closer than this (in fps) are the same rate.
FPS_TOLERANCE = 0.01


class ContentCategory(str, Enum):
    SCREEN_CAPTURE = "screen_capture"
    LIVE_ACTION = "live_action"
    MIXED_MEDIA = "mixed_media"
    VERTICAL = "vertical"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}


class Dimension(str, Enum):
    CODEC = "codec"
    CONTAINER = "container"
    RESOLUTION = "resolution"
    FRAME_RATE = "frameRate"
    BITRATE = "bitrate"
    AUDIO_CODEC = "audioCodec"
    AUDIO_SAMPLE_RATE = "audioSampleRate"
    AUDIO_CHANNELS = "audioChannels"
    COLOR_SPACE = "colorSpace"
    HDR = "hdr"
    KEYFRAME_INTERVAL = "keyframeInterval"


class Verdict(str, Enum):
    COMPLIANT = "compliant"
    MOSTLY_COMPLIANT = "mostly_compliant"
    PARTIALLY_COMPLIANT = "partially_compliant"
    NON_COMPLIANT = "non_compliant"

    @classmethod
    def from_score(cls, score: int) -> "Verdict":
        if score >= 90:
            return cls.COMPLIANT
        if score >= 70:
            return cls.MOSTLY_COMPLIANT
        if score >= 50:
            return cls.PARTIALLY_COMPLIANT
        return cls.NON_COMPLIANT


class FileStatus(str, Enum):
    SCORED = "SCORED"
    REMEDIATED = "REMEDIATED"
    FAILED = "FAILED"
    INTERRUPTED = "INTERRUPTED"  # Ctrl+C during processing


def _format_fps(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")


class FrameRate(BaseModel):
    """Rational frame rate; 24000/1001 stays exact instead of 23.976."""

    model_config = ConfigDict(frozen=True)

    numerator: int = Field(gt=0)
    denominator: int = Field(default=1, gt=0)

    @classmethod
    def parse(cls, value: Any) -> Optional["FrameRate"]:
        """Parses '24000/1001', '30', 29.97 or a FrameRate. Returns None for 0/0 and junk."""
        if value is None:
            return None
        if isinstance(value, FrameRate):
            return value
        if isinstance(value, dict):
            return cls(**value)
        text = str(value).strip()
        if not text:
            return None
        try:
            if "/" in text:
                num_text, den_text = text.split("/", 1)
                num, den = int(float(num_text)), int(float(den_text))
                if num <= 0 or den <= 0:
                    return None
                fraction = Fraction(num, den)
                return cls(numerator=fraction.numerator, denominator=fraction.denominator)
            fps = float(text)
        except (TypeError, ValueError):
            return None
        if fps <= 0:
            return None
        if abs(fps - round(fps)) < 1e-6:
            return cls(numerator=int(round(fps)), denominator=1)
        # NTSC rates (23.976, 29.97, 59.94) are n*1000/1001
        ntsc = fps * 1001 / 1000
        if abs(ntsc - round(ntsc)) < FPS_TOLERANCE:
            return cls(numerator=int(round(ntsc)) * 1000, denominator=1001)
        fraction = Fraction(text).limit_denominator(1001)
        return cls(numerator=fraction.numerator, denominator=fraction.denominator)

    @property
    def fps(self) -> float:
        return self.numerator / self.denominator

    def as_fraction(self) -> Fraction:
        return Fraction(self.numerator, self.denominator)

    def matches(self, other: "FrameRate") -> bool:
        return abs(self.fps - other.fps) < FPS_TOLERANCE

    def __str__(self) -> str:
        return _format_fps(self.fps)


class Resolution(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: int = Field(gt=0)
    height: int = Field(gt=0)

    @classmethod
    def parse(cls, value: Any) -> "Resolution":
        if isinstance(value, Resolution):
            return value
        if isinstance(value, dict):
            return cls(**value)
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return cls(width=int(value[0]), height=int(value[1]))
        text = str(value).strip().lower()
        if "x" not in text:
            raise ValueError(f"Invalid resolution '{value}'. Expected WIDTHxHEIGHT.")
        width, height = text.split("x", 1)
        return cls(width=int(width), height=int(height))

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def is_portrait(self) -> bool:
        return self.height > self.width

    def fits_within(self, other: "Resolution") -> bool:
        return self.width <= other.width and self.height <= other.height

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class HdrInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    dynamic_range: str = "sdr"  # sdr, hdr10, hdr10+, hlg, dolby_vision
    transfer_function: Optional[str] = None
    has_metadata: bool = False


class MediaProfile(BaseModel):
    """Canonical, probe-independent description of one media file."""

    model_config = ConfigDict(frozen=True)

    source_name: Optional[str] = None
    container: Optional[str] = None
    video_codec: Optional[str] = None
    video_profile: Optional[str] = None
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    frame_rate: FrameRate
    video_bitrate_kbps: Optional[float] = None
    pixel_format: Optional[str] = None
    chroma_subsampling: Optional[str] = None
    color_space: Optional[str] = None
    color_primaries: Optional[str] = None
    color_transfer: Optional[str] = None
    bit_depth: Optional[int] = None
    hdr: HdrInfo = Field(default_factory=HdrInfo)
    duration_s: float = Field(gt=0)
    file_size_bytes: Optional[int] = None
    audio_codec: Optional[str] = None
    audio_sample_rate: Optional[int] = None
    audio_bit_depth: Optional[int] = None
    audio_channels: Optional[int] = None
    audio_channel_layout: Optional[str] = None
    audio_bitrate_kbps: Optional[float] = None
    keyframe_interval_s: Optional[float] = None

    @property
    def resolution(self) -> Resolution:
        return Resolution(width=self.width, height=self.height)

    @property
    def has_audio(self) -> bool:
        return self.audio_codec is not None


class Violation(BaseModel):
    model_config = ConfigDict(frozen=True)

    dimension: Dimension
    severity: Severity
    observed: Optional[str] = None
    expected: str
    explanation: str


class ScoreWeights(BaseModel):
    """Points subtracted from 100 per violation of each severity."""

    model_config = ConfigDict(frozen=True)

    critical: int = Field(default=25, ge=0, le=100)
    warning: int = Field(default=10, ge=0, le=100)
    info: int = Field(default=3, ge=0, le=100)

    def penalty(self, severity: Severity) -> int:
        return getattr(self, severity.name.lower())


class ComplianceResult(BaseModel):
    """Violations for one file; score and verdict are always derived from them."""

    model_config = ConfigDict(frozen=True)

    profile: MediaProfile
    category: ContentCategory
    violations: List[Violation] = Field(default_factory=list)
    weights: ScoreWeights = Field(default_factory=ScoreWeights)
    notes: List[str] = Field(default_factory=list)

    @field_validator("violations")
    @classmethod
    def order_critical_first(cls, v: List[Violation]) -> List[Violation]:
        # sorted() is stable, so same-severity violations keep check order
        return sorted(v, key=lambda violation: violation.severity.rank)

    @computed_field
    @property
    def score(self) -> int:
        penalty = sum(self.weights.penalty(v.severity) for v in self.violations)
        return max(0, 100 - penalty)

    @computed_field
    @property
    def verdict(self) -> Verdict:
        return Verdict.from_score(self.score)

    def violations_for(self, dimension: Dimension) -> List[Violation]:
        return [v for v in self.violations if v.dimension == dimension]

    def has_violation(self, dimension: Dimension) -> bool:
        return any(v.dimension == dimension for v in self.violations)

    def count(self, severity: Severity) -> int:
        return sum(1 for v in self.violations if v.severity == severity)


class BitrateTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_kbps: int = Field(gt=0)
    min_kbps: int = Field(gt=0)
    max_kbps: int = Field(gt=0)


class EncodePlan(BaseModel):
    """Target parameters for remediation. None means keep the source value."""

    model_config = ConfigDict(frozen=True)

    target_resolution: Optional[Resolution] = None
    target_frame_rate: Optional[FrameRate] = None
    video_codec: Optional[str] = None
    video_profile: Optional[str] = None
    pixel_format: Optional[str] = None
    target_bitrate: Optional[BitrateTarget] = None
    keyframe_interval_s: Optional[float] = None
    container: Optional[str] = None
    audio_codec: Optional[str] = None
    audio_bitrate_kbps: Optional[int] = None
    audio_sample_rate: Optional[int] = None
    audio_bit_depth: Optional[int] = None
    audio_channels: Optional[int] = None
    color_space_correction: bool = False
    hdr_to_sdr: bool = False
    source_transfer: Optional[str] = None  # only set with hdr_to_sdr

    @property
    def reencodes_video(self) -> bool:
        return any([
            self.target_resolution is not None,
            self.target_frame_rate is not None,
            self.video_codec is not None,
            self.video_profile is not None,
            self.pixel_format is not None,
            self.target_bitrate is not None,
            self.keyframe_interval_s is not None,
            self.color_space_correction,
            self.hdr_to_sdr,
        ])

    @property
    def reencodes_audio(self) -> bool:
        return self.audio_codec is not None

    @property
    def is_noop(self) -> bool:
        return not (self.reencodes_video or self.reencodes_audio or self.container is not None)


class EncoderCapabilities(BaseModel):
    """What this run's encoder can do; supplied by the caller, not derived from files."""

    primary_audio_feasible: bool = True


class VideoFile(BaseModel):
    path: Path
    size_bytes: int
    index: int = 0  # discovery order within the batch


class FileError(BaseModel):
    index: int = 0
    path: str
    stage: str
    error_type: str
    message: str
    scored: bool = False  # analysis result was still produced


class FileOutcome(BaseModel):
    """Everything the summary accumulator needs from one processed file."""

    file: VideoFile
    status: FileStatus
    result: Optional[ComplianceResult] = None
    plan: Optional[EncodePlan] = None
    output_path: Optional[Path] = None
    remote_handle: Optional[str] = None
    error: Optional[FileError] = None


class FlaggedFile(BaseModel):
    """A scored file whose verdict is not Compliant."""

    index: int
    path: str
    category: ContentCategory
    score: int
    verdict: Verdict
    critical: int = 0
    warning: int = 0
    info: int = 0
    output_path: Optional[str] = None
    recommendations: List[str] = Field(default_factory=list)


class ProcessingSummary(BaseModel):
    """Read-only snapshot of a batch; everything a report needs."""

    model_config = ConfigDict(frozen=True)

    catalog_name: str = ""
    catalog_version: str = ""
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    files_discovered: int = 0
    files_total: int = 0
    files_scored: int = 0
    files_unscored: int = 0
    files_remediated: int = 0
    verdict_counts: Dict[str, int] = Field(default_factory=dict)
    mean_score: Optional[float] = None
    lowest_score: Optional[int] = None
    video_codecs: Dict[str, int] = Field(default_factory=dict)
    audio_codecs: Dict[str, int] = Field(default_factory=dict)
    resolutions: Dict[str, int] = Field(default_factory=dict)
    categories: Dict[str, int] = Field(default_factory=dict)
    severity_counts: Dict[str, int] = Field(default_factory=dict)
    total_size_bytes: int = 0
    total_duration_s: float = 0.0
    flagged: List[FlaggedFile] = Field(default_factory=list)
    errors: List[FileError] = Field(default_factory=list)
    interrupted: bool = False

    @property
    def unscored_errors(self) -> List[FileError]:
        return [e for e in self.errors if not e.scored]

    @property
    def remediation_errors(self) -> List[FileError]:
        return [e for e in self.errors if e.scored]
