"""Standards catalog: the accepted values for every scored dimension.

A catalog is a frozen value. It is built once per run (from `default_catalog()`
or a YAML file via `vcc.config.loader.load_catalog`) and handed to the scorer,
classifier and planner as an argument, so every file in a batch is judged
against the same snapshot.
"""

from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from vcc.domain.models import ContentCategory, FrameRate, Resolution, ScoreWeights


class BitrateBand(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_kbps: int = Field(gt=0)
    max_kbps: int = Field(gt=0)

    @model_validator(mode="after")
    def validate_bounds(self):
        if self.min_kbps > self.max_kbps:
            raise ValueError(f"bitrate band floor {self.min_kbps} exceeds ceiling {self.max_kbps}")
        return self

    def contains(self, kbps: float) -> bool:
        return self.min_kbps <= kbps <= self.max_kbps

    @property
    def midpoint_kbps(self) -> int:
        return (self.min_kbps + self.max_kbps) // 2

    def __str__(self) -> str:
        return f"{self.min_kbps}-{self.max_kbps} kbps"


class AudioRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    required: bool = True
    codecs: Tuple[str, ...] = ("aac", "alac", "pcm_s16le", "pcm_s24le")
    lossy_codecs: Tuple[str, ...] = ("aac",)
    min_lossy_bitrate_kbps: int = Field(default=320, gt=0)
    sample_rates: Tuple[int, ...] = (44100, 48000)
    channels: Tuple[int, ...] = (2,)

    @field_validator("codecs", "lossy_codecs")
    @classmethod
    def lower_codecs(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(c.lower() for c in v)


class CategoryRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    preferred_resolutions: Tuple[Resolution, ...]
    acceptable_resolutions: Tuple[Resolution, ...] = ()
    frame_rates: Tuple[FrameRate, ...]
    bitrate: BitrateBand
    audio: AudioRules = Field(default_factory=AudioRules)
    keyframe_max_interval_s: float = Field(default=2.0, gt=0)

    @field_validator("preferred_resolutions", "acceptable_resolutions", mode="before")
    @classmethod
    def parse_resolutions(cls, v: Any) -> Tuple[Resolution, ...]:
        return tuple(Resolution.parse(item) for item in (v or ()))

    @field_validator("frame_rates", mode="before")
    @classmethod
    def parse_frame_rates(cls, v: Any) -> Tuple[FrameRate, ...]:
        rates = []
        for item in v or ():
            rate = FrameRate.parse(item)
            if rate is None:
                raise ValueError(f"Invalid frame rate: {item!r}")
            rates.append(rate)
        return tuple(rates)

    @field_validator("preferred_resolutions", "frame_rates")
    @classmethod
    def not_empty(cls, v: Tuple[Any, ...]) -> Tuple[Any, ...]:
        if not v:
            raise ValueError("must list at least one value")
        return v

    @property
    def all_resolutions(self) -> List[Resolution]:
        return list(self.preferred_resolutions) + [
            r for r in self.acceptable_resolutions if r not in self.preferred_resolutions
        ]

    def accepts_frame_rate(self, rate: FrameRate) -> bool:
        return any(rate.matches(allowed) for allowed in self.frame_rates)


class HdrRules(BaseModel):
    """Category-independent HDR markers; any hit is rejected."""

    model_config = ConfigDict(frozen=True)

    max_bit_depth: int = 8
    color_markers: Tuple[str, ...] = ("bt2020", "rec2020", "dci-p3", "smpte431", "smpte432", "p3")
    codecs: Tuple[str, ...] = ("hevc", "h265")
    transfers: Tuple[str, ...] = ("smpte2084", "arib-std-b67")
    reject_metadata: bool = True


class AudioTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    codec: str
    bitrate_kbps: Optional[int] = None
    sample_rate: int = 48000
    bit_depth: Optional[int] = None
    channels: int = 2


class DeliveryRules(BaseModel):
    """Container and codec acceptance shared by every category."""

    model_config = ConfigDict(frozen=True)

    containers: Tuple[str, ...] = ("mp4", "mov")
    video_codecs: Tuple[str, ...] = ("h264",)
    video_profiles: Tuple[str, ...] = ("main", "high")
    canonical_codec: str = "h264"
    canonical_profile: str = "high"
    canonical_container: str = "mp4"
    canonical_pixel_format: str = "yuv420p"
    color_space: str = "bt709"
    primary_audio: AudioTarget = Field(
        default_factory=lambda: AudioTarget(codec="aac", bitrate_kbps=320, sample_rate=48000, channels=2)
    )
    secondary_audio: AudioTarget = Field(
        default_factory=lambda: AudioTarget(codec="alac", sample_rate=48000, bit_depth=24, channels=2)
    )

    @model_validator(mode="after")
    def canonical_values_accepted(self):
        if self.canonical_codec not in self.video_codecs:
            raise ValueError(f"canonical codec {self.canonical_codec} is not in video_codecs")
        if self.canonical_container not in self.containers:
            raise ValueError(f"canonical container {self.canonical_container} is not in containers")
        if self.canonical_profile not in self.video_profiles:
            raise ValueError(f"canonical profile {self.canonical_profile} is not in video_profiles")
        return self


class StandardsCatalog(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "default"
    version: str = "1"
    categories: Dict[ContentCategory, CategoryRules]
    hdr: HdrRules = Field(default_factory=HdrRules)
    delivery: DeliveryRules = Field(default_factory=DeliveryRules)
    weights: ScoreWeights = Field(default_factory=ScoreWeights)

    @model_validator(mode="after")
    def all_categories_present(self):
        missing = [c.value for c in ContentCategory if c not in self.categories]
        if missing:
            raise ValueError(f"catalog is missing rules for: {', '.join(missing)}")
        return self

    def rules_for(self, category: ContentCategory) -> CategoryRules:
        return self.categories[category]


LIVE_ACTION_RATES = ["24000/1001", "24", "25", "30000/1001", "30"]


def default_catalog() -> StandardsCatalog:
    """The built-in delivery standard: H.264 High in MP4/MOV, Rec.709 SDR, AAC 320k stereo."""
    no_audio_required = AudioRules(required=False)
    return StandardsCatalog(
        name="default",
        version="1",
        categories={
            ContentCategory.LIVE_ACTION: CategoryRules(
                preferred_resolutions=["1920x1080", "1280x720"],
                acceptable_resolutions=["1600x900", "1440x810", "1360x768"],
                frame_rates=LIVE_ACTION_RATES,
                bitrate=BitrateBand(min_kbps=8000, max_kbps=15000),
            ),
            ContentCategory.SCREEN_CAPTURE: CategoryRules(
                preferred_resolutions=["1280x720", "1920x1080"],
                acceptable_resolutions=["1280x800", "1440x900", "1680x1050", "1360x768", "1600x900"],
                frame_rates=["15", "24", "25", "30000/1001", "30"],
                bitrate=BitrateBand(min_kbps=6000, max_kbps=8000),
                audio=no_audio_required,
            ),
            ContentCategory.MIXED_MEDIA: CategoryRules(
                preferred_resolutions=["1920x1080", "1280x720"],
                acceptable_resolutions=[
                    "1600x900", "1440x810", "1360x768", "1280x800", "1440x900", "1680x1050",
                ],
                frame_rates=["15"] + LIVE_ACTION_RATES,
                bitrate=BitrateBand(min_kbps=6000, max_kbps=15000),
            ),
            ContentCategory.VERTICAL: CategoryRules(
                preferred_resolutions=["1080x1920", "720x1280"],
                acceptable_resolutions=["2160x3840"],
                frame_rates=LIVE_ACTION_RATES,
                bitrate=BitrateBand(min_kbps=6000, max_kbps=15000),
            ),
            # Most permissive: union of everything above plus high frame rates
            ContentCategory.UNKNOWN: CategoryRules(
                preferred_resolutions=["1920x1080", "1280x720", "1080x1920", "720x1280"],
                acceptable_resolutions=[
                    "1600x900", "1440x810", "1360x768", "1280x800", "1440x900", "1680x1050", "2160x3840",
                ],
                frame_rates=["15"] + LIVE_ACTION_RATES + ["50", "60000/1001", "60"],
                bitrate=BitrateBand(min_kbps=6000, max_kbps=15000),
                audio=no_audio_required,
            ),
        },
    )
