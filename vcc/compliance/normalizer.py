"""Raw ffprobe JSON -> MediaProfile.

Input is whatever `ffprobe -show_streams -show_format` printed (optionally
with `vcc_keyframe_times` attached by the probe adapter). Fields may be
strings or numbers and any of them may be missing.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from vcc.domain.errors import NormalizationError
from vcc.domain.models import FrameRate, HdrInfo, MediaProfile

logger = logging.getLogger(__name__)

COLOR_ALIASES = {
    "rec709": "bt709",
    "bt.709": "bt709",
    "rec.709": "bt709",
    "rec2020": "bt2020nc",
    "bt.2020": "bt2020nc",
}
UNTAGGED_COLOR = {"", "unknown", "reserved", "unspecified"}
CONTAINER_ALIASES = {"m4v": "mp4", "qt": "mov", "matroska": "mkv"}

DOVI_SIDE_DATA = "dovi configuration record"
HDR10_PLUS_SIDE_DATA = "smpte2094-40"
HDR_SIDE_DATA = ("mastering display", "content light level", DOVI_SIDE_DATA, HDR10_PLUS_SIDE_DATA)

_DEPTH_SUFFIX = re.compile(r"(\d{2})(le|be)$")


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    return int(number) if number > 0 else None


def _parse_duration_tag(value: Any) -> float:
    """Accepts seconds or HH:MM:SS.ff / MM:SS.ff (Matroska DURATION tags)."""
    if value is None:
        return 0.0
    text = str(value).strip()
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        pass
    if ":" in text:
        parts = text.split(":")
        if len(parts) in (2, 3):
            try:
                parts_f = [float(p) for p in parts]
            except ValueError:
                return 0.0
            if len(parts_f) == 2:
                minutes, seconds = parts_f
                return minutes * 60 + seconds
            hours, minutes, seconds = parts_f
            return hours * 3600 + minutes * 60 + seconds
    return 0.0


def _parse_time_base_duration(duration_ts: Any, time_base: Any) -> float:
    if duration_ts is None or time_base is None:
        return 0.0
    time_base_text = str(time_base)
    if "/" not in time_base_text:
        return 0.0
    num_text, den_text = time_base_text.split("/", 1)
    num = _to_float(num_text)
    den = _to_float(den_text)
    if den == 0:
        return 0.0
    ticks = _to_float(duration_ts)
    if ticks <= 0:
        return 0.0
    return ticks * (num / den)


def _tag(tags: Optional[Dict[str, Any]], name: str) -> Any:
    tags = tags or {}
    return tags.get(name) or tags.get(name.lower())


def _first_stream(streams: List[Dict[str, Any]], codec_type: str) -> Optional[Dict[str, Any]]:
    return next((s for s in streams if s.get("codec_type") == codec_type), None)


def _duration(fmt: Dict[str, Any], video: Dict[str, Any]) -> float:
    # format.duration, format tags, stream.duration, stream tags, duration_ts/time_base, size/bitrate
    duration = _to_float(fmt.get("duration"))
    if duration <= 0:
        duration = _parse_duration_tag(_tag(fmt.get("tags"), "DURATION"))
    if duration <= 0:
        duration = _to_float(video.get("duration"))
    if duration <= 0:
        duration = _parse_duration_tag(_tag(video.get("tags"), "DURATION"))
    if duration <= 0:
        duration = _parse_time_base_duration(video.get("duration_ts"), video.get("time_base"))
    if duration <= 0:
        bit_rate = _to_float(fmt.get("bit_rate") or video.get("bit_rate"))
        size = _to_float(fmt.get("size"))
        if bit_rate > 0 and size > 0:
            duration = (size * 8) / bit_rate
    return duration


def _frame_rate(video: Dict[str, Any]) -> Optional[FrameRate]:
    # avg_frame_rate first; r_frame_rate is often the container timebase
    for key in ("avg_frame_rate", "r_frame_rate", "frame_rate"):
        rate = FrameRate.parse(video.get(key))
        if rate is not None and rate.fps <= 240:
            return rate
    return None


def _stream_bitrate_kbps(stream: Optional[Dict[str, Any]]) -> Optional[float]:
    if not stream:
        return None
    bps = _to_float(stream.get("bit_rate")) or _to_float(_tag(stream.get("tags"), "BPS"))
    return bps / 1000 if bps > 0 else None


def _video_bitrate_kbps(fmt: Dict[str, Any], video: Dict[str, Any], audio_kbps: Optional[float], duration: float) -> Optional[float]:
    stream_kbps = _stream_bitrate_kbps(video)
    if stream_kbps:
        return stream_kbps
    total_bps = _to_float(fmt.get("bit_rate"))
    if total_bps <= 0:
        size = _to_float(fmt.get("size"))
        if size > 0 and duration > 0:
            total_bps = size * 8 / duration
    if total_bps <= 0:
        return None
    kbps = total_bps / 1000 - (audio_kbps or 0.0)
    return kbps if kbps > 0 else None


def _container(fmt: Dict[str, Any], source_path: Optional[Path]) -> Optional[str]:
    if source_path is not None and source_path.suffix:
        ext = source_path.suffix.lower().lstrip(".")
        return CONTAINER_ALIASES.get(ext, ext)
    tokens = [t.strip().lower() for t in str(fmt.get("format_name") or "").split(",") if t.strip()]
    if not tokens:
        return None
    if "mov" in tokens and "mp4" in tokens:
        brand = str(_tag(fmt.get("tags"), "major_brand") or "").strip().lower()
        return "mov" if brand == "qt" else "mp4"
    return CONTAINER_ALIASES.get(tokens[0], tokens[0])


def normalize_color(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().lower()
    if text in UNTAGGED_COLOR:
        return None
    return COLOR_ALIASES.get(text, text)


def _bit_depth(video: Dict[str, Any], pix_fmt: Optional[str]) -> Optional[int]:
    depth = _to_int(video.get("bits_per_raw_sample"))
    if depth:
        return depth
    if not pix_fmt:
        return None
    match = _DEPTH_SUFFIX.search(pix_fmt)
    return int(match.group(1)) if match else 8


def _chroma_subsampling(pix_fmt: Optional[str]) -> Optional[str]:
    if not pix_fmt:
        return None
    if "420" in pix_fmt or pix_fmt in ("nv12", "nv21") or pix_fmt.startswith("p010"):
        return "4:2:0"
    if "422" in pix_fmt:
        return "4:2:2"
    if "444" in pix_fmt:
        return "4:4:4"
    return None


def _hdr_info(video: Dict[str, Any], transfer: Optional[str]) -> HdrInfo:
    side_types = [str(sd.get("side_data_type", "")).lower() for sd in video.get("side_data_list") or []]
    has_metadata = any(marker in t for t in side_types for marker in HDR_SIDE_DATA)
    codec_tag = str(video.get("codec_tag_string") or "").lower()

    if any(DOVI_SIDE_DATA in t for t in side_types) or codec_tag in ("dvh1", "dvhe", "dva1", "dvav"):
        dynamic_range = "dolby_vision"
    elif any(HDR10_PLUS_SIDE_DATA in t for t in side_types):
        dynamic_range = "hdr10+"
    elif transfer == "smpte2084":
        dynamic_range = "hdr10"
    elif transfer == "arib-std-b67":
        dynamic_range = "hlg"
    else:
        dynamic_range = "sdr"
    return HdrInfo(dynamic_range=dynamic_range, transfer_function=transfer, has_metadata=has_metadata)


def _keyframe_interval(raw: Dict[str, Any]) -> Optional[float]:
    times = sorted(t for t in (_to_float(v) for v in raw.get("vcc_keyframe_times") or []) if t >= 0)
    if len(times) < 2:
        return None
    return round(max(b - a for a, b in zip(times, times[1:])), 3)


def normalize(raw: Dict[str, Any], source_path: Optional[Path] = None) -> MediaProfile:
    """Builds a MediaProfile; raises NormalizationError if a required field is missing."""
    streams = raw.get("streams") or []
    fmt = raw.get("format") or {}
    if source_path is None and fmt.get("filename"):
        source_name = Path(str(fmt["filename"])).name
    else:
        source_name = source_path.name if source_path is not None else None

    video = _first_stream(streams, "video")
    if video is None:
        raise NormalizationError("No video stream found", source_path)
    audio = _first_stream(streams, "audio")

    width = _to_int(video.get("width"))
    height = _to_int(video.get("height"))
    frame_rate = _frame_rate(video)
    duration = _duration(fmt, video)

    missing = [
        name for name, value in (
            ("width", width), ("height", height), ("frame rate", frame_rate), ("duration", duration if duration > 0 else None),
        ) if value is None
    ]
    if missing:
        raise NormalizationError(f"Cannot determine {', '.join(missing)}", source_path)

    pix_fmt = (video.get("pix_fmt") or "").lower() or None
    transfer = normalize_color(video.get("color_transfer"))
    audio_kbps = _stream_bitrate_kbps(audio)
    profile_name = video.get("profile")

    profile = MediaProfile(
        source_name=source_name,
        container=_container(fmt, source_path),
        video_codec=(video.get("codec_name") or "").lower() or None,
        video_profile=str(profile_name).strip().lower() if profile_name else None,
        width=width,
        height=height,
        frame_rate=frame_rate,
        video_bitrate_kbps=_video_bitrate_kbps(fmt, video, audio_kbps, duration),
        pixel_format=pix_fmt,
        chroma_subsampling=_chroma_subsampling(pix_fmt),
        color_space=normalize_color(video.get("color_space")),
        color_primaries=normalize_color(video.get("color_primaries")),
        color_transfer=transfer,
        bit_depth=_bit_depth(video, pix_fmt),
        hdr=_hdr_info(video, transfer),
        duration_s=duration,
        file_size_bytes=_to_int(fmt.get("size")),
        audio_codec=(audio.get("codec_name") or "unknown").lower() if audio else None,
        audio_sample_rate=_to_int(audio.get("sample_rate")) if audio else None,
        audio_bit_depth=(_to_int(audio.get("bits_per_raw_sample")) or _to_int(audio.get("bits_per_sample"))) if audio else None,
        audio_channels=_to_int(audio.get("channels")) if audio else None,
        audio_channel_layout=audio.get("channel_layout") if audio else None,
        audio_bitrate_kbps=audio_kbps,
        keyframe_interval_s=_keyframe_interval(raw),
    )
    logger.debug(
        f"NORMALIZE: {source_name} {profile.width}x{profile.height}@{profile.frame_rate} "
        f"codec={profile.video_codec} kbps={profile.video_bitrate_kbps} audio={profile.audio_codec}"
    )
    return profile
