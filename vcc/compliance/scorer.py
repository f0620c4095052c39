"""Rule-based compliance scoring.

Each check compares one dimension of a MediaProfile with the catalog and
returns zero or more violations. Severity is fixed per dimension; the score
is derived from the violation list by ComplianceResult itself.
"""

import logging
from typing import List, Tuple

from vcc.compliance.catalog import CategoryRules, StandardsCatalog
from vcc.domain.models import (
    ComplianceResult,
    ContentCategory,
    Dimension,
    MediaProfile,
    Severity,
    Violation,
)

logger = logging.getLogger(__name__)

SEVERITY = {
    Dimension.CODEC: Severity.CRITICAL,
    Dimension.CONTAINER: Severity.CRITICAL,
    Dimension.HDR: Severity.CRITICAL,
    Dimension.RESOLUTION: Severity.WARNING,
    Dimension.FRAME_RATE: Severity.WARNING,
    Dimension.BITRATE: Severity.WARNING,
    Dimension.KEYFRAME_INTERVAL: Severity.WARNING,
    Dimension.COLOR_SPACE: Severity.WARNING,
    Dimension.AUDIO_SAMPLE_RATE: Severity.WARNING,
    Dimension.AUDIO_CHANNELS: Severity.WARNING,
    Dimension.AUDIO_CODEC: Severity.INFO,
}


def _violation(dimension: Dimension, observed, expected: str, explanation: str) -> Violation:
    return Violation(
        dimension=dimension,
        severity=SEVERITY[dimension],
        observed=None if observed is None else str(observed),
        expected=expected,
        explanation=explanation,
    )


def _missing(dimension: Dimension, expected: str, what: str) -> Violation:
    """A required value that could not be determined is always Critical."""
    return Violation(
        dimension=dimension,
        severity=Severity.CRITICAL,
        observed=None,
        expected=expected,
        explanation=f"{what} could not be determined",
    )


def is_hdr_color(value, catalog: StandardsCatalog) -> bool:
    if not value:
        return False
    text = str(value).lower()
    return any(marker in text for marker in catalog.hdr.color_markers)


def check_hdr(profile: MediaProfile, catalog: StandardsCatalog) -> List[Violation]:
    """One Critical violation per HDR marker, whatever the category."""
    rules = catalog.hdr
    expected = f"SDR, {rules.max_bit_depth}-bit, {catalog.delivery.color_space}"
    found = []
    if profile.bit_depth is not None and profile.bit_depth > rules.max_bit_depth:
        found.append(_violation(
            Dimension.HDR, f"{profile.bit_depth}-bit", expected,
            f"bit depth {profile.bit_depth} exceeds {rules.max_bit_depth}",
        ))
    hdr_colors = [c for c in (profile.color_space, profile.color_primaries) if is_hdr_color(c, catalog)]
    if hdr_colors:
        found.append(_violation(
            Dimension.HDR, hdr_colors[0], expected,
            f"wide-gamut color ({', '.join(dict.fromkeys(hdr_colors))}) is not deliverable",
        ))
    if profile.video_codec and profile.video_codec in rules.codecs:
        found.append(_violation(
            Dimension.HDR, profile.video_codec, expected,
            f"{profile.video_codec} is treated as an HDR delivery codec",
        ))
    if profile.color_transfer and profile.color_transfer in rules.transfers:
        found.append(_violation(
            Dimension.HDR, profile.color_transfer, expected,
            f"{profile.color_transfer} transfer function ({profile.hdr.dynamic_range}) is HDR",
        ))
    if rules.reject_metadata and profile.hdr.has_metadata:
        found.append(_violation(
            Dimension.HDR, profile.hdr.dynamic_range, expected,
            "HDR metadata is present in the video stream",
        ))
    return found


def check_container(profile: MediaProfile, catalog: StandardsCatalog) -> List[Violation]:
    containers = catalog.delivery.containers
    if profile.container in containers:
        return []
    return [_violation(
        Dimension.CONTAINER, profile.container or "unknown", ", ".join(containers),
        f"container {profile.container or 'unknown'} is not accepted",
    )]


def check_codec(profile: MediaProfile, catalog: StandardsCatalog) -> List[Violation]:
    delivery = catalog.delivery
    if profile.video_codec is None:
        return [_missing(Dimension.CODEC, ", ".join(delivery.video_codecs), "video codec")]
    if profile.video_codec not in delivery.video_codecs:
        return [_violation(
            Dimension.CODEC, profile.video_codec, ", ".join(delivery.video_codecs),
            f"video codec {profile.video_codec} is not accepted",
        )]
    if profile.video_profile and profile.video_profile not in delivery.video_profiles:
        return [_violation(
            Dimension.CODEC, f"{profile.video_codec} {profile.video_profile}",
            f"{profile.video_codec} {'/'.join(delivery.video_profiles)}",
            f"{profile.video_codec} profile {profile.video_profile} is not accepted",
        )]
    return []


def check_resolution(profile: MediaProfile, rules: CategoryRules) -> Tuple[List[Violation], List[str]]:
    resolution = profile.resolution
    if resolution in rules.preferred_resolutions:
        return [], []
    if resolution in rules.acceptable_resolutions:
        return [], [f"resolution {resolution} is acceptable but not preferred"]
    expected = ", ".join(str(r) for r in rules.all_resolutions)
    return [_violation(
        Dimension.RESOLUTION, resolution, expected, f"resolution {resolution} is not in the accepted set",
    )], []


def check_frame_rate(profile: MediaProfile, rules: CategoryRules) -> List[Violation]:
    if rules.accepts_frame_rate(profile.frame_rate):
        return []
    expected = ", ".join(str(r) for r in rules.frame_rates)
    return [_violation(
        Dimension.FRAME_RATE, f"{profile.frame_rate} fps", expected,
        f"frame rate {profile.frame_rate} fps is not accepted",
    )]


def check_bitrate(profile: MediaProfile, rules: CategoryRules) -> List[Violation]:
    band = rules.bitrate
    kbps = profile.video_bitrate_kbps
    if kbps is None:
        return [_missing(Dimension.BITRATE, str(band), "video bitrate")]
    if band.contains(kbps):
        return []
    direction = "below" if kbps < band.min_kbps else "above"
    return [_violation(
        Dimension.BITRATE, f"{kbps:.0f} kbps", str(band), f"video bitrate is {direction} the {band} band",
    )]


def check_keyframes(profile: MediaProfile, rules: CategoryRules) -> List[Violation]:
    interval = profile.keyframe_interval_s
    if interval is None or interval <= rules.keyframe_max_interval_s:
        return []
    return [_violation(
        Dimension.KEYFRAME_INTERVAL, f"{interval:g}s", f"<= {rules.keyframe_max_interval_s:g}s",
        f"keyframes are up to {interval:g}s apart",
    )]


def check_color_space(profile: MediaProfile, catalog: StandardsCatalog) -> List[Violation]:
    supported = catalog.delivery.color_space
    if profile.color_space == supported:
        return []
    # Wide-gamut spaces are already reported on the HDR dimension
    if is_hdr_color(profile.color_space, catalog):
        return []
    if profile.color_space is None:
        return [_violation(Dimension.COLOR_SPACE, None, supported, "color space is not tagged")]
    return [_violation(
        Dimension.COLOR_SPACE, profile.color_space, supported, f"color space {profile.color_space} is not {supported}",
    )]


def check_audio(profile: MediaProfile, rules: CategoryRules) -> List[Violation]:
    audio = rules.audio
    codecs = ", ".join(audio.codecs)
    if not profile.has_audio:
        if audio.required:
            return [_missing(Dimension.AUDIO_CODEC, codecs, "audio stream")]
        return [_violation(Dimension.AUDIO_CODEC, None, codecs, "no audio stream")]

    found = []
    if profile.audio_codec not in audio.codecs:
        found.append(_violation(
            Dimension.AUDIO_CODEC, profile.audio_codec, codecs, f"audio codec {profile.audio_codec} is not preferred",
        ))
    elif (profile.audio_codec in audio.lossy_codecs
          and profile.audio_bitrate_kbps is not None
          and profile.audio_bitrate_kbps < audio.min_lossy_bitrate_kbps):
        found.append(_violation(
            Dimension.AUDIO_CODEC, f"{profile.audio_codec} {profile.audio_bitrate_kbps:.0f} kbps",
            f">= {audio.min_lossy_bitrate_kbps} kbps",
            f"{profile.audio_codec} bitrate below the suggested {audio.min_lossy_bitrate_kbps} kbps",
        ))

    rates = ", ".join(str(r) for r in audio.sample_rates)
    if profile.audio_sample_rate is None:
        if audio.required:
            found.append(_missing(Dimension.AUDIO_SAMPLE_RATE, rates, "audio sample rate"))
    elif profile.audio_sample_rate not in audio.sample_rates:
        found.append(_violation(
            Dimension.AUDIO_SAMPLE_RATE, f"{profile.audio_sample_rate} Hz", rates,
            f"sample rate {profile.audio_sample_rate} Hz is not accepted",
        ))

    channels = ", ".join(str(c) for c in audio.channels)
    if profile.audio_channels is None:
        if audio.required:
            found.append(_missing(Dimension.AUDIO_CHANNELS, channels, "audio channel count"))
    elif profile.audio_channels not in audio.channels:
        found.append(_violation(
            Dimension.AUDIO_CHANNELS, profile.audio_channels, channels,
            f"{profile.audio_channels} audio channels, expected {channels}",
        ))
    return found


def score(profile: MediaProfile, category: ContentCategory, catalog: StandardsCatalog) -> ComplianceResult:
    """Scores one profile against the category's rules in the given catalog."""
    rules = catalog.rules_for(category)
    notes = []
    if category == ContentCategory.UNKNOWN:
        notes.append("content category could not be determined; scored against the most permissive rules")

    violations = check_hdr(profile, catalog)
    violations += check_container(profile, catalog)
    violations += check_codec(profile, catalog)
    resolution_violations, resolution_notes = check_resolution(profile, rules)
    violations += resolution_violations
    notes += resolution_notes
    violations += check_frame_rate(profile, rules)
    violations += check_bitrate(profile, rules)
    violations += check_keyframes(profile, rules)
    violations += check_color_space(profile, catalog)
    violations += check_audio(profile, rules)

    result = ComplianceResult(
        profile=profile,
        category=category,
        violations=violations,
        weights=catalog.weights,
        notes=notes,
    )
    logger.debug(
        f"SCORE: {profile.source_name} category={category.value} score={result.score} "
        f"verdict={result.verdict.value} violations={len(result.violations)}"
    )
    return result
