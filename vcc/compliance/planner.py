"""Remediation planning: ComplianceResult -> EncodePlan.

Each dimension is planned independently from the violations and the
profile. The planner keeps no state between calls, so planning the same
result twice gives an identical plan, and a result without violations
plans nothing.
"""

import logging
from typing import List, Optional

from vcc.compliance.catalog import AudioTarget, CategoryRules, StandardsCatalog
from vcc.domain.models import (
    BitrateTarget,
    ComplianceResult,
    Dimension,
    EncodePlan,
    EncoderCapabilities,
    FrameRate,
    Resolution,
)

logger = logging.getLogger(__name__)

AUDIO_DIMENSIONS = (Dimension.AUDIO_CODEC, Dimension.AUDIO_SAMPLE_RATE, Dimension.AUDIO_CHANNELS)
# Only PQ and HLG sources carry HDR light levels that need tone-mapping
TONEMAP_TRANSFERS = ("smpte2084", "arib-std-b67")


def nearest_preferred_resolution(source: Resolution, rules: CategoryRules) -> Optional[Resolution]:
    """Largest preferred resolution that fits inside the source. Never upscales."""
    candidates = [r for r in rules.preferred_resolutions if r.fits_within(source)]
    if not candidates:
        return None
    return max(candidates, key=lambda r: (r.area, r.width))


def nearest_frame_rate(source: FrameRate, rules: CategoryRules) -> FrameRate:
    """Closest accepted rate; on a tie the lower rate wins."""
    return min(rules.frame_rates, key=lambda r: (abs(r.fps - source.fps), r.fps))


class RemediationPlanner:
    def __init__(self, catalog: StandardsCatalog, capabilities: Optional[EncoderCapabilities] = None):
        self.catalog = catalog
        self.capabilities = capabilities or EncoderCapabilities()

    def audio_target(self) -> AudioTarget:
        delivery = self.catalog.delivery
        return delivery.primary_audio if self.capabilities.primary_audio_feasible else delivery.secondary_audio

    def plan(self, result: ComplianceResult) -> EncodePlan:
        profile = result.profile
        rules = self.catalog.rules_for(result.category)
        delivery = self.catalog.delivery
        violated = {v.dimension for v in result.violations}

        target_resolution = None
        if Dimension.RESOLUTION in violated:
            target_resolution = nearest_preferred_resolution(profile.resolution, rules)

        target_frame_rate = None
        if Dimension.FRAME_RATE in violated:
            target_frame_rate = nearest_frame_rate(profile.frame_rate, rules)

        hdr_to_sdr = Dimension.HDR in violated
        color_space_correction = profile.color_space != delivery.color_space

        reencode_video = any([
            target_resolution is not None,
            target_frame_rate is not None,
            hdr_to_sdr,
            color_space_correction,
            Dimension.CODEC in violated,
            Dimension.BITRATE in violated,
            Dimension.KEYFRAME_INTERVAL in violated,
            profile.video_codec != delivery.canonical_codec,
        ])

        video = {}
        if reencode_video:
            band = rules.bitrate
            video = dict(
                video_codec=delivery.canonical_codec,
                video_profile=delivery.canonical_profile,
                pixel_format=delivery.canonical_pixel_format,
                target_bitrate=BitrateTarget(
                    target_kbps=max(band.midpoint_kbps, band.min_kbps),
                    min_kbps=band.min_kbps,
                    max_kbps=band.max_kbps,
                ),
                keyframe_interval_s=rules.keyframe_max_interval_s,
            )

        audio = {}
        if profile.has_audio and violated.intersection(AUDIO_DIMENSIONS):
            target = self.audio_target()
            audio = dict(
                audio_codec=target.codec,
                audio_bitrate_kbps=target.bitrate_kbps,
                audio_sample_rate=target.sample_rate,
                audio_bit_depth=target.bit_depth,
                audio_channels=target.channels,
            )

        plan = EncodePlan(
            target_resolution=target_resolution,
            target_frame_rate=target_frame_rate,
            container=delivery.canonical_container if Dimension.CONTAINER in violated else None,
            color_space_correction=color_space_correction,
            hdr_to_sdr=hdr_to_sdr,
            source_transfer=profile.color_transfer if hdr_to_sdr else None,
            **video,
            **audio,
        )
        logger.debug(
            f"PLAN: {profile.source_name} video={plan.reencodes_video} audio={plan.reencodes_audio} "
            f"resolution={target_resolution} fps={target_frame_rate} hdr_to_sdr={hdr_to_sdr}"
        )
        return plan


def describe_plan(plan: EncodePlan) -> List[str]:
    """Recommended fixes in plain words, in the order the encoder applies them."""
    steps = []
    if plan.hdr_to_sdr:
        if plan.source_transfer in TONEMAP_TRANSFERS:
            steps.append(f"Tone-map HDR ({plan.source_transfer}) to SDR Rec. 709")
        else:
            steps.append("Convert to 8-bit SDR Rec. 709")
    elif plan.color_space_correction:
        steps.append("Convert color to Rec. 709")
    if plan.video_codec:
        detail = " ".join(p for p in (plan.video_profile, plan.pixel_format) if p)
        steps.append(f"Re-encode video as {plan.video_codec} {detail}".rstrip())
    if plan.target_resolution is not None:
        steps.append(f"Scale to {plan.target_resolution}")
    if plan.target_frame_rate is not None:
        steps.append(f"Convert frame rate to {plan.target_frame_rate} fps")
    if plan.target_bitrate is not None:
        rate = plan.target_bitrate
        steps.append(f"Target {rate.target_kbps} kbps video ({rate.min_kbps}-{rate.max_kbps} kbps)")
    if plan.keyframe_interval_s:
        steps.append(f"Force a keyframe every {plan.keyframe_interval_s:g}s")
    if plan.container:
        steps.append(f"Write into an {plan.container.upper()} container")
    if plan.audio_codec:
        parts = [plan.audio_codec]
        if plan.audio_bitrate_kbps:
            parts.append(f"{plan.audio_bitrate_kbps} kbps")
        if plan.audio_bit_depth:
            parts.append(f"{plan.audio_bit_depth}-bit")
        if plan.audio_sample_rate:
            parts.append(f"{plan.audio_sample_rate} Hz")
        if plan.audio_channels:
            parts.append(f"{plan.audio_channels} ch")
        steps.append(f"Re-encode audio as {' '.join(parts)}")
    return steps
