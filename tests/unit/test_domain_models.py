import pytest
from fractions import Fraction
from pydantic import ValidationError
from vcc.domain.models import (
    ComplianceResult,
    ContentCategory,
    Dimension,
    EncodePlan,
    FrameRate,
    Resolution,
    ScoreWeights,
    Severity,
    Verdict,
    Violation,
)


def _violation(severity, dimension=Dimension.BITRATE):
    return Violation(dimension=dimension, severity=severity, observed="x", expected="y", explanation="z")


@pytest.mark.parametrize("value,expected", [
    ("30/1", (30, 1)),
    ("24000/1001", (24000, 1001)),
    ("60/2", (30, 1)),
    ("25", (25, 1)),
    (30, (30, 1)),
    (29.97, (30000, 1001)),
    ("23.976", (24000, 1001)),
    ("59.94", (60000, 1001)),
    ("12.5", (25, 2)),
])
def test_frame_rate_parse(value, expected):
    rate = FrameRate.parse(value)
    assert (rate.numerator, rate.denominator) == expected


@pytest.mark.parametrize("value", [None, "", "0/0", "30/0", "abc", "-5", 0])
def test_frame_rate_parse_rejects_unusable_values(value):
    assert FrameRate.parse(value) is None


def test_frame_rate_matches_within_tolerance():
    ntsc = FrameRate(numerator=30000, denominator=1001)
    assert ntsc.matches(FrameRate.parse("29.97"))
    assert not ntsc.matches(FrameRate(numerator=30))
    assert ntsc.as_fraction() == Fraction(30000, 1001)
    assert str(ntsc) == "29.97"
    assert str(FrameRate(numerator=25)) == "25"


def test_resolution_parse_and_properties():
    res = Resolution.parse("1920x1080")
    assert res == Resolution(width=1920, height=1080)
    assert Resolution.parse((1080, 1920)).is_portrait
    assert Resolution.parse({"width": 1280, "height": 720}).area == 921600
    assert Resolution.parse("1280x720").fits_within(res)
    assert not res.fits_within(Resolution.parse("1280x720"))
    assert str(res) == "1920x1080"


def test_resolution_parse_invalid():
    with pytest.raises(ValueError):
        Resolution.parse("1920")


@pytest.mark.parametrize("score,verdict", [
    (100, Verdict.COMPLIANT),
    (90, Verdict.COMPLIANT),
    (89, Verdict.MOSTLY_COMPLIANT),
    (70, Verdict.MOSTLY_COMPLIANT),
    (69, Verdict.PARTIALLY_COMPLIANT),
    (50, Verdict.PARTIALLY_COMPLIANT),
    (49, Verdict.NON_COMPLIANT),
    (0, Verdict.NON_COMPLIANT),
])
def test_verdict_boundaries(score, verdict):
    assert Verdict.from_score(score) == verdict


def test_score_is_derived_from_violations(make_profile):
    result = ComplianceResult(
        profile=make_profile(),
        category=ContentCategory.LIVE_ACTION,
        violations=[_violation(Severity.WARNING), _violation(Severity.INFO), _violation(Severity.CRITICAL)],
    )
    assert result.score == 100 - 25 - 10 - 3
    assert result.verdict == Verdict.PARTIALLY_COMPLIANT
    assert result.count(Severity.WARNING) == 1


def test_score_never_negative(make_profile):
    result = ComplianceResult(
        profile=make_profile(),
        category=ContentCategory.LIVE_ACTION,
        violations=[_violation(Severity.CRITICAL)] * 5,
    )
    assert result.score == 0
    assert result.verdict == Verdict.NON_COMPLIANT


def test_violations_ordered_critical_first_and_stable(make_profile):
    violations = [
        _violation(Severity.INFO, Dimension.AUDIO_CODEC),
        _violation(Severity.WARNING, Dimension.RESOLUTION),
        _violation(Severity.CRITICAL, Dimension.CODEC),
        _violation(Severity.WARNING, Dimension.BITRATE),
        _violation(Severity.CRITICAL, Dimension.CONTAINER),
    ]
    result = ComplianceResult(profile=make_profile(), category=ContentCategory.LIVE_ACTION, violations=violations)
    assert [v.dimension for v in result.violations] == [
        Dimension.CODEC, Dimension.CONTAINER, Dimension.RESOLUTION, Dimension.BITRATE, Dimension.AUDIO_CODEC,
    ]


def test_custom_weights(make_profile):
    weights = ScoreWeights(critical=50, warning=5, info=1)
    result = ComplianceResult(
        profile=make_profile(),
        category=ContentCategory.LIVE_ACTION,
        violations=[_violation(Severity.CRITICAL), _violation(Severity.WARNING)],
        weights=weights,
    )
    assert result.score == 45
    assert result.verdict == Verdict.NON_COMPLIANT


def test_result_serializes_score_and_verdict(make_profile):
    result = ComplianceResult(
        profile=make_profile(),
        category=ContentCategory.LIVE_ACTION,
        violations=[_violation(Severity.WARNING)],
    )
    data = result.model_dump(mode="json")
    assert data["score"] == 90
    assert data["verdict"] == "compliant"
    assert data["violations"][0]["dimension"] == "bitrate"


def test_profile_is_frozen(make_profile):
    profile = make_profile()
    with pytest.raises(ValidationError):
        profile.width = 1280


def test_profile_requires_positive_dimensions(make_profile):
    with pytest.raises(ValidationError):
        make_profile(width=0)
    with pytest.raises(ValidationError):
        make_profile(duration_s=0)


def test_encode_plan_flags():
    assert EncodePlan().is_noop
    assert EncodePlan(container="mp4").reencodes_video is False
    assert not EncodePlan(container="mp4").is_noop
    assert EncodePlan(color_space_correction=True).reencodes_video
    assert EncodePlan(audio_codec="aac").reencodes_audio
