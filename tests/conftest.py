import copy
import pytest
import yaml
from vcc.compliance.catalog import default_catalog
from vcc.config.models import AppConfig, GeneralConfig
from vcc.domain.models import FrameRate, MediaProfile
from vcc.infrastructure.event_bus import EventBus

# ============================================================================
# Profile Fixtures
# ============================================================================

COMPLIANT_PROFILE = dict(
    source_name="clip.mp4",
    container="mp4",
    video_codec="h264",
    video_profile="high",
    width=1920,
    height=1080,
    frame_rate=FrameRate(numerator=30),
    video_bitrate_kbps=10000.0,
    pixel_format="yuv420p",
    chroma_subsampling="4:2:0",
    color_space="bt709",
    color_primaries="bt709",
    color_transfer="bt709",
    bit_depth=8,
    duration_s=60.0,
    file_size_bytes=75_000_000,
    audio_codec="aac",
    audio_sample_rate=48000,
    audio_channels=2,
    audio_channel_layout="stereo",
    audio_bitrate_kbps=320.0,
)


@pytest.fixture
def catalog():
    """Returns the built-in standards catalog."""
    return default_catalog()


@pytest.fixture
def make_profile():
    """Factory for MediaProfile; defaults describe a fully compliant 1080p30 live-action file."""
    def _make(**overrides):
        fields = dict(COMPLIANT_PROFILE)
        fields.update(overrides)
        return MediaProfile(**fields)
    return _make


# ============================================================================
# ffprobe Output Fixtures
# ============================================================================

RAW_PROBE = {
    "streams": [
        {
            "index": 0,
            "codec_name": "h264",
            "codec_type": "video",
            "profile": "High",
            "codec_tag_string": "avc1",
            "width": 1920,
            "height": 1080,
            "pix_fmt": "yuv420p",
            "color_space": "bt709",
            "color_transfer": "bt709",
            "color_primaries": "bt709",
            "r_frame_rate": "30/1",
            "avg_frame_rate": "30/1",
            "bit_rate": "10000000",
            "bits_per_raw_sample": "8",
            "duration": "60.000000",
        },
        {
            "index": 1,
            "codec_name": "aac",
            "codec_type": "audio",
            "sample_rate": "48000",
            "channels": 2,
            "channel_layout": "stereo",
            "bit_rate": "320000",
        },
    ],
    "format": {
        "filename": "/media/clip.mp4",
        "format_name": "mov,mp4,m4a,3gp,3g2,mj2",
        "duration": "60.000000",
        "size": "77400000",
        "bit_rate": "10320000",
        "tags": {"major_brand": "isom"},
    },
}


@pytest.fixture
def raw_probe():
    """Returns a fresh copy of a compliant 1080p30 ffprobe JSON document."""
    return copy.deepcopy(RAW_PROBE)


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config():
    """Returns an AppConfig suitable for single-threaded pipeline tests."""
    return AppConfig(general=GeneralConfig(threads=1, log_path=None))


@pytest.fixture
def config_file(tmp_path):
    """Creates a YAML config file and returns its path."""
    conf_file = tmp_path / "vcc.yaml"
    content = {
        'general': {
            'threads': 2,
            'prefetch_factor': 2,
            'encode_jobs': 1,
            'remediate': True,
            'output_subdir': 'delivered',
            'extensions': ['mp4', 'MOV'],
            'min_size_bytes': 1024,
            'hardware_encoder': False,
            'debug': False,
        },
        'input_dirs': ['/data/incoming'],
        'remote': {
            'staging_dir': str(tmp_path / "staging"),
        },
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file


# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()


# ============================================================================
# File System Fixtures
# ============================================================================

@pytest.fixture
def test_input_dir(tmp_path):
    """Creates a test input directory."""
    input_dir = tmp_path / "input"
    input_dir.mkdir()
    return input_dir


@pytest.fixture
def dummy_video_files(test_input_dir):
    """Creates dummy video files in test input directory."""
    files = []

    for i in range(3):
        f = test_input_dir / f"video{i}.mp4"
        f.write_bytes(b"dummy video content " * 100)  # ~2KB
        files.append(f)

    subdir = test_input_dir / "subdir"
    subdir.mkdir()
    f = subdir / "subvideo.mov"
    f.write_bytes(b"dummy video content " * 100)
    files.append(f)

    return files


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
