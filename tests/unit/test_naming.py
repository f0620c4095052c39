import pytest
from pathlib import Path
from vcc.domain.models import EncodePlan
from vcc.pipeline.naming import output_path_for, remote_destination_for


def test_output_goes_into_subfolder_with_same_name(tmp_path):
    source = tmp_path / "clip.mov"
    assert output_path_for(source, "compliant") == tmp_path / "compliant" / "clip.mov"


def test_extension_kept_when_container_unchanged(tmp_path):
    plan = EncodePlan(video_codec="h264")
    assert output_path_for(tmp_path / "clip.MOV", "compliant", plan).name == "clip.MOV"


def test_extension_follows_container_change(tmp_path):
    plan = EncodePlan(container="mp4")
    assert output_path_for(tmp_path / "clip.mkv", "compliant", plan) == tmp_path / "compliant" / "clip.mp4"


def test_output_never_equals_source(tmp_path):
    source = tmp_path / "compliant" / "clip.mp4"
    with pytest.raises(ValueError, match="overwrite the source"):
        output_path_for(source, ".")


def test_remote_destination():
    plan = EncodePlan(container="mp4")
    assert remote_destination_for("shows/ep1.mkv", "compliant", plan) == "shows/compliant/ep1.mp4"
    assert remote_destination_for("ep1.mov", "compliant") == "compliant/ep1.mov"
