import pytest
from pathlib import Path
from unittest.mock import patch
from vcc.infrastructure.housekeeping import HousekeepingService

def test_housekeeping_cleanup_tmp_in_output_dirs(tmp_path):
    out_dir = tmp_path / "compliant"
    out_dir.mkdir()
    (out_dir / "file1.mp4.tmp").write_text("data")
    (out_dir / "file2.mp4").write_text("data")
    nested = tmp_path / "day1" / "compliant"
    nested.mkdir(parents=True)
    (nested / "file3.mov.tmp").write_text("data")

    service = HousekeepingService()
    removed = service.cleanup_temp_files(tmp_path)

    assert removed == 2
    assert not (out_dir / "file1.mp4.tmp").exists()
    assert (out_dir / "file2.mp4").exists()
    assert not (nested / "file3.mov.tmp").exists()

def test_housekeeping_never_touches_source_folders(tmp_path):
    source_tmp = tmp_path / "recording.tmp"
    source_tmp.write_text("user data")

    service = HousekeepingService()
    assert service.cleanup_temp_files(tmp_path) == 0
    assert source_tmp.exists()

def test_housekeeping_custom_output_subdir(tmp_path):
    out_dir = tmp_path / "delivered"
    out_dir.mkdir()
    (out_dir / "a.mp4.tmp").write_text("data")
    (tmp_path / "compliant").mkdir()
    (tmp_path / "compliant" / "b.mp4.tmp").write_text("data")

    service = HousekeepingService(output_subdir="delivered")
    service.cleanup_temp_files(tmp_path)

    assert not (out_dir / "a.mp4.tmp").exists()
    assert (tmp_path / "compliant" / "b.mp4.tmp").exists()

def test_housekeeping_handles_oserror(tmp_path):
    out_dir = tmp_path / "compliant"
    out_dir.mkdir()
    f = out_dir / "protected.mp4.tmp"
    f.write_text("data")

    service = HousekeepingService()
    with patch.object(Path, 'unlink', side_effect=OSError("Permission denied")):
        # Should not raise exception
        assert service.cleanup_temp_files(tmp_path) == 0
    assert f.exists()
