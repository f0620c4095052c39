import pytest
from pathlib import Path
from unittest.mock import patch
from vcc.domain.errors import RemoteIOError, UploadError
from vcc.infrastructure.remote import MountedRemoteSource, RemoteFile


@pytest.fixture
def share(tmp_path):
    root = tmp_path / "share"
    (root / "shows").mkdir(parents=True)
    (root / "shows" / "ep1.mkv").write_bytes(b"episode one")
    (root / "intro.mp4").write_bytes(b"intro")
    (root / "notes.txt").write_text("skip")
    (root / "compliant").mkdir()
    (root / "compliant" / "old.mp4").write_bytes(b"already delivered")
    return root


@pytest.fixture
def source(share):
    return MountedRemoteSource(share, extensions=[".mp4", ".mkv"])


def test_list_returns_relative_handles(source):
    files = source.list()
    assert [f.handle for f in files] == ["intro.mp4", "shows/ep1.mkv"]
    assert files[1].size_bytes == len(b"episode one")
    assert files[1].name == "ep1.mkv"


def test_list_missing_root(tmp_path):
    with pytest.raises(RemoteIOError, match="not available"):
        MountedRemoteSource(tmp_path / "offline", extensions=[".mp4"]).list()


def test_fetch_copies_into_staging(source, share, tmp_path):
    staging = tmp_path / "staging"
    local = source.fetch(RemoteFile(handle="shows/ep1.mkv"), staging)

    assert local == staging / "shows" / "ep1.mkv"
    assert local.read_bytes() == b"episode one"
    assert (share / "shows" / "ep1.mkv").exists()


def test_fetch_rejects_escaping_handle(source, tmp_path):
    with pytest.raises(RemoteIOError, match="escapes"):
        source.fetch(RemoteFile(handle="../secret.mp4"), tmp_path / "staging")


def test_fetch_missing_file(source, tmp_path):
    with pytest.raises(RemoteIOError, match="Cannot fetch"):
        source.fetch(RemoteFile(handle="gone.mp4"), tmp_path / "staging")


def test_store_writes_new_file(source, share, tmp_path):
    produced = tmp_path / "ep1.mp4"
    produced.write_bytes(b"remediated")

    handle = source.store(produced, "shows/compliant/ep1.mp4")

    assert handle == "shows/compliant/ep1.mp4"
    assert (share / "shows" / "compliant" / "ep1.mp4").read_bytes() == b"remediated"
    assert not (share / "shows" / "compliant" / "ep1.mp4.tmp").exists()


def test_store_never_overwrites(source, share, tmp_path):
    produced = tmp_path / "intro.mp4"
    produced.write_bytes(b"remediated")

    with pytest.raises(UploadError, match="Refusing to overwrite"):
        source.store(produced, "intro.mp4")
    assert (share / "intro.mp4").read_bytes() == b"intro"


def test_store_rejects_escaping_destination(source, tmp_path):
    produced = tmp_path / "x.mp4"
    produced.write_bytes(b"x")
    with pytest.raises(UploadError) as exc_info:
        source.store(produced, "../outside.mp4")
    assert exc_info.value.stage == "upload"


def test_store_copy_failure_cleans_partial(source, share, tmp_path):
    produced = tmp_path / "ep1.mp4"
    produced.write_bytes(b"remediated")

    with patch("shutil.copy2", side_effect=OSError("disk full")):
        with pytest.raises(UploadError, match="disk full"):
            source.store(produced, "shows/compliant/ep1.mp4")
    assert not (share / "shows" / "compliant" / "ep1.mp4").exists()
