"""Remote file sources.

The orchestrator only needs list/fetch/store; anything that implements the
RemoteSource protocol can be audited. MountedRemoteSource covers shares that
are already mounted on the local filesystem (NFS, SMB, rclone mount, ...).
"""

import logging
import shutil
from pathlib import Path, PurePosixPath
from typing import List, Protocol
from pydantic import BaseModel
from vcc.domain.errors import RemoteIOError, UploadError
from vcc.infrastructure.file_scanner import FileScanner


class RemoteFile(BaseModel):
    handle: str  # source-relative POSIX path
    size_bytes: int = 0

    @property
    def name(self) -> str:
        return PurePosixPath(self.handle).name


class RemoteSource(Protocol):
    def list(self) -> List[RemoteFile]: ...
    def fetch(self, remote_file: RemoteFile, staging_dir: Path) -> Path: ...
    def store(self, local_path: Path, destination: str) -> str: ...


class MountedRemoteSource:
    """RemoteSource backed by a directory tree. Never overwrites an existing file."""

    def __init__(self, root: Path, extensions: List[str], min_size_bytes: int = 0, output_subdir: str = "compliant"):
        self.root = Path(root)
        self.scanner = FileScanner(extensions=extensions, min_size_bytes=min_size_bytes, output_subdir=output_subdir)
        self.logger = logging.getLogger(__name__)

    def _resolve(self, handle: str) -> Path:
        path = (self.root / PurePosixPath(handle)).resolve()
        if self.root.resolve() not in path.parents:
            raise RemoteIOError(f"Handle escapes the remote root: {handle}")
        return path

    def list(self) -> List[RemoteFile]:
        if not self.root.is_dir():
            raise RemoteIOError(f"Remote root is not available: {self.root}")
        return [
            RemoteFile(handle=vf.path.relative_to(self.root).as_posix(), size_bytes=vf.size_bytes)
            for vf in self.scanner.scan(self.root)
        ]

    def fetch(self, remote_file: RemoteFile, staging_dir: Path) -> Path:
        source = self._resolve(remote_file.handle)
        target = Path(staging_dir) / PurePosixPath(remote_file.handle)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
        except OSError as e:
            raise RemoteIOError(f"Cannot fetch {remote_file.handle}: {e}") from e
        self.logger.debug(f"REMOTE_FETCH: {remote_file.handle} -> {target}")
        return target

    def store(self, local_path: Path, destination: str) -> str:
        try:
            target = self._resolve(destination)
        except RemoteIOError as e:
            raise UploadError(e.message, local_path) from e
        if target.exists():
            raise UploadError(f"Refusing to overwrite existing remote file {destination}", local_path)

        partial = target.with_name(f"{target.name}.tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(local_path, partial)
            partial.rename(target)
        except OSError as e:
            if partial.exists():
                partial.unlink()
            raise UploadError(f"Cannot store {destination}: {e}", local_path) from e
        self.logger.info(f"REMOTE_STORE: {local_path.name} -> {destination}")
        return destination
