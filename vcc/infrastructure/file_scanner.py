import logging
import os
from pathlib import Path
from typing import List, Generator
from vcc.domain.models import VideoFile

class FileScanner:
    """Recursively scans for media files, never entering remediation output folders."""

    def __init__(self, extensions: List[str], min_size_bytes: int = 0, output_subdir: str = "compliant"):
        self.extensions = [(ext if ext.startswith(".") else f".{ext}").lower() for ext in extensions]
        self.min_size_bytes = min_size_bytes
        self.output_subdir = output_subdir
        self.ignored_small = 0
        self.logger = logging.getLogger(__name__)

    def scan(self, root_dir: Path) -> Generator[VideoFile, None, None]:
        """Scans the directory and yields VideoFile objects in a deterministic order."""
        for root, dirs, files in os.walk(str(root_dir)):
            root_path = Path(root)

            # Outputs of earlier runs are never re-audited as sources
            dirs[:] = sorted(d for d in dirs if d != self.output_subdir)
            files.sort()

            for file_name in files:
                file_path = root_path / file_name

                if file_path.suffix.lower() not in self.extensions:
                    continue

                try:
                    file_size = file_path.stat().st_size
                except OSError as e:
                    self.logger.warning(f"SCAN_SKIP: {file_path} ({e})")
                    continue
                if file_size < self.min_size_bytes:
                    self.ignored_small += 1
                    continue

                yield VideoFile(path=file_path, size_bytes=file_size)
