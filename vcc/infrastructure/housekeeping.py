import logging
import os
from pathlib import Path

class HousekeepingService:
    """Removes encoder leftovers from interrupted runs."""

    def __init__(self, output_subdir: str = "compliant"):
        self.output_subdir = output_subdir
        self.logger = logging.getLogger(__name__)

    def cleanup_temp_files(self, directory: Path) -> int:
        """Removes *.tmp files inside remediation folders under directory. Sources are never touched."""
        removed = 0
        for root, dirs, files in os.walk(directory):
            if Path(root).name != self.output_subdir:
                continue
            for file in files:
                if not file.endswith(".tmp"):
                    continue
                try:
                    (Path(root) / file).unlink()
                    removed += 1
                except OSError as e:
                    self.logger.warning(f"Cannot remove stale temp file {Path(root) / file}: {e}")
        if removed:
            self.logger.info(f"Housekeeping: removed {removed} stale .tmp files under {directory}")
        return removed
