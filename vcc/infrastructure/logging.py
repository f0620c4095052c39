import logging
from pathlib import Path
from typing import Optional

def setup_logging(log_dir: Path, debug: bool = False, log_path: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging configuration for VCC.

    Writes audit.log into log_dir unless log_path points somewhere else.
    Returns configured logger instance.

    Args:
        log_dir: Directory for the default audit.log
        debug: If True, enable DEBUG level logging (per-file PROBE/SCORE/PLAN traces)
        log_path: Optional path to log file (overrides log_dir)
    """
    log_file = Path(log_path) if log_path else (Path(log_dir) / "audit.log")
    log_file.parent.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.FileHandler(log_file)],
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized: {log_file} (debug={'ON' if debug else 'OFF'})")

    return logger
