import subprocess
import json
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional
from vcc.domain.errors import ProbeError

class FFprobeAdapter:
    """Wrapper around ffprobe returning its raw JSON for the normalizer.

    Field interpretation lives in vcc.compliance.normalizer; this class only
    runs the tool and separates "probe failed" from "field absent".
    """

    def __init__(self, timeout_s: float = 30.0, probe_keyframes: bool = False, keyframe_window_s: float = 60.0):
        self.timeout_s = timeout_s
        self.probe_keyframes = probe_keyframes
        self.keyframe_window_s = keyframe_window_s
        self.logger = logging.getLogger(__name__)

    def _run(self, cmd: List[str], file_path: Path) -> Dict[str, Any]:
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout_s)
        except FileNotFoundError as e:
            raise ProbeError("ffprobe not found on PATH; install ffmpeg", file_path) from e
        except subprocess.TimeoutExpired as e:
            raise ProbeError(f"ffprobe timed out after {self.timeout_s:g}s", file_path) from e

        if result.returncode != 0:
            raise ProbeError(
                f"ffprobe failed for {file_path}: {(result.stderr or '').strip() or 'no output'}",
                file_path, stderr=result.stderr, rc=result.returncode,
            )
        try:
            data = json.loads(result.stdout or "")
        except json.JSONDecodeError as e:
            raise ProbeError(f"ffprobe returned invalid JSON for {file_path}", file_path) from e
        if not isinstance(data, dict):
            raise ProbeError(f"ffprobe returned unexpected output for {file_path}", file_path)
        return data

    def probe(self, file_path: Path) -> Dict[str, Any]:
        """Executes ffprobe and returns parsed JSON (streams + format)."""
        if not Path(file_path).is_file():
            raise ProbeError(f"File not found: {file_path}", file_path)

        self.logger.debug(f"PROBE_START: {file_path.name}")
        cmd = [
            "ffprobe",
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            "-show_format",
            str(file_path)
        ]
        data = self._run(cmd, file_path)

        if self.probe_keyframes:
            keyframes = self.keyframe_times(file_path)
            if keyframes is not None:
                data["vcc_keyframe_times"] = keyframes
        return data

    def keyframe_times(self, file_path: Path) -> Optional[List[float]]:
        """Keyframe timestamps from the first keyframe_window_s seconds of the first video stream.

        Returns None when they cannot be read; the keyframe interval is then
        simply unknown and is not scored.
        """
        cmd = [
            "ffprobe",
            "-v", "quiet",
            "-select_streams", "v:0",
            "-skip_frame", "nokey",
            "-read_intervals", f"%+{self.keyframe_window_s:g}",
            "-show_entries", "frame=best_effort_timestamp_time",
            "-print_format", "json",
            str(file_path)
        ]
        try:
            data = self._run(cmd, file_path)
        except ProbeError as e:
            self.logger.warning(f"PROBE_KEYFRAMES_FAILED: {file_path.name} ({e.message})")
            return None

        times = []
        for frame in data.get("frames", []):
            value = frame.get("best_effort_timestamp_time")
            try:
                times.append(float(value))
            except (TypeError, ValueError):
                continue
        return times
