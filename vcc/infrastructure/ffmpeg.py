import subprocess
import logging
import time
import threading
import queue
from collections import deque
from pathlib import Path
from typing import List, Optional
from vcc.compliance.planner import TONEMAP_TRANSFERS
from vcc.domain.errors import EncodeError, EncodeInterrupted
from vcc.domain.models import EncodePlan

HW_CAP_MESSAGE = "Hardware is lacking required capabilities"
HW_CAP_EXIT_CODE = 187

VIDEO_ENCODERS = {"h264": {"cpu": "libx264", "gpu": "h264_nvenc"}}
VIDEO_PROFILES = {"h264": {"baseline", "main", "high"}}
PIXEL_FORMATS = {"yuv420p"}
AUDIO_ENCODERS = {"aac": "aac", "alac": "alac"}
MUXERS = {".mp4": "mp4", ".m4v": "mp4", ".mov": "mov", ".mkv": "matroska"}

TONEMAP_FILTER = (
    "zscale=t=linear:npl=100,format=gbrpf32le,zscale=p=bt709,"
    "tonemap=tonemap=hable:desat=0,zscale=t=bt709:m=bt709:r=tv"
)


def temp_path_for(output_path: Path) -> Path:
    return output_path.with_name(f"{output_path.name}.tmp")


def hardware_encoder_available() -> bool:
    """True when an NVIDIA GPU is visible and this ffmpeg build has h264_nvenc."""
    try:
        smi = subprocess.run(["nvidia-smi"], capture_output=True, text=True, timeout=10)
        if smi.returncode != 0:
            return False
        encoders = subprocess.run(
            ["ffmpeg", "-hide_banner", "-encoders"], capture_output=True, text=True, timeout=10
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return encoders.returncode == 0 and "h264_nvenc" in (encoders.stdout or "")


class FFmpegAdapter:
    """Runs ffmpeg for one EncodePlan. Fails instead of approximating a plan it cannot honour."""

    def __init__(self, hardware_encoder: bool = False, timeout_s: Optional[float] = None, debug: bool = False):
        self.hardware_encoder = hardware_encoder
        self.timeout_s = timeout_s
        self.debug = debug
        self.logger = logging.getLogger(__name__)

    def validate_plan(self, plan: EncodePlan, output_path: Path) -> None:
        """Raises EncodeError for any plan field this adapter cannot apply exactly."""
        if output_path.suffix.lower() not in MUXERS:
            raise EncodeError(f"Unsupported output container: {output_path.suffix or '(none)'}", output_path)
        if plan.reencodes_video:
            if plan.video_codec not in VIDEO_ENCODERS:
                raise EncodeError(f"No encoder for video codec {plan.video_codec!r}", output_path)
            if plan.video_profile and plan.video_profile not in VIDEO_PROFILES[plan.video_codec]:
                raise EncodeError(f"Unsupported {plan.video_codec} profile {plan.video_profile!r}", output_path)
            if plan.pixel_format and plan.pixel_format not in PIXEL_FORMATS:
                raise EncodeError(f"Unsupported pixel format {plan.pixel_format!r}", output_path)
            res = plan.target_resolution
            if res is not None and (res.width % 2 or res.height % 2):
                raise EncodeError(f"Resolution {res} is not encodable as 4:2:0", output_path)
        if plan.audio_codec is not None:
            if plan.audio_codec not in AUDIO_ENCODERS:
                raise EncodeError(f"No encoder for audio codec {plan.audio_codec!r}", output_path)
            if plan.audio_bit_depth not in (None, 16, 24):
                raise EncodeError(f"Unsupported audio bit depth {plan.audio_bit_depth}", output_path)
            if plan.audio_bit_depth and plan.audio_codec == "aac":
                raise EncodeError("AAC has no fixed bit depth", output_path)

    def _video_filters(self, plan: EncodePlan) -> List[str]:
        filters = []
        if plan.hdr_to_sdr and plan.source_transfer in TONEMAP_TRANSFERS:
            filters.append(TONEMAP_FILTER)
        elif plan.hdr_to_sdr or plan.color_space_correction:
            filters.append("scale=out_color_matrix=bt709:out_range=tv")
        res = plan.target_resolution
        if res is not None:
            filters.append(
                f"scale={res.width}:{res.height}:force_original_aspect_ratio=decrease,"
                f"pad={res.width}:{res.height}:(ow-iw)/2:(oh-ih)/2,setsar=1"
            )
        if plan.target_frame_rate is not None:
            filters.append(f"fps={plan.target_frame_rate.numerator}/{plan.target_frame_rate.denominator}")
        if plan.pixel_format:
            filters.append(f"format={plan.pixel_format}")
        return filters

    def _build_command(self, input_path: Path, plan: EncodePlan, output_path: Path) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        cmd = [
            "ffmpeg",
            "-y",
            "-hide_banner",
            "-nostdin",
            "-i", str(input_path),
            "-map", "0:v:0",
            "-map", "0:a:0?",
        ]

        if plan.reencodes_video:
            encoder = VIDEO_ENCODERS[plan.video_codec]["gpu" if self.hardware_encoder else "cpu"]
            cmd.extend(["-c:v", encoder])
            if self.hardware_encoder:
                cmd.extend(["-preset", "p5", "-rc", "vbr", "-forced-idr", "1"])
            else:
                cmd.extend(["-preset", "medium"])
            if plan.video_profile:
                cmd.extend(["-profile:v", plan.video_profile])
            filters = self._video_filters(plan)
            if filters:
                cmd.extend(["-vf", ",".join(filters)])
            if plan.pixel_format:
                cmd.extend(["-pix_fmt", plan.pixel_format])
            if plan.target_bitrate:
                rate = plan.target_bitrate
                cmd.extend([
                    "-b:v", f"{rate.target_kbps}k",
                    "-minrate", f"{rate.min_kbps}k",
                    "-maxrate", f"{rate.max_kbps}k",
                    "-bufsize", f"{rate.max_kbps * 2}k",
                ])
            if plan.keyframe_interval_s:
                cmd.extend(["-force_key_frames", f"expr:gte(t,n_forced*{plan.keyframe_interval_s:g})"])
            if plan.color_space_correction or plan.hdr_to_sdr:
                cmd.extend(["-color_primaries", "bt709", "-color_trc", "bt709", "-colorspace", "bt709"])
        else:
            cmd.extend(["-c:v", "copy"])

        if plan.reencodes_audio:
            cmd.extend(["-c:a", AUDIO_ENCODERS[plan.audio_codec]])
            if plan.audio_bitrate_kbps:
                cmd.extend(["-b:a", f"{plan.audio_bitrate_kbps}k"])
            if plan.audio_codec == "alac" and plan.audio_bit_depth:
                cmd.extend(["-sample_fmt", "s32p" if plan.audio_bit_depth > 16 else "s16p"])
            if plan.audio_sample_rate:
                cmd.extend(["-ar", str(plan.audio_sample_rate)])
            if plan.audio_channels:
                cmd.extend(["-ac", str(plan.audio_channels)])
        else:
            cmd.extend(["-c:a", "copy"])

        muxer = MUXERS[output_path.suffix.lower()]
        cmd.extend(["-map_metadata", "0"])
        if muxer in ("mp4", "mov"):
            cmd.extend(["-movflags", "+faststart"])

        # Write to .tmp during encoding (renamed on success); .tmp says nothing about format
        cmd.extend(["-f", muxer, str(temp_path_for(output_path))])
        return cmd

    def _stop(self, process: subprocess.Popen) -> None:
        process.terminate()
        try:
            process.wait(timeout=3)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    def encode(self, input_path: Path, plan: EncodePlan, output_path: Path, shutdown_event: Optional[threading.Event] = None) -> Path:
        """Encodes input_path into output_path according to plan and returns output_path."""
        filename = input_path.name
        if output_path.resolve() == input_path.resolve():
            raise EncodeError(f"Refusing to write over the source file {input_path}", input_path)
        self.validate_plan(plan, output_path)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EncodeError(f"Cannot create output folder {output_path.parent}: {e}", input_path) from e
        tmp_path = temp_path_for(output_path)
        cmd = self._build_command(input_path, plan, output_path)
        start_time = time.monotonic()
        self.logger.info(f"ENCODE_START: {filename} (gpu={self.hardware_encoder})")
        if self.debug:
            self.logger.debug(f"ENCODE_CMD: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                universal_newlines=True,
                bufsize=1
            )
        except OSError as e:
            raise EncodeError(f"Cannot start ffmpeg: {e}", input_path) from e

        output_queue: "queue.Queue[Optional[str]]" = queue.Queue()
        tail: "deque[str]" = deque(maxlen=5)
        hw_cap_error = False

        def _reader():
            if not process.stdout:
                output_queue.put(None)
                return
            for line in process.stdout:
                output_queue.put(line)
            output_queue.put(None)

        reader_thread = threading.Thread(target=_reader, daemon=True)
        reader_thread.start()

        def _abort(error: EncodeError):
            self._stop(process)
            if tmp_path.exists():
                tmp_path.unlink()
            elapsed = time.monotonic() - start_time
            self.logger.info(f"ENCODE_END: {filename} status=aborted elapsed={elapsed:.2f}s ({error.message})")
            raise error

        try:
            while True:
                if shutdown_event and shutdown_event.is_set():
                    _abort(EncodeInterrupted("Interrupted by user (Ctrl+C)", input_path))
                if self.timeout_s and time.monotonic() - start_time > self.timeout_s:
                    _abort(EncodeError(f"Encode timed out after {self.timeout_s:g}s", input_path))

                try:
                    line = output_queue.get(timeout=0.1)
                except queue.Empty:
                    if process.poll() is not None:
                        break
                    continue

                if line is None:
                    break
                if line.strip():
                    tail.append(line.strip())
                if HW_CAP_MESSAGE in line:
                    hw_cap_error = True

            process.wait()
        except KeyboardInterrupt:
            self.logger.info(f"ENCODE_INTERRUPTED: {filename} (KeyboardInterrupt)")
            self._stop(process)
            if tmp_path.exists():
                tmp_path.unlink()
            raise

        elapsed = time.monotonic() - start_time
        if hw_cap_error or process.returncode == HW_CAP_EXIT_CODE:
            if tmp_path.exists():
                tmp_path.unlink()
            self.logger.info(f"ENCODE_END: {filename} status=hw_cap_limit elapsed={elapsed:.2f}s")
            raise EncodeError(HW_CAP_MESSAGE, input_path, hw_cap_limit=True)
        if process.returncode != 0:
            if tmp_path.exists():
                tmp_path.unlink()
            self.logger.info(f"ENCODE_END: {filename} status=failed code={process.returncode} elapsed={elapsed:.2f}s")
            detail = tail[-1] if tail else "no output"
            raise EncodeError(f"ffmpeg exited with code {process.returncode}: {detail}", input_path)
        if not tmp_path.exists():
            raise EncodeError("ffmpeg reported success but wrote no output", input_path)

        try:
            tmp_path.rename(output_path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise EncodeError(f"Cannot move encoded output into place at {output_path}: {e}", input_path) from e
        self.logger.info(f"ENCODE_END: {filename} status=completed elapsed={elapsed:.2f}s")
        return output_path
