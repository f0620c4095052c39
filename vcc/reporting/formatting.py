from typing import Optional


def _format_float(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")


def format_kbps_human(kbps: Optional[float]) -> str:
    if kbps is None:
        return "—"
    if kbps >= 1000:
        return f"{_format_float(kbps / 1000)} Mbps"
    return f"{_format_float(kbps)} kbps"


def format_size(size_bytes: Optional[int]) -> str:
    """Format size: 123B, 1.2KB, 45.1MB, 3.2GB."""
    if size_bytes is None:
        return "—"
    if size_bytes == 0:
        return "0B"
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if size < 1024.0:
            return f"{size:.1f}{unit}"
        size /= 1024.0
    return f"{size:.1f}PB"


def format_duration(seconds: Optional[float]) -> str:
    """Format duration: 59s, 01m 01s, 1h 01m."""
    if seconds is None:
        return "--:--"
    if seconds < 60:
        return f"{int(seconds)}s"
    if seconds < 3600:
        return f"{int(seconds // 60):02d}m {int(seconds % 60):02d}s"
    return f"{int(seconds // 3600)}h {int((seconds % 3600) // 60):02d}m"
