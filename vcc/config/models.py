from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class GeneralConfig(BaseModel):
    threads: int = Field(default=4, gt=0)
    prefetch_factor: int = Field(default=1, ge=1)
    encode_jobs: int = Field(default=1, ge=1, le=8)  # concurrent encoder sessions
    encode_timeout_s: Optional[float] = Field(default=None, gt=0)
    probe_timeout_s: float = Field(default=30.0, gt=0)
    probe_keyframes: bool = False
    remediate: bool = False
    output_subdir: str = "compliant"
    extensions: List[str] = Field(default_factory=lambda: [".mp4", ".mov", ".mkv", ".avi", ".webm", ".m4v"])
    min_size_bytes: int = Field(default=0, ge=0)
    hardware_encoder: bool = False
    primary_audio_feasible: bool = True
    report_name: str = "compliance_report.json"
    log_path: Optional[str] = "/tmp/vcc/audit.log"
    debug: bool = False

    @field_validator("output_subdir")
    @classmethod
    def validate_output_subdir(cls, v: str) -> str:
        cleaned = v.strip().strip("/")
        if not cleaned or cleaned in {".", ".."} or "/" in cleaned or "\\" in cleaned:
            raise ValueError(f"output_subdir must be a plain directory name, got {v!r}")
        return cleaned

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        exts = [(ext if ext.startswith(".") else f".{ext}").lower() for ext in v if ext]
        if not exts:
            raise ValueError("extensions cannot be empty")
        return exts


class RemoteConfig(BaseModel):
    """Mounted remote share to audit instead of local input directories."""

    root: Optional[str] = None
    staging_dir: str = "/tmp/vcc/staging"
    upload_subdir: str = "compliant"


class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    input_dirs: List[str] = Field(default_factory=list)
    catalog_path: Optional[str] = None
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
