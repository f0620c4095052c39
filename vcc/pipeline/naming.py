"""Non-destructive output placement.

`dir/name.ext` is remediated into `dir/<output_subdir>/name.ext`. The
extension only changes when the plan changes the container. No path
returned here can ever be the source itself.
"""

from pathlib import Path, PurePosixPath
from typing import Optional
from vcc.domain.models import EncodePlan


def _suffix(source_suffix: str, plan: Optional[EncodePlan]) -> str:
    if plan is not None and plan.container and source_suffix.lower().lstrip(".") != plan.container:
        return f".{plan.container}"
    return source_suffix


def output_path_for(source: Path, output_subdir: str, plan: Optional[EncodePlan] = None) -> Path:
    output = source.parent / output_subdir / f"{source.stem}{_suffix(source.suffix, plan)}"
    if output.resolve() == source.resolve():
        raise ValueError(f"Output path would overwrite the source: {source}")
    return output


def remote_destination_for(handle: str, output_subdir: str, plan: Optional[EncodePlan] = None) -> str:
    source = PurePosixPath(handle)
    destination = source.parent / output_subdir / f"{source.stem}{_suffix(source.suffix, plan)}"
    if destination == source:
        raise ValueError(f"Remote destination would overwrite the source: {handle}")
    return destination.as_posix()
