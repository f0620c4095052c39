import os
from pathlib import Path
from typing import List, Tuple, Optional

MAX_INPUT_DIRS = 50
STATUS_OK = "✓"
STATUS_MISSING = "✗"
STATUS_NO_ACCESS = "⚡"


def _strip_wrapping_quotes(value: str) -> str:
    trimmed = value.strip()
    if len(trimmed) >= 2 and trimmed[0] == trimmed[-1] and trimmed[0] in ('"', "'"):
        return trimmed[1:-1]
    return trimmed


def normalize_input_dir_entries(entries: List[str]) -> List[str]:
    """Strips quotes and blanks, drops duplicates, keeps first-seen order."""
    seen = set()
    normalized: List[str] = []
    for entry in entries:
        if entry is None:
            continue
        cleaned = _strip_wrapping_quotes(entry)
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            normalized.append(cleaned)
    return normalized


def parse_cli_input_dirs(input_dirs_arg: Optional[str]) -> List[str]:
    if input_dirs_arg is None:
        return []
    return normalize_input_dir_entries(input_dirs_arg.split(","))


def _status_for(path: Path, remediate: bool) -> str:
    if not path.is_dir():
        return STATUS_MISSING
    mode = os.R_OK | os.X_OK
    if remediate:
        # remediation writes a sibling subfolder inside the input dir
        mode |= os.W_OK
    if not os.access(path, mode):
        return STATUS_NO_ACCESS
    return STATUS_OK


def evaluate_input_dirs(entries: List[str], remediate: bool = False) -> Tuple[List[Path], List[Tuple[str, str]]]:
    """Splits entries into usable directories and a status line per entry."""
    if len(entries) > MAX_INPUT_DIRS:
        raise ValueError(f"Too many input directories ({len(entries)}). Max {MAX_INPUT_DIRS}.")

    valid_dirs: List[Path] = []
    status_entries: List[Tuple[str, str]] = []
    for entry in entries:
        path = Path(entry).expanduser()
        status = _status_for(path, remediate)
        status_entries.append((status, entry))
        if status == STATUS_OK:
            valid_dirs.append(path)
    return valid_dirs, status_entries


def build_input_dir_lines(status_entries: List[Tuple[str, str]]) -> List[str]:
    lines: List[str] = []
    for idx, (status, entry) in enumerate(status_entries):
        style = "green" if status == STATUS_OK else "red"
        lines.append(f"  [{style}]{status}[/] {idx + 1}. {entry}")
    return lines
