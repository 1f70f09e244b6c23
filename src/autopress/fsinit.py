from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from .config import Config
from .utils import log_event

logger = logging.getLogger(__name__)

DEFAULT_UMASK = 0o002


def parse_umask(value: str | None) -> int:
    if not value:
        return DEFAULT_UMASK
    try:
        parsed = int(value, 8)
    except ValueError:
        return DEFAULT_UMASK
    return parsed if 0 <= parsed <= 0o777 else DEFAULT_UMASK


def set_umask_from_env() -> int:
    """Apply AP_UMASK (octal) so history and report files stay group writable."""
    mask = parse_umask(os.environ.get("AP_UMASK"))
    os.umask(mask)
    return mask


def runtime_dirs(config: Config) -> list[str]:
    """Directories a run writes to: data root, history parent, run reports."""
    paths = config.paths
    candidates = [paths.data_dir, os.path.dirname(paths.history_path), paths.run_reports_dir]
    unique: list[str] = []
    for path in candidates:
        if path and path not in unique:
            unique.append(path)
    return unique


def ensure_runtime_dirs(paths: Iterable[str]) -> list[str]:
    """Create missing directories; unwritable ones are logged and skipped."""
    created: list[str] = []
    for raw in paths:
        if not raw:
            continue
        path = Path(raw)
        if path.is_dir():
            continue
        try:
            path.mkdir(parents=True, exist_ok=True)
            path.chmod(0o775)
        except PermissionError as exc:
            log_event(logger, logging.WARNING, "runtime_dir_unwritable", path=str(path), error=str(exc))
            continue
        created.append(str(path))
    if created:
        log_event(logger, logging.INFO, "runtime_dirs_created", paths=",".join(created))
    return created
