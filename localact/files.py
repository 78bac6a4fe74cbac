"""Copying files and directory trees."""

from __future__ import annotations

import logging
import os
import shutil
from typing import Optional

_log = logging.getLogger(__name__)


def copy_file(source: str | os.PathLike, dest: str | os.PathLike) -> None:
    """Copy the contents of ``source`` to ``dest``."""
    shutil.copyfile(source, dest)


def copy_dir(source: str | os.PathLike, dest: str | os.PathLike) -> None:
    """Recursively copy a directory.

    Failures on individual entries are logged and copying carries on; the
    last failure is raised once everything else has been copied.
    """
    mode = os.stat(source).st_mode & 0o777
    os.makedirs(dest, mode=mode, exist_ok=True)

    last_error: Optional[OSError] = None
    with os.scandir(source) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        target = os.path.join(dest, entry.name)
        try:
            if entry.is_dir(follow_symlinks=False):
                copy_dir(entry.path, target)
            else:
                copy_file(entry.path, target)
        except OSError as exc:
            _log.error("%s", exc)
            last_error = exc
    if last_error is not None:
        raise last_error