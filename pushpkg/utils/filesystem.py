# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Safe filesystem operations for pushpkg.

Bundle files are written atomically: write to a temporary file in the same
directory as the target, then rename. Rename on the same filesystem is atomic
on POSIX, so a crash mid-write leaves a stray temp file instead of a truncated
bundle file.
"""

import os
import shutil
import tempfile
from pathlib import Path

TEMP_PREFIX = ".pushpkg_tmp_"


def atomic_write_bytes(target_path: Path, data: bytes) -> None:
    """
    Write binary data to a file atomically.

    Args:
        target_path: Where the final file should end up.
        data: The raw bytes to write.

    Raises:
        OSError: If the write or rename fails.
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)

    # delete=False because the file must survive closing so we can rename it.
    temp_fd = tempfile.NamedTemporaryFile(
        mode="wb",
        dir=str(target_path.parent),
        prefix=TEMP_PREFIX,
        suffix=".tmp",
        delete=False,
    )
    temp_path = Path(temp_fd.name)

    try:
        temp_fd.write(data)
        temp_fd.flush()
        os.fsync(temp_fd.fileno())
        temp_fd.close()
        os.replace(temp_path, target_path)
    except BaseException:
        temp_fd.close()
        if temp_path.exists():
            temp_path.unlink()
        raise


def reserve_temp_path(target_path: Path, suffix: str = ".tmp") -> Path:
    """
    Create an empty temp file beside `target_path` and return its path.

    The caller owns the file: it either moves it over the target with
    `os.replace` or deletes it.
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(dir=str(target_path.parent), prefix=TEMP_PREFIX, suffix=suffix)
    os.close(fd)
    return Path(name)


def safe_delete(file_path: Path) -> bool:
    """
    Delete a file if it exists. Returns whether anything was actually deleted.

    Raises:
        OSError: If the file exists but can't be deleted (permissions, etc).
    """
    if file_path.exists():
        file_path.unlink()
        return True
    return False


def reset_directory(path: Path) -> Path:
    """Remove `path` and everything under it, then recreate it empty."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
