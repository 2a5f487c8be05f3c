# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Push package archiver — zips the finished bundle directory into one file.

Entry names are the bundle-relative POSIX paths, exactly as manifest.json
references them (website.json, icon.iconset/icon_16x16.png, ...). Entries are
added in sorted order with a fixed timestamp, so the archive bytes depend only
on the bundle contents.

The archive is assembled in a temp file next to the output path. It is moved
into place only after the ZIP is finalized and re-read cleanly; on any error
the temp file is removed and nothing appears at the output path.
"""

import logging
import os
import zipfile
from dataclasses import dataclass
from pathlib import Path

from pushpkg.logging.logger import get_logger
from pushpkg.package.exceptions import PackagingError
from pushpkg.utils.filesystem import reserve_temp_path, safe_delete

_logger: logging.Logger = get_logger(__name__)

# Earliest timestamp a ZIP entry can carry.
ZIP_EPOCH: tuple[int, int, int, int, int, int] = (1980, 1, 1, 0, 0, 0)
ZIP_FILE_MODE: int = 0o644 << 16


@dataclass(frozen=True)
class ArchiveResult:
    """Outcome of a successful archive run."""

    archive_path: str
    entries: tuple[str, ...]
    size_bytes: int


def _bundle_entries(bundle_dir: Path) -> list[str]:
    if not bundle_dir.is_dir():
        raise PackagingError(f"Bundle directory not found: {bundle_dir}")
    return sorted(
        path.relative_to(bundle_dir).as_posix()
        for path in bundle_dir.rglob("*")
        if path.is_file()
    )


def _write_zip(bundle_dir: Path, entries: list[str], target: Path) -> None:
    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name in entries:
            info = zipfile.ZipInfo(filename=name, date_time=ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = ZIP_FILE_MODE
            zf.writestr(info, (bundle_dir / name).read_bytes())


def _check_zip(target: Path, expected: list[str]) -> None:
    with zipfile.ZipFile(target, "r") as zf:
        names = sorted(zf.namelist())
        if names != expected:
            raise PackagingError(
                f"Archive entries do not match bundle: expected {len(expected)}, found {len(names)}"
            )
        bad_entry = zf.testzip()
        if bad_entry is not None:
            raise PackagingError(f"Archive entry failed CRC check: {bad_entry}")


def archive_bundle(bundle_dir: Path, output_path: Path) -> ArchiveResult:
    """
    Archive every file under bundle_dir into a ZIP at output_path.

    Args:
        bundle_dir: The finished bundle directory (manifest and signature included).
        output_path: Final archive location. Parent directories are created.

    Returns:
        ArchiveResult with the entry list and archive size.

    Raises:
        PackagingError: Bundle missing or empty, any read/write failure, or
                        the finalized archive failing its self-check.
    """
    entries = _bundle_entries(bundle_dir)
    if not entries:
        raise PackagingError(f"Bundle directory is empty: {bundle_dir}")

    _logger.info(
        "Archiving bundle",
        extra={"bundle_dir": str(bundle_dir), "output": str(output_path), "entries": len(entries)},
    )

    try:
        temp_path = reserve_temp_path(output_path, suffix=".zip")
    except OSError as err:
        raise PackagingError(f"Cannot create archive in {output_path.parent}: {err}") from err

    try:
        _write_zip(bundle_dir, entries, temp_path)
        _check_zip(temp_path, entries)
        os.replace(temp_path, output_path)
    except PackagingError:
        safe_delete(temp_path)
        raise
    except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as err:
        safe_delete(temp_path)
        raise PackagingError(f"Failed to write archive {output_path}: {err}") from err

    size_bytes = output_path.stat().st_size
    _logger.info(
        "Archive finalized",
        extra={"output": str(output_path), "entries": len(entries), "bytes": size_bytes},
    )
    return ArchiveResult(
        archive_path=str(output_path),
        entries=tuple(entries),
        size_bytes=size_bytes,
    )
