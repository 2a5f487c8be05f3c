# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Push package manifest generation and loading.

manifest.json maps every bundle file to the SHA-512 digest of its on-disk
bytes:

    {
      "icon.iconset/icon_16x16.png": {"hashType": "sha512", "hashValue": "<128 hex>"},
      "website.json": {"hashType": "sha512", "hashValue": "<128 hex>"}
    }

manifest.json and signature never appear as keys. The manifest must not hash
itself, and the signature is produced after the manifest. Listing either would
break the registration client.

The manifest is built by reading the files back from disk after every writer
has finished, so the digests always describe exactly what gets archived.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from pushpkg.logging.logger import get_logger
from pushpkg.package.types import MANIFEST_EXCLUDED_FILES, MANIFEST_JSON
from pushpkg.utils.filesystem import atomic_write_bytes
from pushpkg.utils.hashing import HASH_ALGORITHM, compute_sha512, is_sha512_hex

_logger: logging.Logger = get_logger(__name__)

Manifest = dict[str, dict[str, str]]


@dataclass(frozen=True)
class DigestEntry:
    """One manifest row."""

    file_name: str
    hash_type: str
    hash_value: str

    def to_json(self) -> dict[str, str]:
        return {"hashType": self.hash_type, "hashValue": self.hash_value}


def collect_bundle_files(bundle_dir: Path) -> list[str]:
    """
    List every file under bundle_dir as a sorted relative POSIX path,
    skipping manifest.json and signature at the bundle root.

    Raises:
        FileNotFoundError: If bundle_dir doesn't exist.
    """
    if not bundle_dir.is_dir():
        raise FileNotFoundError(f"Bundle directory not found: {bundle_dir}")

    relative_paths: list[str] = []
    for file_path in bundle_dir.rglob("*"):
        if not file_path.is_file():
            continue
        relative = file_path.relative_to(bundle_dir).as_posix()
        if relative in MANIFEST_EXCLUDED_FILES:
            continue
        relative_paths.append(relative)
    return sorted(relative_paths)


def compute_digest_entry(bundle_dir: Path, relative_path: str) -> DigestEntry:
    """
    Hash one bundle file.

    Raises:
        OSError: If the file is missing or unreadable.
    """
    digest = compute_sha512(bundle_dir / relative_path)
    return DigestEntry(file_name=relative_path, hash_type=HASH_ALGORITHM, hash_value=digest)


def build_manifest(bundle_dir: Path) -> Manifest:
    """
    Compute the manifest for everything currently in the bundle directory.

    Raises:
        OSError: If the directory or any file can't be read. Not retried.
    """
    manifest: Manifest = {}
    for relative_path in collect_bundle_files(bundle_dir):
        entry = compute_digest_entry(bundle_dir, relative_path)
        manifest[entry.file_name] = entry.to_json()
        _logger.debug(
            "Computed digest",
            extra={"file": relative_path, "sha512": entry.hash_value[:16] + "..."},
        )

    _logger.info(
        "Manifest built",
        extra={"entries": len(manifest), "bundle_dir": str(bundle_dir)},
    )
    return manifest


def serialize_manifest(manifest: Manifest) -> bytes:
    """Canonical JSON: sorted keys, compact separators, UTF-8."""
    return json.dumps(
        manifest, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def write_manifest(bundle_dir: Path, manifest: Manifest) -> bytes:
    """
    Serialize the manifest and write it to <bundle>/manifest.json atomically.

    Returns:
        The exact bytes written. These are the bytes the signer signs.
    """
    data = serialize_manifest(manifest)
    path = bundle_dir / MANIFEST_JSON
    atomic_write_bytes(path, data)

    _logger.info(
        "Manifest written",
        extra={"path": str(path), "entries": len(manifest), "bytes": len(data)},
    )
    return data


def parse_manifest(data: bytes) -> Manifest:
    """
    Parse and validate manifest bytes.

    Raises:
        ValueError: If the bytes are not a JSON object of sha512 entries, or
                    if the manifest lists itself or the signature.
    """
    try:
        parsed = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as err:
        raise ValueError(f"Manifest is not valid JSON: {err}") from err

    if not isinstance(parsed, dict):
        raise ValueError("Manifest root must be a JSON object")

    manifest: Manifest = {}
    for file_name, entry in parsed.items():
        if file_name in MANIFEST_EXCLUDED_FILES:
            raise ValueError(f"Manifest must not contain an entry for {file_name}")
        if not isinstance(entry, dict):
            raise ValueError(f"Manifest entry for {file_name} must be an object")
        hash_type = entry.get("hashType")
        hash_value = entry.get("hashValue")
        if hash_type != HASH_ALGORITHM:
            raise ValueError(
                f"Manifest entry for {file_name} has hashType {hash_type!r}, expected {HASH_ALGORITHM!r}"
            )
        if not isinstance(hash_value, str) or not is_sha512_hex(hash_value):
            raise ValueError(f"Manifest entry for {file_name} has a malformed hashValue")
        manifest[file_name] = {"hashType": hash_type, "hashValue": hash_value}

    return manifest


def load_manifest(path: Path) -> Manifest:
    """
    Load a manifest.json from disk.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the content is invalid.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Manifest file not found: {path}")

    manifest = parse_manifest(path.read_bytes())
    _logger.debug("Manifest loaded", extra={"path": str(path), "entries": len(manifest)})
    return manifest
