# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Push package verification — re-opens a finished archive and checks that it
is complete and internally consistent.

Checks performed (in order):
  1. archive readable as ZIP
  2. website.json, manifest.json and signature present
  3. manifest.json valid (sha512 rows, 128 hex chars, no self entry)
  4. manifest key set == archive files minus manifest.json and signature
  5. every manifest digest matches the archived bytes
  6. signature parses as PKCS#7 and embeds at least one certificate

Problems are reported, never raised. The pipeline turns a failed report into
a PackagingError.
"""

import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

from cryptography.hazmat.primitives.serialization import pkcs7

from pushpkg.logging.logger import get_logger
from pushpkg.package.manifests.manifest import Manifest, parse_manifest
from pushpkg.package.types import (
    MANIFEST_EXCLUDED_FILES,
    MANIFEST_JSON,
    SIGNATURE_FILE,
    WEBSITE_JSON,
)
from pushpkg.utils.hashing import compute_sha512_bytes

_logger: logging.Logger = get_logger(__name__)

REQUIRED_FILES: frozenset[str] = frozenset({WEBSITE_JSON, MANIFEST_JSON, SIGNATURE_FILE})


@dataclass(frozen=True)
class VerificationReport:
    """Complete outcome of a push package verification."""

    is_valid: bool
    archive_path: str
    checks_passed: list[str] = field(default_factory=list)
    checks_failed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _check_required_files(contents: dict[str, bytes]) -> tuple[bool, list[str]]:
    missing = sorted(REQUIRED_FILES - set(contents))
    return not missing, [f"Missing required file: {name}" for name in missing]


def _check_manifest_coverage(manifest: Manifest, contents: dict[str, bytes]) -> tuple[bool, list[str]]:
    covered = set(contents) - MANIFEST_EXCLUDED_FILES
    listed = set(manifest)
    errors = [f"File not in manifest: {name}" for name in sorted(covered - listed)]
    errors.extend(f"Manifest entry without file: {name}" for name in sorted(listed - covered))
    return not errors, errors


def _check_digests(manifest: Manifest, contents: dict[str, bytes]) -> tuple[bool, list[str]]:
    errors: list[str] = []
    for name, entry in sorted(manifest.items()):
        data = contents.get(name)
        if data is None:
            continue
        if compute_sha512_bytes(data) != entry["hashValue"]:
            errors.append(f"Digest mismatch: {name}")
    return not errors, errors


def _check_signature(signature: bytes) -> tuple[bool, list[str]]:
    if not signature:
        return False, ["signature is empty"]
    try:
        certificates = pkcs7.load_der_pkcs7_certificates(signature)
    except ValueError as err:
        return False, [f"signature is not a DER PKCS#7 structure: {err}"]
    if not certificates:
        return False, ["signature embeds no certificates"]
    return True, []


def _read_archive(archive_path: Path) -> dict[str, bytes]:
    with zipfile.ZipFile(archive_path, "r") as zf:
        return {
            info.filename: zf.read(info.filename)
            for info in zf.infolist()
            if not info.is_dir()
        }


def verify_push_package(archive_path: Path) -> VerificationReport:
    """
    Run the full verification suite on a push package archive.

    Args:
        archive_path: Path to the ZIP produced by the packager.

    Returns:
        VerificationReport with complete pass/fail details.
    """
    try:
        contents = _read_archive(archive_path)
    except (OSError, zipfile.BadZipFile) as err:
        return VerificationReport(
            is_valid=False,
            archive_path=str(archive_path),
            checks_failed=["archive_readable"],
            errors=[f"Cannot read archive {archive_path}: {err}"],
        )

    passed: list[str] = ["archive_readable"]
    failed: list[str] = []
    all_errors: list[str] = []

    def record(check: str, ok: bool, errors: list[str]) -> None:
        if ok:
            passed.append(check)
        else:
            failed.append(check)
            all_errors.extend(errors)

    ok, errors = _check_required_files(contents)
    record("required_files", ok, errors)

    manifest: Manifest | None = None
    if MANIFEST_JSON in contents:
        try:
            manifest = parse_manifest(contents[MANIFEST_JSON])
            record("manifest_valid", True, [])
        except ValueError as err:
            record("manifest_valid", False, [str(err)])
    else:
        record("manifest_valid", False, [f"{MANIFEST_JSON} not found"])

    if manifest is not None:
        ok, errors = _check_manifest_coverage(manifest, contents)
        record("manifest_coverage", ok, errors)
        ok, errors = _check_digests(manifest, contents)
        record("digests_match", ok, errors)

    ok, errors = _check_signature(contents.get(SIGNATURE_FILE, b""))
    record("signature_parseable", ok, errors)

    is_valid = not failed

    if is_valid:
        _logger.info(
            "Push package verification passed",
            extra={"archive": str(archive_path), "checks_passed": len(passed)},
        )
    else:
        _logger.error(
            "Push package verification FAILED",
            extra={
                "archive": str(archive_path),
                "checks_passed": len(passed),
                "checks_failed": len(failed),
                "errors": all_errors,
            },
        )

    return VerificationReport(
        is_valid=is_valid,
        archive_path=str(archive_path),
        checks_passed=passed,
        checks_failed=failed,
        errors=all_errors,
    )
