# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Push package build pipeline.

    INIT -> RENDERING_ASSETS -> BUILDING_MANIFEST -> SIGNING -> PACKAGING -> DONE
    (any non-terminal stage) -> ABORTED

Each stage starts only after the previous one finished successfully. Inside
RENDERING_ASSETS, one task per icon spec plus one website.json task run
concurrently and are joined before the manifest is computed. The first error
anywhere aborts the build. No stage is retried, and no archive is left
behind: INIT deletes the previous output and the packager only moves a
finished archive into place.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from pushpkg.config.schema import PushPackageConfig
from pushpkg.logging.logger import get_logger
from pushpkg.package.exceptions import (
    ArchiveVerificationError,
    BundleIOError,
    PackagingError,
    PushPackageError,
)
from pushpkg.package.icons.renderer import build_icon_specs, render_icons
from pushpkg.package.manifests.manifest import Manifest, build_manifest, write_manifest
from pushpkg.package.packaging.packager import archive_bundle
from pushpkg.package.signing.identity import open_signing_identity
from pushpkg.package.signing.signer import sign_manifest, write_signature
from pushpkg.package.types import BuildStage, GeneratedFile
from pushpkg.package.verification.verifier import verify_push_package
from pushpkg.package.website.writer import write_website_json
from pushpkg.utils.filesystem import reset_directory, safe_delete
from pushpkg.utils.tasks import gather_or_cancel

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class BuildResult:
    """Outcome of a successful build."""

    archive_path: str
    bundle_dir: str
    manifest: Manifest
    file_count: int
    archive_size: int


class BuildPipeline:
    """
    Runs the stages against one frozen config. Tracks the current stage so a
    failure can be reported against it.
    """

    def __init__(self, config: PushPackageConfig) -> None:
        self.config = config
        self.bundle_dir = Path(config.build.bundle_dir)
        self.output_path = Path(config.build.output_archive)
        self.stage = BuildStage.INIT

    def _enter(self, stage: BuildStage) -> None:
        _logger.info(
            "Stage started",
            extra={"stage": stage.value, "previous": self.stage.value},
        )
        self.stage = stage

    def _prepare(self) -> None:
        """Clean rebuild: drop the old bundle tree and any previous archive."""
        if self.output_path.resolve().is_relative_to(self.bundle_dir.resolve()):
            raise PackagingError(
                f"Output archive {self.output_path} must not live inside the bundle directory",
                stage=BuildStage.INIT,
            )
        if safe_delete(self.output_path):
            _logger.info("Removed previous archive", extra={"path": str(self.output_path)})
        reset_directory(self.bundle_dir)

    async def _render_assets(self) -> list[GeneratedFile]:
        icons = self.config.build.icons
        specs = build_icon_specs(icons.base_sizes, icons.scale_factors)

        icon_files, website_file = await gather_or_cancel(
            render_icons(Path(icons.source), specs, self.bundle_dir),
            write_website_json(self.config.website, self.bundle_dir),
        )
        files = [*icon_files, website_file]
        _logger.info(
            "Assets rendered",
            extra={"icons": len(specs), "files": [f.relative_path for f in files]},
        )
        return files

    def _build_manifest(self, generated: list[GeneratedFile]) -> tuple[Manifest, bytes]:
        manifest = build_manifest(self.bundle_dir)
        expected = {f.relative_path for f in generated}
        if set(manifest) != expected:
            raise BundleIOError(
                f"Bundle contents changed during the build: expected {sorted(expected)}, "
                f"found {sorted(manifest)}",
                stage=self.stage,
            )
        return manifest, write_manifest(self.bundle_dir, manifest)

    def _sign(self, manifest_bytes: bytes) -> None:
        with open_signing_identity(self.config.credentials) as identity:
            signature = sign_manifest(manifest_bytes, identity)
        del identity
        write_signature(self.bundle_dir, signature)

    def _package(self) -> int:
        result = archive_bundle(self.bundle_dir, self.output_path)
        report = verify_push_package(self.output_path)
        if not report.is_valid:
            safe_delete(self.output_path)
            raise ArchiveVerificationError(
                "Produced archive failed verification: " + "; ".join(report.errors)
            )
        return result.size_bytes

    async def run(self) -> BuildResult:
        """
        Execute every stage in order.

        Raises:
            PushPackageError: Tagged with the stage that failed. OSErrors are
                              wrapped into BundleIOError.
        """
        try:
            self._prepare()

            self._enter(BuildStage.RENDERING_ASSETS)
            generated = await self._render_assets()

            self._enter(BuildStage.BUILDING_MANIFEST)
            manifest, manifest_bytes = self._build_manifest(generated)

            self._enter(BuildStage.SIGNING)
            self._sign(manifest_bytes)

            self._enter(BuildStage.PACKAGING)
            archive_size = self._package()
        except PushPackageError as err:
            if err.stage is None:
                err.stage = self.stage
            self._abort(err)
            raise
        except OSError as err:
            wrapped = BundleIOError(f"{type(err).__name__}: {err}", stage=self.stage)
            self._abort(wrapped)
            raise wrapped from err

        self._enter(BuildStage.DONE)
        _logger.info(
            "Push package built",
            extra={
                "archive": str(self.output_path),
                "manifest_entries": len(manifest),
                "bytes": archive_size,
            },
        )
        return BuildResult(
            archive_path=str(self.output_path),
            bundle_dir=str(self.bundle_dir),
            manifest=manifest,
            file_count=len(manifest) + 2,
            archive_size=archive_size,
        )

    def _abort(self, err: PushPackageError) -> None:
        failed_stage = self.stage
        self.stage = BuildStage.ABORTED
        safe_delete(self.output_path)
        _logger.error(
            "Build aborted",
            extra={
                "stage": failed_stage.value,
                "error_type": type(err).__name__,
                "error": str(err),
            },
        )


async def run_build(config: PushPackageConfig) -> BuildResult:
    """Build the push package described by `config`."""
    return await BuildPipeline(config).run()


def build_push_package(config: PushPackageConfig) -> BuildResult:
    """Synchronous entry point used by the CLI."""
    return asyncio.run(run_build(config))

