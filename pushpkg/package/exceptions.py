# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Build error taxonomy.

Every error is fatal to the build: there is no local recovery and no retry.
Each exception carries the pipeline stage it was raised in so the CLI can
report where the build stopped without extra instrumentation.
"""

from typing import Optional

from pushpkg.package.types import BuildStage


class PushPackageError(Exception):
    """Base for all build failures."""

    default_stage: Optional[BuildStage] = None

    def __init__(self, message: str, stage: Optional[BuildStage] = None) -> None:
        super().__init__(message)
        self.stage = stage if stage is not None else self.default_stage

    def __str__(self) -> str:
        message = super().__str__()
        if self.stage is None:
            return message
        return f"[{self.stage.value}] {message}"


class ImageProcessingError(PushPackageError):
    """Source image missing, undecodable, or not square; or an icon failed to encode."""

    default_stage = BuildStage.RENDERING_ASSETS


class BundleIOError(PushPackageError):
    """A filesystem read or write failed while assembling the bundle."""


class CredentialError(PushPackageError):
    """Signing identity container malformed, passphrase wrong, or issuer certificate unreadable."""

    default_stage = BuildStage.SIGNING


class SigningError(PushPackageError):
    """The cryptographic signing operation itself failed."""

    default_stage = BuildStage.SIGNING


class PackagingError(PushPackageError):
    """Archive construction or post-build verification failed."""

    default_stage = BuildStage.PACKAGING


class ArchiveVerificationError(PackagingError):
    """The archive was written but failed the post-build verification."""
