# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Build command handler for the pushpkg CLI.

Loads the config once, bootstraps the runtime, runs the pipeline, and maps
every failure class onto an exit code. No print() calls; the outcome is
reported through the structured logger.

A run that fails before the pipeline starts still removes the archive of an
earlier build, so a non-zero exit never leaves a package behind.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

from pushpkg.cli.exit_codes import CONFIG_ERROR, RUNTIME_ERROR, SUCCESS, VALIDATION_ERROR
from pushpkg.config.exceptions import ConfigError
from pushpkg.config.loader import load_config, peek_output_archive, resolve_config_path
from pushpkg.logging.logger import get_logger
from pushpkg.package.exceptions import (
    ArchiveVerificationError,
    CredentialError,
    PushPackageError,
)
from pushpkg.package.pipeline import build_push_package
from pushpkg.package.types import BuildStage
from pushpkg.runtime.bootstrap import bootstrap
from pushpkg.utils.filesystem import safe_delete


def exit_code_for(err: PushPackageError) -> int:
    """Credential problems are configuration problems; a rejected archive is a validation failure."""
    if isinstance(err, CredentialError):
        return CONFIG_ERROR
    if isinstance(err, ArchiveVerificationError):
        return VALIDATION_ERROR
    return RUNTIME_ERROR


def _discard_stale_archive(archive_path: Optional[Path], logger: logging.Logger) -> None:
    if archive_path is None:
        return
    try:
        if safe_delete(archive_path):
            logger.info("Removed previous archive", extra={"path": str(archive_path)})
    except OSError as err:
        logger.error(
            "Cannot remove previous archive",
            extra={"path": str(archive_path), "error": str(err)},
        )


def handle_build(args: argparse.Namespace) -> int:
    """Build the push package described by the config file."""
    logger: logging.Logger = get_logger("pushpkg.cli.build")

    config_path = resolve_config_path()
    try:
        config = load_config(config_path)
    except ConfigError as err:
        logger.error(
            "Configuration error",
            extra={"command": "build", "config": str(config_path), "error": str(err)},
        )
        _discard_stale_archive(peek_output_archive(config_path), logger)
        return CONFIG_ERROR

    try:
        bootstrap(config.global_config)
    except RuntimeError as err:
        logger.error("Bootstrap failed", extra={"command": "build", "error": str(err)})
        _discard_stale_archive(Path(config.build.output_archive), logger)
        return RUNTIME_ERROR

    logger.info("Command started", extra={"command": "build", "config": str(config_path)})

    try:
        result = build_push_package(config)
    except PushPackageError as err:
        logger.error(
            "Build failed",
            extra={
                "command": "build",
                "stage": err.stage.value if err.stage else BuildStage.ABORTED.value,
                "error_type": type(err).__name__,
                "error": str(err),
                "cause": repr(err.__cause__) if err.__cause__ else None,
            },
        )
        return exit_code_for(err)

    logger.info(
        "Command completed",
        extra={
            "command": "build",
            "archive": result.archive_path,
            "files": result.file_count,
            "bytes": result.archive_size,
        },
    )
    return SUCCESS
