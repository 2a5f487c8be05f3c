# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for pushpkg.

One-time setup before the build starts:
  1. Validate the environment (Python version)
  2. Configure the structured logger from the global config
  3. Log a system snapshot so every build log records the toolchain

After bootstrap completes, the build can run.
"""

from pathlib import Path

from pushpkg.config.schema import GlobalConfig
from pushpkg.logging.logger import configure_logging
from pushpkg.runtime.environment import check_minimum_python, get_system_info


def bootstrap(config: GlobalConfig) -> None:
    """
    Run the bootstrap sequence.

    Args:
        config: The validated global configuration.

    Raises:
        RuntimeError: If the interpreter is too old.
    """
    check_minimum_python()

    log_file = None
    if config.log_file is not None:
        log_file = Path(config.log_file)

    logger = configure_logging(log_level=config.log_level, log_file=log_file)

    system_info = get_system_info()
    logger.info(
        "pushpkg bootstrap complete",
        extra={
            "project": config.project_name,
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "architecture": system_info.architecture,
            "pillow_version": system_info.pillow_version,
            "cryptography_version": system_info.cryptography_version,
        },
    )
