# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for pushpkg.

`pushpkg-build` takes no arguments. Everything it needs comes from the config
file (configs/pushpackage.yaml, or $PUSHPKG_CONFIG) and the secret
environment variables. Each run is a clean rebuild of the push package.

Usage:
    pushpkg-build
    python -m pushpkg.cli.main
"""

import argparse
import sys

from pushpkg.cli.commands import handle_build


def _build_parser() -> argparse.ArgumentParser:
    return argparse.ArgumentParser(
        prog="pushpkg-build",
        description=(
            "Build a signed web push package: render icons, write website.json, "
            "hash every file into manifest.json, sign it, and zip the bundle."
        ),
        epilog=(
            "Config: configs/pushpackage.yaml or $PUSHPKG_CONFIG. Secrets: "
            "PUSH_NOTIFICATION_AUTHENTICATION_TOKEN, PUSH_NOTIFICATION_P12, "
            "PUSH_NOTIFICATION_CERT_PASSWORD, PUSH_NOTIFICATION_APPLE_PEM."
        ),
    )


def main() -> None:
    """
    Main CLI entrypoint. This is what pyproject.toml's [project.scripts] points to.

    Exits 0 on success and non-zero on any stage failure (see exit_codes.py).
    """
    parser = _build_parser()
    args = parser.parse_args()
    sys.exit(handle_build(args))


if __name__ == "__main__":
    main()
