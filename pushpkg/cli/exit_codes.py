# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI exit codes.

These are the only exit codes `pushpkg-build` returns. argparse itself exits
with 2 on a usage error, the same code as a configuration error.
"""

SUCCESS: int = 0
CONFIG_ERROR: int = 2
RUNTIME_ERROR: int = 3
VALIDATION_ERROR: int = 4
