# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
pushpkg — builds signed web push packages.

A push package is a ZIP archive holding website.json, an icon set, a manifest
of SHA-512 digests, and a detached CMS signature over that manifest. The whole
thing is produced by a single `pushpkg-build` run.
"""

__version__ = "0.1.0"
