# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Push package build subsystem.

Stages, in order:
  - icons: render the icon set from one square source image
  - website: write website.json from the service config
  - manifests: SHA-512 digest of every bundle file
  - signing: detached CMS signature over manifest.json
  - packaging: ZIP the bundle directory atomically
  - verification: re-check the produced archive

`pipeline.build_push_package` runs them all.
"""
