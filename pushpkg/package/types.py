# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Bundle layout and the small value types passed between build stages.

The layout is fixed by the registration client:

    <bundle>/
    ├─ website.json
    ├─ icon.iconset/
    │   ├─ icon_16x16.png
    │   ├─ icon_16x16@2x.png
    │   └─ ...
    ├─ manifest.json
    └─ signature
"""

from dataclasses import dataclass
from enum import Enum

WEBSITE_JSON: str = "website.json"
ICONSET_DIR: str = "icon.iconset"
MANIFEST_JSON: str = "manifest.json"
SIGNATURE_FILE: str = "signature"

# Never listed in the manifest: the manifest itself and the signature over it.
MANIFEST_EXCLUDED_FILES: frozenset[str] = frozenset({MANIFEST_JSON, SIGNATURE_FILE})


class BuildStage(str, Enum):
    """Pipeline states. Strictly linear; ABORTED is reachable from any non-terminal state."""

    INIT = "INIT"
    RENDERING_ASSETS = "RENDERING_ASSETS"
    BUILDING_MANIFEST = "BUILDING_MANIFEST"
    SIGNING = "SIGNING"
    PACKAGING = "PACKAGING"
    DONE = "DONE"
    ABORTED = "ABORTED"


@dataclass(frozen=True)
class GeneratedFile:
    """A file a stage wrote into the bundle: relative POSIX path plus the exact bytes."""

    relative_path: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)
