# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Icon renderer — turns one square source image into the icon.iconset/ grid.

Each IconSpec is a (base_size, scale_factor) pair. The rendered PNG is
base_size * scale_factor pixels on each side and is named after the base
size, with an @<k>x suffix for scale factors above 1:

    (16, 1)  -> icon.iconset/icon_16x16.png       16x16 px
    (16, 2)  -> icon.iconset/icon_16x16@2x.png    32x32 px
    (128, 2) -> icon.iconset/icon_128x128@2x.png  256x256 px

Rendering is deterministic: the same source bytes always produce the same
PNG bytes, so manifest digests are stable between builds.
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from PIL import Image, UnidentifiedImageError

from pushpkg.logging.logger import get_logger
from pushpkg.package.exceptions import ImageProcessingError
from pushpkg.package.types import ICONSET_DIR, GeneratedFile
from pushpkg.utils.filesystem import atomic_write_bytes
from pushpkg.utils.tasks import gather_or_cancel

_logger: logging.Logger = get_logger(__name__)

DEFAULT_BASE_SIZES: tuple[int, ...] = (16, 32, 128)
DEFAULT_SCALE_FACTORS: tuple[int, ...] = (1, 2)


@dataclass(frozen=True)
class IconSpec:
    """One required icon variant."""

    base_size: int
    scale_factor: int

    @property
    def pixel_size(self) -> int:
        return self.base_size * self.scale_factor


def build_icon_specs(
    base_sizes: Iterable[int] = DEFAULT_BASE_SIZES,
    scale_factors: Iterable[int] = DEFAULT_SCALE_FACTORS,
) -> tuple[IconSpec, ...]:
    """Cross product of base sizes and scale factors, ordered by base size then scale."""
    scales = list(scale_factors)
    return tuple(IconSpec(size, scale) for size in base_sizes for scale in scales)


DEFAULT_ICON_SPECS: tuple[IconSpec, ...] = build_icon_specs()


def icon_file_name(spec: IconSpec) -> str:
    """icon_{N}x{N}.png for scale 1, icon_{N}x{N}@{k}x.png otherwise."""
    suffix = "" if spec.scale_factor == 1 else f"@{spec.scale_factor}x"
    return f"icon_{spec.base_size}x{spec.base_size}{suffix}.png"


def icon_relative_path(spec: IconSpec) -> str:
    return f"{ICONSET_DIR}/{icon_file_name(spec)}"


def load_source_image(source_path: Path) -> Image.Image:
    """
    Open and fully decode the source image.

    Image.open is lazy, so we force a full decode here. That way a truncated
    or corrupt file fails now, in one place, instead of inside a render task.

    Returns:
        The decoded image converted to RGBA.

    Raises:
        ImageProcessingError: If the file is missing, undecodable, or not square.
    """
    try:
        with Image.open(source_path) as opened:
            opened.load()
            image = opened.convert("RGBA")
    except FileNotFoundError as err:
        raise ImageProcessingError(f"Source image not found: {source_path}") from err
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as err:
        raise ImageProcessingError(f"Cannot decode source image {source_path}: {err}") from err

    width, height = image.size
    if width != height:
        raise ImageProcessingError(
            f"Source image must be square, got {width}x{height}: {source_path}"
        )

    _logger.debug(
        "Source image loaded",
        extra={"source": str(source_path), "size": width},
    )
    return image


def render_icon(image: Image.Image, spec: IconSpec) -> bytes:
    """
    Resize the source to spec.pixel_size and encode it as PNG.

    Raises:
        ImageProcessingError: If resizing or encoding fails.
    """
    size = spec.pixel_size
    try:
        resized = image.resize((size, size), Image.Resampling.LANCZOS)
        buffer = io.BytesIO()
        resized.save(buffer, format="PNG")
    except (OSError, ValueError) as err:
        raise ImageProcessingError(
            f"Failed to render {icon_file_name(spec)} at {size}x{size}: {err}"
        ) from err
    return buffer.getvalue()


async def render_icon_file(image: Image.Image, spec: IconSpec, bundle_dir: Path) -> GeneratedFile:
    """Render one spec and write it into the bundle. Encoding and the write run off the event loop."""
    data = await asyncio.to_thread(render_icon, image, spec)
    relative_path = icon_relative_path(spec)
    await asyncio.to_thread(atomic_write_bytes, bundle_dir / relative_path, data)

    _logger.debug(
        "Icon written",
        extra={"file": relative_path, "pixels": spec.pixel_size, "bytes": len(data)},
    )
    return GeneratedFile(relative_path=relative_path, data=data)


async def render_icons(
    source_path: Path,
    specs: Sequence[IconSpec],
    bundle_dir: Path,
) -> list[GeneratedFile]:
    """
    Render every spec concurrently. A single failed spec aborts the whole set.

    Raises:
        ImageProcessingError: Source undecodable or not square, or an icon failed to encode.
        OSError: If writing an icon fails.
    """
    image = await asyncio.to_thread(load_source_image, source_path)
    files = await gather_or_cancel(*(render_icon_file(image, spec, bundle_dir) for spec in specs))

    _logger.info(
        "Icons rendered",
        extra={"count": len(files), "iconset": str(bundle_dir / ICONSET_DIR)},
    )
    return files
