# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
website.json writer.

Serializes the service metadata verbatim under the key names the registration
client expects. The JSON is canonical (sorted keys, no insignificant
whitespace) so identical config always yields identical bytes.
"""

import asyncio
import json
import logging
from pathlib import Path

from pushpkg.config.schema import WebsiteConfig
from pushpkg.logging.logger import get_logger
from pushpkg.package.types import WEBSITE_JSON, GeneratedFile
from pushpkg.utils.filesystem import atomic_write_bytes

_logger: logging.Logger = get_logger(__name__)


def serialize_website(config: WebsiteConfig) -> bytes:
    """Render the website document as canonical UTF-8 JSON."""
    document = config.model_dump(by_alias=True, mode="json")
    return json.dumps(
        document, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


async def write_website_json(config: WebsiteConfig, bundle_dir: Path) -> GeneratedFile:
    """
    Write website.json into the bundle root.

    Raises:
        OSError: If the write fails.
    """
    data = serialize_website(config)
    await asyncio.to_thread(atomic_write_bytes, bundle_dir / WEBSITE_JSON, data)

    _logger.info(
        "website.json written",
        extra={"push_id": config.website_push_id, "bytes": len(data)},
    )
    return GeneratedFile(relative_path=WEBSITE_JSON, data=data)
