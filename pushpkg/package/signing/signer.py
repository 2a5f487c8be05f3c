# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Detached CMS signature over manifest.json.

The signature is a PKCS#7 / CMS SignedData structure:
  - digest algorithm SHA-256 (the manifest rows themselves use SHA-512)
  - signed attributes: content-type, message-digest of the manifest bytes,
    signing-time (wall clock at signing)
  - certificates: the signer certificate and every issuer certificate
  - detached: the manifest bytes are not embedded
  - DER-encoded, written to <bundle>/signature with no extension

The content is signed in binary mode. S/MIME canonicalization would rewrite
line endings before hashing and the message-digest would no longer match
the manifest.json bytes on disk.

signing-time makes the signature differ on every build. That is expected.
"""

import logging
from pathlib import Path

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7

from pushpkg.logging.logger import get_logger
from pushpkg.package.exceptions import SigningError
from pushpkg.package.signing.identity import SigningIdentity
from pushpkg.package.types import SIGNATURE_FILE, GeneratedFile
from pushpkg.utils.filesystem import atomic_write_bytes

_logger: logging.Logger = get_logger(__name__)

SIGNATURE_OPTIONS: tuple[pkcs7.PKCS7Options, ...] = (
    pkcs7.PKCS7Options.DetachedSignature,
    pkcs7.PKCS7Options.Binary,
    pkcs7.PKCS7Options.NoCapabilities,
)


def sign_manifest(manifest_bytes: bytes, identity: SigningIdentity) -> bytes:
    """
    Produce the DER-encoded detached signature for the manifest bytes.

    Args:
        manifest_bytes: Exactly the bytes written to manifest.json.
        identity: Loaded signing identity.

    Returns:
        DER bytes of the CMS SignedData structure.

    Raises:
        SigningError: If the cryptographic operation fails.
    """
    if not manifest_bytes:
        raise SigningError("Refusing to sign an empty manifest")

    try:
        builder = (
            pkcs7.PKCS7SignatureBuilder()
            .set_data(manifest_bytes)
            .add_signer(identity.certificate, identity.private_key, hashes.SHA256())
        )
        for issuer in identity.issuer_chain:
            if issuer == identity.certificate:
                continue
            builder = builder.add_certificate(issuer)
        signature = builder.sign(serialization.Encoding.DER, list(SIGNATURE_OPTIONS))
    except (ValueError, TypeError) as err:
        raise SigningError(f"CMS signing failed: {err}") from err

    _logger.info(
        "Manifest signed",
        extra={
            "signer": identity.subject,
            "digest": "sha256",
            "signature_bytes": len(signature),
        },
    )
    return signature


def write_signature(bundle_dir: Path, signature: bytes) -> GeneratedFile:
    """
    Write the signature to <bundle>/signature.

    Raises:
        OSError: If the write fails.
    """
    atomic_write_bytes(bundle_dir / SIGNATURE_FILE, signature)
    _logger.debug("Signature written", extra={"path": str(bundle_dir / SIGNATURE_FILE)})
    return GeneratedFile(relative_path=SIGNATURE_FILE, data=signature)
