# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Signing identity loading.

The identity comes from two inputs:
  - a base64-encoded PKCS#12 container (signer certificate + private key)
    protected by a passphrase
  - the issuer certificate(s) in PEM form, embedded in the signature next to
    the signer certificate

The parsed key only lives for the duration of the signing stage: callers use
`open_signing_identity` as a context manager and drop the identity when
the block exits. Nothing here is ever written to disk.
"""

import base64
import binascii
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from pushpkg.config.schema import CredentialsConfig
from pushpkg.logging.logger import get_logger
from pushpkg.package.exceptions import CredentialError

_logger: logging.Logger = get_logger(__name__)

SigningKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]


@dataclass(frozen=True)
class SigningIdentity:
    """Signer certificate, its private key, and the issuer chain to embed."""

    certificate: x509.Certificate
    private_key: SigningKey
    issuer_chain: tuple[x509.Certificate, ...]

    @property
    def subject(self) -> str:
        return self.certificate.subject.rfc4514_string()


def _decode_container(p12_base64: str) -> bytes:
    # Tolerate line-wrapped base64 as produced by `base64 -w 76`.
    compact = "".join(p12_base64.split())
    if not compact:
        raise CredentialError("PKCS#12 container is empty")
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as err:
        raise CredentialError(f"PKCS#12 container is not valid base64: {err}") from err


def _load_issuer_chain(issuer_pem: str) -> tuple[x509.Certificate, ...]:
    try:
        certificates = x509.load_pem_x509_certificates(issuer_pem.encode("utf-8"))
    except ValueError as err:
        raise CredentialError(f"Issuer certificate is not valid PEM: {err}") from err
    if not certificates:
        raise CredentialError("Issuer certificate PEM contains no certificates")
    return tuple(certificates)


def _public_keys_match(certificate: x509.Certificate, private_key: SigningKey) -> bool:
    return certificate.public_key().public_numbers() == private_key.public_key().public_numbers()


def load_signing_identity(
    p12_base64: str,
    passphrase: str,
    issuer_pem: str,
) -> SigningIdentity:
    """
    Parse the PKCS#12 container and issuer certificate(s).

    Args:
        p12_base64: Base64 text of the PKCS#12 container.
        passphrase: Container passphrase. Empty means unencrypted.
        issuer_pem: One or more PEM certificates.

    Returns:
        A SigningIdentity ready for `sign_manifest`.

    Raises:
        CredentialError: Malformed container, wrong passphrase, missing key or
                         certificate, unsupported key type, key/certificate
                         mismatch, or unreadable issuer PEM.
    """
    container = _decode_container(p12_base64)
    password: Optional[bytes] = passphrase.encode("utf-8") if passphrase else None

    try:
        private_key, certificate, additional = pkcs12.load_key_and_certificates(container, password)
    except ValueError as err:
        # cryptography reports a wrong passphrase and a corrupt container the same way.
        raise CredentialError(
            "Cannot open PKCS#12 container: wrong passphrase or malformed data"
        ) from err

    if private_key is None:
        raise CredentialError("PKCS#12 container holds no private key")
    if certificate is None:
        raise CredentialError("PKCS#12 container holds no certificate")
    if not isinstance(private_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise CredentialError(
            f"Unsupported signing key type {type(private_key).__name__}; expected RSA or EC"
        )
    if not _public_keys_match(certificate, private_key):
        raise CredentialError("PKCS#12 private key does not match its certificate")

    issuer_chain = _load_issuer_chain(issuer_pem)

    _logger.info(
        "Signing identity loaded",
        extra={
            "subject": certificate.subject.rfc4514_string(),
            "issuers": [cert.subject.rfc4514_string() for cert in issuer_chain],
            "container_extra_certs": len(additional),
        },
    )
    return SigningIdentity(
        certificate=certificate,
        private_key=private_key,
        issuer_chain=issuer_chain,
    )


@contextmanager
def open_signing_identity(credentials: CredentialsConfig) -> Iterator[SigningIdentity]:
    """
    Load the identity for the duration of a `with` block.

    The context manager keeps no reference once the block exits. The caller
    owns the `as` binding and should drop it after signing.

    Raises:
        CredentialError: See `load_signing_identity`.
    """
    identity = load_signing_identity(
        p12_base64=credentials.p12_base64.get_secret_value(),
        passphrase=credentials.passphrase.get_secret_value(),
        issuer_pem=credentials.issuer_certificate_pem,
    )
    try:
        yield identity
    finally:
        _logger.debug("Signing identity released")
