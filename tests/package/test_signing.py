# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for signing identity loading and the detached CMS signature.

Signature validity is checked with `openssl cms -verify`; those tests skip
when the openssl CLI is not installed.
"""

import base64
import gc
import weakref
from pathlib import Path
from typing import Callable

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs7, pkcs12

from conftest import PASSPHRASE
from pushpkg.package.exceptions import CredentialError, SigningError
from pushpkg.package.signing.identity import load_signing_identity, open_signing_identity
from pushpkg.package.signing.signer import sign_manifest, write_signature
from pushpkg.package.types import BuildStage, SIGNATURE_FILE

MANIFEST_BYTES = (
    b'{"icon.iconset/icon_16x16.png":{"hashType":"sha512","hashValue":"'
    + b"ab" * 64
    + b'"},"website.json":{"hashType":"sha512","hashValue":"'
    + b"cd" * 64
    + b'"}}'
)

# DER-encoded OBJECT IDENTIFIERs (tag, length, value).
OID_CONTENT_TYPE = bytes.fromhex("06092a864886f70d010903")
OID_MESSAGE_DIGEST = bytes.fromhex("06092a864886f70d010904")
OID_SIGNING_TIME = bytes.fromhex("06092a864886f70d010905")
OID_SHA256 = bytes.fromhex("0609608648016503040201")


@pytest.fixture()
def identity(p12_base64: str, issuer_pem: str):
    return load_signing_identity(p12_base64, PASSPHRASE, issuer_pem)


class TestLoadSigningIdentity:
    def test_loads_signer_and_issuer(
        self,
        identity,
        signer_material: tuple[rsa.RSAPrivateKey, x509.Certificate],
        ca_material: tuple[rsa.RSAPrivateKey, x509.Certificate],
    ) -> None:
        assert identity.certificate == signer_material[1]
        assert identity.issuer_chain == (ca_material[1],)
        assert "Website Push ID" in identity.subject

    def test_wrong_passphrase(self, p12_base64: str, issuer_pem: str) -> None:
        with pytest.raises(CredentialError, match="wrong passphrase") as excinfo:
            load_signing_identity(p12_base64, "not the passphrase", issuer_pem)
        assert excinfo.value.stage == BuildStage.SIGNING

    def test_missing_passphrase(self, p12_base64: str, issuer_pem: str) -> None:
        with pytest.raises(CredentialError):
            load_signing_identity(p12_base64, "", issuer_pem)

    def test_invalid_base64(self, issuer_pem: str) -> None:
        with pytest.raises(CredentialError, match="base64"):
            load_signing_identity("%%% not base64 %%%", PASSPHRASE, issuer_pem)

    def test_empty_container(self, issuer_pem: str) -> None:
        with pytest.raises(CredentialError, match="empty"):
            load_signing_identity("   \n", PASSPHRASE, issuer_pem)

    def test_base64_that_is_not_pkcs12(self, issuer_pem: str) -> None:
        garbage = base64.b64encode(b"this is not a PKCS#12 container").decode("ascii")
        with pytest.raises(CredentialError, match="malformed"):
            load_signing_identity(garbage, PASSPHRASE, issuer_pem)

    def test_line_wrapped_base64_is_accepted(self, p12_base64: str, issuer_pem: str) -> None:
        wrapped = "\n".join(p12_base64[i : i + 76] for i in range(0, len(p12_base64), 76))
        identity = load_signing_identity(wrapped, PASSPHRASE, issuer_pem)
        assert identity.certificate is not None

    def test_container_without_key(
        self,
        signer_material: tuple[rsa.RSAPrivateKey, x509.Certificate],
        issuer_pem: str,
    ) -> None:
        container = pkcs12.serialize_key_and_certificates(
            name=b"cert-only",
            key=None,
            cert=signer_material[1],
            cas=None,
            encryption_algorithm=serialization.NoEncryption(),
        )
        encoded = base64.b64encode(container).decode("ascii")
        with pytest.raises(CredentialError, match="no private key"):
            load_signing_identity(encoded, "", issuer_pem)

    def test_unreadable_issuer_pem(self, p12_base64: str) -> None:
        with pytest.raises(CredentialError, match="Issuer certificate"):
            load_signing_identity(p12_base64, PASSPHRASE, "-----BEGIN NOTHING-----")

    def test_context_manager_uses_config(self, build_config) -> None:
        with open_signing_identity(build_config.credentials) as identity:
            assert identity.issuer_chain

    def test_context_manager_keeps_no_reference(self, build_config) -> None:
        with open_signing_identity(build_config.credentials) as identity:
            ref = weakref.ref(identity)
        del identity
        gc.collect()
        assert ref() is None

    def test_context_manager_propagates_errors(self, build_config) -> None:
        with pytest.raises(RuntimeError, match="inside block"):
            with open_signing_identity(build_config.credentials):
                raise RuntimeError("inside block")


class TestSignManifest:
    def test_signature_verifies(self, identity, cms_verify: Callable) -> None:
        signature = sign_manifest(MANIFEST_BYTES, identity)
        result = cms_verify(signature, MANIFEST_BYTES)
        assert result.returncode == 0, result.stderr

    def test_signature_chains_to_issuer(self, identity, issuer_pem: str, cms_verify: Callable) -> None:
        signature = sign_manifest(MANIFEST_BYTES, identity)
        result = cms_verify(signature, MANIFEST_BYTES, ca_pem=issuer_pem)
        assert result.returncode == 0, result.stderr

    def test_tampered_manifest_fails_verification(self, identity, cms_verify: Callable) -> None:
        signature = sign_manifest(MANIFEST_BYTES, identity)
        tampered = MANIFEST_BYTES.replace(b"ab", b"ba", 1)
        result = cms_verify(signature, tampered)
        assert result.returncode != 0

    def test_signature_is_detached(self, identity) -> None:
        signature = sign_manifest(MANIFEST_BYTES, identity)
        assert MANIFEST_BYTES not in signature
        assert b"website.json" not in signature

    def test_signature_is_der(self, identity) -> None:
        signature = sign_manifest(MANIFEST_BYTES, identity)
        # SEQUENCE tag, not a PEM or S/MIME envelope.
        assert signature[0] == 0x30
        assert not signature.startswith(b"-----BEGIN")

    def test_embeds_signer_and_issuer_certificates(
        self,
        identity,
        signer_material: tuple[rsa.RSAPrivateKey, x509.Certificate],
        ca_material: tuple[rsa.RSAPrivateKey, x509.Certificate],
    ) -> None:
        signature = sign_manifest(MANIFEST_BYTES, identity)
        fingerprints = {
            cert.fingerprint(hashes.SHA256())
            for cert in pkcs7.load_der_pkcs7_certificates(signature)
        }
        assert signer_material[1].fingerprint(hashes.SHA256()) in fingerprints
        assert ca_material[1].fingerprint(hashes.SHA256()) in fingerprints

    def test_signed_attributes_present(self, identity) -> None:
        signature = sign_manifest(MANIFEST_BYTES, identity)
        assert OID_CONTENT_TYPE in signature
        assert OID_MESSAGE_DIGEST in signature
        assert OID_SIGNING_TIME in signature
        assert OID_SHA256 in signature

    def test_empty_manifest_rejected(self, identity) -> None:
        with pytest.raises(SigningError, match="empty"):
            sign_manifest(b"", identity)


def test_write_signature(identity, tmp_path: Path) -> None:
    signature = sign_manifest(MANIFEST_BYTES, identity)
    generated = write_signature(tmp_path, signature)

    assert generated.relative_path == SIGNATURE_FILE
    assert (tmp_path / SIGNATURE_FILE).read_bytes() == signature
    assert not (tmp_path / f"{SIGNATURE_FILE}.der").exists()
