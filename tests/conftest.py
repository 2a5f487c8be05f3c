# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for pushpkg tests.

Signing material is generated once per session: a throwaway CA, a signer
certificate issued by it, and an encrypted PKCS#12 container holding the
signer key. Nothing here touches real credentials.
"""

import base64
import os
import shutil
import subprocess
import textwrap
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID
from PIL import Image, ImageDraw

from pushpkg.config.schema import PushPackageConfig

PASSPHRASE = "correct horse battery staple"
AUTH_TOKEN = "19f8d7a6e9fb8a7f6d9330dabe"
SOURCE_SIZE = 512


def _name(common_name: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "pushpkg tests"),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )


def _issue_certificate(
    subject: x509.Name,
    issuer: x509.Name,
    public_key: rsa.RSAPublicKey,
    signing_key: rsa.RSAPrivateKey,
    is_ca: bool,
) -> x509.Certificate:
    now = datetime.now(tz=timezone.utc)
    key_usage = x509.KeyUsage(
        digital_signature=not is_ca,
        content_commitment=False,
        key_encipherment=False,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=is_ca,
        crl_sign=is_ca,
        encipher_only=False,
        decipher_only=False,
    )
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
        .add_extension(key_usage, critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(signing_key.public_key()),
            critical=False,
        )
        .sign(signing_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def ca_material() -> tuple[rsa.RSAPrivateKey, x509.Certificate]:
    """Self-signed trust anchor."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = _name("pushpkg test CA")
    cert = _issue_certificate(name, name, key.public_key(), key, is_ca=True)
    return key, cert


@pytest.fixture(scope="session")
def signer_material(
    ca_material: tuple[rsa.RSAPrivateKey, x509.Certificate],
) -> tuple[rsa.RSAPrivateKey, x509.Certificate]:
    """Signer key and a certificate for it issued by the test CA."""
    ca_key, ca_cert = ca_material
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    cert = _issue_certificate(
        _name("Website Push ID: web.com.example.push"),
        ca_cert.subject,
        key.public_key(),
        ca_key,
        is_ca=False,
    )
    return key, cert


@pytest.fixture(scope="session")
def p12_base64(signer_material: tuple[rsa.RSAPrivateKey, x509.Certificate]) -> str:
    """Base64 PKCS#12 container, encrypted with PASSPHRASE."""
    key, cert = signer_material
    container = pkcs12.serialize_key_and_certificates(
        name=b"pushpkg-signer",
        key=key,
        cert=cert,
        cas=None,
        encryption_algorithm=serialization.BestAvailableEncryption(PASSPHRASE.encode("utf-8")),
    )
    return base64.b64encode(container).decode("ascii")


@pytest.fixture(scope="session")
def issuer_pem(ca_material: tuple[rsa.RSAPrivateKey, x509.Certificate]) -> str:
    _, cert = ca_material
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


@pytest.fixture(scope="session")
def secret_env(p12_base64: str, issuer_pem: str) -> dict[str, str]:
    """The environment a CI job would export for a build."""
    return {
        "PUSH_NOTIFICATION_AUTHENTICATION_TOKEN": AUTH_TOKEN,
        "PUSH_NOTIFICATION_P12": p12_base64,
        "PUSH_NOTIFICATION_CERT_PASSWORD": PASSPHRASE,
        "PUSH_NOTIFICATION_APPLE_PEM": issuer_pem,
    }


def draw_source_image(path: Path, width: int = SOURCE_SIZE, height: int = SOURCE_SIZE) -> Path:
    """Deterministic test artwork: coloured bands plus a circle."""
    image = Image.new("RGBA", (width, height), (255, 255, 255, 0))
    draw = ImageDraw.Draw(image)
    band = max(width // 8, 1)
    for i in range(8):
        draw.rectangle(
            [i * band, 0, (i + 1) * band - 1, height - 1],
            fill=(i * 30 % 256, 80 + i * 20, 200 - i * 15, 255),
        )
    draw.ellipse([width // 4, height // 4, 3 * width // 4, 3 * height // 4], fill=(250, 250, 250, 255))
    image.save(path, format="PNG")
    return path


@pytest.fixture()
def source_icon(tmp_path: Path) -> Path:
    """A 512x512 PNG source image."""
    return draw_source_image(tmp_path / "logo.png")


@pytest.fixture()
def config_data(
    tmp_path: Path, source_icon: Path, p12_base64: str, issuer_pem: str
) -> dict[str, Any]:
    """Raw config mapping with every section filled in, paths under tmp_path."""
    return {
        "global": {"config_version": "1.0.0", "project_name": "pushpkg-test", "log_level": "DEBUG"},
        "website": {
            "website_name": "Journal des messages",
            "website_push_id": "web.com.example.push",
            "allowed_domains": ["https://push.example.com"],
            "url_format_string": "https://push.example.com?partition=%@",
            "authentication_token": AUTH_TOKEN,
            "web_service_url": "https://push.example.com/push",
        },
        "build": {
            "bundle_dir": str(tmp_path / "dist" / "Example.pushpackage"),
            "output_archive": str(tmp_path / "dist" / "out" / "package.zip"),
            "icons": {"source": str(source_icon)},
        },
        "credentials": {
            "p12_base64": p12_base64,
            "passphrase": PASSPHRASE,
            "issuer_certificate_pem": issuer_pem,
        },
    }


@pytest.fixture()
def make_config(config_data: dict[str, Any]) -> Callable[..., PushPackageConfig]:
    """
    Build a PushPackageConfig, optionally overriding fields per section:
    make_config(credentials={"passphrase": "wrong"}).
    """

    def _make(**overrides: dict[str, Any]) -> PushPackageConfig:
        data = {section: dict(values) for section, values in config_data.items()}
        for section, values in overrides.items():
            data[section].update(values)
        return PushPackageConfig.model_validate(data)

    return _make


@pytest.fixture()
def build_config(make_config: Callable[..., PushPackageConfig]) -> PushPackageConfig:
    return make_config()


@pytest.fixture()
def config_file(tmp_path: Path, source_icon: Path) -> Path:
    """A YAML config without secrets, the way it is committed to a repo."""
    content = textwrap.dedent(f"""\
        global:
          config_version: "1.0.0"
          project_name: "pushpkg-test"
          log_level: "DEBUG"
        website:
          website_name: "Journal des messages"
          website_push_id: "web.com.example.push"
          allowed_domains:
            - "https://push.example.com"
          url_format_string: "https://push.example.com?partition=%@"
          web_service_url: "https://push.example.com/push"
        build:
          bundle_dir: "{(tmp_path / "dist" / "Example.pushpackage").as_posix()}"
          output_archive: "{(tmp_path / "dist" / "out" / "package.zip").as_posix()}"
          icons:
            source: "{source_icon.as_posix()}"
    """)
    config_path = tmp_path / "pushpackage.yaml"
    config_path.write_text(content, encoding="utf-8")
    return config_path


@pytest.fixture()
def cms_verify(tmp_path: Path) -> Callable[..., subprocess.CompletedProcess[str]]:
    """
    Verify a detached DER signature against content with the openssl CLI.

    Pass ca_pem to also validate the certificate chain; without it only the
    signature itself is checked.
    """
    openssl = shutil.which("openssl")
    if openssl is None:
        pytest.skip("openssl CLI not available")

    def _verify(
        signature: bytes, content: bytes, ca_pem: str | None = None
    ) -> subprocess.CompletedProcess[str]:
        sig_path = tmp_path / "cms_verify.sig"
        content_path = tmp_path / "cms_verify.content"
        sig_path.write_bytes(signature)
        content_path.write_bytes(content)
        command = [
            openssl, "cms", "-verify", "-binary",
            "-inform", "DER", "-in", str(sig_path),
            "-content", str(content_path),
            "-out", os.devnull,
        ]
        if ca_pem is None:
            command.append("-noverify")
        else:
            ca_path = tmp_path / "cms_verify_ca.pem"
            ca_path.write_text(ca_pem, encoding="ascii")
            command.extend(["-CAfile", str(ca_path), "-purpose", "any"])
        return subprocess.run(command, capture_output=True, text=True, timeout=30)

    return _verify
