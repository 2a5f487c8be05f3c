# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for pushpkg.

Every section of configs/pushpackage.yaml gets its own frozen pydantic model.
Frozen means the config built at startup is the one every stage sees; nothing
can mutate it halfway through a build.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked

Secrets (authentication token, PKCS#12 container, passphrase, issuer
certificate) are normally injected from the environment by the loader rather
than written into the YAML file.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

URL_PLACEHOLDER = "%@"
MIN_AUTH_TOKEN_LENGTH = 16


class GlobalConfig(BaseModel):
    """Cross-cutting settings: schema version, project identity, logging."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    project_name: str = Field(
        default="pushpkg", description="Human-readable project identifier"
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return upper


class WebsiteConfig(BaseModel):
    """
    The service metadata document that ends up as website.json.

    Field names are snake_case in YAML; the serialization aliases are the key
    names the registration client reads.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", validate_default=True, hide_input_in_errors=True
    )

    website_name: str = Field(
        min_length=1,
        serialization_alias="websiteName",
        description="Name shown in the permission prompt",
    )
    website_push_id: str = Field(
        pattern=r"^web\.[A-Za-z0-9.\-]+$",
        serialization_alias="websitePushID",
        description="Reverse-domain push identifier, must start with 'web.'",
    )
    allowed_domains: list[str] = Field(
        min_length=1,
        serialization_alias="allowedDomains",
        description="Origins allowed to ask for push permission",
    )
    url_format_string: str = Field(
        serialization_alias="urlFormatString",
        description="URL opened on click; exactly one '%@' placeholder",
    )
    authentication_token: str = Field(
        min_length=MIN_AUTH_TOKEN_LENGTH,
        serialization_alias="authenticationToken",
        description="Opaque token echoed back to the web service",
    )
    web_service_url: str = Field(
        serialization_alias="webServiceUrl",
        description="Base URL of the registration web service",
    )

    @field_validator("allowed_domains")
    @classmethod
    def _domains_are_origins(cls, value: list[str]) -> list[str]:
        for domain in value:
            if not domain.startswith(("https://", "http://")):
                raise ValueError(f"allowed domain {domain!r} must be an http(s) origin")
        return value

    @field_validator("url_format_string")
    @classmethod
    def _single_placeholder(cls, value: str) -> str:
        count = value.count(URL_PLACEHOLDER)
        if count != 1:
            raise ValueError(
                f"url_format_string must contain exactly one '{URL_PLACEHOLDER}' placeholder, found {count}"
            )
        return value

    @field_validator("web_service_url")
    @classmethod
    def _https_only(cls, value: str) -> str:
        if not value.startswith("https://"):
            raise ValueError("web_service_url must use https")
        return value


class IconConfig(BaseModel):
    """Source image and the size grid rendered into icon.iconset/."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    source: str = Field(description="Path to the square source raster image")
    base_sizes: list[int] = Field(
        default_factory=lambda: [16, 32, 128],
        min_length=1,
        description="Logical icon sizes in points",
    )
    scale_factors: list[int] = Field(
        default_factory=lambda: [1, 2],
        min_length=1,
        description="Pixel density multipliers; 1 is the plain icon, 2 the @2x variant",
    )

    @field_validator("base_sizes", "scale_factors")
    @classmethod
    def _positive_unique(cls, value: list[int]) -> list[int]:
        if any(v < 1 for v in value):
            raise ValueError("sizes and scale factors must be >= 1")
        if len(set(value)) != len(value):
            raise ValueError("duplicate entries are not allowed")
        return value


class BuildConfig(BaseModel):
    """Where the bundle directory and the final archive live."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    bundle_dir: str = Field(
        default="dist/push.pushpackage",
        description="Working directory the bundle tree is assembled in",
    )
    output_archive: str = Field(
        default="dist/out/package.zip",
        description="Path of the finished push package archive",
    )
    icons: IconConfig


class CredentialsConfig(BaseModel):
    """
    Signing material. Only ever read by the signing stage.

    p12_base64 is the base64 text of a PKCS#12 container holding the signer
    certificate and private key; issuer_certificate_pem holds the trust
    anchor certificate(s) embedded next to the signer certificate.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", validate_default=True, hide_input_in_errors=True
    )

    p12_base64: SecretStr = Field(description="Base64-encoded PKCS#12 container")
    passphrase: SecretStr = Field(
        default=SecretStr(""), description="Passphrase protecting the container"
    )
    issuer_certificate_pem: str = Field(
        min_length=1, description="Issuer / trust anchor certificate(s) in PEM form"
    )


class PushPackageConfig(BaseModel):
    """
    Top-level config container, built once at startup and passed by reference
    into every build stage.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", validate_default=True, hide_input_in_errors=True
    )

    global_config: GlobalConfig = Field(alias="global")
    website: WebsiteConfig
    build: BuildConfig
    credentials: CredentialsConfig
