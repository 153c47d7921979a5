"""
Configuration for the payments service.

Settings are read from the environment once (a local .env is loaded if
present) and validated into explicit objects that are passed to the
initiator and reconciler. Anything missing raises ConfigurationError
before a transaction is written or a redirect is issued.
"""
import os
from functools import lru_cache
from typing import Mapping, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from app.errors import ConfigurationError

load_dotenv()

SANDBOX_ENDPOINT = "https://sandbox.jazzcash.com.pk/CustomerPortal/transactionmanagement/merchantform"
PRODUCTION_ENDPOINT = "https://payments.jazzcash.com.pk/CustomerPortal/transactionmanagement/merchantform"

_QUOTES = "'\"`"


def normalize_env_value(value: Optional[str]) -> str:
    """Trim whitespace and one stray quote character at either end."""
    value = (value or "").strip()
    if value[:1] in _QUOTES:
        value = value[1:]
    if value[-1:] in _QUOTES:
        value = value[:-1]
    return value


def _is_production(environ: Mapping[str, str]) -> bool:
    env = (environ.get("JAZZCASH_ENV") or environ.get("JAZZCASH_ENVIRONMENT") or "sandbox")
    return env.strip().lower() in ("production", "live")


class GatewaySettings(BaseModel):
    """JazzCash merchant configuration shared by initiation and callback handling."""

    merchant_id: str
    password: str
    integrity_salt: str
    return_url: str
    success_redirect: str
    fail_redirect: str
    bank_id: str = "TBANK"
    product_id: str = "RETL"
    endpoint: str = SANDBOX_ENDPOINT
    is_sandbox: bool = True

    model_config = ConfigDict(frozen=True)

    @field_validator("return_url", "endpoint")
    @classmethod
    def validate_absolute_url(cls, v):
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("must be an absolute http(s) URL")
        return v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GatewaySettings":
        environ = os.environ if environ is None else environ
        required = {
            "merchant_id": "JAZZCASH_MERCHANT_ID",
            "password": "JAZZCASH_PASSWORD",
            "integrity_salt": "JAZZCASH_INTEGRITY_SALT",
            "return_url": "JAZZCASH_RETURN_URL",
            "success_redirect": "JAZZCASH_SUCCESS_REDIRECT",
            "fail_redirect": "JAZZCASH_FAIL_REDIRECT",
        }
        values = {field: normalize_env_value(environ.get(var)) for field, var in required.items()}
        missing = [required[field] for field, value in values.items() if not value]
        if missing:
            raise ConfigurationError(
                "Missing JazzCash configuration: " + ", ".join(missing)
            )

        is_sandbox = not _is_production(environ)
        values.update(
            bank_id=normalize_env_value(environ.get("JAZZCASH_BANK_ID")) or "TBANK",
            product_id=normalize_env_value(environ.get("JAZZCASH_PRODUCT_ID")) or "RETL",
            endpoint=(
                normalize_env_value(environ.get("JAZZCASH_ENDPOINT"))
                or (SANDBOX_ENDPOINT if is_sandbox else PRODUCTION_ENDPOINT)
            ),
            is_sandbox=is_sandbox,
        )
        try:
            return cls(**values)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][-1]) for err in e.errors())
            raise ConfigurationError(f"Invalid JazzCash configuration: {fields}") from e


class AuthSettings(BaseModel):
    """Bearer-token verification settings for the identity resolver."""

    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AuthSettings":
        environ = os.environ if environ is None else environ
        secret = normalize_env_value(environ.get("AUTH_JWT_SECRET"))
        if not secret:
            raise ConfigurationError("Missing auth configuration: AUTH_JWT_SECRET")
        return cls(
            jwt_secret=secret,
            jwt_algorithm=normalize_env_value(environ.get("AUTH_JWT_ALGORITHM")) or "HS256",
            jwt_audience=normalize_env_value(environ.get("AUTH_JWT_AUDIENCE")) or None,
        )


@lru_cache()
def get_gateway_settings() -> GatewaySettings:
    return GatewaySettings.from_env()


@lru_cache()
def get_auth_settings() -> AuthSettings:
    return AuthSettings.from_env()
