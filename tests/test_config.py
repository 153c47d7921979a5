"""
Unit tests for app/config.py.

Settings are built from explicit mappings; the process environment is never read.
"""
import pytest
from pydantic import ValidationError

from app.config import (
    PRODUCTION_ENDPOINT,
    SANDBOX_ENDPOINT,
    AuthSettings,
    GatewaySettings,
    normalize_env_value,
)
from app.errors import ConfigurationError

ENV = {
    "JAZZCASH_MERCHANT_ID": "MC00001",
    "JAZZCASH_PASSWORD": "merchantpass",
    "JAZZCASH_INTEGRITY_SALT": "0123456789abcdef",
    "JAZZCASH_RETURN_URL": "https://app.example.com/api/payments/jazzcash/callback",
    "JAZZCASH_SUCCESS_REDIRECT": "https://app.example.com/pricing/success",
    "JAZZCASH_FAIL_REDIRECT": "https://app.example.com/pricing/failed",
}


class TestNormalizeEnvValue:
    def test_trims_whitespace(self):
        assert normalize_env_value("  abc \n") == "abc"

    def test_strips_surrounding_quotes(self):
        assert normalize_env_value('"abc"') == "abc"
        assert normalize_env_value("'abc'") == "abc"
        assert normalize_env_value("`abc`") == "abc"

    def test_strips_single_stray_quote(self):
        assert normalize_env_value('abc"') == "abc"

    def test_none_is_empty(self):
        assert normalize_env_value(None) == ""


class TestGatewaySettings:
    def test_defaults(self):
        s = GatewaySettings.from_env(ENV)
        assert s.bank_id == "TBANK"
        assert s.product_id == "RETL"
        assert s.is_sandbox is True
        assert s.endpoint == SANDBOX_ENDPOINT

    def test_production_environment_selects_production_endpoint(self):
        s = GatewaySettings.from_env(dict(ENV, JAZZCASH_ENV="Production"))
        assert s.is_sandbox is False
        assert s.endpoint == PRODUCTION_ENDPOINT

    def test_live_alias_via_environment_variable(self):
        s = GatewaySettings.from_env(dict(ENV, JAZZCASH_ENVIRONMENT="live"))
        assert s.endpoint == PRODUCTION_ENDPOINT

    def test_explicit_endpoint_wins(self):
        s = GatewaySettings.from_env(dict(ENV, JAZZCASH_ENDPOINT="https://jc.test/form"))
        assert s.endpoint == "https://jc.test/form"

    def test_overrides_bank_and_product(self):
        s = GatewaySettings.from_env(dict(ENV, JAZZCASH_BANK_ID="XBANK", JAZZCASH_PRODUCT_ID="SUBS"))
        assert (s.bank_id, s.product_id) == ("XBANK", "SUBS")

    def test_quoted_salt_normalized(self):
        s = GatewaySettings.from_env(dict(ENV, JAZZCASH_INTEGRITY_SALT=' "0123456789abcdef" '))
        assert s.integrity_salt == "0123456789abcdef"

    @pytest.mark.parametrize("missing", sorted(ENV))
    def test_each_required_value_enforced(self, missing):
        env = {k: v for k, v in ENV.items() if k != missing}
        with pytest.raises(ConfigurationError, match=missing):
            GatewaySettings.from_env(env)

    def test_all_missing_values_listed(self):
        with pytest.raises(ConfigurationError) as exc_info:
            GatewaySettings.from_env({})
        for var in ENV:
            assert var in str(exc_info.value)

    def test_blank_value_counts_as_missing(self):
        with pytest.raises(ConfigurationError, match="JAZZCASH_PASSWORD"):
            GatewaySettings.from_env(dict(ENV, JAZZCASH_PASSWORD="  "))

    def test_relative_return_url_rejected(self):
        with pytest.raises(ConfigurationError, match="return_url"):
            GatewaySettings.from_env(dict(ENV, JAZZCASH_RETURN_URL="/callback"))

    def test_settings_are_immutable(self):
        s = GatewaySettings.from_env(ENV)
        with pytest.raises(ValidationError):
            s.integrity_salt = "changed"


class TestAuthSettings:
    def test_requires_secret(self):
        with pytest.raises(ConfigurationError, match="AUTH_JWT_SECRET"):
            AuthSettings.from_env({})

    def test_defaults(self):
        s = AuthSettings.from_env({"AUTH_JWT_SECRET": "x"})
        assert s.jwt_algorithm == "HS256"
        assert s.jwt_audience is None

    def test_audience(self):
        s = AuthSettings.from_env({"AUTH_JWT_SECRET": "x", "AUTH_JWT_AUDIENCE": "authenticated"})
        assert s.jwt_audience == "authenticated"
