# -*- coding: utf-8 -*-

"""
Unit tests for the typed policy model.
Verifies parsing of merged policies into ResolvedPolicy and shape errors.
"""

import dataclasses

import pytest
from pydantic import ValidationError

from webshield.errors import MalformedConfigError
from webshield.merge import merge_policy
from webshield.models import (
    HEADER_CATEGORIES,
    BasicAuthOptions,
    CorsOptions,
    RateLimiterOptions,
    RequestSizeLimiterOptions,
    XssValidatorOptions,
    parse_policy,
)


def resolve(default_policy, user):
    return parse_policy(merge_policy(default_policy, user))


class TestParseDefaults:
    """Tests for parsing the default policy."""

    def test_all_headers_enabled_on_catch_all_route(self, default_policy):
        """
        What it does: Verifies that every header category is enabled on "/**".
        """
        resolved = parse_policy(default_policy)

        assert set(resolved.headers) == set(HEADER_CATEGORIES)
        for category in HEADER_CATEGORIES:
            config = resolved.headers[category]
            assert config is not None, category
            assert config.route == "/**"

    def test_all_features_unset(self, default_policy):
        """
        What it does: Verifies that no protective feature is configured by default.
        """
        resolved = parse_policy(default_policy)

        assert resolved.request_size_limiter is None
        assert resolved.rate_limiter is None
        assert resolved.xss_validator is None
        assert resolved.cors_handler is None
        assert resolved.allowed_methods_restricter is None
        assert resolved.basic_auth is None
        assert resolved.hide_powered_by is True

    def test_resolved_policy_is_immutable(self, default_policy):
        """
        What it does: Verifies that the resolved policy and its options cannot be modified.
        Purpose: The policy is shared read-only by every request path.
        """
        resolved = parse_policy(default_policy)

        with pytest.raises(dataclasses.FrozenInstanceError):
            resolved.hide_powered_by = False
        with pytest.raises(TypeError):
            resolved.headers["xFrameOptions"] = None
        with pytest.raises(TypeError):
            resolved.headers["contentSecurityPolicy"].options["img-src"] = ("*",)

        assert resolved.headers["permissionsPolicy"].options["camera"] == ("()",)


class TestParseHeaders:
    """Tests for header category parsing."""

    def test_false_disables_header(self, default_policy):
        """
        What it does: Verifies that False disables a header category.
        """
        resolved = resolve(default_policy, {"headers": {"xFrameOptions": False}})

        assert resolved.headers["xFrameOptions"] is None
        assert resolved.headers["xContentTypeOptions"] is not None

    def test_headers_false_disables_everything(self, default_policy):
        """
        What it does: Verifies that headers=False disables every header category.
        """
        resolved = resolve(default_policy, {"headers": False})

        assert all(config is None for config in resolved.headers.values())

    def test_unknown_header_category_is_rejected(self, default_policy):
        """
        What it does: Verifies that a misspelled header category fails loudly.
        Purpose: A typo must not silently leave a header unconfigured.
        """
        with pytest.raises(MalformedConfigError) as exc_info:
            resolve(default_policy, {"headers": {"xFrameOption": {"route": "/**", "options": "DENY"}}})

        print(f"Error: {exc_info.value}")
        assert exc_info.value.category == "xFrameOption"

    def test_header_without_options_is_rejected(self, default_policy):
        """
        What it does: Verifies that an enabled header needs options.
        """
        default_policy["headers"]["xFrameOptions"] = {"route": "/**"}

        with pytest.raises(MalformedConfigError) as exc_info:
            parse_policy(default_policy)

        assert exc_info.value.category == "xFrameOptions"
        assert exc_info.value.field == "options"

    def test_header_true_is_rejected(self, default_policy):
        """
        What it does: Verifies that True is not accepted as a header config.
        """
        with pytest.raises(MalformedConfigError) as exc_info:
            resolve(default_policy, {"headers": {"xFrameOptions": True}})

        assert exc_info.value.category == "xFrameOptions"

    def test_non_string_route_is_rejected(self, default_policy):
        """
        What it does: Verifies that a route must be a string.
        """
        with pytest.raises(MalformedConfigError) as exc_info:
            resolve(default_policy, {"headers": {"xFrameOptions": {"route": 42}}})

        assert exc_info.value.field == "route"


class TestParseFeatures:
    """Tests for feature category parsing."""

    def test_rate_limiter_short_names(self, default_policy):
        """
        What it does: Verifies that rateLimiter accepts max/window.
        """
        resolved = resolve(
            default_policy, {"rateLimiter": {"route": "/api/**", "value": {"max": 10, "window": "1m"}}}
        )

        options = resolved.rate_limiter.value
        assert isinstance(options, RateLimiterOptions)
        assert options.tokens_per_interval == 10
        assert options.interval == "1m"
        assert options.fire_immediately is True

    def test_rate_limiter_long_names(self, default_policy):
        """
        What it does: Verifies that rateLimiter accepts tokensPerInterval/interval.
        """
        resolved = resolve(
            default_policy,
            {"rateLimiter": {"route": "/**", "value": {"tokensPerInterval": 5, "interval": 60000}}},
        )

        assert resolved.rate_limiter.value.tokens_per_interval == 5
        assert resolved.rate_limiter.value.interval == 60000

    def test_rate_limiter_invalid_value_names_field(self, default_policy):
        """
        What it does: Verifies that an invalid option names category and field.
        Purpose: A startup failure must point at the offending setting.
        """
        with pytest.raises(MalformedConfigError) as exc_info:
            resolve(default_policy, {"rateLimiter": {"route": "/**", "value": {"max": 0}}})

        print(f"Error: {exc_info.value}")
        assert exc_info.value.category == "rateLimiter"
        assert exc_info.value.field.startswith("value.")

    def test_request_size_limiter_accepts_number(self, default_policy):
        """
        What it does: Verifies that a bare number sets the request size limit.
        """
        resolved = resolve(default_policy, {"requestSizeLimiter": {"route": "/**", "value": 4096}})

        options = resolved.request_size_limiter.value
        assert isinstance(options, RequestSizeLimiterOptions)
        assert options.max_request_size_in_bytes == 4096
        assert options.max_upload_file_request_in_bytes == 8_000_000

    def test_xss_validator_passes_options_through(self, default_policy):
        """
        What it does: Verifies that xssValidator options are kept as given.
        """
        resolved = resolve(
            default_policy, {"xssValidator": {"route": "/**", "value": {"stripIgnoreTag": True}}}
        )

        options = resolved.xss_validator.value
        assert isinstance(options, XssValidatorOptions)
        assert options.model_extra == {"stripIgnoreTag": True}

    def test_cors_defaults_and_lists(self, default_policy):
        """
        What it does: Verifies CORS option defaults and list conversion.
        """
        resolved = resolve(
            default_policy,
            {"corsHandler": {"route": "/api/**", "value": {"origin": ["https://a.example"], "maxAge": 600}}},
        )

        options = resolved.cors_handler.value
        assert isinstance(options, CorsOptions)
        assert options.origin == ("https://a.example",)
        assert options.methods == ("GET", "HEAD", "PUT", "PATCH", "POST", "DELETE")
        assert options.max_age == 600
        assert options.preflight.status_code == 204

    def test_allowed_methods_normalized(self, default_policy):
        """
        What it does: Verifies allowed methods normalization (case, spaces, lists).
        """
        resolved = resolve(
            default_policy, {"allowedMethodsRestricter": {"route": "/**", "value": "get, post"}}
        )
        assert resolved.allowed_methods_restricter.value == "GET,POST"

        resolved = resolve(
            default_policy, {"allowedMethodsRestricter": {"route": "/**", "value": ["get", "PUT"]}}
        )
        assert resolved.allowed_methods_restricter.value == ("GET", "PUT")

        resolved = resolve(
            default_policy, {"allowedMethodsRestricter": {"route": "/**", "value": ["*"]}}
        )
        assert resolved.allowed_methods_restricter.value == "*"

    def test_allowed_methods_requires_value(self, default_policy):
        """
        What it does: Verifies that allowedMethodsRestricter without a value is rejected.
        """
        with pytest.raises(MalformedConfigError) as exc_info:
            resolve(default_policy, {"allowedMethodsRestricter": {"route": "/**"}})

        assert exc_info.value.field == "value"

    def test_basic_auth_password_alias(self, default_policy):
        """
        What it does: Verifies that basic auth reads the "pass" field.
        """
        resolved = resolve(
            default_policy,
            {"basicAuth": {"route": "/**", "value": {"enabled": True, "name": "u", "pass": "p"}}},
        )

        options = resolved.basic_auth.value
        assert isinstance(options, BasicAuthOptions)
        assert options.password == "p"

    def test_enabled_basic_auth_requires_credentials(self, default_policy):
        """
        What it does: Verifies that enabled basic auth without a password is rejected.
        Purpose: An auth prompt nobody can pass is a configuration error.
        """
        with pytest.raises(MalformedConfigError) as exc_info:
            resolve(
                default_policy,
                {"basicAuth": {"route": "/**", "value": {"enabled": True, "name": "admin"}}},
            )

        assert exc_info.value.category == "basicAuth"
        assert exc_info.value.field == "value.pass"

    def test_basic_auth_enabled_must_be_boolean(self, default_policy):
        """
        What it does: Verifies that enabled="yes" is not coerced to True.
        """
        with pytest.raises(MalformedConfigError) as exc_info:
            resolve(default_policy, {"basicAuth": {"route": "/**", "value": {"enabled": "yes"}}})

        assert exc_info.value.field == "value.enabled"

    def test_false_means_not_configured(self, default_policy):
        """
        What it does: Verifies that False leaves a feature unconfigured.
        """
        resolved = resolve(default_policy, {"basicAuth": False, "rateLimiter": False})

        assert resolved.basic_auth is None
        assert resolved.rate_limiter is None

    def test_unknown_feature_field_is_rejected(self, default_policy):
        """
        What it does: Verifies that a misspelled feature field fails loudly.
        """
        with pytest.raises(MalformedConfigError) as exc_info:
            resolve(default_policy, {"rateLimiter": {"rout": "/api/**", "value": {}}})

        assert exc_info.value.category == "rateLimiter"
        assert exc_info.value.field == "rout"

    def test_feature_lookup_by_category(self, default_policy):
        """
        What it does: Verifies ResolvedPolicy.feature() lookup by category name.
        """
        resolved = resolve(default_policy, {"xssValidator": {"route": "/**"}})

        assert resolved.feature("xssValidator") is resolved.xss_validator
        assert resolved.feature("basicAuth") is None
        with pytest.raises(KeyError):
            resolved.feature("unknown")

    def test_option_models_are_frozen(self):
        """
        What it does: Verifies that option models cannot be modified.
        """
        options = RateLimiterOptions()

        with pytest.raises(ValidationError):
            options.tokens_per_interval = 1


class TestParseTopLevel:
    """Tests for top-level policy keys."""

    def test_unknown_top_level_key_is_rejected(self, default_policy):
        """
        What it does: Verifies that a misspelled feature category fails loudly.
        """
        with pytest.raises(MalformedConfigError) as exc_info:
            resolve(default_policy, {"rateLimitter": {"route": "/**"}})

        assert exc_info.value.category == "rateLimitter"

    def test_hide_powered_by_must_be_boolean(self, default_policy):
        """
        What it does: Verifies that hidePoweredBy must be a boolean.
        """
        with pytest.raises(MalformedConfigError):
            resolve(default_policy, {"hidePoweredBy": "yes"})

        assert resolve(default_policy, {"hidePoweredBy": False}).hide_powered_by is False
