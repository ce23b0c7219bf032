# -*- coding: utf-8 -*-

# WebShield
# Copyright (C) 2025 WebShield contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Typed security policy model.

The merge engine works on plain mappings. Once merged, the policy is parsed
into an immutable ResolvedPolicy where every category is a closed, named
variant:

- Header categories become HeaderConfig (or None when disabled). Their options
  stay in the category-specific raw shape (frozen) and are serialized by the
  formatters in webshield.headers.
- Feature categories become FeatureConfig (or None when not configured) whose
  value is a frozen pydantic model (or a normalized string/tuple for the
  allowed methods restricter).

Shape errors are reported here with the category and field that is wrong.
Route presence is checked by the consumers (header compiler, activation
resolver) since only enabled/active configs need a route.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from loguru import logger
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    ValidationError,
)

from webshield.errors import MalformedConfigError


# Fixed iteration order of header categories. Two categories writing the same
# header name on the same route resolve by this order (later wins).
HEADER_CATEGORIES: Tuple[str, ...] = (
    "contentSecurityPolicy",
    "crossOriginEmbedderPolicy",
    "crossOriginOpenerPolicy",
    "crossOriginResourcePolicy",
    "originAgentCluster",
    "referrerPolicy",
    "strictTransportSecurity",
    "xContentTypeOptions",
    "xDNSPrefetchControl",
    "xDownloadOptions",
    "xFrameOptions",
    "xPermittedCrossDomainPolicies",
    "xXSSProtection",
    "permissionsPolicy",
)

# Fixed execution order of protective middleware
FEATURE_CATEGORIES: Tuple[str, ...] = (
    "requestSizeLimiter",
    "rateLimiter",
    "xssValidator",
    "corsHandler",
    "allowedMethodsRestricter",
    "basicAuth",
)

_TOP_LEVEL_KEYS = frozenset(("headers", "hidePoweredBy") + FEATURE_CATEGORIES)

WILDCARD_METHODS = "*"


# ==================================================================================================
# Feature option models
# ==================================================================================================


class _OptionsModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class RequestSizeLimiterOptions(_OptionsModel):
    """Payload size limits in bytes for regular and multipart upload requests."""

    max_request_size_in_bytes: int = Field(2_000_000, alias="maxRequestSizeInBytes", ge=0)
    max_upload_file_request_in_bytes: int = Field(
        8_000_000, alias="maxUploadFileRequestInBytes", ge=0
    )


class RateLimiterOptions(_OptionsModel):
    """
    Token bucket parameters per client address.

    Accepts both the long names (tokensPerInterval/interval) and the short
    ones (max/window).
    """

    tokens_per_interval: int = Field(
        150,
        validation_alias=AliasChoices("tokensPerInterval", "max", "tokens_per_interval"),
        gt=0,
    )
    interval: Union[int, str] = Field(
        "hour", validation_alias=AliasChoices("interval", "window")
    )
    fire_immediately: StrictBool = Field(
        True, validation_alias=AliasChoices("fireImmediately", "fire_immediately")
    )


class XssValidatorOptions(BaseModel):
    """Options handed through to the XSS filter implementation."""

    model_config = ConfigDict(frozen=True, extra="allow")


class CorsPreflightOptions(_OptionsModel):
    status_code: int = Field(204, alias="statusCode", ge=100, le=599)


class CorsOptions(_OptionsModel):
    """CORS handshake parameters."""

    origin: Union[str, Tuple[str, ...]] = "*"
    methods: Union[str, Tuple[str, ...]] = ("GET", "HEAD", "PUT", "PATCH", "POST", "DELETE")
    allow_headers: Union[str, Tuple[str, ...]] = Field("*", alias="allowHeaders")
    expose_headers: Union[str, Tuple[str, ...]] = Field("*", alias="exposeHeaders")
    credentials: StrictBool = False
    max_age: Optional[int] = Field(None, alias="maxAge", ge=0)
    preflight: CorsPreflightOptions = Field(default_factory=CorsPreflightOptions)


class BasicAuthOptions(_OptionsModel):
    """Credentials for HTTP basic authentication. Disabled unless enabled is True."""

    enabled: StrictBool = False
    name: str = ""
    password: str = Field("", alias="pass")
    message: str = "Please enter username and password"


# ==================================================================================================
# Resolved policy
# ==================================================================================================


@dataclass(frozen=True)
class HeaderConfig:
    """
    Enabled header category.

    Attributes:
        category: Header category name (e.g. "xFrameOptions")
        route: Route pattern the header applies to (None when missing)
        options: Category-specific options, frozen (mappings are read-only, lists are tuples)
    """

    category: str
    route: Optional[str]
    options: Any


@dataclass(frozen=True)
class FeatureConfig:
    """
    Configured feature category.

    Attributes:
        category: Feature category name (e.g. "rateLimiter")
        route: Route pattern the handler is bound to (None when missing)
        value: Category-specific options (pydantic model, or str/tuple for allowedMethodsRestricter)
    """

    category: str
    route: Optional[str]
    value: Any


@dataclass(frozen=True)
class ResolvedPolicy:
    """
    Security policy after merging user settings over the defaults.

    Built once per process and never mutated. Header categories map to None
    when disabled; features are None when not configured.
    """

    headers: Mapping[str, Optional[HeaderConfig]]
    request_size_limiter: Optional[FeatureConfig] = None
    rate_limiter: Optional[FeatureConfig] = None
    xss_validator: Optional[FeatureConfig] = None
    cors_handler: Optional[FeatureConfig] = None
    allowed_methods_restricter: Optional[FeatureConfig] = None
    basic_auth: Optional[FeatureConfig] = None
    hide_powered_by: bool = True

    def feature(self, category: str) -> Optional[FeatureConfig]:
        """Return the FeatureConfig of a feature category (None when not configured)."""
        if category not in _FEATURE_ATTRIBUTES:
            raise KeyError(category)
        return getattr(self, _FEATURE_ATTRIBUTES[category])


_FEATURE_ATTRIBUTES: Dict[str, str] = {
    "requestSizeLimiter": "request_size_limiter",
    "rateLimiter": "rate_limiter",
    "xssValidator": "xss_validator",
    "corsHandler": "cors_handler",
    "allowedMethodsRestricter": "allowed_methods_restricter",
    "basicAuth": "basic_auth",
}


# ==================================================================================================
# Parsing
# ==================================================================================================


def _freeze(value: Any) -> Any:
    """Recursively turn dicts into read-only mappings and lists into tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _is_unset(value: Any) -> bool:
    """None and False both mean "not configured" / "disabled"."""
    return value is None or value is False


def _parse_route(category: str, config: Mapping[str, Any]) -> Optional[str]:
    route = config.get("route")
    if route is None:
        return None
    if not isinstance(route, str):
        raise MalformedConfigError(
            category, "route", f"must be a route pattern string, got {type(route).__name__}"
        )
    return route


def _parse_header(category: str, config: Any) -> Optional[HeaderConfig]:
    if _is_unset(config):
        return None
    if not isinstance(config, Mapping):
        raise MalformedConfigError(
            category, None, "expected a mapping with 'route' and 'options', or False to disable"
        )

    unknown = set(config) - {"route", "options"}
    if unknown:
        raise MalformedConfigError(category, sorted(unknown)[0], "unknown header config field")

    options = config.get("options")
    if options is None:
        raise MalformedConfigError(category, "options", "is required for an enabled header")

    return HeaderConfig(category=category, route=_parse_route(category, config), options=_freeze(options))


def _validation_error(category: str, exc: ValidationError) -> MalformedConfigError:
    """Translate the first pydantic error into a MalformedConfigError naming the field."""
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    field = f"value.{location}" if location else "value"
    return MalformedConfigError(category, field, error.get("msg", "invalid value"))


def _parse_model(model: type) -> Callable[[str, Any], Any]:
    def parse(category: str, value: Any) -> Any:
        if value is None or value is True:
            value = {}
        if not isinstance(value, Mapping):
            raise MalformedConfigError(
                category, "value", f"expected a mapping, got {type(value).__name__}"
            )
        try:
            return model.model_validate(dict(value))
        except ValidationError as exc:
            raise _validation_error(category, exc) from exc

    return parse


def _parse_request_size_limiter(category: str, value: Any) -> RequestSizeLimiterOptions:
    # A bare number is the regular request limit
    if isinstance(value, int) and not isinstance(value, bool):
        value = {"maxRequestSizeInBytes": value}
    return _parse_model(RequestSizeLimiterOptions)(category, value)


def _parse_allowed_methods(category: str, value: Any) -> Union[str, Tuple[str, ...]]:
    if isinstance(value, str):
        methods = [part.strip().upper() for part in value.split(",") if part.strip()]
        if not methods:
            raise MalformedConfigError(category, "value", "must name at least one HTTP method or '*'")
        if methods == [WILDCARD_METHODS]:
            return WILDCARD_METHODS
        return ",".join(methods)
    if isinstance(value, (list, tuple)):
        if not value or not all(isinstance(item, str) and item.strip() for item in value):
            raise MalformedConfigError(
                category, "value", "must be a non-empty list of HTTP method names"
            )
        methods = tuple(item.strip().upper() for item in value)
        if methods == (WILDCARD_METHODS,):
            return WILDCARD_METHODS
        return methods
    raise MalformedConfigError(
        category, "value", f"expected '*', a comma separated string or a list, got {type(value).__name__}"
    )


def _parse_basic_auth(category: str, value: Any) -> BasicAuthOptions:
    options = _parse_model(BasicAuthOptions)(category, value)
    if options.enabled:
        if not options.name:
            raise MalformedConfigError(category, "value.name", "is required when basic auth is enabled")
        if not options.password:
            raise MalformedConfigError(category, "value.pass", "is required when basic auth is enabled")
    return options


_FEATURE_PARSERS: Dict[str, Callable[[str, Any], Any]] = {
    "requestSizeLimiter": _parse_request_size_limiter,
    "rateLimiter": _parse_model(RateLimiterOptions),
    "xssValidator": _parse_model(XssValidatorOptions),
    "corsHandler": _parse_model(CorsOptions),
    "allowedMethodsRestricter": _parse_allowed_methods,
    "basicAuth": _parse_basic_auth,
}


def _parse_feature(category: str, config: Any) -> Optional[FeatureConfig]:
    if _is_unset(config):
        return None
    if not isinstance(config, Mapping):
        raise MalformedConfigError(
            category, None, "expected a mapping with 'route' and 'value', or False to disable"
        )

    unknown = set(config) - {"route", "value"}
    if unknown:
        raise MalformedConfigError(category, sorted(unknown)[0], "unknown feature config field")

    if category == "allowedMethodsRestricter" and config.get("value") is None:
        raise MalformedConfigError(category, "value", "is required")

    value = _FEATURE_PARSERS[category](category, config.get("value"))
    return FeatureConfig(category=category, route=_parse_route(category, config), value=value)


def parse_policy(merged: Mapping[str, Any]) -> ResolvedPolicy:
    """
    Parse a merged policy mapping into an immutable ResolvedPolicy.

    Args:
        merged: Policy mapping produced by merge_policy()

    Returns:
        ResolvedPolicy with one typed variant per category

    Raises:
        MalformedConfigError: unknown category, or a config of the wrong shape
    """
    for key in merged:
        if key not in _TOP_LEVEL_KEYS:
            raise MalformedConfigError(key, None, "unknown policy key")

    raw_headers = merged.get("headers")
    if _is_unset(raw_headers):
        logger.warning("All security headers are disabled by the policy")
        raw_headers = {}
    if not isinstance(raw_headers, Mapping):
        raise MalformedConfigError("headers", None, "expected a mapping of header categories")

    headers: Dict[str, Optional[HeaderConfig]] = {category: None for category in HEADER_CATEGORIES}
    for category, config in raw_headers.items():
        if category not in headers:
            raise MalformedConfigError(category, None, "unknown header category")
        headers[category] = _parse_header(category, config)

    features = {
        _FEATURE_ATTRIBUTES[category]: _parse_feature(category, merged.get(category))
        for category in FEATURE_CATEGORIES
    }

    hide_powered_by = merged.get("hidePoweredBy", True)
    if not isinstance(hide_powered_by, bool):
        raise MalformedConfigError("hidePoweredBy", None, "must be a boolean")

    return ResolvedPolicy(
        headers=MappingProxyType(headers),
        hide_powered_by=hide_powered_by,
        **features,
    )
