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
Header policy compiler.

Turns each enabled header category of a ResolvedPolicy into a canonical HTTP
header value and inserts it into the route rule table consumed by the host
dispatcher.

Formatting rules:
    contentSecurityPolicy     directives sorted by name, "name src1 src2" joined by "; ",
                              True renders the bare directive, False omits it
    permissionsPolicy         features sorted by name, "name=(allow1 allow2)" joined by ", ",
                              an empty allowlist or a "()" entry renders "name=()"
    strictTransportSecurity   "max-age=N" [; includeSubDomains] [; preload]
    originAgentCluster        True -> "?1", False -> "?0"
    xDNSPrefetchControl       True -> "on", False -> "off"
    xXSSProtection            0 -> "0", 1 -> "1"
    referrerPolicy            list of policies joined by ","
    every category            a plain string is used verbatim

Directive and feature names must be tokens (letters, digits, "-").

The formatted values are a contract with anything that parses these headers:
changing a formatter's output is a breaking change.
"""

import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from loguru import logger

from webshield.errors import FormatterError, MalformedConfigError
from webshield.models import HEADER_CATEGORIES, ResolvedPolicy

RouteRuleTable = Dict[str, Dict[str, Any]]

SECURITY_HEADER_NAMES: Dict[str, str] = {
    "contentSecurityPolicy": "Content-Security-Policy",
    "crossOriginEmbedderPolicy": "Cross-Origin-Embedder-Policy",
    "crossOriginOpenerPolicy": "Cross-Origin-Opener-Policy",
    "crossOriginResourcePolicy": "Cross-Origin-Resource-Policy",
    "originAgentCluster": "Origin-Agent-Cluster",
    "referrerPolicy": "Referrer-Policy",
    "strictTransportSecurity": "Strict-Transport-Security",
    "xContentTypeOptions": "X-Content-Type-Options",
    "xDNSPrefetchControl": "X-DNS-Prefetch-Control",
    "xDownloadOptions": "X-Download-Options",
    "xFrameOptions": "X-Frame-Options",
    "xPermittedCrossDomainPolicies": "X-Permitted-Cross-Domain-Policies",
    "xXSSProtection": "X-XSS-Protection",
    "permissionsPolicy": "Permissions-Policy",
}

# HSTS preload list submission requires at least one year
HSTS_PRELOAD_MIN_MAX_AGE = 31536000

_NAME_TOKEN = re.compile(r"^[A-Za-z0-9-]+\Z")


# ==================================================================================================
# Formatters
# ==================================================================================================


def _type_name(value: Any) -> str:
    return type(value).__name__


def _check_string(category: str, field: str, value: Any) -> str:
    """Validate a header value fragment: non-empty text without line breaks."""
    if not isinstance(value, str):
        raise FormatterError(category, field, f"expected a string, got {_type_name(value)}")
    text = value.strip()
    if not text:
        raise FormatterError(category, field, "must not be empty")
    if "\r" in text or "\n" in text:
        raise FormatterError(category, field, "must not contain line breaks")
    return text


def _format_plain(category: str, options: Any) -> str:
    return _check_string(category, "options", options)


def _format_flag(on_value: str, off_value: str) -> Callable[[str, Any], str]:
    def format_flag(category: str, options: Any) -> str:
        if isinstance(options, bool):
            return on_value if options else off_value
        return _check_string(category, "options", options)

    return format_flag


def _format_xss_protection(category: str, options: Any) -> str:
    if isinstance(options, int) and not isinstance(options, bool):
        if options not in (0, 1):
            raise FormatterError(category, "options", f"numeric value must be 0 or 1, got {options}")
        return str(options)
    return _check_string(category, "options", options)


def _format_referrer_policy(category: str, options: Any) -> str:
    if isinstance(options, tuple):
        if not options:
            raise FormatterError(category, "options", "policy list must not be empty")
        return ",".join(
            _check_string(category, f"options[{index}]", item) for index, item in enumerate(options)
        )
    return _check_string(category, "options", options)


def _format_source_list(category: str, field: str, value: Any) -> List[str]:
    if isinstance(value, str):
        return [_check_string(category, field, value)]
    if isinstance(value, tuple):
        return [
            _check_string(category, f"{field}[{index}]", item) for index, item in enumerate(value)
        ]
    raise FormatterError(category, field, f"expected a string or a list, got {_type_name(value)}")


def _check_name(category: str, name: Any) -> str:
    field = f"options.{name}"
    text = _check_string(category, field, name)
    if not _NAME_TOKEN.match(name):
        raise FormatterError(category, field, "name may only contain letters, digits and '-'")
    return text


def _format_content_security_policy(category: str, options: Any) -> str:
    if not isinstance(options, Mapping):
        return _check_string(category, "options", options)

    directives = []
    for name in sorted(options):
        value = options[name]
        field = f"options.{name}"
        _check_name(category, name)
        if value is True:
            directives.append(name)
        elif value is False or value is None:
            continue
        else:
            sources = _format_source_list(category, field, value)
            directives.append(" ".join([name] + sources))

    if not directives:
        raise FormatterError(category, "options", "no directive is enabled")
    return "; ".join(directives)


def _format_allowlist(category: str, field: str, value: Any) -> str:
    allowlist = [] if value == () else _format_source_list(category, field, value)
    if len(allowlist) == 1 and allowlist[0].startswith("(") and allowlist[0].endswith(")"):
        return allowlist[0]
    # "()" marks a feature disabled everywhere
    origins = [item for item in allowlist if item != "()"]
    return f"({' '.join(origins)})"


def _format_permissions_policy(category: str, options: Any) -> str:
    if not isinstance(options, Mapping):
        return _check_string(category, "options", options)
    if not options:
        raise FormatterError(category, "options", "must configure at least one feature")

    features = []
    for name in sorted(options):
        _check_name(category, name)
        allowlist = _format_allowlist(category, f"options.{name}", options[name])
        features.append(f"{name}={allowlist}")
    return ", ".join(features)


def _check_max_age(category: str, field: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise FormatterError(category, field, f"expected an integer, got {_type_name(value)}")
    if value < 0:
        raise FormatterError(category, field, "must not be negative")
    return value


def _format_strict_transport_security(category: str, options: Any) -> str:
    if isinstance(options, int) and not isinstance(options, bool):
        return f"max-age={_check_max_age(category, 'options', options)}"
    if not isinstance(options, Mapping):
        return _check_string(category, "options", options)

    unknown = set(options) - {"maxAge", "includeSubdomains", "preload"}
    if unknown:
        raise FormatterError(category, f"options.{sorted(unknown)[0]}", "unknown directive")
    if "maxAge" not in options:
        raise FormatterError(category, "options.maxAge", "is required")

    max_age = _check_max_age(category, "options.maxAge", options["maxAge"])
    include_subdomains = options.get("includeSubdomains", False)
    preload = options.get("preload", False)
    for field, flag in (("includeSubdomains", include_subdomains), ("preload", preload)):
        if not isinstance(flag, bool):
            raise FormatterError(category, f"options.{field}", f"expected a boolean, got {_type_name(flag)}")

    if preload and not include_subdomains:
        raise FormatterError(category, "options.preload", "requires includeSubdomains")
    if preload and max_age < HSTS_PRELOAD_MIN_MAX_AGE:
        raise FormatterError(
            category, "options.preload", f"requires maxAge of at least {HSTS_PRELOAD_MIN_MAX_AGE}"
        )

    parts = [f"max-age={max_age}"]
    if include_subdomains:
        parts.append("includeSubDomains")
    if preload:
        parts.append("preload")
    return "; ".join(parts)


_HEADER_FORMATTERS: Dict[str, Callable[[str, Any], str]] = {
    "contentSecurityPolicy": _format_content_security_policy,
    "crossOriginEmbedderPolicy": _format_plain,
    "crossOriginOpenerPolicy": _format_plain,
    "crossOriginResourcePolicy": _format_plain,
    "originAgentCluster": _format_flag("?1", "?0"),
    "referrerPolicy": _format_referrer_policy,
    "strictTransportSecurity": _format_strict_transport_security,
    "xContentTypeOptions": _format_plain,
    "xDNSPrefetchControl": _format_flag("on", "off"),
    "xDownloadOptions": _format_plain,
    "xFrameOptions": _format_plain,
    "xPermittedCrossDomainPolicies": _format_plain,
    "xXSSProtection": _format_xss_protection,
    "permissionsPolicy": _format_permissions_policy,
}


def get_header_value(category: str, options: Any) -> str:
    """
    Format a header category's options into its canonical header value.

    Args:
        category: Header category name (e.g. "strictTransportSecurity")
        options: Category-specific options (frozen form from webshield.models)

    Returns:
        Header value string

    Raises:
        MalformedConfigError: Unknown header category
        FormatterError: Options cannot be serialized

    Example:
        >>> get_header_value("strictTransportSecurity", {"maxAge": 600, "includeSubdomains": True})
        'max-age=600; includeSubDomains'
    """
    formatter = _HEADER_FORMATTERS.get(category)
    if formatter is None:
        raise MalformedConfigError(category, None, "unknown header category")
    return formatter(category, options)


# ==================================================================================================
# Compilation
# ==================================================================================================


def compile_headers(
    resolved: ResolvedPolicy,
    route_rules: Optional[RouteRuleTable] = None,
) -> RouteRuleTable:
    """
    Write the enabled security headers of a policy into a route rule table.

    Categories are processed in the fixed HEADER_CATEGORIES order. Entries
    already present in the table (other headers, host-owned rule fields) are
    preserved. All values are formatted before the table is touched, so a
    failing category leaves the table unchanged.

    Args:
        resolved: Resolved security policy
        route_rules: Existing route rule table to update (a new one when None)

    Returns:
        The updated route rule table (the same object when one was passed)

    Raises:
        MalformedConfigError: An enabled header has no route
        FormatterError: A header's options cannot be serialized
    """
    if route_rules is None:
        route_rules = {}

    pending: List[Tuple[str, str, str]] = []
    for category in HEADER_CATEGORIES:
        config = resolved.headers.get(category)
        if config is None:
            logger.debug(f"Header {category} disabled, skipping")
            continue
        if not config.route:
            raise MalformedConfigError(category, "route", "must be a non-empty route pattern")

        value = get_header_value(category, config.options)
        pending.append((config.route, SECURITY_HEADER_NAMES[category], value))

    for route, header_name, value in pending:
        entry = dict(route_rules.get(route) or {})
        headers = dict(entry.get("headers") or {})
        headers[header_name] = value
        entry["headers"] = headers
        route_rules[route] = entry
        logger.debug(f"Route rule {route}: {header_name}: {value}")

    return route_rules
