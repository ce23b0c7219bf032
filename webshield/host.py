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
FastAPI / Starlette integration for compiled security policies.

Applies the artifacts of compile_security_policy() to an application:

- RouteRulesMiddleware attaches the route rule headers to every response whose
  path matches a rule's route pattern, and strips X-Powered-By when the policy
  hides it.
- RouteHandlerMiddleware runs one bound protective handler on the paths
  matching its route. A handler returning a Response short-circuits the
  request (e.g. 413, 429, 401); returning None passes it on.

The protective handlers themselves are supplied by the application:

    async def rate_limiter(request: Request, config: FeatureConfig) -> Optional[Response]:
        ...

    compiled = compile_security_policy(user_policy)
    install_security(app, compiled, {"rateLimiter": rate_limiter})

Route patterns: "/**" matches a prefix and everything below it, "*" matches
one path segment, everything else is literal.
"""

import re
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from loguru import logger
from starlette.applications import Starlette
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from webshield.activation import HandlerBinding
from webshield.compiler import CompiledPolicy
from webshield.errors import MalformedConfigError
from webshield.headers import RouteRuleTable
from webshield.models import FeatureConfig

SecurityHandler = Callable[[Request, Optional[FeatureConfig]], Awaitable[Optional[Response]]]

POWERED_BY_HEADER = "X-Powered-By"


@lru_cache(maxsize=256)
def _compile_route(pattern: str) -> "re.Pattern[str]":
    if pattern.endswith("/**"):
        prefix, tail = pattern[:-3], r"(?:/.*)?"
    else:
        prefix, tail = pattern, ""
    body = re.escape(prefix).replace(r"\*\*", ".*").replace(r"\*", "[^/]*")
    return re.compile(f"^{body}{tail}$")


def route_matches(pattern: str, path: str) -> bool:
    """
    Check whether a request path matches a route pattern.

    Example:
        >>> route_matches("/api/**", "/api/users/1")
        True
        >>> route_matches("/api/*", "/api/users/1")
        False
    """
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"
    return _compile_route(pattern).match(path) is not None


def _specificity(pattern: str):
    # Literal patterns beat wildcards, longer prefixes beat shorter ones
    return ("**" not in pattern, "*" not in pattern, len(pattern))


def headers_for_path(route_rules: RouteRuleTable, path: str) -> Dict[str, str]:
    """
    Collect the headers of every route rule matching a path.

    Rules are applied from least to most specific pattern, so a header set on
    "/api/**" overrides the same header set on "/**".
    """
    matching = [pattern for pattern in route_rules if route_matches(pattern, path)]
    headers: Dict[str, str] = {}
    for pattern in sorted(matching, key=_specificity):
        headers.update(route_rules[pattern].get("headers") or {})
    return headers


class RouteRulesMiddleware(BaseHTTPMiddleware):
    """Attach route rule headers to responses and hide X-Powered-By."""

    def __init__(self, app: ASGIApp, route_rules: RouteRuleTable, hide_powered_by: bool = True):
        super().__init__(app)
        self.route_rules = route_rules
        self.hide_powered_by = hide_powered_by

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        for name, value in headers_for_path(self.route_rules, request.url.path).items():
            response.headers[name] = value

        if self.hide_powered_by and POWERED_BY_HEADER in response.headers:
            del response.headers[POWERED_BY_HEADER]

        return response


class RouteHandlerMiddleware(BaseHTTPMiddleware):
    """Run one protective handler on the paths matching its binding's route."""

    def __init__(
        self,
        app: ASGIApp,
        binding: HandlerBinding,
        handler: SecurityHandler,
        config: Optional[FeatureConfig],
    ):
        super().__init__(app)
        self.binding = binding
        self.handler = handler
        self.config = config

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if route_matches(self.binding.route, request.url.path):
            result = await self.handler(request, self.config)
            if result is not None:
                logger.debug(
                    f"{self.binding.category} rejected {request.method} {request.url.path} "
                    f"with status {result.status_code}"
                )
                return result
        return await call_next(request)


def install_security(
    app: Starlette,
    compiled: CompiledPolicy,
    handlers: Optional[Mapping[Any, SecurityHandler]] = None,
) -> None:
    """
    Register a compiled security policy on a FastAPI/Starlette application.

    Handlers run in binding order, after the route rule headers middleware
    (outermost) so that short-circuit responses also carry the security
    headers. The resolved policy is exposed as app.state.security_policy.

    Args:
        app: FastAPI or Starlette application (before startup)
        compiled: Result of compile_security_policy()
        handlers: Handler reference -> handler implementation

    Raises:
        MalformedConfigError: A binding's handler reference has no implementation
    """
    handlers = handlers or {}
    for binding in compiled.bindings:
        if binding.handler_ref not in handlers:
            raise MalformedConfigError(
                binding.category, "handler", f"no handler registered for {binding.handler_ref!r}"
            )

    # Starlette puts the last added middleware outermost
    for binding in reversed(compiled.bindings):
        app.add_middleware(
            RouteHandlerMiddleware,
            binding=binding,
            handler=handlers[binding.handler_ref],
            config=compiled.policy.feature(binding.category),
        )

    app.add_middleware(
        RouteRulesMiddleware,
        route_rules=compiled.route_rules,
        hide_powered_by=compiled.hide_powered_by,
    )
    app.state.security_policy = compiled.policy

    logger.info(
        f"Security policy installed: {len(compiled.route_rules)} route rule(s), "
        f"{len(compiled.bindings)} handler(s)"
    )
