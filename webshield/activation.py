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
Middleware activation resolver.

Decides which protective handlers are registered with the host dispatcher
and on which route, in a fixed execution order:

    1. requestSizeLimiter        - active when configured
    2. rateLimiter               - active when configured
    3. xssValidator              - active when configured
    4. corsHandler               - active when configured
    5. allowedMethodsRestricter  - active when configured and value is not "*"
    6. basicAuth                 - active when configured and value.enabled is True

The order is the execution order a compliant dispatcher must honor: the size
limiter has to reject oversized bodies before anything else parses them.

Inactive features produce no binding at all. Every category is evaluated
independently; route problems of all active categories are collected and
raised together before any binding is returned.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from loguru import logger

from webshield.errors import MalformedConfigError
from webshield.models import (
    FEATURE_CATEGORIES,
    WILDCARD_METHODS,
    FeatureConfig,
    ResolvedPolicy,
)


@dataclass(frozen=True)
class HandlerBinding:
    """
    A protective handler bound to a route pattern.

    Attributes:
        route: Route pattern the handler runs on
        handler_ref: Opaque handler reference resolved by the host
        category: Feature category that produced the binding
    """

    route: str
    handler_ref: Any
    category: str


def _is_configured(config: FeatureConfig) -> bool:
    return True


def _restricts_methods(config: FeatureConfig) -> bool:
    # "*" is an explicit opt-out: every method allowed, nothing to enforce
    return config.value != WILDCARD_METHODS


def _basic_auth_enabled(config: FeatureConfig) -> bool:
    return config.value.enabled is True


ACTIVATION_PREDICATES: Dict[str, Callable[[FeatureConfig], bool]] = {
    "requestSizeLimiter": _is_configured,
    "rateLimiter": _is_configured,
    "xssValidator": _is_configured,
    "corsHandler": _is_configured,
    "allowedMethodsRestricter": _restricts_methods,
    "basicAuth": _basic_auth_enabled,
}


def is_active(config: Optional[FeatureConfig]) -> bool:
    """Return True when a feature config should register its handler."""
    if config is None:
        return False
    return ACTIVATION_PREDICATES[config.category](config)


def activate_if_enabled(
    config: Optional[FeatureConfig],
    handler_ref: Any,
) -> Optional[HandlerBinding]:
    """
    Bind a handler to the config's route when the feature is active.

    Args:
        config: Feature config (None when not configured)
        handler_ref: Opaque handler reference

    Returns:
        HandlerBinding, or None when the feature is inactive

    Raises:
        MalformedConfigError: The feature is active but has no route
    """
    if not is_active(config):
        return None
    if not config.route:
        raise MalformedConfigError(config.category, "route", "must be a non-empty route pattern")
    return HandlerBinding(route=config.route, handler_ref=handler_ref, category=config.category)


def resolve_handler_bindings(
    resolved: ResolvedPolicy,
    handler_refs: Optional[Mapping[str, Any]] = None,
) -> List[HandlerBinding]:
    """
    Resolve the ordered handler bindings of a policy.

    Args:
        resolved: Resolved security policy
        handler_refs: Feature category -> handler reference. Categories missing
                      from the mapping use the category name as reference.

    Returns:
        Bindings in FEATURE_CATEGORIES order, inactive features omitted

    Raises:
        MalformedConfigError: One or more active features have no route
    """
    handler_refs = handler_refs or {}
    bindings: List[HandlerBinding] = []
    errors: List[MalformedConfigError] = []

    for category in FEATURE_CATEGORIES:
        config = resolved.feature(category)
        try:
            binding = activate_if_enabled(config, handler_refs.get(category, category))
        except MalformedConfigError as exc:
            errors.append(exc)
            continue

        if binding is None:
            if config is not None:
                logger.debug(f"Middleware {category} configured but inactive")
            continue

        logger.debug(f"Middleware {category} bound to {binding.route}")
        bindings.append(binding)

    if len(errors) == 1:
        raise errors[0]
    if errors:
        categories = ", ".join(error.category for error in errors)
        raise MalformedConfigError(categories, "route", "must be a non-empty route pattern")

    return bindings
