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
Security policy compiler.

Single entry point that turns a partial user policy into the artifacts the
host consumes. Runs once, synchronously, at startup:

    1. merge_policy()              - user policy over secure defaults
    2. parse_policy()              - typed, immutable ResolvedPolicy
    3. compile_headers()           - route rule table (response headers)
    4. resolve_handler_bindings()  - ordered protective handler bindings
    5. PolicyStore.publish()       - runtime-readable policy for handlers

Any error stops compilation and propagates to the caller: a partially
applied security policy must never serve traffic.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from loguru import logger

from webshield.activation import HandlerBinding, resolve_handler_bindings
from webshield.defaults import DEFAULT_SECURITY_POLICY
from webshield.errors import MalformedConfigError
from webshield.headers import RouteRuleTable, compile_headers
from webshield.merge import merge_policy
from webshield.models import ResolvedPolicy, parse_policy
from webshield.store import PolicyStore, runtime_policy


@dataclass(frozen=True)
class CompiledPolicy:
    """
    Artifacts of one policy compilation.

    Attributes:
        policy: Resolved policy (the same object published to the runtime store)
        route_rules: Route pattern -> {"headers": {...}, ...host-owned fields}
        bindings: Handler bindings in execution order
    """

    policy: ResolvedPolicy
    route_rules: RouteRuleTable
    bindings: Tuple[HandlerBinding, ...]

    @property
    def hide_powered_by(self) -> bool:
        return self.policy.hide_powered_by

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable view of the compiled artifacts."""
        return {
            "routeRules": self.route_rules,
            "handlers": [
                {"route": binding.route, "handler": str(binding.handler_ref), "category": binding.category}
                for binding in self.bindings
            ],
            "hidePoweredBy": self.hide_powered_by,
        }


def compile_security_policy(
    user: Optional[Mapping[str, Any]] = None,
    route_rules: Optional[RouteRuleTable] = None,
    handler_refs: Optional[Mapping[str, Any]] = None,
    store: Optional[PolicyStore] = None,
    defaults: Optional[Mapping[str, Any]] = None,
) -> CompiledPolicy:
    """
    Compile a user security policy.

    Args:
        user: Partial user policy (None compiles the defaults)
        route_rules: Host route rule table to write headers into (new table when None)
        handler_refs: Feature category -> handler reference (category name by default)
        store: Runtime store to publish into (process-wide runtime_policy by default)
        defaults: Base policy (DEFAULT_SECURITY_POLICY by default)

    Returns:
        CompiledPolicy with route rules, handler bindings and the resolved policy

    Raises:
        MalformedConfigError: A config is missing a required field or has the wrong shape
        FormatterError: A header's options cannot be serialized
        PolicyStoreError: A different policy was already published to the store
    """
    if defaults is None:
        defaults = DEFAULT_SECURITY_POLICY
    if store is None:
        store = runtime_policy

    merged = merge_policy(defaults, user)
    resolved = parse_policy(merged)

    # Bindings and headers are staged without touching the host table, so any
    # failure up to and including publish leaves route_rules as it was.
    bindings = resolve_handler_bindings(resolved, handler_refs)
    staged_rules = compile_headers(resolved, dict(route_rules or {}))

    resolved = store.publish(resolved)

    if route_rules is None:
        route_rules = staged_rules
    else:
        route_rules.update(staged_rules)

    header_count = sum(len(rule.get("headers") or {}) for rule in route_rules.values())
    logger.info(
        "Security policy compiled: {} header(s) on {} route(s), middleware: {}",
        header_count,
        len(route_rules),
        ", ".join(binding.category for binding in bindings) or "none",
    )

    return CompiledPolicy(policy=resolved, route_rules=route_rules, bindings=tuple(bindings))


def load_policy_file(path: str) -> Dict[str, Any]:
    """
    Read a user policy from a JSON file.

    Args:
        path: Path to the JSON policy file

    Returns:
        Policy mapping

    Raises:
        MalformedConfigError: File cannot be read, is not valid JSON, or is not a JSON object
    """
    policy_path = Path(path)
    try:
        content = policy_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise MalformedConfigError("policy", None, f"cannot read {policy_path}: {exc}") from exc

    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise MalformedConfigError(
            "policy", None, f"invalid JSON in {policy_path} at line {exc.lineno}: {exc.msg}"
        ) from exc

    if not isinstance(data, dict):
        raise MalformedConfigError("policy", None, f"{policy_path} must contain a JSON object")

    logger.debug(f"Loaded security policy from {policy_path}")
    return data
