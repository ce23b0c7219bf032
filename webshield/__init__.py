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
WebShield - security policy compiler for web request protection.

Compiles a declarative security policy (merged over secure defaults) into
per-route response headers and an ordered list of protective middleware
bindings for a host dispatcher.

Modules:
    - config: Process settings and constants
    - defaults: Secure-by-default policy
    - merge: Merge of a user policy over the defaults
    - models: Typed, immutable resolved policy
    - headers: Header formatters and route rule compilation
    - activation: Middleware activation and ordered handler bindings
    - store: Runtime-readable policy store
    - compiler: Compilation entry point
    - host: FastAPI/Starlette integration
    - errors: Startup-time configuration errors
"""

# Version is imported from config.py, the single source of truth
from webshield.config import APP_VERSION as __version__

# Compilation
from webshield.compiler import (
    CompiledPolicy,
    compile_security_policy,
    load_policy_file,
)
from webshield.merge import merge_policy
from webshield.defaults import DEFAULT_SECURITY_POLICY, get_default_policy

# Policy model
from webshield.models import (
    FEATURE_CATEGORIES,
    HEADER_CATEGORIES,
    FeatureConfig,
    HeaderConfig,
    ResolvedPolicy,
    parse_policy,
)

# Headers and middleware
from webshield.headers import SECURITY_HEADER_NAMES, compile_headers, get_header_value
from webshield.activation import HandlerBinding, activate_if_enabled, resolve_handler_bindings

# Runtime store
from webshield.store import PolicyStore, runtime_policy

# Errors
from webshield.errors import (
    FormatterError,
    MalformedConfigError,
    PolicyError,
    PolicyStoreError,
)

__all__ = [
    # Version
    "__version__",

    # Compilation
    "CompiledPolicy",
    "compile_security_policy",
    "load_policy_file",
    "merge_policy",
    "DEFAULT_SECURITY_POLICY",
    "get_default_policy",

    # Policy model
    "FEATURE_CATEGORIES",
    "HEADER_CATEGORIES",
    "FeatureConfig",
    "HeaderConfig",
    "ResolvedPolicy",
    "parse_policy",

    # Headers and middleware
    "SECURITY_HEADER_NAMES",
    "compile_headers",
    "get_header_value",
    "HandlerBinding",
    "activate_if_enabled",
    "resolve_handler_bindings",

    # Runtime store
    "PolicyStore",
    "runtime_policy",

    # Errors
    "FormatterError",
    "MalformedConfigError",
    "PolicyError",
    "PolicyStoreError",
]
