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
Secure-by-default security policy.

Every header category is enabled on the catch-all route with conservative
values. Protective middleware features are left unset: they change request
handling (rejecting bodies, throttling, asking for credentials) and must be
opted into explicitly by the user policy.

The defaults are kept in the same mapping form as a user policy so the merge
engine can lay the user's partial policy over them.
"""

import copy
from typing import Any, Dict

from webshield.config import DEFAULT_SECURITY_ROUTE


DEFAULT_SECURITY_POLICY: Dict[str, Any] = {
    "headers": {
        "contentSecurityPolicy": {
            "route": DEFAULT_SECURITY_ROUTE,
            "options": {
                "base-uri": ["'self'"],
                "font-src": ["'self'", "https:", "data:"],
                "form-action": ["'self'"],
                "frame-ancestors": ["'self'"],
                "img-src": ["'self'", "data:"],
                "object-src": ["'none'"],
                "script-src-attr": ["'none'"],
                "style-src": ["'self'", "https:", "'unsafe-inline'"],
                "upgrade-insecure-requests": True,
            },
        },
        "crossOriginEmbedderPolicy": {"route": DEFAULT_SECURITY_ROUTE, "options": "require-corp"},
        "crossOriginOpenerPolicy": {"route": DEFAULT_SECURITY_ROUTE, "options": "same-origin"},
        "crossOriginResourcePolicy": {"route": DEFAULT_SECURITY_ROUTE, "options": "same-origin"},
        "originAgentCluster": {"route": DEFAULT_SECURITY_ROUTE, "options": "?1"},
        "referrerPolicy": {"route": DEFAULT_SECURITY_ROUTE, "options": "no-referrer"},
        "strictTransportSecurity": {
            "route": DEFAULT_SECURITY_ROUTE,
            "options": {"maxAge": 15552000, "includeSubdomains": True, "preload": False},
        },
        "xContentTypeOptions": {"route": DEFAULT_SECURITY_ROUTE, "options": "nosniff"},
        "xDNSPrefetchControl": {"route": DEFAULT_SECURITY_ROUTE, "options": "off"},
        "xDownloadOptions": {"route": DEFAULT_SECURITY_ROUTE, "options": "noopen"},
        "xFrameOptions": {"route": DEFAULT_SECURITY_ROUTE, "options": "SAMEORIGIN"},
        "xPermittedCrossDomainPolicies": {"route": DEFAULT_SECURITY_ROUTE, "options": "none"},
        "xXSSProtection": {"route": DEFAULT_SECURITY_ROUTE, "options": "0"},
        "permissionsPolicy": {
            "route": DEFAULT_SECURITY_ROUTE,
            "options": {
                "camera": ["()"],
                "display-capture": ["()"],
                "fullscreen": ["()"],
                "geolocation": ["()"],
                "microphone": ["()"],
            },
        },
    },
    # Protective middleware: unset unless the user policy configures them
    "requestSizeLimiter": None,
    "rateLimiter": None,
    "xssValidator": None,
    "corsHandler": None,
    "allowedMethodsRestricter": None,
    "basicAuth": None,
    # Strip the X-Powered-By response header set by the host framework
    "hidePoweredBy": True,
}


def get_default_policy() -> Dict[str, Any]:
    """Return a private deep copy of the default policy."""
    return copy.deepcopy(DEFAULT_SECURITY_POLICY)
