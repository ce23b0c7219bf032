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
Startup-time errors raised while compiling a security policy.

Every error names the offending category (a header category such as
"xFrameOptions" or a feature category such as "rateLimiter") and the field
that is missing or invalid, so that a failed start points straight at the
configuration line to fix.

Architecture:
- PolicyError: base class carrying category, field and a detail message
- MalformedConfigError: a config is present but misses or misuses a field
- FormatterError: a header's options cannot be serialized to a header value
- PolicyStoreError: the runtime policy store is read or published incorrectly

Nothing in this package catches these errors. Partial activation of a security
policy is worse than refusing to start, so they propagate to the caller of
compile_security_policy().

Example:
    >>> raise MalformedConfigError("rateLimiter", "route", "must be a non-empty route pattern")
    Traceback (most recent call last):
    ...
    webshield.errors.MalformedConfigError: rateLimiter.route: must be a non-empty route pattern
"""

from typing import Optional


class PolicyError(Exception):
    """
    Base class for security policy errors.

    Attributes:
        category: Header or feature category name (e.g. "basicAuth")
        field: Name of the missing or invalid field (e.g. "route")
        detail: Human readable explanation
    """

    def __init__(self, category: str, field: Optional[str], detail: str):
        self.category = category
        self.field = field
        self.detail = detail
        super().__init__(self._format())

    def _format(self) -> str:
        location = f"{self.category}.{self.field}" if self.field else self.category
        return f"{location}: {self.detail}"


class MalformedConfigError(PolicyError):
    """A header or feature config is present but a required field is missing or invalid."""


class FormatterError(PolicyError):
    """A header category's options could not be serialized into a header value."""


class PolicyStoreError(PolicyError):
    """The runtime policy store was read before publication or published twice with different policies."""

    def __init__(self, detail: str):
        super().__init__("policyStore", None, detail)
