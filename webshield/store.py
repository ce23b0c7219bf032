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
Runtime policy store.

Holds the single ResolvedPolicy of the process so that handler
implementations can read their own parameters (rate limit thresholds,
allowed methods, basic-auth credentials) at request time.

The compiler builds the route rule table and handler bindings from the same
object it publishes here, so build-time and request-time consumers can never
disagree on a feature. The store accepts exactly one policy per process:
publishing a different one is an error, not a reload.
"""

from typing import Optional

from loguru import logger

from webshield.models import FeatureConfig, ResolvedPolicy
from webshield.errors import PolicyStoreError


class PolicyStore:
    """
    Publish-once holder of the resolved security policy.

    Example:
        >>> store = PolicyStore()
        >>> store.publish(resolved)
        >>> store.feature("rateLimiter").value.tokens_per_interval
        150
    """

    def __init__(self):
        self._policy: Optional[ResolvedPolicy] = None

    @property
    def is_published(self) -> bool:
        return self._policy is not None

    def publish(self, policy: ResolvedPolicy) -> ResolvedPolicy:
        """
        Publish the resolved policy.

        Publishing the same (or an equal) policy again is a no-op and returns
        the policy published first.

        Args:
            policy: Resolved security policy

        Returns:
            The published policy

        Raises:
            PolicyStoreError: A different policy was already published
        """
        if self._policy is None:
            self._policy = policy
            logger.debug("Security policy published to runtime store")
            return policy

        if self._policy is policy or self._policy == policy:
            return self._policy

        raise PolicyStoreError(
            "a different security policy is already published; one policy per process"
        )

    def get(self) -> ResolvedPolicy:
        """Return the published policy. Raises PolicyStoreError before publish()."""
        if self._policy is None:
            raise PolicyStoreError("security policy has not been compiled yet")
        return self._policy

    def feature(self, category: str) -> Optional[FeatureConfig]:
        """Return a feature category's config from the published policy (None when not configured)."""
        return self.get().feature(category)

    def reset(self) -> None:
        """Forget the published policy. Only meant for tests."""
        self._policy = None


# Process-wide runtime sink read by handler implementations
runtime_policy = PolicyStore()
