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
Config merge engine.

Lays a user-supplied partial policy over the secure defaults:

1. Keys only in the defaults are kept unchanged.
2. Keys only in the user policy are added.
3. A key present in both recurses when both values are mappings.
4. Otherwise the user value replaces the default, including falsy values
   such as False, 0 and "". Only None (unset) keeps the default.
5. Lists are replaced wholesale, never concatenated.

The merge never raises: a user value of the wrong shape is reported later by
the category that consumes it (webshield.models, webshield.headers).
"""

import copy
from typing import Any, Dict, Mapping, Optional


def merge_policy(
    defaults: Mapping[str, Any],
    user: Optional[Mapping[str, Any]],
) -> Dict[str, Any]:
    """
    Merge a partial user policy over a complete default policy.

    Neither input is mutated and the result shares no mutable objects with
    them, so later edits to the result cannot leak back into the defaults.

    Args:
        defaults: Complete base policy
        user: Partial policy overriding the defaults (None means no overrides)

    Returns:
        New merged policy mapping

    Example:
        >>> merge_policy({"a": {"b": 1, "c": 2}}, {"a": {"c": 0}, "d": [1]})
        {'a': {'b': 1, 'c': 0}, 'd': [1]}
    """
    result: Dict[str, Any] = {key: copy.deepcopy(value) for key, value in defaults.items()}
    if not user:
        return result

    for key, value in user.items():
        if value is None:
            continue

        base = result.get(key)
        if isinstance(base, Mapping) and isinstance(value, Mapping):
            result[key] = merge_policy(base, value)
        else:
            result[key] = copy.deepcopy(value)

    return result
