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
WebShield Configuration.

Process-level settings for the policy compiler. Loads environment variables
(optionally from a .env file) and provides typed access to them.

The security policy itself is not configured here: it is compiled from
webshield.defaults and a user policy (see webshield.compiler).
"""

import os
import re
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _get_raw_env_value(var_name: str, env_file: str = ".env") -> Optional[str]:
    """
    Read variable value from .env file without processing escape sequences.

    Windows paths such as D:\\policies\\app.json would otherwise have their
    backslashes interpreted as escape sequences.

    Args:
        var_name: Environment variable name
        env_file: Path to .env file (default ".env")

    Returns:
        Raw variable value or None if not found
    """
    env_path = Path(env_file)
    if not env_path.exists():
        return None

    try:
        content = env_path.read_text(encoding="utf-8")
    except OSError:
        return None

    # VAR="value" or VAR='value' or VAR=value
    pattern = rf'^{re.escape(var_name)}=(["\']?)(.+?)\1\s*$'

    for line in content.splitlines():
        line = line.strip()
        if line.startswith("#") or not line:
            continue

        match = re.match(pattern, line)
        if match:
            return match.group(2)

    return None


# ==================================================================================================
# Policy Source
# ==================================================================================================

# Path to a JSON file holding the user security policy (optional).
# When empty, the secure defaults are compiled as-is.
# Can be overridden by CLI: python main.py --config policy.json
_raw_policy_file = _get_raw_env_value("SECURITY_POLICY_FILE") or os.getenv(
    "SECURITY_POLICY_FILE", ""
)
SECURITY_POLICY_FILE: str = (
    str(Path(_raw_policy_file).expanduser()) if _raw_policy_file else ""
)

# Route pattern used by every default header rule.
# "/**" matches all paths served by the host.
DEFAULT_SECURITY_ROUTE: str = "/**"

# ==================================================================================================
# Logging Settings
# ==================================================================================================

# Log level for the application
# Available levels: TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL
# Default: INFO
# Set to DEBUG to see every header and middleware activation decision
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# ==================================================================================================
# Application Version
# ==================================================================================================

APP_VERSION: str = "1.0.0"
APP_TITLE: str = "WebShield"
APP_DESCRIPTION: str = "Security policy compiler: response headers and protective middleware per route."
