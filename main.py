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
WebShield - command line entry point.

Compiles a security policy file and prints the resulting route rules and
handler bindings as JSON.

Usage:
    python main.py                          # defaults (or SECURITY_POLICY_FILE)
    python main.py --config policy.json
    python main.py -c policy.json --log-level DEBUG
"""

import argparse
import json
import sys
from typing import List, Optional

from loguru import logger

from webshield.compiler import compile_security_policy, load_policy_file
from webshield.config import APP_TITLE, APP_VERSION, LOG_LEVEL, SECURITY_POLICY_FILE
from webshield.errors import PolicyError


def setup_logging(level: str) -> None:
    """Configure loguru to log to stderr at the given level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        colorize=True,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>",
    )


def parse_cli_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Defaults are None so that "not given" can fall back to the environment.
    """
    parser = argparse.ArgumentParser(
        description=f"{APP_TITLE} - compile a security policy into route rules and middleware bindings",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        default=None,
        metavar="FILE",
        help="JSON policy file (default: SECURITY_POLICY_FILE env or built-in defaults)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: LOG_LEVEL env or INFO)",
    )
    parser.add_argument(
        "--indent",
        type=int,
        default=2,
        help="JSON indentation of the output (default: 2)",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )
    return parser.parse_args(argv)


def resolve_policy_file(cli_config: Optional[str]) -> str:
    """CLI argument > SECURITY_POLICY_FILE env > "" (defaults only)."""
    if cli_config is not None:
        return cli_config
    return SECURITY_POLICY_FILE


def main(argv: Optional[List[str]] = None) -> int:
    """Compile the policy and print the artifacts. Returns the process exit code."""
    args = parse_cli_args(argv)
    setup_logging(args.log_level or LOG_LEVEL)

    policy_file = resolve_policy_file(args.config)
    try:
        user_policy = load_policy_file(policy_file) if policy_file else None
        compiled = compile_security_policy(user_policy)
    except PolicyError as exc:
        logger.error(f"Invalid security policy: {exc}")
        return 1

    print(json.dumps(compiled.to_dict(), indent=args.indent))
    return 0


if __name__ == "__main__":
    sys.exit(main())
