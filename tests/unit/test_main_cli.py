# -*- coding: utf-8 -*-

"""
Unit tests for main.py CLI functions.
Tests for parse_cli_args(), resolve_policy_file() and main().
"""

import json
from unittest.mock import patch

import pytest


class TestParseCliArgs:
    """Tests for parse_cli_args() function."""

    def test_default_values_are_none(self):
        """
        What it does: Verifies that default values for config and log level are None.
        Purpose: None indicates "use env or default" in priority resolution.
        """
        from main import parse_cli_args

        args = parse_cli_args([])

        print(f"args: {args}")
        assert args.config is None
        assert args.log_level is None
        assert args.indent == 2

    def test_config_argument_long_form(self):
        """
        What it does: Verifies that --config is parsed.
        """
        from main import parse_cli_args

        args = parse_cli_args(["--config", "policy.json"])

        assert args.config == "policy.json"

    def test_config_argument_short_form(self):
        """
        What it does: Verifies that -c is parsed.
        """
        from main import parse_cli_args

        args = parse_cli_args(["-c", "policy.json", "--log-level", "DEBUG"])

        assert args.config == "policy.json"
        assert args.log_level == "DEBUG"

    def test_invalid_log_level_exits(self):
        """
        What it does: Verifies that an unknown log level is rejected by argparse.
        """
        from main import parse_cli_args

        with pytest.raises(SystemExit):
            parse_cli_args(["--log-level", "LOUD"])


class TestResolvePolicyFile:
    """Tests for resolve_policy_file() priority."""

    def test_cli_wins_over_env(self):
        """
        What it does: Verifies that the CLI argument has priority.
        """
        from main import resolve_policy_file

        with patch("main.SECURITY_POLICY_FILE", "env.json"):
            assert resolve_policy_file("cli.json") == "cli.json"

    def test_env_used_when_cli_absent(self):
        """
        What it does: Verifies fallback to SECURITY_POLICY_FILE.
        """
        from main import resolve_policy_file

        with patch("main.SECURITY_POLICY_FILE", "env.json"):
            assert resolve_policy_file(None) == "env.json"


class TestMain:
    """Tests for main() output and exit codes."""

    @pytest.fixture(autouse=True)
    def keep_logging(self):
        """Leaves the loguru sinks of the test session alone."""
        with patch("main.setup_logging") as mock_setup:
            yield mock_setup

    def test_prints_compiled_defaults(self, capsys):
        """
        What it does: Verifies that main() prints the compiled default policy.
        """
        from main import main

        with patch("main.SECURITY_POLICY_FILE", ""):
            exit_code = main(["--log-level", "ERROR"])

        output = json.loads(capsys.readouterr().out)
        print(f"Output keys: {list(output)}")
        assert exit_code == 0
        assert list(output["routeRules"]) == ["/**"]
        assert output["handlers"] == []
        assert output["hidePoweredBy"] is True

    def test_compiles_policy_file(self, capsys, tmp_path):
        """
        What it does: Verifies that main() compiles a policy file.
        """
        from main import main

        policy_file = tmp_path / "policy.json"
        policy_file.write_text(
            json.dumps({"rateLimiter": {"route": "/api/**", "value": {"max": 10, "window": "1m"}}}),
            encoding="utf-8",
        )

        exit_code = main(["-c", str(policy_file), "--log-level", "ERROR"])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output["handlers"] == [
            {"route": "/api/**", "handler": "rateLimiter", "category": "rateLimiter"}
        ]

    def test_invalid_policy_returns_error_code(self, capsys, tmp_path):
        """
        What it does: Verifies that an invalid policy exits with code 1 and no output.
        """
        from main import main

        policy_file = tmp_path / "policy.json"
        policy_file.write_text(json.dumps({"basicAuth": {"value": {"enabled": True}}}), encoding="utf-8")

        exit_code = main(["-c", str(policy_file), "--log-level", "CRITICAL"])

        assert exit_code == 1
        assert capsys.readouterr().out == ""
