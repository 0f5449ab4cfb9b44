"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


def run_cli_command(command: str, env: dict[str, str] | None = None, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        command: The command to run (after 'python -m companion.cli.main')
        env: Extra environment variables
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    full_command = f"{sys.executable} -m companion.cli.main {command}"

    result = subprocess.run(
        full_command,
        shell=True,
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
        env={**os.environ, **(env or {})},
    )

    return result.returncode, result.stdout, result.stderr


@pytest.fixture
def cli_env(tmp_path):
    """Isolated state file, log file and SQLite database."""
    return {
        "GAMIFICATION_STATE_PATH": str(tmp_path / "state.json"),
        "LOG_FILE": str(tmp_path / "companion.log"),
        "DATABASE_URL": f"sqlite:///{tmp_path / 'companion.db'}",
        "ATTEMPT_STORE_URL": "",
        "COLUMNS": "200",
    }


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self, cli_env):
        """Main help should display without errors."""
        code, stdout, stderr = run_cli_command("--help", cli_env)

        assert code == 0, f"Help failed: {stderr}"
        assert "Commands" in stdout
        assert "queue" in stdout

    @pytest.mark.parametrize("command", ["analytics", "queue", "xp", "db"])
    def test_subcommand_help(self, cli_env, command):
        code, stdout, stderr = run_cli_command(f"{command} --help", cli_env)

        assert code == 0, f"{command} help failed: {stderr}"

    def test_version(self, cli_env):
        code, stdout, stderr = run_cli_command("version", cli_env)

        assert code == 0
        assert "campus-companion" in stdout


class TestXPCommands:
    """Test local XP commands against a temporary state file."""

    def test_show_fresh_state(self, cli_env):
        code, stdout, stderr = run_cli_command("xp show", cli_env)

        assert code == 0, f"xp show failed: {stderr}"
        assert "Level 1" in stdout

    def test_award_and_persist(self, cli_env):
        for quality in (5, 4, 3, 2):
            code, _, stderr = run_cli_command(f"xp award --quality {quality}", cli_env)
            assert code == 0, f"xp award failed: {stderr}"

        saved = json.loads(Path(cli_env["GAMIFICATION_STATE_PATH"]).read_text())
        assert saved["gamification"] == {"xp": 45, "level": 2, "totalXp": 145, "streak": 4}

    def test_award_requires_amount_or_quality(self, cli_env):
        code, stdout, _ = run_cli_command("xp award", cli_env)

        assert code == 1

    def test_reset_streak(self, cli_env):
        run_cli_command("xp award --amount 20", cli_env)
        code, stdout, _ = run_cli_command("xp reset-streak", cli_env)

        assert code == 0
        saved = json.loads(Path(cli_env["GAMIFICATION_STATE_PATH"]).read_text())
        assert saved["gamification"]["streak"] == 0
        assert saved["gamification"]["totalXp"] == 20


class TestLocalDatabaseCommands:
    """Test commands that read the local SQLite database."""

    def test_db_init_then_empty_queue(self, cli_env):
        code, stdout, stderr = run_cli_command("db init", cli_env)
        assert code == 0, f"db init failed: {stderr}"

        code, stdout, stderr = run_cli_command("queue --user alice", cli_env)
        assert code == 0, f"queue failed: {stderr}"
        assert "Nothing to review" in stdout

    def test_analytics_json(self, cli_env):
        run_cli_command("db init", cli_env)

        code, stdout, stderr = run_cli_command("analytics --user alice --json", cli_env)

        assert code == 0, f"analytics failed: {stderr}"
        assert json.loads(stdout)["summary"]["totalQuizzesTaken"] == 0
