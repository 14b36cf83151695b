"""
Unit tests for the nextmarket command line.
"""

from unittest.mock import patch

import pytest

from nextmarket import __version__, cli


@pytest.mark.unit
class TestCli:
    """Test argument parsing and command dispatch."""

    def test_version(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            cli.main([])

    def test_migrate(self) -> None:
        with patch.object(cli, "run_migrations") as run_migrations:
            assert cli.main(["migrate"]) == 0

        run_migrations.assert_called_once_with("head")

    def test_serve_options(self) -> None:
        with patch.object(cli, "serve") as serve:
            assert cli.main(["serve", "--host", "127.0.0.1", "--port", "9000", "--reload"]) == 0

        serve.assert_called_once_with("127.0.0.1", 9000, True)

    def test_failure_exit_code(self) -> None:
        with patch.object(cli, "run_migrations", side_effect=RuntimeError("database unreachable")):
            assert cli.main(["migrate"]) == 1
