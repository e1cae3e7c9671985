"""Unit tests for maintenance commands."""

from unittest.mock import patch, AsyncMock
from typer.testing import CliRunner

from app.cli import cli
from app.config import Settings

runner = CliRunner()


class TestClearLogs:
    """Test clear-logs."""

    def test_removes_files_only(self, tmp_path):
        (tmp_path / "app.log").write_text("line\n")
        (tmp_path / "app.log.1").write_text("older\n")
        (tmp_path / "archive").mkdir()

        result = runner.invoke(cli, ["clear-logs", "--dir", str(tmp_path)])

        assert result.exit_code == 0
        assert "Removed 2 log file(s)" in result.output
        assert [p.name for p in tmp_path.iterdir()] == ["archive"]

    def test_uses_log_file_directory(self, tmp_path):
        (tmp_path / "proxy.log").write_text("line\n")
        settings = Settings(log_file=str(tmp_path / "proxy.log"))

        with patch("app.cli.get_settings", return_value=settings):
            result = runner.invoke(cli, ["clear-logs"])

        assert result.exit_code == 0
        assert list(tmp_path.iterdir()) == []

    def test_missing_directory(self, tmp_path):
        result = runner.invoke(cli, ["clear-logs", "--dir", str(tmp_path / "nope")])
        assert result.exit_code == 1

    def test_no_directory_configured(self):
        with patch("app.cli.get_settings", return_value=Settings(log_file=None)):
            result = runner.invoke(cli, ["clear-logs"])
        assert result.exit_code == 1


class TestForget:
    """Test forget."""

    def test_memory_backend_refuses(self):
        with patch("app.cli.get_settings", return_value=Settings(cache_backend="memory")):
            result = runner.invoke(cli, ["forget", "cinemas_list"])

        assert result.exit_code == 1
        assert "process-local" in result.output

    def test_postgres_backend_forgets_key(self):
        settings = Settings(cache_backend="postgres")
        forget_mock = AsyncMock()

        with patch("app.cli.get_settings", return_value=settings), \
             patch("app.cli.init_db", AsyncMock()), \
             patch("app.cli.close_db", AsyncMock()) as close_mock, \
             patch("app.services.cache.PostgresCacheStore.forget", forget_mock):
            result = runner.invoke(cli, ["forget", "movies_cinema_9"])

        assert result.exit_code == 0
        assert "Forgot movies_cinema_9" in result.output
        forget_mock.assert_awaited_once_with("movies_cinema_9")
        close_mock.assert_awaited_once()
