"""Tests for the command line interface."""

from click.testing import CliRunner

from chunkpipe.cli.main import cli, format_size, resolve_chunk_size
from chunkpipe.core.models import MB


class TestHelpers:
    def test_format_size(self) -> None:
        assert format_size(512) == "512 B"
        assert format_size(2048) == "2.0 KB"
        assert format_size(5 * MB) == "5.0 MB"

    def test_resolve_chunk_size(self) -> None:
        assert resolve_chunk_size(2, 10 * MB) == 2 * MB
        assert resolve_chunk_size(None, 500 * MB) == 8 * MB


class TestCommands:
    def test_plan(self, tmp_path) -> None:
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"x" * (2 * MB + 10))

        result = CliRunner().invoke(cli, ["plan", str(path), "--chunk-size-mb", "1"])

        assert result.exit_code == 0
        assert "3 chunks" in result.output

    def test_plan_missing_file(self, tmp_path) -> None:
        result = CliRunner().invoke(cli, ["plan", str(tmp_path / "nope.mp4")])
        assert result.exit_code != 0

    def test_check_unreachable(self) -> None:
        result = CliRunner().invoke(cli, ["--base-url", "http://127.0.0.1:1", "check"])

        assert result.exit_code == 1
        assert "not reachable" in result.output
