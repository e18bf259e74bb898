import pytest
from typer.testing import CliRunner

from repogen.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


class TestGenerateCommand:
    def test_generates_repository(self, runner, make_deb, tmp_path):
        make_deb()
        output_dir = tmp_path / "repo"

        result = runner.invoke(
            cli,
            ["generate", "-i", str(tmp_path / "input"), "-o", str(output_dir), "--codename", "bookworm"],
        )

        assert result.exit_code == 0, result.output
        assert (output_dir / "dists/bookworm/main/binary-amd64/Packages").is_file()
        assert "Suite: bookworm\n" in (output_dir / "dists/bookworm/Release").read_text()

    def test_missing_input_directory(self, runner, tmp_path):
        args = ["generate", "-i", str(tmp_path / "missing"), "-o", str(tmp_path / "repo")]
        result = runner.invoke(cli, args)
        assert result.exit_code == 2

    def test_invalid_architectures(self, runner, make_deb, tmp_path):
        make_deb()
        args = ["generate", "-i", str(tmp_path / "input"), "-o", str(tmp_path / "repo"), "--arch", ","]
        result = runner.invoke(cli, args)
        assert result.exit_code == 2

    def test_generation_error_exit_code(self, runner, make_pacman, tmp_path):
        make_pacman()
        result = runner.invoke(cli, ["generate", "-i", str(tmp_path / "input"), "-o", str(tmp_path / "repo")])
        assert result.exit_code == 1
        assert not (tmp_path / "repo").exists()

    def test_incremental_flag(self, runner, make_deb, tmp_path):
        make_deb()
        args = ["generate", "-i", str(tmp_path / "input"), "-o", str(tmp_path / "repo")]
        assert runner.invoke(cli, args).exit_code == 0

        result = runner.invoke(cli, [*args, "--incremental"])

        assert result.exit_code == 1


class TestScanCommand:
    def test_lists_packages(self, runner, make_deb, make_apk, tmp_path):
        make_deb()
        make_apk()

        result = runner.invoke(cli, ["scan", str(tmp_path / "input")])

        assert result.exit_code == 0
        lines = [line for line in result.output.splitlines() if line.startswith(("apk ", "deb "))]
        assert len(lines) == 2
        assert lines[0].startswith("apk")
        assert lines[0].endswith("busybox-1.36.1-r5.apk")
        assert lines[1].startswith("deb")
