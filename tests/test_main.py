"""Tests for the command-line entry point."""

from PIL import Image

from simtricks.core.config import EnvSettings
from simtricks.main import build_parser, main


class TestParser:
    def test_matrix_and_sandbox_arguments(self):
        args = build_parser(EnvSettings.model_construct()).parse_args(
            [
                "-x",
                "16",
                "-y",
                "8",
                "-p",
                "plugin.wasm",
                "--allow-host",
                "a.example",
                "--allow-host",
                "b.example",
                "--map-path",
                "./data>/data",
            ]
        )
        assert (args.width, args.height, args.path) == (16, 8, "plugin.wasm")
        assert args.fps == 30.0
        assert args.allow_host == ["a.example", "b.example"]
        assert args.map_path == ["./data>/data"]


class TestMain:
    def test_missing_plugin_reports_and_exits_cleanly(self, tmp_path, capsys):
        missing = tmp_path / "missing.wasm"
        snapshot = tmp_path / "last.png"

        args = ["-x", "3", "-y", "2", "-p", str(missing), "--duration", "1"]
        code = main(args + ["--snapshot", str(snapshot)])

        assert code == 0
        assert "Unable to read plugin data" in capsys.readouterr().out
        with Image.open(snapshot) as image:
            assert image.size == (3, 2)

    def test_invalid_dimensions(self, tmp_path):
        assert main(["-x", "0", "-y", "2", "-p", str(tmp_path / "p.wasm")]) == 2
