"""Tests for snapwatch scan / export commands."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from snapwatch.cli.main import cli
from snapwatch.cli.scan import build_filter
from snapwatch.core.excludes import DEFAULT_IGNORED_DIRS

runner = CliRunner()


def _last_json(output: str) -> dict:
    return json.loads(output.strip().splitlines()[-1])


class TestBuildFilter:
    """Tests for build_filter."""

    def test_no_options_gives_defaults(self) -> None:
        """Without options the application defaults apply."""
        config = build_filter((), False, (), (), None)
        assert ".js" in config.allowed_extensions
        assert config.ignored_dir_names == DEFAULT_IGNORED_DIRS

    def test_ext_replaces_defaults(self) -> None:
        """--ext replaces the allowed list."""
        config = build_filter(("md", ".TXT"), False, (), (), None)
        assert config.allowed_extensions == frozenset({".md", ".txt"})

    def test_all_types(self) -> None:
        """--all-types empties the allow list."""
        assert build_filter(("md",), True, (), (), None).allowed_extensions == frozenset()

    def test_ignores_extend_defaults(self) -> None:
        """Ignore options add to the default names."""
        config = build_filter((), False, ("build",), ("yarn.lock",), 10)
        assert {"build", "node_modules"} <= config.ignored_dir_names
        assert "yarn.lock" in config.ignored_file_names
        assert config.max_file_size_bytes == 10


class TestScanCommand:
    """snapwatch scan tests."""

    def test_json_output(self, sample_tree: Path) -> None:
        """--json prints the root, files and skip counts."""
        result = runner.invoke(cli, ["scan", str(sample_tree), "--json"])
        assert result.exit_code == 0, result.output
        data = _last_json(result.output)
        assert data["root_directory"] == str(sample_tree.resolve())
        assert {f["relative_path"] for f in data["files"]} == {"a.js", "src/c.ts"}
        assert data["skipped"]["ignored_dir"] == 1

    def test_filter_options(self, sample_tree: Path) -> None:
        """Filter options change what is listed."""
        result = runner.invoke(
            cli, ["scan", str(sample_tree), "--ext", "txt", "--ext", "json", "--json"]
        )
        assert result.exit_code == 0, result.output
        paths = {f["relative_path"] for f in _last_json(result.output)["files"]}
        assert paths == {"b.txt"}

    def test_table_output(self, sample_tree: Path) -> None:
        """Human output lists the files and a summary line."""
        result = runner.invoke(cli, ["scan", str(sample_tree)])
        assert result.exit_code == 0, result.output
        assert "src/c.ts" in result.output
        assert "2 files in" in result.output

    def test_missing_directory(self, tmp_path: Path) -> None:
        """An unreadable root is reported as an error."""
        result = runner.invoke(cli, ["scan", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "Cannot read scan root" in result.output

    def test_negative_max_size(self, sample_tree: Path) -> None:
        """--max-size must not be negative."""
        result = runner.invoke(cli, ["scan", str(sample_tree), "--max-size", "-1"])
        assert result.exit_code == 2


class TestExportCommand:
    """snapwatch export tests."""

    def test_export_stdout(self, sample_tree: Path) -> None:
        """Markdown goes to stdout by default."""
        result = runner.invoke(cli, ["export", str(sample_tree)])
        assert result.exit_code == 0, result.output
        assert "### File: `a.js`\n```js\nconsole.log('a');\n\n```" in result.output

    def test_export_file(self, sample_tree: Path, tmp_path: Path) -> None:
        """-o writes the Markdown to a file, sorted by path."""
        out = tmp_path / "out.md"
        result = runner.invoke(cli, ["export", str(sample_tree), "-o", str(out)])
        assert result.exit_code == 0, result.output
        text = out.read_text()
        assert text.index("a.js") < text.index("src/c.ts")
        assert text.endswith("```\n")

    def test_missing_directory(self, tmp_path: Path) -> None:
        """An unreadable root is reported as an error, not a traceback."""
        result = runner.invoke(cli, ["export", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "Cannot read scan root" in result.output
        assert not isinstance(result.exception, TypeError)

    def test_export_nothing(self, tmp_path: Path) -> None:
        """An empty result writes an empty file."""
        empty = tmp_path / "empty"
        empty.mkdir()
        out = tmp_path / "out.md"
        result = runner.invoke(cli, ["export", str(empty), "-o", str(out)])
        assert result.exit_code == 0
        assert out.read_text() == ""
