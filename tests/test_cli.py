"""Tests for settings loading and the command-line entry point."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from conftest import FORMULAS_DIR, SH_BUILD, build_archive
from config.settings import InstallConfig, Settings
from main import build_engine, load_config, main, parse_arguments


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(tmp_path)
    for key in ("FORMULA_INSTALL__PREFIX", "FORMULA_MAX_CONCURRENT_JOBS"):
        monkeypatch.delenv(key, raising=False)

    # main() reconfigures the root logger
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSettings:
    """Tests for config.settings."""

    def test_target_dirs_follow_prefix(self, tmp_path: Path) -> None:
        install = InstallConfig(prefix=tmp_path)

        assert install.bin_dir == tmp_path / "bin"
        assert install.bash_completion_dir == tmp_path / "etc" / "bash_completion.d"
        assert install.zsh_completion_dir == tmp_path / "share" / "zsh" / "site-functions"
        assert install.completion_prefix == "dgtools"

    def test_explicit_dirs_win(self, tmp_path: Path) -> None:
        install = InstallConfig(prefix=tmp_path, bin_dir=tmp_path / "elsewhere")
        assert install.bin_dir == tmp_path / "elsewhere"

    def test_environment_overrides(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FORMULA_INSTALL__PREFIX", str(tmp_path / "env-prefix"))
        monkeypatch.setenv("FORMULA_MAX_CONCURRENT_JOBS", "2")

        settings = Settings()

        assert settings.install.bin_dir == tmp_path / "env-prefix" / "bin"
        assert settings.max_concurrent_jobs == 2

    def test_rejects_bad_completion_prefix(self) -> None:
        with pytest.raises(ValueError):
            InstallConfig(completion_prefix="a/b")


class TestLoadConfig:
    """Tests for main.load_config."""

    def test_cli_overrides_config_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "install": {"prefix": str(tmp_path / "file-prefix"), "completion_prefix": "acme"},
            "max_concurrent_jobs": 3,
        }))

        settings = load_config(parse_arguments([
            "--config", str(config_file),
            "--bin-dir", str(tmp_path / "cli-bin"),
            "--timeout", "12",
        ]))

        assert settings.install.bin_dir == tmp_path / "cli-bin"
        assert settings.install.zsh_completion_dir == tmp_path / "file-prefix" / "share" / "zsh" / "site-functions"
        assert settings.install.completion_prefix == "acme"
        assert settings.max_concurrent_jobs == 3
        assert settings.fetch.timeout == 12
        assert settings.build.timeout == 12

    def test_null_sections_use_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"install": None, "fetch": None, "max_concurrent_jobs": 2}))

        settings = load_config(parse_arguments([
            "--config", str(config_file),
            "--prefix", str(tmp_path / "prefix"),
            "--timeout", "7",
        ]))

        assert settings.install.bin_dir == tmp_path / "prefix" / "bin"
        assert settings.fetch.timeout == 7
        assert settings.fetch.cache_dir == Path("cache")
        assert settings.max_concurrent_jobs == 2

    def test_config_file_must_be_an_object(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.json"
        config_file.write_text('["install"]')

        with pytest.raises(ValueError, match="JSON object"):
            load_config(parse_arguments(["--config", str(config_file)]))

    def test_missing_config_file(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="not found"):
            load_config(parse_arguments(["--config", str(tmp_path / "missing.json")]))

    def test_build_engine_wires_templates(self, tmp_path: Path) -> None:
        settings = load_config(parse_arguments(["--prefix", str(tmp_path / "prefix")]))

        engine = build_engine(settings)

        assert engine.installer.bin_dir == tmp_path / "prefix" / "bin"
        assert [t.install_target_dir for t in engine.templates] == [
            tmp_path / "prefix" / "etc" / "bash_completion.d",
            tmp_path / "prefix" / "share" / "zsh" / "site-functions",
        ]


class TestMain:
    """Tests for main.main."""

    @pytest.mark.asyncio
    async def test_list(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = await main(["--list", "--formulas-dir", str(FORMULAS_DIR)])

        assert code == 0
        assert capsys.readouterr().out.split() == [
            "bake", "bt", "chatgpt", "kdecode", "mermaid", "password-cache", "tz"
        ]

    @pytest.mark.asyncio
    async def test_unknown_tool(self) -> None:
        assert await main(["--formulas-dir", str(FORMULAS_DIR), "--tool", "nope"]) == 1

    @pytest.mark.asyncio
    async def test_packages_selected_tools(self, tmp_path: Path) -> None:
        formulas = tmp_path / "formulas"
        formulas.mkdir()
        for name in ("bake", "tz"):
            url, sha = build_archive(tmp_path / "archives" / f"{name}.tar.gz", name)
            (formulas / f"{name}.json").write_text(json.dumps({
                "name": name,
                "source_path": name,
                "source_ref": {"kind": "archive", "url": url, "checksum": sha},
            }))
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"build": {"commands": SH_BUILD}}))

        code = await main([
            "--config", str(config_file),
            "--formulas-dir", str(formulas),
            "--prefix", str(tmp_path / "prefix"),
            "--cache-dir", str(tmp_path / "cache"),
            "--artifacts-dir", str(tmp_path / "artifacts"),
            "--tool", "tz",
        ])

        assert code == 0
        assert (tmp_path / "prefix" / "bin" / "tz").exists()
        assert not (tmp_path / "prefix" / "bin" / "bake").exists()
        assert (tmp_path / "prefix" / "etc" / "bash_completion.d" / "dgtools.tz.bash").exists()
        assert (tmp_path / "prefix" / "share" / "zsh" / "site-functions" / "dgtools.tz.zsh").exists()

    @pytest.mark.asyncio
    async def test_failure_exit_code(self, tmp_path: Path) -> None:
        formulas = tmp_path / "formulas"
        formulas.mkdir()
        url, _ = build_archive(tmp_path / "archives" / "tz.tar.gz", "tz")
        (formulas / "tz.json").write_text(json.dumps({
            "name": "tz",
            "source_path": "tz",
            "source_ref": {"kind": "archive", "url": url, "checksum": "0" * 64},
        }))

        code = await main([
            "--formulas-dir", str(formulas),
            "--prefix", str(tmp_path / "prefix"),
            "--cache-dir", str(tmp_path / "cache"),
        ])

        assert code == 1
        assert not (tmp_path / "prefix" / "bin").exists()
