"""Shared pytest fixtures for formula engine tests.

The Go toolchain and the packaged tools are replaced by small ``sh`` scripts:
the "build" copies ``tool.sh`` to ``<name>`` and the resulting executable
prints the usage line every dgtools tool prints.
"""

from __future__ import annotations

import hashlib
import io
import tarfile
from pathlib import Path
from typing import Callable, Optional

import pytest

from formula_engine.core import (
    ArtifactManager,
    Builder,
    Fetcher,
    Installer,
    PackagingEngine,
    Verifier,
    load_completion_templates,
)
from formula_engine.models import ToolSpec

SH_BUILD = [["sh", "-c", "cp tool.sh {name} && chmod +x {name}"]]

FORMULAS_DIR = Path(__file__).resolve().parent.parent / "formulas"


def usage_script(name: str, usage: Optional[str] = None) -> str:
    """Shell script printing a dgtools-style usage message."""
    usage = usage if usage is not None else f"Use '{name} help <command>' for extra details."
    return (
        "#!/bin/sh\n"
        f"echo 'SYNOPSIS: {name} [--help] <command> [<args>]'\n"
        f"echo \"{usage}\"\n"
    )


def build_archive(dest: Path, name: str, script: Optional[str] = None,
                  top_dir: Optional[str] = None) -> tuple[str, str]:
    """Write a GitHub-style tag archive for ``name`` and return (url, sha256)."""
    top_dir = top_dir or f"dgtools-{name}-v0.1.0"
    content = (script if script is not None else usage_script(name)).encode()

    dest.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(dest, "w:gz") as tf:
        info = tarfile.TarInfo(f"{top_dir}/{name}/tool.sh")
        info.size = len(content)
        info.mode = 0o755
        tf.addfile(info, io.BytesIO(content))
        readme = b"dgtools\n"
        info = tarfile.TarInfo(f"{top_dir}/README.md")
        info.size = len(readme)
        tf.addfile(info, io.BytesIO(readme))

    return dest.as_uri(), hashlib.sha256(dest.read_bytes()).hexdigest()


@pytest.fixture
def make_spec(tmp_path: Path) -> Callable[..., ToolSpec]:
    """Factory building a ToolSpec backed by a local archive."""

    def _make(name: str = "bake", script: Optional[str] = None, checksum: Optional[str] = "auto",
              **overrides) -> ToolSpec:
        url, sha = build_archive(tmp_path / "archives" / f"{name}.tar.gz", name, script)
        data = {
            "name": name,
            "description": f"{name} test tool",
            "source_path": name,
            "source_ref": {
                "kind": "archive",
                "url": url,
                "checksum": sha if checksum == "auto" else checksum,
            },
        }
        data.update(overrides)
        return ToolSpec.parse(data)

    return _make


@pytest.fixture
def dirs(tmp_path: Path) -> dict[str, Path]:
    return {
        "cache": tmp_path / "cache",
        "bin": tmp_path / "prefix" / "bin",
        "bash": tmp_path / "prefix" / "etc" / "bash_completion.d",
        "zsh": tmp_path / "prefix" / "share" / "zsh" / "site-functions",
        "artifacts": tmp_path / "artifacts",
    }


@pytest.fixture
def templates(dirs: dict[str, Path]):
    return load_completion_templates(dirs["bash"], dirs["zsh"])


@pytest.fixture
def engine(dirs: dict[str, Path], templates) -> PackagingEngine:
    return PackagingEngine(
        fetcher=Fetcher(dirs["cache"], timeout=30),
        builder=Builder(SH_BUILD, timeout=30),
        installer=Installer(dirs["bin"]),
        verifier=Verifier(timeout=10),
        templates=templates,
        artifact_manager=ArtifactManager(dirs["artifacts"], run_id="test"),
    )
