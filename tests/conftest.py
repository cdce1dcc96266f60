"""Pytest configuration and shared fixtures."""

import io
import tarfile
from collections.abc import Callable
from pathlib import Path

import pytest

from slugcmplr.models import Build
from slugcmplr.models import BuildRoot


@pytest.fixture
def mock_storage_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point SLUGCMPLR_HOME at a temporary directory.

    Also clears SLUGCMPLR_* settings overrides so tests see defaults.
    """
    home = tmp_path / "home"
    monkeypatch.setenv("SLUGCMPLR_HOME", str(home))
    for var in (
        "SLUGCMPLR_CONFIG_DIR",
        "SLUGCMPLR_CACHE_DIR",
        "SLUGCMPLR_LOG_LEVEL",
        "SLUGCMPLR_MAX_CONCURRENT_DOWNLOADS",
        "SLUGCMPLR_DOWNLOAD_TIMEOUT",
    ):
        monkeypatch.delenv(var, raising=False)
    return home


def write_executable(path: Path, script: str) -> Path:
    """Write a bash script and mark it executable."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/usr/bin/env bash\n" + script)
    path.chmod(0o755)
    return path


@pytest.fixture
def make_buildpack() -> Callable[..., Path]:
    """Factory writing a buildpack directory made of bash scripts.

    Example:
        >>> make_buildpack(tmp_path / "bp", detect="echo Go", compile="touch $1/built")
    """

    def factory(
        directory: Path,
        detect: str = "echo Test",
        compile: str = "exit 0",
        export: str | None = None,
    ) -> Path:
        write_executable(directory / "bin" / "detect", detect + "\n")
        write_executable(directory / "bin" / "compile", compile + "\n")
        if export is not None:
            (directory / "export").write_text(export + "\n")
        return directory

    return factory


@pytest.fixture
def build_root(tmp_path: Path) -> BuildRoot:
    """Empty build root with its fixed subdirectories."""
    return BuildRoot(tmp_path / "build").create()


@pytest.fixture
def build(build_root: BuildRoot, tmp_path: Path) -> Build:
    """Build context streaming into in-memory sinks."""
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    return Build(
        root=build_root,
        cache_dir=cache_dir,
        stack="heroku-22",
        source_version="0123456789abcdef",
        stdout=io.BytesIO(),
        stderr=io.BytesIO(),
    )


def _tarball_bytes(source_dir: Path, wrapper: str | None = None) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        tar.add(source_dir, arcname=wrapper or ".")
    return buffer.getvalue()


def _malicious_tarball(name: str, content: bytes = b"pwned", linkname: str | None = None) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        info = tarfile.TarInfo(name)
        if linkname is not None:
            info.type = tarfile.SYMTYPE
            info.linkname = linkname
            tar.addfile(info)
        else:
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


@pytest.fixture
def make_tarball() -> Callable[..., bytes]:
    """Factory returning a gzipped tar of a directory, optionally nested under a wrapper directory."""
    return _tarball_bytes


@pytest.fixture
def make_malicious_tarball() -> Callable[..., bytes]:
    """Factory returning a gzipped tar holding a single hostile entry (file, or symlink with linkname)."""
    return _malicious_tarball
