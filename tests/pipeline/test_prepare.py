"""Tests for the prepare orchestrator."""

import asyncio
import hashlib
import os
import re
from pathlib import Path

import httpx
import pytest
from git import Repo

from slugcmplr.config import Settings
from slugcmplr.errors import DownloadError
from slugcmplr.errors import SlugcmplrError
from slugcmplr.errors import UnsupportedSourceError
from slugcmplr.models import BuildpackReference
from slugcmplr.models import BuildRoot
from slugcmplr.pipeline import PrepareCmd


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    src = tmp_path / "src"
    for name in ("keep-me/a.txt", "vendor/drop-me/b.txt", "vendor/keep-this/c.txt", "app.py"):
        path = src / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(name)
    (src / "bin").mkdir()
    (src / "bin" / "server").write_text("#!/bin/sh\n")
    (src / "bin" / "server").chmod(0o755)
    (src / "current").symlink_to("app.py")
    return src


@pytest.fixture
def buildpack_tarball(tmp_path: Path, make_buildpack, make_tarball) -> bytes:
    return make_tarball(make_buildpack(tmp_path / "bp-src"))


def serve(data: bytes) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=data)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def prepare_cmd(source_dir: Path, build_dir: Path, client: httpx.AsyncClient, **overrides) -> PrepareCmd:
    kwargs = {
        "source_dir": source_dir,
        "build_dir": build_dir,
        "config_vars": {},
        "buildpacks": [BuildpackReference(url="urn:buildpack:test/one")],
        "application": "test-app",
        "stack": "heroku-22",
        "source_version": "deadbeef",
        "client": client,
    }
    kwargs.update(overrides)
    return PrepareCmd(**kwargs)


@pytest.mark.integration
class TestPrepareCmd:
    """Test assembling a build root."""

    @pytest.mark.asyncio
    async def test_manifest_preserves_declaration_order(self, source_dir: Path, tmp_path: Path, buildpack_tarball):
        """Test downloads finishing out of order still produce declaration order."""
        urls = [f"urn:buildpack:test/bp{i}" for i in range(5)]
        completed: list[int] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            index = int(re.search(r"bp(\d+)\.tgz$", request.url.path).group(1))
            await asyncio.sleep(0.02 * (len(urls) - index))
            completed.append(index)
            return httpx.Response(200, content=buildpack_tarball)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            cmd = prepare_cmd(
                source_dir,
                tmp_path / "build",
                client,
                buildpacks=[BuildpackReference(url=url) for url in urls],
                settings=Settings(max_concurrent_downloads=len(urls)),
            )
            manifest = await cmd.execute()

        assert completed != sorted(completed)
        assert [bp.url for bp in manifest.buildpacks] == urls
        assert [bp.directory for bp in manifest.buildpacks] == [hashlib.sha256(u.encode()).hexdigest() for u in urls]

    @pytest.mark.asyncio
    async def test_download_concurrency_is_bounded(self, source_dir: Path, tmp_path: Path, buildpack_tarball):
        in_flight = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return httpx.Response(200, content=buildpack_tarball)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            cmd = prepare_cmd(
                source_dir,
                tmp_path / "build",
                client,
                buildpacks=[BuildpackReference(url=f"urn:buildpack:test/bp{i}") for i in range(6)],
                settings=Settings(max_concurrent_downloads=2),
            )
            manifest = await cmd.execute()

        assert len(manifest.buildpacks) == 6
        assert peak <= 2

    @pytest.mark.asyncio
    async def test_env_files_written_exactly(self, source_dir: Path, tmp_path: Path, buildpack_tarball):
        async with serve(buildpack_tarball) as client:
            cmd = prepare_cmd(
                source_dir,
                tmp_path / "build",
                client,
                config_vars={"PING": "PONG", "MULTILINE": "a\nb", "EMPTY": ""},
            )
            await cmd.execute()

        env_dir = BuildRoot(tmp_path / "build").env_dir
        assert (env_dir / "PING").read_bytes() == b"PONG"
        assert (env_dir / "MULTILINE").read_bytes() == b"a\nb"
        assert (env_dir / "EMPTY").read_bytes() == b""

    @pytest.mark.asyncio
    async def test_invalid_config_var_name(self, source_dir: Path, tmp_path: Path, buildpack_tarball):
        async with serve(buildpack_tarball) as client:
            cmd = prepare_cmd(source_dir, tmp_path / "build", client, config_vars={"../escape": "x"})
            with pytest.raises(SlugcmplrError, match="Invalid config var name"):
                await cmd.execute()

        assert not (tmp_path / "build" / "escape").exists()
        assert not BuildRoot(tmp_path / "build").manifest_path.exists()

    @pytest.mark.asyncio
    async def test_source_copy_honours_slugignore(self, source_dir: Path, tmp_path: Path, buildpack_tarball):
        """Test ignored paths and everything beneath them are not copied."""
        (source_dir / ".slugignore").write_text("/keep-me\nvendor/drop-me\n")

        async with serve(buildpack_tarball) as client:
            await prepare_cmd(source_dir, tmp_path / "build", client).execute()

        app_dir = BuildRoot(tmp_path / "build").app_dir
        assert (app_dir / "vendor" / "keep-this" / "c.txt").read_text() == "vendor/keep-this/c.txt"
        assert not (app_dir / "vendor" / "drop-me").exists()
        assert not (app_dir / "keep-me").exists()
        assert (app_dir / "app.py").exists()

    @pytest.mark.asyncio
    async def test_source_copy_preserves_modes_and_symlinks(
        self, source_dir: Path, tmp_path: Path, buildpack_tarball
    ):
        async with serve(buildpack_tarball) as client:
            await prepare_cmd(source_dir, tmp_path / "build", client).execute()

        app_dir = BuildRoot(tmp_path / "build").app_dir
        assert os.access(app_dir / "bin" / "server", os.X_OK)
        assert (app_dir / "current").is_symlink()
        assert os.readlink(app_dir / "current") == "app.py"

    @pytest.mark.asyncio
    async def test_build_dir_inside_source_dir(self, source_dir: Path, buildpack_tarball):
        """Test a build root nested in the source tree is not copied into itself."""
        build_dir = source_dir / "build"

        async with serve(buildpack_tarball) as client:
            await prepare_cmd(source_dir, build_dir, client).execute()

        app_dir = BuildRoot(build_dir).app_dir
        assert (app_dir / "app.py").exists()
        assert (app_dir / "vendor" / "keep-this" / "c.txt").exists()
        assert not (app_dir / "build").exists()

    @pytest.mark.asyncio
    async def test_manifest_written(self, source_dir: Path, tmp_path: Path, buildpack_tarball):
        async with serve(buildpack_tarball) as client:
            manifest = await prepare_cmd(source_dir, tmp_path / "build", client).execute()

        root = BuildRoot(tmp_path / "build")
        assert root.read_manifest() == manifest
        assert manifest.application == "test-app"
        assert manifest.stack == "heroku-22"
        assert manifest.source_version == "deadbeef"
        assert (root.buildpack_dir(manifest.buildpacks[0]) / "bin" / "compile").exists()

    @pytest.mark.asyncio
    async def test_source_version_from_git_head(self, source_dir: Path, tmp_path: Path, buildpack_tarball):
        repo = Repo.init(source_dir)
        repo.index.add(["app.py"])
        commit = repo.index.commit("Initial commit")

        async with serve(buildpack_tarball) as client:
            manifest = await prepare_cmd(source_dir, tmp_path / "build", client, source_version=None).execute()

        assert manifest.source_version == commit.hexsha

    @pytest.mark.asyncio
    async def test_unsupported_source_fails_before_writing(self, source_dir: Path, tmp_path: Path):
        async with serve(b"") as client:
            cmd = prepare_cmd(
                source_dir,
                tmp_path / "build",
                client,
                buildpacks=[BuildpackReference(url="https://gitlab.com/org/buildpack")],
            )
            with pytest.raises(UnsupportedSourceError):
                await cmd.execute()

        assert not (tmp_path / "build").exists()

    @pytest.mark.asyncio
    async def test_download_failure_propagates(self, source_dir: Path, tmp_path: Path):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(DownloadError, match="503"):
                await prepare_cmd(source_dir, tmp_path / "build", client).execute()

        assert not BuildRoot(tmp_path / "build").manifest_path.exists()

    @pytest.mark.asyncio
    async def test_missing_source_dir(self, tmp_path: Path):
        async with serve(b"") as client:
            with pytest.raises(SlugcmplrError, match="does not exist"):
                await prepare_cmd(tmp_path / "nope", tmp_path / "build", client).execute()
