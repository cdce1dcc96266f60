"""Prepare a build root for compilation.

Contract:
- Inputs: Application source directory, config vars, ordered buildpack references
- Outputs: CompileManifest (also persisted as meta.json)
- Side Effects: Writes env/, buildpacks/ and app/ under the build root, downloads buildpacks

The three units of work (env files, buildpack downloads, source copy) run
concurrently in one fail-fast group. A failure leaves whatever was already
written on disk.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import BinaryIO

import httpx

from .. import slugignore
from ..buildpacks.source import BuildpackSource
from ..buildpacks.source import parse_source
from ..config.settings import Settings
from ..errors import SlugcmplrError
from ..models.build import BuildpackReference
from ..models.build import BuildRoot
from ..models.build import CompileManifest
from ..models.build import ResolvedBuildpack
from ..output import log
from ..output import step
from ..storage.paths import get_home_dir
from ..utils.git import resolve_commit
from ..utils.taskgroup import FailFastGroup

logger = logging.getLogger(__name__)


class PrepareCmd:
    """Assemble env files, buildpacks and application source into a build root.

    Example:
        >>> cmd = PrepareCmd(
        ...     source_dir=Path("."),
        ...     build_dir=Path("/tmp/build"),
        ...     config_vars={"PING": "PONG"},
        ...     buildpacks=[BuildpackReference(url="urn:buildpack:heroku/go")],
        ...     application="my-app",
        ...     stack="heroku-22",
        ... )
        >>> manifest = await cmd.execute()
    """

    def __init__(
        self,
        source_dir: Path | str,
        build_dir: Path | str,
        config_vars: dict[str, str],
        buildpacks: list[BuildpackReference],
        application: str,
        stack: str,
        source_version: str | None = None,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.source_dir = Path(source_dir)
        self.root = BuildRoot(Path(build_dir))
        self.config_vars = config_vars
        self.buildpacks = buildpacks
        self.application = application
        self.stack = stack
        self.source_version = source_version
        self.settings = settings or Settings()
        self.client = client

    async def execute(self, stdout: BinaryIO | None = None) -> CompileManifest:
        """Populate the build root and write meta.json.

        Args:
            stdout: Optional sink for progress lines

        Returns:
            Manifest listing buildpacks in declared order

        Raises:
            SlugcmplrError: The first failure of any unit of work
        """
        if not self.source_dir.is_dir():
            raise SlugcmplrError(f"Source directory does not exist: {self.source_dir}")

        source_version = self.source_version or resolve_commit(self.source_dir)
        # Resolve every reference before touching the disk
        sources = [parse_source(ref.url, self.settings) for ref in self.buildpacks]

        step(stdout, f"Preparing {self.application} in {self.root.path}")
        self.root.create()

        resolved: list[ResolvedBuildpack | None] = [None] * len(sources)

        async with FailFastGroup() as group:
            group.spawn(self._write_env, group.cancelled, stdout, name="env")
            group.spawn(self._download_all, sources, resolved, group.cancelled, stdout, name="buildpacks")
            group.spawn(self._copy_source, group.cancelled, stdout, name="source")

        manifest = CompileManifest(
            application=self.application,
            stack=self.stack,
            source_version=source_version,
            buildpacks=[buildpack for buildpack in resolved if buildpack is not None],
        )
        self.root.write_manifest(manifest)

        step(stdout, f"Prepared {len(manifest.buildpacks)} buildpacks for {self.application}")
        return manifest

    async def _write_env(self, cancelled: asyncio.Event, stdout: BinaryIO | None) -> None:
        step(stdout, "Writing config vars")
        await asyncio.to_thread(self._write_env_files, cancelled)
        log(stdout, f"Wrote {len(self.config_vars)} config vars to {self.root.env_dir}")

    def _write_env_files(self, cancelled: asyncio.Event) -> None:
        for key, value in self.config_vars.items():
            if cancelled.is_set():
                return
            if not key or "/" in key or key in (".", ".."):
                raise SlugcmplrError(f"Invalid config var name: {key!r}")
            # Exact bytes, no trailing newline
            (self.root.env_dir / key).write_bytes(value.encode("utf-8"))
            logger.debug(f"Wrote config var {key}")

    async def _download_all(
        self,
        sources: list[BuildpackSource],
        resolved: list[ResolvedBuildpack | None],
        cancelled: asyncio.Event,
        stdout: BinaryIO | None,
    ) -> None:
        step(stdout, f"Downloading {len(sources)} buildpacks")
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_downloads)

        client = self.client
        if client is None:
            client = httpx.AsyncClient(timeout=httpx.Timeout(self.settings.download_timeout))

        async def download(index: int, source: BuildpackSource) -> None:
            async with semaphore:
                if cancelled.is_set():
                    return
                log(stdout, f"Downloading {source.uri}")
                resolved[index] = await source.download(self.root.buildpacks_dir, client)
                log(stdout, f"Downloaded {source.uri}")

        try:
            async with FailFastGroup(cancelled) as group:
                for index, source in enumerate(sources):
                    group.spawn(download, index, source, name=f"download-{index}")
        finally:
            if self.client is None:
                await client.aclose()

    async def _copy_source(self, cancelled: asyncio.Event, stdout: BinaryIO | None) -> None:
        step(stdout, f"Copying source from {self.source_dir}")
        ignore = await asyncio.to_thread(slugignore.parse, self.source_dir)
        if ignore:
            log(stdout, f"Ignoring {len(ignore)} paths listed in {slugignore.SLUGIGNORE_FILE}")
        await asyncio.to_thread(self._copy_tree, ignore, cancelled)

    def _copy_tree(self, ignore: slugignore.SlugIgnore, cancelled: asyncio.Event) -> None:
        source_dir = self.source_dir
        # The build root and slugcmplr home may live inside the source tree
        excluded = {self.root.path.resolve(), get_home_dir()}

        def ignored_names(directory: str, names: list[str]) -> set[str]:
            # Stop descending once another unit has failed
            if cancelled.is_set():
                return set(names)
            relative = Path(directory).relative_to(source_dir)
            parent = Path(directory).resolve()
            skipped = {name for name in names if ignore.is_ignored((relative / name).as_posix())}
            for name in skipped:
                logger.debug(f"Skipping ignored path {relative / name}")
            for name in names:
                if parent / name in excluded:
                    logger.debug(f"Skipping slugcmplr directory {relative / name}")
                    skipped.add(name)
            return skipped

        shutil.copytree(
            source_dir,
            self.root.app_dir,
            symlinks=True,
            ignore=ignored_names,
            dirs_exist_ok=True,
        )
