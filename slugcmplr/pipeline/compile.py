"""Compile a prepared build root into a slug.

Contract:
- Inputs: Prepared build root (meta.json), cache directory
- Outputs: CompileResult
- Side Effects: Runs buildpacks against app/, writes app.tgz
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import BinaryIO

from ..archive import targz
from ..buildpacks.executor import Buildpack
from ..config.settings import Settings
from ..errors import BuildpackDeclinedError
from ..models.build import Build
from ..models.build import BuildRoot
from ..models.build import CompileManifest
from ..models.build import CompileResult
from ..output import log
from ..output import step
from ..procfile import PROCFILE
from ..procfile import Procfile

logger = logging.getLogger(__name__)


class CompileCmd:
    """Run the manifest's buildpacks in order, then package the app.

    Buildpacks run strictly one after another: each one sees the app
    directory as left by its predecessors and sources their export files.
    """

    def __init__(
        self,
        build_dir: Path | str,
        cache_dir: Path | str,
        manifest: CompileManifest | None = None,
        settings: Settings | None = None,
    ):
        self.root = BuildRoot(Path(build_dir))
        self.cache_dir = Path(cache_dir)
        self.manifest = manifest
        self.settings = settings or Settings()

    async def execute(self, stdout: BinaryIO | None = None, stderr: BinaryIO | None = None) -> CompileResult:
        """Compile the build root.

        Args:
            stdout: Sink for progress and buildpack stdout (default: process stdout)
            stderr: Sink for buildpack stderr (default: process stderr)

        Returns:
            CompileResult describing the packaged slug

        Raises:
            BuildpackDeclinedError: If a declared buildpack does not apply
            BuildpackError: If a buildpack fails to detect or compile
            ProcfileError: If the compiled app has no valid Procfile
        """
        stdout = stdout or sys.stdout.buffer
        stderr = stderr or sys.stderr.buffer

        manifest = self.manifest or self.root.read_manifest()
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        build = Build(
            root=self.root,
            cache_dir=self.cache_dir,
            stack=manifest.stack,
            source_version=manifest.source_version,
            stdout=stdout,
            stderr=stderr,
        )

        previous: list[Buildpack] = []
        detected = ""

        for resolved in manifest.buildpacks:
            buildpack = Buildpack(resolved, build)
            name, applicable = await buildpack.detect()
            if not applicable:
                raise BuildpackDeclinedError(resolved.url)

            step(stdout, f"{name} app detected")
            await buildpack.compile(previous)
            detected = name
            previous.append(buildpack)

        procfile = await asyncio.to_thread(Procfile.read, self.root.app_dir / PROCFILE)

        step(stdout, "Compressing...")
        tarball = await asyncio.to_thread(
            targz,
            self.root.app_dir,
            self.root.slug_path,
            prefix=self.settings.slug_prefix,
        )
        log(stdout, f"Done: {tarball.path.stat().st_size} bytes")
        log(stdout, f"Checksum: {tarball.checksum}")

        logger.info(f"Compiled {manifest.application} with {len(previous)} buildpacks")

        return CompileResult(
            slug_path=tarball.path,
            slug_checksum=tarball.checksum,
            source_version=manifest.source_version,
            process_types=dict(procfile),
            detected_buildpack=detected,
            stack=manifest.stack,
        )
