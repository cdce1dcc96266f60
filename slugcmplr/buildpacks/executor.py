"""Buildpack execution.

A buildpack is a directory with executables under bin/:
- bin/detect <app_dir>: exit 0 and print a name if it applies to the app
- bin/compile <app_dir> <cache_dir> <env_dir>: transform the app in place
- export (optional): shell file sourced before every later buildpack compiles

Contract:
- Inputs: ResolvedBuildpack, Build context
- Outputs: Detected name, mutated app directory
- Side Effects: Spawns subprocesses, streams their output to the Build sinks
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
import shlex
from enum import Enum
from pathlib import Path
from typing import BinaryIO

from ..errors import BuildpackCompileError
from ..errors import BuildpackDetectError
from ..models.build import Build
from ..models.build import ResolvedBuildpack

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class BuildpackState(str, Enum):
    UNDETECTED = "undetected"
    DETECTED = "detected"
    COMPILED = "compiled"
    FAILED = "failed"


async def _pump(stream: asyncio.StreamReader | None, sink: BinaryIO) -> None:
    if stream is None:
        return
    while chunk := await stream.read(_CHUNK_SIZE):
        sink.write(chunk)
        sink.flush()


class Buildpack:
    """A downloaded buildpack bound to the build it runs against.

    Example:
        >>> buildpack = Buildpack(resolved, build)
        >>> name, applicable = await buildpack.run(previous)
    """

    def __init__(self, resolved: ResolvedBuildpack, build: Build) -> None:
        self.resolved = resolved
        self.build = build
        self.state = BuildpackState.UNDETECTED
        self.name: str | None = None

    @property
    def url(self) -> str:
        return self.resolved.url

    @property
    def directory(self) -> Path:
        return self.build.root.buildpack_dir(self.resolved)

    def _environ(self) -> dict[str, str]:
        env = dict(os.environ)
        env["STACK"] = self.build.stack
        env["SOURCE_VERSION"] = self.build.source_version
        return env

    def export(self) -> Path | None:
        """Path of this buildpack's export file, or None if it ships none."""
        path = self.directory / "export"
        if path.is_file():
            return path
        return None

    async def detect(self) -> tuple[str, bool]:
        """Run bin/detect against the app directory.

        Returns:
            (name, applicable): trimmed stdout and whether detect exited 0

        Raises:
            BuildpackDetectError: If bin/detect could not be launched
        """
        detect = self.directory / "bin" / "detect"
        logger.debug(f"Running {detect} {self.build.app_dir}")

        try:
            proc = await asyncio.create_subprocess_exec(
                str(detect),
                str(self.build.app_dir),
                cwd=self.directory,
                env=self._environ(),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self.state = BuildpackState.FAILED
            raise BuildpackDetectError(self.url, f"Failed to run detect for buildpack {self.url}: {e}") from e

        captured = io.BytesIO()
        await asyncio.gather(
            _pump(proc.stdout, captured),
            _pump(proc.stderr, self.build.stderr),
        )
        returncode = await proc.wait()

        name = captured.getvalue().decode("utf-8", errors="replace").strip()
        if returncode != 0:
            logger.info(f"Buildpack {self.url} does not apply (detect exited {returncode})")
            self.state = BuildpackState.UNDETECTED
            return name, False

        logger.info(f"Buildpack {self.url} detected as {name!r}")
        self.state = BuildpackState.DETECTED
        self.name = name
        return name, True

    def compile_script(self, exports: list[Buildpack]) -> str:
        """Shell script sourcing every export file, then running bin/compile."""
        commands = []
        for previous in exports:
            export = previous.export()
            if export is not None:
                commands.append(shlex.join(["source", str(export)]))

        commands.append(
            shlex.join(
                [
                    str(self.directory / "bin" / "compile"),
                    str(self.build.app_dir),
                    str(self.build.cache_dir),
                    str(self.build.env_dir),
                ]
            )
        )
        return "; ".join(commands)

    async def compile(self, exports: list[Buildpack]) -> None:
        """Run bin/compile with the exports of earlier buildpacks in scope.

        Args:
            exports: Buildpacks that ran before this one, in order

        Raises:
            BuildpackCompileError: If bash could not be launched or compile exited non-zero
        """
        script = self.compile_script(exports)
        logger.debug(f"Compiling buildpack {self.url}: {script}")

        try:
            proc = await asyncio.create_subprocess_exec(
                "bash",
                "-c",
                script,
                cwd=self.directory,
                env=self._environ(),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self.state = BuildpackState.FAILED
            raise BuildpackCompileError(self.url, f"Failed to run compile for buildpack {self.url}: {e}") from e

        await asyncio.gather(
            _pump(proc.stdout, self.build.stdout),
            _pump(proc.stderr, self.build.stderr),
        )
        returncode = await proc.wait()

        if returncode != 0:
            self.state = BuildpackState.FAILED
            raise BuildpackCompileError(
                self.url,
                f"Buildpack {self.url} compile exited with status {returncode}",
                returncode=returncode,
            )

        logger.info(f"Buildpack {self.url} compiled")
        self.state = BuildpackState.COMPILED

    async def run(self, exports: list[Buildpack]) -> tuple[str, bool]:
        """Detect, then compile if the buildpack applies.

        Returns:
            (name, applicable); applicable is False when the buildpack declined
            and nothing was compiled
        """
        name, applicable = await self.detect()
        if not applicable:
            return name, False

        await self.compile(exports)
        return name, True
