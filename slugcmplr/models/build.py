"""Data model for the compilation pipeline.

Contract:
- BuildRoot owns the on-disk layout of one pipeline run
- CompileManifest is the durable hand-off from prepare to compile (meta.json)
- Build is the read-only execution context shared by buildpack invocations
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import BinaryIO
from typing import ClassVar

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class BuildpackReference(BaseModel):
    """A buildpack as declared by the target application.

    Attributes:
        name: Human-readable buildpack name
        url: `urn:buildpack:<name>` or `https://github.com/<owner>/<repo>[.git][#ref]`
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="", description="Display name of the buildpack")
    url: str = Field(description="Buildpack source URI")


class ResolvedBuildpack(BaseModel):
    """A buildpack that has been downloaded into a build root.

    Attributes:
        url: Source URI the buildpack was resolved from
        directory: Content hash of the URI, relative to buildpacks/
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Buildpack source URI")
    directory: str = Field(description="Directory under buildpacks/ holding the extracted buildpack")


class CompileManifest(BaseModel):
    """Summary of a prepared build root, persisted as meta.json.

    The order of `buildpacks` is the order they are executed in.
    """

    application: str = Field(description="Target application name")
    stack: str = Field(description="Stack the slug is compiled for")
    source_version: str = Field(description="Commit-like identifier of the source")
    buildpacks: list[ResolvedBuildpack] = Field(default_factory=list)


class CompileResult(BaseModel):
    """Outcome of a successful compilation, handed to the upload collaborator."""

    slug_path: Path = Field(description="Path to the packaged slug (app.tgz)")
    slug_checksum: str = Field(description="SHA256:<hex> digest of the slug file")
    source_version: str
    process_types: dict[str, str] = Field(description="Process name to command, from the Procfile")
    detected_buildpack: str = Field(description="Name reported by the last applicable buildpack")
    stack: str


@dataclass(frozen=True)
class BuildRoot:
    """Exclusive on-disk workspace for one prepare/compile run.

    Layout:
        <path>/env/<VAR_NAME>
        <path>/buildpacks/<sha256(uri)>/
        <path>/app/
        <path>/app.tgz
        <path>/meta.json
    """

    ENV_DIR: ClassVar[str] = "env"
    BUILDPACKS_DIR: ClassVar[str] = "buildpacks"
    APP_DIR: ClassVar[str] = "app"
    SLUG_FILE: ClassVar[str] = "app.tgz"
    MANIFEST_FILE: ClassVar[str] = "meta.json"

    path: Path

    @property
    def env_dir(self) -> Path:
        return self.path / self.ENV_DIR

    @property
    def buildpacks_dir(self) -> Path:
        return self.path / self.BUILDPACKS_DIR

    @property
    def app_dir(self) -> Path:
        return self.path / self.APP_DIR

    @property
    def slug_path(self) -> Path:
        return self.path / self.SLUG_FILE

    @property
    def manifest_path(self) -> Path:
        return self.path / self.MANIFEST_FILE

    def buildpack_dir(self, buildpack: ResolvedBuildpack) -> Path:
        """Directory a resolved buildpack was extracted into."""
        return self.buildpacks_dir / buildpack.directory

    def create(self) -> BuildRoot:
        """Create the root and its fixed subdirectories.

        Returns:
            self, for chaining
        """
        for directory in (self.env_dir, self.buildpacks_dir, self.app_dir):
            directory.mkdir(parents=True, exist_ok=True)
        return self

    def write_manifest(self, manifest: CompileManifest) -> Path:
        """Persist the manifest as meta.json.

        Returns:
            Path of the written manifest
        """
        self.manifest_path.write_text(manifest.model_dump_json(indent=2), encoding="utf-8")
        return self.manifest_path

    def read_manifest(self) -> CompileManifest:
        """Load meta.json written by a previous prepare run.

        Raises:
            FileNotFoundError: If the build root was never prepared
            pydantic.ValidationError: If meta.json is malformed
        """
        return CompileManifest.model_validate_json(self.manifest_path.read_text(encoding="utf-8"))


@dataclass(frozen=True)
class Build:
    """Execution context passed by reference to every buildpack invocation.

    Buildpacks may mutate the directories this names, never the context itself.

    Attributes:
        root: Build root being compiled
        cache_dir: Cache directory handed to bin/compile
        stack: Stack name, exported to buildpacks as STACK
        source_version: Commit-like identifier, exported as SOURCE_VERSION
        stdout: Sink for streamed subprocess stdout
        stderr: Sink for streamed subprocess stderr
    """

    root: BuildRoot
    cache_dir: Path
    stack: str
    source_version: str
    stdout: BinaryIO = field(default_factory=lambda: sys.stdout.buffer)
    stderr: BinaryIO = field(default_factory=lambda: sys.stderr.buffer)

    @property
    def build_dir(self) -> Path:
        return self.root.path

    @property
    def app_dir(self) -> Path:
        return self.root.app_dir

    @property
    def env_dir(self) -> Path:
        return self.root.env_dir
