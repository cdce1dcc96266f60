"""Buildpack source resolution.

Resolves buildpack URIs to downloadable tarballs and extracts them into
content-addressed directories:
- urn:buildpack:<name>: official registry tarball (not wrapped)
- https://github.com/<owner>/<repo>[.git][#ref]: repository tarball for ref,
  wrapped in a synthetic top-level directory

The extraction directory is sha256(uri), so downloading the same reference
twice lands in the same place. Nothing here locks that directory: concurrent
downloads of one reference into a shared base directory are last write wins.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

import httpx

from ..archive import extract
from ..config.settings import Settings
from ..errors import ArchiveError
from ..errors import DownloadError
from ..errors import PathTraversalError
from ..errors import UnsupportedSourceError
from ..models.build import ResolvedBuildpack
from ..utils.github_url import is_github_url
from ..utils.github_url import parse_github_url

logger = logging.getLogger(__name__)

REGISTRY_PREFIX = "urn:buildpack:"


def sum256(value: str) -> str:
    """Hex SHA-256 of a string, used to name buildpack directories."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class BuildpackSource:
    """A buildpack URI resolved to the tarball it is downloaded from.

    Attributes:
        uri: Buildpack URI as declared by the application
        url: Tarball URL the URI resolves to
        wrapped: Whether the tarball nests its payload in one top directory
        timeout: Download timeout in seconds, None for no timeout
    """

    uri: str
    url: str
    wrapped: bool = False
    timeout: float | None = None

    @property
    def directory(self) -> str:
        """Directory name, relative to the buildpacks directory, to extract into."""
        return sum256(self.uri)

    async def download(self, base_dir: Path | str, client: httpx.AsyncClient | None = None) -> ResolvedBuildpack:
        """Download and extract the buildpack into base_dir/<directory>.

        Args:
            base_dir: Buildpacks directory of the build root
            client: Optional shared HTTP client; one is created when omitted

        Returns:
            ResolvedBuildpack pointing at the extracted directory

        Raises:
            DownloadError: On transport errors, non-2xx responses or a malformed archive
            PathTraversalError: If the archive tries to write outside its directory
        """
        destination = Path(base_dir) / self.directory
        logger.info(f"Downloading buildpack {self.uri} from {self.url}")

        with tempfile.TemporaryFile() as archive:
            await self._fetch(archive, client)
            archive.seek(0)

            try:
                await asyncio.to_thread(extract, archive, destination, strip_first_component=self.wrapped)
            except PathTraversalError:
                logger.error(f"Buildpack archive for {self.uri} attempted to escape {destination}")
                raise
            except ArchiveError as e:
                raise DownloadError(f"Failed to extract buildpack {self.uri} from {self.url}: {e}") from e

        logger.info(f"Buildpack {self.uri} extracted to {destination}")
        return ResolvedBuildpack(url=self.uri, directory=self.directory)

    async def _fetch(self, out: BinaryIO, client: httpx.AsyncClient | None) -> None:
        owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))

        try:
            async with client.stream("GET", self.url, follow_redirects=True) as response:
                if not response.is_success:
                    raise DownloadError(
                        f"Non 2XX response code {response.status_code} downloading buildpack {self.uri} from {self.url}"
                    )
                async for chunk in response.aiter_bytes():
                    out.write(chunk)
        except httpx.HTTPError as e:
            raise DownloadError(f"Failed to download buildpack {self.uri} from {self.url}: {e}") from e
        finally:
            if owns_client:
                await client.aclose()


def parse_source(uri: str, settings: Settings | None = None) -> BuildpackSource:
    """Parse a buildpack URI into the source it is downloaded from.

    Args:
        uri: `urn:buildpack:<name>` or `https://github.com/<owner>/<repo>[.git][#ref]`
        settings: Settings providing registry/GitHub URLs and download timeout

    Returns:
        BuildpackSource for the URI

    Raises:
        UnsupportedSourceError: If the URI matches neither grammar

    Examples:
        >>> parse_source("urn:buildpack:heroku/go").url
        'https://buildpack-registry.s3.amazonaws.com/buildpacks/heroku/go.tgz'

        >>> parse_source("https://github.com/heroku/heroku-buildpack-go#v150").url
        'https://github.com/heroku/heroku-buildpack-go/tarball/v150'
    """
    settings = settings or Settings()

    if uri.startswith(REGISTRY_PREFIX):
        name = uri.removeprefix(REGISTRY_PREFIX)
        if not name:
            raise UnsupportedSourceError(f"Buildpack URN is missing a name: {uri}")
        return BuildpackSource(
            uri=uri,
            url=settings.registry_url.format(name=name),
            wrapped=False,
            timeout=settings.download_timeout,
        )

    if is_github_url(uri, settings.github_url):
        parsed = parse_github_url(uri)
        repository = parsed.url.removeprefix(settings.github_url + "/")
        if repository.count("/") != 1 or not all(repository.split("/")):
            raise UnsupportedSourceError(f"GitHub buildpack URL must name <owner>/<repo>: {uri}")
        return BuildpackSource(
            uri=uri,
            url=parsed.tarball_url,
            wrapped=True,
            timeout=settings.download_timeout,
        )

    raise UnsupportedSourceError(
        f"Unsupported buildpack source: {uri}\n"
        f"Expected urn:buildpack:<name> or {settings.github_url}/<owner>/<repo>[.git][#ref]"
    )
