"""Streaming gzipped tar codec.

Packs a directory into a deterministic, checksummed .tgz stream and extracts
untrusted .tgz streams without ever writing outside the extraction root.

Contract:
- Inputs: Source directories, binary streams
- Outputs: SHA-256 digests, Tarball descriptors, extracted trees
- Side Effects: Reads/writes the filesystem
"""

from __future__ import annotations

import gzip
import hashlib
import logging
import os
import shutil
import tarfile
import zlib
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from ..errors import ArchiveError
from ..errors import PathTraversalError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tarball:
    """A gzipped tar file written to disk.

    Attributes:
        path: Location of the archive
        checksum: `SHA256:<hex>` digest of the archive bytes
    """

    path: Path
    checksum: str


class _HashingWriter:
    """Write-through wrapper feeding every byte into a SHA-256 digest."""

    def __init__(self, fileobj: BinaryIO) -> None:
        self._fileobj = fileobj
        self._sha = hashlib.sha256()

    def write(self, data: bytes) -> int:
        self._sha.update(data)
        self._fileobj.write(data)
        return len(data)

    def flush(self) -> None:
        self._fileobj.flush()

    def hexdigest(self) -> str:
        return self._sha.hexdigest()


def _walk(source_dir: Path) -> Iterator[Path]:
    """Yield every path beneath source_dir in a stable order, parents first.

    Symlinked directories are yielded but never descended into.
    """
    for dirpath, dirnames, filenames in os.walk(source_dir):
        dirnames.sort()
        current = Path(dirpath)
        for name in dirnames:
            yield current / name
        for name in sorted(filenames):
            yield current / name


def _add_entry(tar: tarfile.TarFile, source_dir: Path, path: Path, prefix: str) -> None:
    relative = path.relative_to(source_dir).as_posix()
    arcname = f"{prefix}/{relative}" if prefix else relative

    info = tar.gettarinfo(str(path), arcname=arcname)

    # A second name for an already archived inode comes back as a hard link,
    # store it as an independent regular file instead.
    if info.islnk():
        info.type = tarfile.REGTYPE
        info.linkname = ""
        info.size = path.stat().st_size

    if info.isreg():
        with open(path, "rb") as f:
            tar.addfile(info, f)
    elif info.isdir() or info.issym():
        tar.addfile(info)
    else:
        logger.warning(f"Skipping unsupported file type while packing: {path}")


def pack(
    source_dir: Path | str,
    fileobj: BinaryIO,
    *,
    tar_format: int = tarfile.GNU_FORMAT,
    prefix: str = "",
) -> str:
    """Write source_dir as a gzipped tar stream into fileobj.

    Entries are emitted in sorted order with archive-relative names and the
    gzip header timestamp is pinned, so identical trees produce identical
    bytes. Symlinks are archived as links and never followed.

    Args:
        source_dir: Directory to archive
        fileobj: Binary stream receiving the archive, left open
        tar_format: tarfile format constant (GNU by default, as slugs require)
        prefix: Optional directory every entry name is placed under

    Returns:
        Hex SHA-256 digest of exactly the bytes written to fileobj

    Raises:
        ArchiveError: If source_dir is not a directory
    """
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        raise ArchiveError(f"Source directory does not exist: {source_dir}")

    prefix = prefix.rstrip("/")
    writer = _HashingWriter(fileobj)

    with gzip.GzipFile(filename="", mode="wb", fileobj=writer, mtime=0) as gz:
        with tarfile.open(fileobj=gz, mode="w", format=tar_format) as tar:
            for path in _walk(source_dir):
                _add_entry(tar, source_dir, path, prefix)

    digest = writer.hexdigest()
    logger.debug(f"Packed {source_dir} (sha256={digest})")
    return digest


def targz(source_dir: Path | str, dest_path: Path | str, **kwargs) -> Tarball:
    """Pack source_dir into a .tgz file at dest_path.

    Args:
        source_dir: Directory to archive
        dest_path: File to create (truncated if it exists)
        **kwargs: Passed through to pack()

    Returns:
        Tarball describing the written file
    """
    dest_path = Path(dest_path)
    with open(dest_path, "wb") as f:
        digest = pack(source_dir, f, **kwargs)

    return Tarball(path=dest_path, checksum=f"SHA256:{digest}")


def _strip(name: str, strip_first_component: bool) -> str | None:
    """Map an entry name to its path relative to the extraction root.

    Returns:
        Relative name, or None for the wrapper directory itself
    """
    if not strip_first_component:
        return name

    # tarfile drops the trailing slash of directory names
    _, _, rest = name.removeprefix("./").partition("/")
    return rest or None


def _contained(root: str, path: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


def _destination(root: str, entry: str, name: str) -> str:
    destination = os.path.normpath(os.path.join(root, name))
    if not _contained(root, destination):
        raise PathTraversalError(entry, destination)

    if destination == root:
        return destination

    # Parents may already exist as symlinks from an earlier extraction
    parent = os.path.realpath(os.path.dirname(destination))
    if not _contained(root, parent):
        raise PathTraversalError(entry, parent)
    return destination


def _check_symlink(root: str, entry: str, link_path: str, target: str) -> None:
    if os.path.isabs(target):
        raise PathTraversalError(entry, target)

    joined = os.path.join(os.path.dirname(link_path), target)
    for resolved in (os.path.normpath(joined), os.path.realpath(joined)):
        if not _contained(root, resolved):
            raise PathTraversalError(entry, resolved)


def _write_entry(tar: tarfile.TarFile, member: tarfile.TarInfo, path: str) -> None:
    if member.isdir():
        os.makedirs(path, exist_ok=True)
        return

    os.makedirs(os.path.dirname(path), exist_ok=True)
    if os.path.islink(path):
        os.unlink(path)
    source = tar.extractfile(member)
    with open(path, "wb") as out:
        shutil.copyfileobj(source, out)
    os.chmod(path, member.mode & 0o777)


def extract(fileobj: BinaryIO, dest_dir: Path | str, *, strip_first_component: bool = False) -> None:
    """Extract a gzipped tar stream into dest_dir.

    Every entry's destination is canonicalized and must remain inside
    dest_dir, otherwise the whole extraction aborts. Symlinks are created
    once all other entries are written and their targets are held to the
    same rule. Directory permissions are applied last so read-only
    directories do not block their own contents.

    Args:
        fileobj: Binary stream positioned at the start of the archive
        dest_dir: Extraction root, created if missing
        strip_first_component: Drop the single top-level directory that
            code hosting tarball endpoints wrap their payload in

    Raises:
        PathTraversalError: If any entry would escape dest_dir
        ArchiveError: If the stream is not a valid gzipped tar archive or
            an entry cannot be written
    """
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    root = os.path.realpath(dest_dir)

    directories: list[tuple[str, int]] = []
    symlinks: list[tuple[str, str, str]] = []

    try:
        with tarfile.open(fileobj=fileobj, mode="r|gz") as tar:
            for member in tar:
                name = _strip(member.name, strip_first_component)
                if name is None:
                    continue

                path = _destination(root, member.name, name)

                if member.isdir() or member.isreg():
                    try:
                        _write_entry(tar, member, path)
                    except OSError as e:
                        raise ArchiveError(f"Failed to extract archive entry {member.name}: {e}") from e
                    if member.isdir():
                        directories.append((path, member.mode & 0o777))
                elif member.issym():
                    symlinks.append((path, member.linkname, member.name))
                else:
                    logger.warning(f"Skipping unsupported archive entry: {member.name}")
    except (tarfile.TarError, EOFError, zlib.error, gzip.BadGzipFile) as e:
        raise ArchiveError(f"Failed to read archive: {e}") from e

    for path, target, entry in symlinks:
        _check_symlink(root, entry, path, target)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            if os.path.islink(path) or os.path.isfile(path):
                os.unlink(path)
            os.symlink(target, path)
        except OSError as e:
            raise ArchiveError(f"Failed to extract archive entry {entry}: {e}") from e

    for path, mode in sorted(directories, reverse=True):
        os.chmod(path, mode)

    logger.debug(
        f"Extracted archive into {root} ({len(directories)} directories, {len(symlinks)} symlinks)"
    )
