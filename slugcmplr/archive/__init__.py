"""Archive codec for slugs and buildpack sources.

Public Interface:
    - pack: Stream a directory as a checksummed .tgz
    - targz: Pack a directory into a .tgz file
    - extract: Safely extract a .tgz stream
    - Tarball: Written archive descriptor
"""

from .codec import Tarball
from .codec import extract
from .codec import pack
from .codec import targz

__all__ = [
    "Tarball",
    "extract",
    "pack",
    "targz",
]
