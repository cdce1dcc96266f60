"""Buildpack resolution and execution.

Public Interface:
    parse_source: Resolve a buildpack URI to a downloadable source
    BuildpackSource: Downloadable buildpack tarball
    Buildpack: Downloaded buildpack bound to a build
    BuildpackState: Lifecycle of a buildpack within one compile
"""

from .executor import Buildpack
from .executor import BuildpackState
from .source import BuildpackSource
from .source import parse_source

__all__ = [
    "Buildpack",
    "BuildpackSource",
    "BuildpackState",
    "parse_source",
]
