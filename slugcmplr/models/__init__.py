"""Models for slugcmplr."""

from .build import Build
from .build import BuildpackReference
from .build import BuildRoot
from .build import CompileManifest
from .build import CompileResult
from .build import ResolvedBuildpack

__all__ = [
    "Build",
    "BuildRoot",
    "BuildpackReference",
    "CompileManifest",
    "CompileResult",
    "ResolvedBuildpack",
]
