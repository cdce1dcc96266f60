"""Prepare and compile orchestration.

Public Interface:
    PrepareCmd: Populate a build root from source, config vars and buildpacks
    CompileCmd: Run buildpacks over a prepared build root and package the slug
"""

from .compile import CompileCmd
from .prepare import PrepareCmd

__all__ = [
    "CompileCmd",
    "PrepareCmd",
]
