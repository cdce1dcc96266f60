"""slugcmplr: local buildpack slug compiler.

Turns an application source tree plus an ordered list of buildpacks into a
compressed slug, the way the platform's build service would.

Public Interface:
    Modules:
    - archive: Tarball packing and safe extraction
    - slugignore: .slugignore parsing
    - buildpacks: Buildpack download and execution
    - pipeline: Prepare and compile orchestration
    - config: Settings loading
    - models: Shared data structures
"""

from .errors import SlugcmplrError
from .models import BuildpackReference
from .models import CompileManifest
from .models import CompileResult
from .pipeline import CompileCmd
from .pipeline import PrepareCmd

__all__ = [
    "BuildpackReference",
    "CompileCmd",
    "CompileManifest",
    "CompileResult",
    "PrepareCmd",
    "SlugcmplrError",
]
