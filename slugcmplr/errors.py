"""Error taxonomy for the slug compilation pipeline.

Every error raised by this package derives from SlugcmplrError so callers can
catch pipeline failures as a whole, while still distinguishing the
security-relevant PathTraversalError and buildpack declination.
"""


class SlugcmplrError(Exception):
    """Base class for all slug compilation errors."""


class ArchiveError(SlugcmplrError):
    """Raised when a tar/gzip stream is malformed or cannot be written."""


class PathTraversalError(ArchiveError):
    """Raised when an archive entry would be written outside the extraction root.

    Attributes:
        entry: Name of the offending archive entry
        destination: Canonicalized path the entry resolved to
    """

    def __init__(self, entry: str, destination: str) -> None:
        super().__init__(f"Archive entry escapes extraction root: {entry} (resolved to {destination})")
        self.entry = entry
        self.destination = destination


class SlugIgnoreError(SlugcmplrError):
    """Raised when a .slugignore pattern is malformed."""


class ProcfileError(SlugcmplrError):
    """Raised when a Procfile is missing or contains an invalid line."""


class UnsupportedSourceError(SlugcmplrError):
    """Raised when a buildpack URI matches no supported source grammar."""


class DownloadError(SlugcmplrError):
    """Raised when a buildpack archive cannot be downloaded."""


class BuildpackError(SlugcmplrError):
    """Base class for errors attributable to a single buildpack.

    Attributes:
        url: Source URI of the buildpack responsible
    """

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


class BuildpackDetectError(BuildpackError):
    """Raised when bin/detect cannot be launched."""


class BuildpackCompileError(BuildpackError):
    """Raised when bin/compile exits non-zero or cannot be launched.

    Attributes:
        returncode: Exit status of the compile step, None if it never ran
    """

    def __init__(self, url: str, message: str, returncode: int | None = None) -> None:
        super().__init__(url, message)
        self.returncode = returncode


class BuildpackDeclinedError(BuildpackError):
    """Raised when a declared buildpack reports it does not apply to the app."""

    def __init__(self, url: str) -> None:
        super().__init__(url, f"Buildpack declined to build the application: {url}")
