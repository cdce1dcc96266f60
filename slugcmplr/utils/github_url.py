"""GitHub repository URL parsing utilities.

Shared logic for turning buildpack repository URLs into tarball downloads.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ParsedGitHubUrl:
    """Parsed components of a GitHub repository URL.

    Attributes:
        url: Repository URL without `.git` suffix or `#ref` fragment
        ref: Branch, tag, or commit reference (defaults to HEAD)
    """

    url: str
    ref: str = "HEAD"

    @property
    def tarball_url(self) -> str:
        """URL of the host's tarball-download endpoint for ref."""
        return f"{self.url}/tarball/{self.ref}"


def is_github_url(source: str, base_url: str = "https://github.com") -> bool:
    """Check whether source points at a repository on the GitHub host."""
    return source.startswith(base_url.rstrip("/") + "/")


def parse_github_url(source: str) -> ParsedGitHubUrl:
    """Parse GitHub URL format: https://github.com/owner/repo[.git][#ref]

    Handles all variations:
    - https://github.com/owner/repo
    - https://github.com/owner/repo.git
    - https://github.com/owner/repo#v1.2.3
    - https://github.com/owner/repo.git#main

    Args:
        source: Repository URL

    Returns:
        ParsedGitHubUrl with extracted components

    Examples:
        >>> parse_github_url("https://github.com/heroku/heroku-buildpack-go.git#v150")
        ParsedGitHubUrl(url='https://github.com/heroku/heroku-buildpack-go', ref='v150')

        >>> parse_github_url("https://github.com/heroku/heroku-buildpack-go")
        ParsedGitHubUrl(url='https://github.com/heroku/heroku-buildpack-go', ref='HEAD')
    """
    url, _, ref = source.partition("#")
    url = url.removesuffix(".git")

    return ParsedGitHubUrl(url=url, ref=ref or "HEAD")
