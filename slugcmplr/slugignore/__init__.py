"""Slugignore filtering for source copies.

Public Interface:
    - parse: Parse a directory's .slugignore
    - SlugIgnore: Parsed set of ignored paths
    - validate_pattern: Validate a single glob
"""

from .parser import SLUGIGNORE_FILE
from .parser import SlugIgnore
from .parser import parse
from .parser import validate_pattern

__all__ = [
    "SLUGIGNORE_FILE",
    "SlugIgnore",
    "parse",
    "validate_pattern",
]
