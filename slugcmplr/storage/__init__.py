"""Storage module for slugcmplr.

Public Interface:
    - get_home_dir: Get SLUGCMPLR_HOME
    - get_config_dir: Get config directory
    - get_cache_dir: Get buildpack cache directory
"""

from .paths import get_cache_dir
from .paths import get_config_dir
from .paths import get_home_dir

__all__ = [
    "get_home_dir",
    "get_config_dir",
    "get_cache_dir",
]
