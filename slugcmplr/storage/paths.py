"""Path resolution for slugcmplr storage locations.

This module provides path resolution based on SLUGCMPLR_HOME environment variable,
following XDG-like directory structure within that root.

Contract:
- Inputs: Environment variables (SLUGCMPLR_HOME)
- Outputs: Resolved Path objects
- Side Effects: Creates directories if they don't exist
"""

import os
from pathlib import Path


def get_home_dir() -> Path:
    """Get SLUGCMPLR_HOME from environment.

    Returns:
        Path to root directory (default: .slugcmplr)
    """
    root = os.environ.get("SLUGCMPLR_HOME", ".slugcmplr")
    return Path(root).resolve()


def get_config_dir() -> Path:
    """Get configuration directory.

    Returns:
        Path to config directory ($SLUGCMPLR_HOME/config)
    """
    config_dir: Path = get_home_dir() / "config"

    env_override: str | None = os.environ.get("SLUGCMPLR_CONFIG_DIR")
    if env_override is not None:
        config_dir = Path(env_override).resolve()

    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_cache_dir() -> Path:
    """Get cache directory.

    Buildpacks receive this as their cache directory when no explicit
    one is given to the compile step.

    Returns:
        Path to cache directory ($SLUGCMPLR_HOME/cache/)

    Environment Variables:
        SLUGCMPLR_CACHE_DIR: Override cache directory location
    """
    cache_dir: Path = get_home_dir() / "cache"

    env_override: str | None = os.environ.get("SLUGCMPLR_CACHE_DIR")
    if env_override is not None:
        cache_dir = Path(env_override).resolve()

    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir
