"""Configuration loading for slugcmplr.

This module handles loading configuration from YAML files
and environment variables.

Contract:
- Inputs: Config file paths, environment variables
- Outputs: Settings objects
- Side Effects: Creates default config file if missing
"""

import logging
import os
from pathlib import Path

import yaml

from ..storage.paths import get_config_dir
from .settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = """# slugcmplr configuration
# Environment variables prefixed with SLUGCMPLR_ override these values

log_level: "info"

# Parallel buildpack downloads during prepare
max_concurrent_downloads: 4

# Official buildpack registry, {name} is the part after urn:buildpack:
# registry_url: "https://buildpack-registry.s3.amazonaws.com/buildpacks/{name}.tgz"

# Seconds before a buildpack download is abandoned, unset means no timeout
# download_timeout: 300

# Directory prefix for entries in the packaged slug
# slug_prefix: "./app"
"""


def get_config_path() -> Path:
    """Get path to config file.

    Returns:
        Path to slugcmplr.yaml in config directory
    """
    return get_config_dir() / "slugcmplr.yaml"


def create_default_config() -> None:
    """Create default config file if it doesn't exist."""
    config_path = get_config_path()

    if config_path.exists():
        logger.debug(f"Config file already exists: {config_path}")
        return

    config_path.write_text(DEFAULT_CONFIG, encoding="utf-8")
    logger.info(f"Created default config: {config_path}")


def load_config(config_path: Path | None = None) -> Settings:
    """Load configuration from YAML and environment.

    Environment variables take precedence over YAML settings.
    Variables should be prefixed with SLUGCMPLR_ (e.g., SLUGCMPLR_LOG_LEVEL).

    Args:
        config_path: Optional config file path (default: slugcmplr.yaml in config dir)

    Returns:
        Validated settings

    Raises:
        yaml.YAMLError: If the config file is not valid YAML
    """
    if config_path is None:
        config_path = get_config_path()
        if not config_path.exists():
            create_default_config()

    yaml_settings = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_settings = yaml.safe_load(f) or {}
        logger.debug(f"Loaded config from {config_path}")

    # Only pass YAML values that don't have corresponding env vars
    filtered_yaml = {}
    for key, value in yaml_settings.items():
        env_key = f"SLUGCMPLR_{key.upper()}"
        if env_key not in os.environ:
            filtered_yaml[key] = value

    settings = Settings(**filtered_yaml)

    logger.debug(
        f"Configuration loaded: log_level={settings.log_level}, "
        f"max_concurrent_downloads={settings.max_concurrent_downloads}"
    )

    return settings
