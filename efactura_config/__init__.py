"""
efactura_config -- single public entrypoint for integration settings.

Responsibility:
    ``get_active_settings()`` returns the parsed defaults shipped with the
    package; ``load_settings(path)`` deep-merges an override YAML file over
    them.  Services receive an ``IntegrationSettings`` (or one of its
    sections) by constructor injection and never read YAML themselves.

Failure modes:
    - ``FileNotFoundError`` -- override file does not exist.
    - ``yaml.YAMLError`` -- override file is not valid YAML.
    - ``ConfigurationError`` -- a section is missing a key or has a bad type.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from efactura_config.loader import load_yaml_file, merge_dicts, parse_settings
from efactura_config.schema import (
    AuthoritySettings,
    BucketLimit,
    IntegrationSettings,
    RateLimitSettings,
    SubmissionSettings,
    SyncSettings,
    ValidationSettings,
)
from efactura_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

__all__ = [
    "AuthoritySettings",
    "BucketLimit",
    "IntegrationSettings",
    "RateLimitSettings",
    "SubmissionSettings",
    "SyncSettings",
    "ValidationSettings",
    "get_active_settings",
    "load_settings",
]


@lru_cache(maxsize=1)
def get_active_settings() -> IntegrationSettings:
    """Return the packaged default settings (cached)."""
    return parse_settings(load_yaml_file(DEFAULTS_PATH))


def load_settings(path: Path | str) -> IntegrationSettings:
    """Parse ``path`` merged over the packaged defaults."""
    merged = merge_dicts(load_yaml_file(DEFAULTS_PATH), load_yaml_file(Path(path)))
    settings = parse_settings(merged)
    logger.info(
        "settings_loaded",
        extra={"path": str(path), "environment": settings.authority.environment},
    )
    return settings
