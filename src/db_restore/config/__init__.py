"""Configuration management: pipeline settings, target profiles, TOML loading.

Usage:
    >>> from db_restore.config import load_config, PipelineSettings, TargetProfile
"""

from db_restore.config.loader import apply_password_override, load_config
from db_restore.config.models import PipelineSettings, RestoreConfig, TargetProfile

__all__ = [
    "load_config",
    "apply_password_override",
    "PipelineSettings",
    "RestoreConfig",
    "TargetProfile",
]
