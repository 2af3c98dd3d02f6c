"""Configuration loading from TOML plus environment overrides."""

import os
import tomllib
from pathlib import Path

from pydantic import SecretStr

from db_restore.config.models import PipelineSettings, RestoreConfig, TargetProfile

DEFAULT_CONFIG_FILE = "db-restore.toml"


def load_config(
    config_path: Path | None = None,
    env_prefix: str = "",
) -> RestoreConfig:
    """Load pipeline configuration from a TOML file.

    A missing file is not an error: defaults apply (in-memory store,
    ``pg_restore`` on ``PATH``, no profiles).  Environment variables
    override the file:

    - ``{env_prefix}DB_RESTORE_STORE_URL`` -> ``pipeline.store_url``
    - ``{env_prefix}DB_RESTORE_BINARY`` -> ``pipeline.restore_binary``

    Args:
        config_path: Path to the TOML file (default: ``./db-restore.toml``).
        env_prefix: Prefix for environment variable lookup.

    Returns:
        ``RestoreConfig`` with pipeline settings and target profiles.

    Raises:
        ValueError: If the file exists but is not valid TOML.
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_FILE

    data: dict = {}
    if config_path.exists():
        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid config file {config_path}: {e}") from e

    pipeline = PipelineSettings(**data.get("pipeline", {}))

    store_url = os.environ.get(f"{env_prefix}DB_RESTORE_STORE_URL")
    if store_url:
        pipeline.store_url = store_url
    binary = os.environ.get(f"{env_prefix}DB_RESTORE_BINARY")
    if binary:
        pipeline.restore_binary = binary

    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = TargetProfile(**profile_data)

    return RestoreConfig(pipeline=pipeline, profiles=profiles)


def apply_password_override(profile: TargetProfile, env_prefix: str = "") -> TargetProfile:
    """Return ``profile`` with ``{env_prefix}DB_RESTORE_PASSWORD`` applied, if set."""
    password = os.environ.get(f"{env_prefix}DB_RESTORE_PASSWORD")
    if not password:
        return profile
    return profile.model_copy(update={"password": SecretStr(password)})
