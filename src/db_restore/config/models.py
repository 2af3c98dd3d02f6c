"""Pydantic models for pipeline configuration."""

from pydantic import BaseModel, Field, SecretStr

from db_restore.jobs.models import TargetConfig


class TargetProfile(BaseModel):
    """Named target database connection from ``db-restore.toml``."""

    host: str = "localhost"
    port: int = 5432
    database: str
    username: str
    password: SecretStr = SecretStr("")
    description: str = ""

    def to_target_config(self) -> TargetConfig:
        return TargetConfig(
            host=self.host,
            port=self.port,
            database=self.database,
            username=self.username,
            password=self.password,
        )


class PipelineSettings(BaseModel):
    """Runtime settings for the restoration pipeline."""

    restore_binary: str = "pg_restore"
    upload_dir: str = "uploads"
    store_url: str | None = None                    # None -> in-memory job store
    connect_timeout: int = 5
    log_level: str = "INFO"


class RestoreConfig(BaseModel):
    """Complete configuration from ``db-restore.toml``."""

    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    profiles: dict[str, TargetProfile] = Field(default_factory=dict)
