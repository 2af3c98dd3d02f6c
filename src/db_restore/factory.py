"""Pipeline factory.

Builds the job-store client, the job store and the ``MigrationService``
from ``PipelineSettings``, and resolves named target profiles.

Usage:
    from db_restore.config import load_config
    from db_restore.factory import build_service, resolve_profile

    config = load_config()
    service = await build_service(config.pipeline)
    target = resolve_profile(config, "staging")
"""

import logging

from db_restore.adapters.base import DatabaseClient
from db_restore.adapters.memory import MemoryAdapter
from db_restore.adapters.postgres import AsyncPostgresAdapter
from db_restore.config.loader import apply_password_override
from db_restore.config.models import PipelineSettings, RestoreConfig
from db_restore.errors import ProfileNotFoundError
from db_restore.jobs.models import TargetConfig
from db_restore.jobs.store import JSONB_COLUMNS, JobStore
from db_restore.restore.orchestrator import RestoreOrchestrator
from db_restore.service import MigrationService
from db_restore.verify.verifier import Verifier

logger = logging.getLogger(__name__)


def create_store_client(settings: PipelineSettings) -> DatabaseClient:
    """Return a Postgres adapter when a store URL is set, else in-memory."""
    if settings.store_url:
        return AsyncPostgresAdapter(
            database_url=settings.store_url,
            jsonb_columns=JSONB_COLUMNS,
        )
    logger.debug("No store URL configured, using in-memory job store")
    return MemoryAdapter()


async def build_service(
    settings: PipelineSettings,
    client: DatabaseClient | None = None,
) -> MigrationService:
    """Wire store, orchestrator and verifier into a ``MigrationService``.

    Args:
        settings: Pipeline settings.
        client: Optional pre-built store client (overrides ``store_url``).

    Returns:
        Ready-to-use service; the store tables exist.
    """
    store = JobStore(client or create_store_client(settings))
    await store.create_tables()

    orchestrator = RestoreOrchestrator(
        store,
        restore_binary=settings.restore_binary,
        connect_timeout=settings.connect_timeout,
    )
    verifier = Verifier(store, connect_timeout=settings.connect_timeout)
    return MigrationService(store, orchestrator, verifier)


def resolve_profile(
    config: RestoreConfig,
    profile_name: str,
    env_prefix: str = "",
) -> TargetConfig:
    """Look up a target profile by name.

    Raises:
        ProfileNotFoundError: If the profile is not configured.
    """
    if profile_name not in config.profiles:
        available = ", ".join(config.profiles) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found. Available: {available}"
        )
    profile = apply_password_override(config.profiles[profile_name], env_prefix)
    return profile.to_target_config()
