"""Client factory.

Resolves the active profile from backup.toml and builds the database
adapter, storage client, and access guard a restore run needs.

Profile resolution:
1. ``<prefix>BACKUP_PROFILE`` env var
2. ``.backup-profile`` lock file in the current working directory
3. Raise ``ProfileNotFoundError``
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from backup_engine.adapters.base import DatabaseClient, StorageClient
from backup_engine.adapters.postgres import AsyncPostgresAdapter
from backup_engine.adapters.supabase import AsyncSupabaseAdapter, AsyncSupabaseStorage
from backup_engine.backup.models import RestorePlan
from backup_engine.config.loader import load_engine_config
from backup_engine.config.models import EngineConfig, EngineProfile, RestoreSettings
from backup_engine.guard import AccessGuard, SupabaseAccessGuard

logger = logging.getLogger(__name__)

# Profile lock file name (relative to the working directory)
PROFILE_LOCK_FILE = ".backup-profile"


class ProfileNotFoundError(Exception):
    """Raised when no engine profile is configured."""

    pass


# ============================================================================
# Profile Lock File Operations
# ============================================================================


def _lock_path() -> Path:
    return Path.cwd() / PROFILE_LOCK_FILE


def read_profile_lock() -> str | None:
    """Read profile name from lock file.

    Returns:
        Profile name if lock file exists, None otherwise
    """
    path = _lock_path()
    if path.exists():
        return path.read_text().strip() or None
    return None


def write_profile_lock(profile_name: str) -> None:
    """Write profile name to lock file."""
    _lock_path().write_text(profile_name)


def clear_profile_lock() -> None:
    """Remove profile lock file."""
    path = _lock_path()
    if path.exists():
        path.unlink()


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from env var or lock file.

    Args:
        env_prefix: Prefix for the env var (``APP_`` reads
            ``APP_BACKUP_PROFILE``).

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_profile = os.environ.get(f"{env_prefix}BACKUP_PROFILE")
    if env_profile:
        return env_profile

    lock_profile = read_profile_lock()
    if lock_profile:
        return lock_profile

    raise ProfileNotFoundError(
        "No backup profile configured.\n"
        f"Set {env_prefix}BACKUP_PROFILE=<name> or write the name to {PROFILE_LOCK_FILE}"
    )


def get_profile(
    profile_name: str,
    config: EngineConfig,
) -> EngineProfile:
    """Look up a profile by name.

    Raises:
        ProfileNotFoundError: If the profile is not in the config.
    """
    if profile_name not in config.profiles:
        available = ", ".join(config.profiles.keys()) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in backup.toml. Available: {available}"
        )
    return config.profiles[profile_name]


# ============================================================================
# Client construction
# ============================================================================


def resolve_url(profile: EngineProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Engine profile from config

    Returns:
        Connection URL with password substituted
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def get_adapter(profile: EngineProfile) -> DatabaseClient:
    """Create the table adapter for a profile.

    Raises:
        ValueError: If the provider is unknown.
    """
    if profile.provider == "supabase":
        return AsyncSupabaseAdapter(url=profile.url, key=profile.key)
    if profile.provider == "postgres":
        return AsyncPostgresAdapter(database_url=resolve_url(profile))
    raise ValueError(f"Unknown provider '{profile.provider}' (expected supabase or postgres)")


def get_storage(profile: EngineProfile) -> StorageClient:
    """Create the blob storage client for a profile."""
    url = profile.storage_url or profile.url
    key = profile.storage_key or profile.key
    return AsyncSupabaseStorage(url=url, key=key)


def get_guard(
    profile: EngineProfile,
    adapter: DatabaseClient,
    settings: RestoreSettings,
) -> AccessGuard:
    """Create the admin access guard for a profile."""
    return SupabaseAccessGuard(
        url=profile.storage_url or profile.url,
        key=profile.storage_key or profile.key,
        adapter=adapter,
        roles_table=settings.roles_table,
        admin_role=settings.admin_role,
    )


@dataclass
class EngineContext:
    """Everything a restore/export request needs."""

    adapter: DatabaseClient
    storage: StorageClient
    guard: AccessGuard
    plan: RestorePlan
    profile_name: str | None = None

    async def close(self) -> None:
        """Close all clients."""
        await self.guard.close()
        await self.storage.close()
        await self.adapter.close()


def create_context(
    profile_name: str | None = None,
    config_path: Path | None = None,
    env_prefix: str = "",
) -> EngineContext:
    """Build an ``EngineContext`` for a profile.

    Args:
        profile_name: Profile from backup.toml.  If None, uses the
            ``BACKUP_PROFILE`` env var or the lock file.
        config_path: Optional path to backup.toml.
        env_prefix: Prefix for env var lookup.

    Raises:
        ProfileNotFoundError: If no profile is configured or it is unknown.
        FileNotFoundError: If backup.toml is missing.
    """
    if profile_name is None:
        profile_name = get_active_profile_name(env_prefix=env_prefix)

    config = load_engine_config(config_path)
    profile = get_profile(profile_name, config)
    adapter = get_adapter(profile)

    logger.info(f"Using profile {profile_name} ({profile.provider})")
    return EngineContext(
        adapter=adapter,
        storage=get_storage(profile),
        guard=get_guard(profile, adapter, config.restore),
        plan=config.restore.to_plan(),
        profile_name=profile_name,
    )
