"""Pydantic models for engine configuration (backup.toml)."""

from pydantic import BaseModel, Field

from backup_engine.backup.models import RestorePlan


class EngineProfile(BaseModel):
    """Connection profile from backup.toml."""

    url: str                            # Supabase project URL or PostgreSQL URL
    provider: str = "supabase"          # "supabase" or "postgres"
    key: str = ""                       # Supabase service key
    db_password: str | None = None      # For [YOUR-PASSWORD] placeholder substitution
    storage_url: str | None = None      # Blob store URL (defaults to url)
    storage_key: str | None = None      # Blob store key (defaults to key)
    description: str = ""


class RestoreSettings(BaseModel):
    """``[restore]`` section of backup.toml."""

    batch_size: int = Field(default=100, ge=1)
    primary_key: str = "id"
    archive_bucket: str = "backups"
    file_concurrency: int = Field(default=4, ge=1)
    table_order: list[str] | None = None    # None -> canonical order
    buckets: list[str] | None = None        # None -> canonical allow-list
    roles_table: str = "user_roles"
    admin_role: str = "admin"

    def to_plan(self) -> RestorePlan:
        """Build the ``RestorePlan`` these settings describe."""
        overrides: dict = {
            "batch_size": self.batch_size,
            "primary_key": self.primary_key,
            "archive_bucket": self.archive_bucket,
            "file_concurrency": self.file_concurrency,
        }
        if self.table_order is not None:
            overrides["table_order"] = list(self.table_order)
        if self.buckets is not None:
            overrides["buckets"] = list(self.buckets)
        return RestorePlan(**overrides)


class EngineConfig(BaseModel):
    """Complete engine configuration from backup.toml."""

    profiles: dict[str, EngineProfile]
    restore: RestoreSettings = Field(default_factory=RestoreSettings)
