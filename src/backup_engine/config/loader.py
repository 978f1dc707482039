"""Configuration loading from backup.toml."""

import tomllib
from pathlib import Path

from backup_engine.config.models import EngineConfig, EngineProfile, RestoreSettings


def load_engine_config(config_path: Path | None = None) -> EngineConfig:
    """Load engine configuration from TOML file.

    Args:
        config_path: Path to backup.toml (default: ./backup.toml in the
            current working directory)

    Returns:
        EngineConfig with all profiles and restore settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid

    Example:
        # backup.toml
        # [profiles.production]
        # url = "https://xyzproject.supabase.co"
        # key = "eyJ..."
        #
        # [restore]
        # batch_size = 100
        config = load_engine_config()
        plan = config.restore.to_plan()
    """
    if config_path is None:
        config_path = Path.cwd() / "backup.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Engine config not found: {config_path}\n"
            f"Create backup.toml with at least one [profiles.<name>] section."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = EngineProfile(**profile_data)

    return EngineConfig(
        profiles=profiles,
        restore=RestoreSettings(**data.get("restore", {})),
    )
