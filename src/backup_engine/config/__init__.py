"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from backup_engine.config import load_engine_config, EngineProfile, EngineConfig
"""

from backup_engine.config.loader import load_engine_config
from backup_engine.config.models import EngineConfig, EngineProfile, RestoreSettings

__all__ = ["load_engine_config", "EngineConfig", "EngineProfile", "RestoreSettings"]
