"""Configuration models loaded from YAML."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class EngineConfig(BaseModel):
    autosave_quiet_period_seconds: float = Field(gt=0.0, default=3.0)
    edit_lock_ttl_seconds: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Edit locks older than this are treated as expired. None disables expiry.",
    )


class StorageConfig(BaseModel):
    db_path: str = "data/documents.db"


class SyncConfig(BaseModel):
    reconnect_max_attempts: int = Field(ge=1, le=50, default=5)
    reconnect_initial_delay: float = Field(gt=0.0, default=0.5)
    reconnect_max_delay: float = Field(gt=0.0, default=30.0)
    publish_local_mutations: bool = Field(
        default=False,
        description="Broadcast resolved snapshots right after a local mutation instead of waiting for the commit.",
    )


class LoggingConfig(BaseModel):
    level: str = "normal"
    log_file: Optional[str] = None
    jsonl_dir: Optional[str] = None


class SettingsConfig(BaseModel):
    engine: EngineConfig = Field(default_factory=EngineConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
