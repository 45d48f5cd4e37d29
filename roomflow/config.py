from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    ADMIN_ROLE,
    DEFAULT_CHECK_ATTEMPTS,
    DEFAULT_CHECK_BACKOFF_BASE,
    DEFAULT_PERMISSIONS,
    DEFAULT_STAGES,
)


class AssetConfig(BaseModel):
    """Configuration for the external asset service."""

    base_url: Optional[str] = None
    timeout: float = 10.0


class CheckConfig(BaseModel):
    """Retry settings for background network/log checks."""

    attempts: int = DEFAULT_CHECK_ATTEMPTS
    backoff_base: float = DEFAULT_CHECK_BACKOFF_BASE


class RoomflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    ledger_url: Optional[str] = None
    log_level: str = "INFO"
    assets: AssetConfig = AssetConfig()
    checks: CheckConfig = CheckConfig()
    permissions: Dict[str, Dict[int, List[str]]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_PERMISSIONS.items()}
    )
    superuser_roles: List[str] = Field(default_factory=lambda: [ADMIN_ROLE])
    stages: Dict[str, List[str]] = Field(default_factory=dict)

    def stages_for(self, resource_type: str) -> List[str]:
        """Review stages for ``resource_type``, configured or default."""
        return list(self.stages.get(resource_type) or DEFAULT_STAGES.get(resource_type, ["review"]))


def load_config(path: Optional[str] = None) -> RoomflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to ROOMFLOW_CONFIG env
            variable or 'roomflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("ROOMFLOW_CONFIG", "roomflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = RoomflowConfig(**data)
    else:
        config = RoomflowConfig()

    env_db_url = os.getenv("ROOMFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_ledger_url = os.getenv("ROOMFLOW_LEDGER_URL")
    if env_ledger_url:
        config.ledger_url = env_ledger_url
    return config


def configure_logging(level: Optional[str] = None, config: Optional[RoomflowConfig] = None) -> None:
    """Apply the configured log level to the ``roomflow`` logger tree."""

    level_name = (level or (config or load_config()).log_level).upper()
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("roomflow").setLevel(getattr(logging, level_name, logging.INFO))
