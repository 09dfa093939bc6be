# TaskFlow configuration
# Override paths and behavior via taskflow.yaml or environment variables.

import logging
import os
import yaml
from pathlib import Path
from dataclasses import dataclass, fields
from typing import Optional

logger = logging.getLogger(__name__)

CONFIG_PATH = Path("taskflow.yaml")


@dataclass
class Config:
    """Runtime configuration for the board service."""

    # Storage
    db_path: str = "~/.local/share/taskflow/taskflow.db"

    # Timer
    default_timer_minutes: int = 25
    max_timer_minutes: int = 180
    tick_interval_secs: float = 1.0

    # Logging out deletes the user's saved board
    clear_board_on_logout: bool = True

    # Export
    export_format: str = "json"

    # Server
    secret_key: str = ""
    log_level: str = "INFO"

    def resolve_paths(self):
        """Expand ~ and apply environment overrides."""
        env_db = os.environ.get("TASKFLOW_DB")
        if env_db:
            self.db_path = env_db
        self.db_path = str(Path(self.db_path).expanduser())
        if not self.secret_key:
            self.secret_key = os.environ.get("TASKFLOW_SECRET_KEY", "")

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        known = {f.name for f in fields(cls)}
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if k in known})
            except (yaml.YAMLError, OSError, TypeError, AttributeError) as e:
                logger.warning("Ignoring unreadable config %s: %s", cfg_path, e)
                cfg = cls()
        else:
            cfg = cls()
        cfg.resolve_paths()
        return cfg
