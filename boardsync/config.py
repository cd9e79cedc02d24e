# boardsync: configuration
# Override paths and endpoints via boardsync.yaml, env vars, or CLI args.

import os
import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional

from .schema import BoardError, Column

CONFIG_PATH = Path("~/.config/boardsync/boardsync.yaml").expanduser()

DEFAULT_STAGES = [
    "Lead", "Survey", "Quoted", "Accepted", "Ordered",
    "Production", "Delivery", "Installation", "Complete",
]


class ConfigError(BoardError):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class BoardConfig:
    """Runtime configuration for a board session."""

    # Storage
    db_path: str = "~/.local/share/boardsync/board.db"
    journal_path: str = ""              # empty = no JSONL event journal

    # Remote backend (None = local SQLite only)
    api_base_url: Optional[str] = None
    api_key_env: str = "BOARDSYNC_API_KEY"
    request_timeout: float = 10.0
    max_retries: int = 2
    updated_by: str = "boardsync"

    # Behavior
    poll_interval: float = 15.0
    restore_on_cancel: bool = True      # revert intermediate moves on an aborted drag
    columns: List[str] = field(default_factory=lambda: list(DEFAULT_STAGES))
    log_level: str = "INFO"

    @property
    def api_key(self) -> str:
        return os.environ.get(self.api_key_env, "")

    def board_columns(self) -> List[Column]:
        return [Column.from_label(label) for label in self.columns]

    def resolve_paths(self):
        """Expand ~ and apply environment overrides."""
        env_db = os.environ.get("BOARDSYNC_DB")
        if env_db:
            self.db_path = env_db
        self.db_path = str(Path(self.db_path).expanduser())
        if self.journal_path:
            self.journal_path = str(Path(self.journal_path).expanduser())

    def validate(self):
        if self.poll_interval <= 0:
            raise ConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.request_timeout <= 0:
            raise ConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.max_retries < 0:
            raise ConfigError(f"max_retries cannot be negative, got {self.max_retries}")
        if not self.columns:
            raise ConfigError("At least one column is required")
        ids = [c.column_id for c in self.board_columns()]
        if len(set(ids)) != len(ids):
            raise ConfigError(f"Duplicate column ids: {ids}")

    @classmethod
    def load(cls, path: Optional[str] = None) -> "BoardConfig":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path).expanduser() if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Cannot parse {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
            cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        else:
            cfg = cls()
        cfg.resolve_paths()
        cfg.validate()
        return cfg
