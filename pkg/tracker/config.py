# Tracker: configuration
# Override defaults via a YAML file (path argument or TRACKER_CONFIG).

import os
import yaml
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

CONFIG_ENV = "TRACKER_CONFIG"


@dataclass
class TrackerConfig:
    """Runtime configuration for the tracker server."""

    # HTTP board API
    host: str = "127.0.0.1"
    port: int = 3000

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s [tracker] %(levelname)s: %(message)s"

    # Identity generation: "" = UUIDs, otherwise sequential ids (ISS-issue-001)
    id_prefix: str = ""

    @classmethod
    def load(cls, path: Optional[str] = None) -> "TrackerConfig":
        """Load config from YAML file, falling back to defaults."""
        path = path or os.environ.get(CONFIG_ENV)
        if not path:
            return cls()
        cfg_path = Path(path).expanduser()
        if not cfg_path.exists():
            return cls()
        try:
            with open(cfg_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError):
            return cls()
        if not isinstance(data, dict):
            return cls()
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
