"""
Configuration for iRacing Season Planner.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

# Load .env file
load_dotenv()


def _default_combo_series() -> Dict[str, Optional[str]]:
    # Series name -> fixed track label for week display (None = first word of week text)
    return {
        "Draft Master Challenge by Simagic": None,
        "Ring Meister": "Nurburgring",
    }


@dataclass
class Config:
    """Configuration with environment variable support."""

    # Static dataset - loaded from .env file
    schedule_path: str = field(
        default_factory=lambda: os.getenv("SCHEDULE_PATH", "data/schedule.json")
    )
    classes_path: str = field(
        default_factory=lambda: os.getenv("CLASSES_PATH", "data/classes.json")
    )

    # Ownership persistence
    store_dir: Path = field(
        default_factory=lambda: Path(os.getenv("STORE_DIR", "./data/store"))
    )
    owned_record_key: str = "owned"

    # Content rules
    free_license_class: str = "Rookie"  # Everything raced in this tier is owned by all
    combo_series: Dict[str, Optional[str]] = field(default_factory=_default_combo_series)

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # API server
    server_host: str = "localhost"
    server_port: int = field(
        default_factory=lambda: int(os.getenv("PLANNER_PORT", "8080"))
    )

    def __post_init__(self):
        """Ensure directories exist."""
        self.store_dir = Path(self.store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)
