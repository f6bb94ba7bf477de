"""Run configuration, read from the environment (and a local ``.env``)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def _env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw.isdigit() else default


@dataclass
class Settings:
    """Everything a run needs besides Scrapy's own settings."""

    dev_mode: bool = field(default_factory=lambda: _env_bool("DEV"))
    grid_url: str = field(
        default_factory=lambda: os.getenv("BMW_GRID_URL", "https://www.bmw.co.uk/en/all-models.html")
    )
    configure_host: str = field(default_factory=lambda: os.getenv("BMW_CONFIGURE_HOST", "configure.bmw.co.uk"))
    fallback_host: str = field(default_factory=lambda: os.getenv("BMW_FALLBACK_HOST", "www.bmw.co.uk"))
    urls_csv: Optional[str] = field(default_factory=lambda: os.getenv("BMW_URLS_CSV") or None)
    data_csv: Optional[str] = field(default_factory=lambda: os.getenv("BMW_DATA_CSV") or None)
    max_cars: Optional[int] = field(default_factory=lambda: _env_int("BMW_MAX_CARS"))
    duplicate_streak: int = field(default_factory=lambda: _env_int("BMW_DUPLICATE_STREAK", 2))

    def __post_init__(self):
        if self.duplicate_streak < 1:
            raise ValueError(f"duplicate_streak must be at least 1, got {self.duplicate_streak}")

    @property
    def mode(self) -> str:
        return "DEV" if self.dev_mode else "PROD"

    @property
    def urls_path(self) -> Path:
        """Pass 1 table; defaults to ``bmw_summary_urls_<MODE>.csv``."""
        return Path(self.urls_csv or f"bmw_summary_urls_{self.mode}.csv")

    @property
    def data_path(self) -> Path:
        """Pass 2 table; defaults to ``bmw_summary_data_<MODE>.csv``."""
        return Path(self.data_csv or f"bmw_summary_data_{self.mode}.csv")
