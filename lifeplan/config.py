"""
LifePlan configuration.

Loads model, storage and catalog settings from environment variables.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _parse_int_env(key: str, default: int) -> int:
    """
    Parse integer environment variable, stripping comments and whitespace.

    Handles cases like:
    - "30  # seconds" -> 30
    - "30" -> 30
    - None -> default
    """
    value = os.environ.get(key)
    if not value:
        return default

    if "#" in value:
        value = value.split("#")[0]

    value = value.strip()

    if not value:
        return default

    try:
        return int(value)
    except ValueError:
        return default


def load_env_files(root: Optional[Path] = None) -> None:
    """
    Load .env_local / .env.local (local dev convenience).

    Never overrides variables already exported by the shell.
    """
    root = root or Path(__file__).parent.parent
    for name in (".env_local", ".env.local"):
        p = root / name
        if p.exists():
            load_dotenv(p, override=False)


@dataclass
class LifePlanConfig:
    """LifePlan service configuration."""

    # OpenAI (structured extraction)
    openai_api_key: Optional[str]
    openai_base_url: str = "https://api.openai.com/v1"
    extract_model: str = "gpt-4o-mini"
    extract_timeout_seconds: int = 30
    extract_max_output_tokens: int = 450

    # Storage / catalog
    data_dir: Path = Path("data")
    catalog_name: str = "default"

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "LifePlanConfig":
        """Load configuration from environment variables."""
        return cls(
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            openai_base_url=os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/"),
            extract_model=os.environ.get("OPENAI_EXTRACT_MODEL", "gpt-4o-mini"),
            extract_timeout_seconds=_parse_int_env("EXTRACT_TIMEOUT_SECONDS", default=30),
            extract_max_output_tokens=_parse_int_env("EXTRACT_MAX_OUTPUT_TOKENS", default=450),
            data_dir=Path(os.environ.get("LIFEPLAN_DATA_DIR", "data")),
            catalog_name=os.environ.get("LIFEPLAN_CATALOG", "default"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )


def get_config() -> LifePlanConfig:
    """Get or create global config instance."""
    global _config
    if _config is None:
        _config = LifePlanConfig.from_env()
    return _config


# Global config instance (lazy loaded)
_config: Optional[LifePlanConfig] = None
