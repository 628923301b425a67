"""Configuration management for Almanac."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

ALMANAC_HOME = Path(os.environ.get("ALMANAC_HOME", Path.home() / "almanac"))
CONFIG_FILE = ALMANAC_HOME / "config" / "almanac.conf"


@dataclass
class Config:
    """Almanac configuration."""

    default_timezone: str = "America/New_York"
    default_calendar_name: str = "Personal (default)"


def _unquote(value: str) -> str:
    """Strip matching quotes, or an inline comment from an unquoted value."""
    if value[:1] in ('"', "'"):
        quote = value[0]
        end_quote = value.find(quote, 1)
        return value[1:end_quote] if end_quote != -1 else value[1:]
    if "#" in value:
        return value.split("#")[0].strip()
    return value


def load_config(path: Path | None = None) -> Config:
    """Load configuration from almanac.conf, then apply environment overrides."""
    config = Config()
    config_file = path or CONFIG_FILE

    if config_file.exists():
        for line in config_file.read_text().splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                continue

            key, _, value = line.partition("=")
            key = key.strip().lower()
            value = _unquote(value.strip())

            match key:
                case "timezone" | "default_timezone":
                    config.default_timezone = value
                case "default_calendar_name":
                    config.default_calendar_name = value
                case _:
                    logger.warning(f"Unknown config key in {config_file}: {key}")

    if os.environ.get("ALMANAC_TIMEZONE"):
        config.default_timezone = os.environ["ALMANAC_TIMEZONE"]

    return config
