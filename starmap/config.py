# starmap/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger("starmap.config")

ROOT_DIR = Path(__file__).resolve().parent.parent
DEFAULT_UNIVERSE_SOURCE = str(ROOT_DIR / "assets" / "Universe.gab.zst")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class StarmapConfig:
    universe_source: str = DEFAULT_UNIVERSE_SOURCE  # local path or http(s) URL
    max_decompressed_size: int = 16384 * 1024       # upper bound for the zstd frame
    fetch_timeout: float = 30.0                     # seconds, http sources only
    log_level: str = "INFO"
    max_results: int = 500                          # systems returned per search response
    host: str = "127.0.0.1"
    port: int = 8000


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not a valid {cast.__name__}")
        return default


def load_config() -> StarmapConfig:
    """Build the config from STARMAP_* environment variables."""
    d = StarmapConfig()
    return StarmapConfig(
        universe_source=os.getenv("STARMAP_UNIVERSE_SOURCE") or d.universe_source,
        max_decompressed_size=_env_number("STARMAP_MAX_DECOMPRESSED", d.max_decompressed_size, int),
        fetch_timeout=_env_number("STARMAP_FETCH_TIMEOUT", d.fetch_timeout, float),
        log_level=(os.getenv("STARMAP_LOG_LEVEL") or d.log_level).upper(),
        max_results=_env_number("STARMAP_MAX_RESULTS", d.max_results, int),
        host=os.getenv("STARMAP_HOST") or d.host,
        port=_env_number("STARMAP_PORT", d.port, int),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
