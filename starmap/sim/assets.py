# starmap/sim/assets.py
from __future__ import annotations

import logging
from pathlib import Path

import requests
import zstandard

logger = logging.getLogger("starmap.assets")


class UniverseUnavailable(RuntimeError):
    """The universe asset could not be fetched, read, decompressed or decoded."""


def fetch_asset(source: str, timeout: float = 30.0) -> bytes:
    """
    Raw (still compressed) asset bytes from a local path or an http(s) URL.
    """
    if source.startswith(("http://", "https://")):
        try:
            resp = requests.get(source, timeout=timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise UniverseUnavailable(f"universe fetch failed: {e}") from e
        data = resp.content
    else:
        try:
            data = Path(source).read_bytes()
        except OSError as e:
            raise UniverseUnavailable(f"universe read failed: {e}") from e

    logger.debug(f"Fetched {len(data)} bytes from {source}")
    return data


def decompress(data: bytes, max_output_size: int) -> bytes:
    try:
        raw = zstandard.ZstdDecompressor().decompress(data, max_output_size=max_output_size)
    except zstandard.ZstdError as e:
        raise UniverseUnavailable(f"universe decompress failed: {e}") from e

    logger.debug(f"Decompressed {len(data)} -> {len(raw)} bytes")
    return raw


def compress(raw: bytes, level: int = 19) -> bytes:
    """Pack a raw .gab buffer the way the asset is shipped."""
    return zstandard.ZstdCompressor(level=level).compress(raw)
