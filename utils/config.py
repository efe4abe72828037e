# utils/config.py
"""Project paths and the catalogue of published tree scans."""
from __future__ import annotations

from pathlib import Path
from typing import Tuple


# ============================== PROJECT DEFAULTS =============================

# Public host of the reference terrestrial laser scans (ASCII x y z triples,
# height ascending).
CLOUD_BASE_URL: str = "https://sci.filin.fi/tls/"

# Where outputs (skeleton JSON/PLY, radius CSV) land unless overridden.
OUTPUT_ROOT: Path = Path(".data_out")

# Optional subfolder for occupancy grid snapshots.
DEBUG_DIR_NAME: str = "debug"


def _series(prefix: str, count: int) -> Tuple[str, ...]:
    return tuple(f"{prefix}{i}.asc" for i in range(1, count + 1))


# Scan catalogue on CLOUD_BASE_URL, grouped by plot.
CLOUD_FILENAMES: Tuple[str, ...] = (
    _series("FEXC", 16)
    + _series("FSYL", 15)
    + _series("LXDC", 5)
    + _series("PSYLA", 15)
    + _series("PSYLB", 15)
)


def cloud_url(name: str) -> str:
    """Full URL of a catalogue scan (``FEXC1.asc`` -> https://.../FEXC1.asc)."""
    if name not in CLOUD_FILENAMES:
        raise KeyError(f"unknown scan {name!r}")
    return CLOUD_BASE_URL + name
