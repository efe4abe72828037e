# trunkskel/programs.py
"""Sources of the fixed programs the pipeline compiles at start-up."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple

from utils.error_tracker import LoadError
from utils.logger import Logger

from .backend import (
    BILLBOARD_COMPOSITE,
    CLUSTER_PROPAGATION,
    GEOMETRY_READOUT,
    POINT_SPLAT,
    PROGRAM_NAMES,
    ProgramHandle,
    RenderBackend,
)

LOG = Logger.get_logger("programs")

_POINT_VERTEX = "// program: point-vertex\n// in: position xyz; uniform: transform, axes\n"
_BILLBOARD_VERTEX = "// program: billboard-vertex\n// full-grid quad, one fragment per cell\n"

BUILTIN_SOURCES: Dict[str, Tuple[str, str]] = {
    POINT_SPLAT: (
        _POINT_VERTEX,
        f"// program: {POINT_SPLAT}\n// out: (count, x, y, cell id + 1)\n",
    ),
    CLUSTER_PROPAGATION: (
        _BILLBOARD_VERTEX,
        f"// program: {CLUSTER_PROPAGATION}\n// uniform: source, reach, step\n",
    ),
    GEOMETRY_READOUT: (
        _BILLBOARD_VERTEX,
        f"// program: {GEOMETRY_READOUT}\n// uniform: source\n",
    ),
    BILLBOARD_COMPOSITE: (
        _BILLBOARD_VERTEX,
        f"// program: {BILLBOARD_COMPOSITE}\n// uniform: source\n",
    ),
}


def load_program_sources(root: Optional[Path] = None) -> Dict[str, Tuple[str, str]]:
    """
    Program sources by name. With ``root`` set, each program is read from
    ``<root>/<name>.vsh`` and ``<root>/<name>.fsh``.
    """
    if root is None:
        return dict(BUILTIN_SOURCES)
    root = Path(root)
    out: Dict[str, Tuple[str, str]] = {}
    for name in PROGRAM_NAMES:
        try:
            vsh = (root / f"{name}.vsh").read_text()
            fsh = (root / f"{name}.fsh").read_text()
        except OSError as e:
            raise LoadError(f"program {name}: {e}") from e
        out[name] = (vsh, fsh)
    LOG.info(f"loaded {len(out)} program sources from {root}")
    return out


def compile_programs(
    backend: RenderBackend, sources: Dict[str, Tuple[str, str]]
) -> Dict[str, ProgramHandle]:
    missing = [n for n in PROGRAM_NAMES if n not in sources]
    if missing:
        raise LoadError(f"missing program sources: {missing}")
    return {n: backend.compile_program(*sources[n]) for n in PROGRAM_NAMES}
