# utils/logger.py
"""loguru sinks, per-module loggers and tqdm progress bars."""

from __future__ import annotations

import os
import sys
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional, TypeVar, cast

from loguru import logger as _logger
from loguru._logger import Logger as LoguruLogger
from tqdm.auto import tqdm

T = TypeVar("T")


# ============================== CONFIG =======================================

TAG_W = 8


@dataclass(frozen=True)
class LoggingCfg:
    level: str = "INFO"
    json: bool = True  # file sink serializes records
    file_sink: bool = True
    log_dir: Path = Path(".logs")
    console_format: str = (
        "<green>{time:HH:mm:ss.SSS}</green>"
        "[<level>{level:.3}</level>]"
        f"[<cyan>{{extra[module]:<{TAG_W}.{TAG_W}}}</cyan>:"
        "<cyan>{line:>3}</cyan>] "
        "<level>{message}</level>"
    )
    bar_format: str = "{desc}: {percentage:3.0f}%|{bar}| {n_fmt}/{total_fmt}"

    @classmethod
    def from_env(cls) -> "LoggingCfg":
        """TRUNKSKEL_LOG_LEVEL / TRUNKSKEL_LOG_DIR override the defaults."""
        return cls(
            level=os.environ.get("TRUNKSKEL_LOG_LEVEL", cls.level),
            log_dir=Path(os.environ.get("TRUNKSKEL_LOG_DIR", str(cls.log_dir))),
        )


LOGCFG = LoggingCfg.from_env()


# ============================== LOGGER =======================================


class Logger:
    """Process-wide loguru setup; modules keep a bound logger at import time."""

    _configured: bool = False
    _log_dir: Path = LOGCFG.log_dir
    _log_file: Optional[Path] = None
    _lock = threading.Lock()

    @staticmethod
    def _open_file_sink(level: str, serialize: bool) -> None:
        os.makedirs(Logger._log_dir, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        Logger._log_file = Logger._log_dir / f"trunkskel_{stamp}.log.json"
        _logger.add(Logger._log_file, level=level, serialize=serialize)

    @staticmethod
    def _install(level: str, serialize: bool, file_sink: bool, force: bool) -> None:
        with Logger._lock:
            if Logger._configured and not force:
                return
            _logger.remove()
            # stderr keeps stdout free for piping exported data
            _logger.add(sys.stderr, level=level, format=LOGCFG.console_format)
            Logger._log_file = None
            if file_sink:
                Logger._open_file_sink(level, serialize)
            Logger._configured = True

    @staticmethod
    def configure(
        level: Optional[str] = None,
        log_dir: Optional[Path | str] = None,
        json_format: Optional[bool] = None,
        file_sink: Optional[bool] = None,
    ) -> None:
        """Replace the current sinks (the CLI applies --log-level this way)."""
        if log_dir is not None:
            Logger._log_dir = Path(log_dir)
        Logger._install(
            (level or LOGCFG.level).upper(),
            LOGCFG.json if json_format is None else bool(json_format),
            LOGCFG.file_sink if file_sink is None else bool(file_sink),
            force=True,
        )

    @staticmethod
    def get_logger(name: str) -> LoguruLogger:
        """loguru logger tagged with ``name``; installs default sinks on first use."""
        Logger._install(LOGCFG.level, LOGCFG.json, LOGCFG.file_sink, force=False)
        return _logger.bind(module=name)

    @staticmethod
    def log_file() -> Optional[Path]:
        return Logger._log_file

    @staticmethod
    @contextmanager
    def timed(log: LoguruLogger, what: str) -> Iterator[None]:
        """Log the wall time of a block at DEBUG."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            log.debug(f"{what}: {1e3 * (time.perf_counter() - t0):.1f} ms")

    @staticmethod
    def progress(
        iterable: Iterable[T],
        desc: Optional[str] = None,
        total: Optional[int] = None,
    ) -> Iterable[T]:
        """tqdm with the project bar style; the bar disappears when done."""
        return cast(
            Iterable[T],
            tqdm(
                iterable,
                desc=desc,
                total=total,
                leave=False,
                bar_format=LOGCFG.bar_format,
            ),
        )
