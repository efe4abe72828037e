# utils/error_tracker.py
"""Error types and process-level failure handling."""

from __future__ import annotations

import signal
import sys
import traceback
from typing import Any, Callable, List, Optional

from .logger import Logger

Cleanup = Callable[[], None]


class TrunkError(Exception):
    """Base class for trunk skeleton extraction errors."""


class InvalidInput(TrunkError, ValueError):
    """Malformed coordinate buffer, bad stride or degenerate statistics."""


class DeviceLost(TrunkError, RuntimeError):
    """The rendering backend became unusable in the middle of a run."""


class EmptyBlob(TrunkError):
    """A refined cross-section produced no surviving grid cells."""


class LoadError(TrunkError, IOError):
    """Point data or program sources could not be fetched or parsed."""


class ErrorTracker:
    """
    Global hooks for long runs: uncaught exceptions, SIGINT/SIGTERM and an
    optional stop hotkey all funnel into the registered cleanups, newest
    first.
    """

    logger = Logger.get_logger("errors")
    _installed = False
    _orig_hook: Optional[Callable[..., None]] = None
    _cleanups: List[Cleanup] = []
    _keys: Any = None

    @classmethod
    def register_cleanup(cls, func: Cleanup) -> None:
        if func not in cls._cleanups:
            cls._cleanups.append(func)

    @classmethod
    def clear_cleanup(cls) -> None:
        cls._cleanups.clear()

    @classmethod
    def run_cleanup(cls) -> None:
        for func in reversed(cls._cleanups):
            try:
                func()
            except Exception as e:
                cls.logger.error(f"cleanup {getattr(func, '__qualname__', func)} failed: {e}")
        cls.stop_keyboard_listener()

    @classmethod
    def install_excepthook(cls) -> None:
        """Route uncaught exceptions through the logger before the default hook."""
        if cls._installed:
            return
        cls._orig_hook = sys.excepthook

        def _hook(exc_type, exc, tb) -> None:
            if issubclass(exc_type, TrunkError):
                cls.logger.error(f"{exc_type.__name__}: {exc}")
            else:
                text = "".join(traceback.format_exception(exc_type, exc, tb))
                cls.logger.error(f"Unhandled exception:\n{text}")
            cls.run_cleanup()
            if cls._orig_hook:
                cls._orig_hook(exc_type, exc, tb)

        sys.excepthook = _hook
        cls._installed = True
        cls.logger.debug("excepthook installed")

    @classmethod
    def install_signal_handlers(cls) -> None:
        def _on_signal(signum, frame) -> None:
            cls.logger.warning(f"signal {signal.Signals(signum).name}; cleaning up")
            cls.run_cleanup()
            raise SystemExit(128 + signum)

        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, _on_signal)

    @classmethod
    def install_keyboard_listener(cls, on_stop: Cleanup, stop_key: str = "esc") -> bool:
        """
        Call ``on_stop`` when ``stop_key`` is pressed anywhere. Returns False
        when pynput has no usable backend (headless sessions).
        """
        if cls._keys is not None:
            return True
        try:
            from .keyboard import GlobalKeyListener

            listener = GlobalKeyListener({f"<{stop_key}>": on_stop})
            listener.start()
        except Exception as e:
            cls.logger.warning(f"no stop hotkey ({type(e).__name__}: {e})")
            return False
        cls._keys = listener
        cls.logger.info(f"press {stop_key} to stop the run")
        return True

    @classmethod
    def stop_keyboard_listener(cls) -> None:
        keys, cls._keys = cls._keys, None
        if keys is not None:
            keys.stop()

    @classmethod
    def report(cls, exc: BaseException) -> None:
        """Log ``exc`` with its traceback (or the current stack if it was never raised)."""
        if exc.__traceback__ is not None:
            text = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        else:
            text = f"{type(exc).__name__}: {exc}\n" + "".join(traceback.format_stack())
        cls.logger.error(text)
