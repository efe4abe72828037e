# utils/keyboard.py
"""Global hotkeys (pynput) for stopping long runs."""

from __future__ import annotations

from typing import Callable, Dict

from pynput import keyboard

from .logger import Logger

KeyAction = Callable[[], None]


class GlobalKeyListener:
    """pynput hotkey listener; each action fires at most once."""

    def __init__(self, hotkeys: Dict[str, KeyAction]) -> None:
        self.logger = Logger.get_logger("keys")
        self._fired: set[str] = set()
        self.hotkeys = {k: self._once(k, fn) for k, fn in hotkeys.items()}
        self.listener = keyboard.GlobalHotKeys(self.hotkeys)
        self.listener.daemon = True

    def _once(self, key: str, fn: KeyAction) -> KeyAction:
        def _run() -> None:
            if key in self._fired:
                return
            self._fired.add(key)
            self.logger.info(f"{key} pressed")
            fn()

        return _run

    def start(self) -> None:
        self.listener.start()
        self.logger.debug(f"listening for {', '.join(self.hotkeys)}")

    def stop(self) -> None:
        self.listener.stop()
        self.logger.debug("listener stopped")
