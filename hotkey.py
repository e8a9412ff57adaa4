"""Global hotkey adapter based on pynput."""

from __future__ import annotations

from typing import Callable, Dict, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore


class GlobalHotkeyAdapter:
    """Binds named actions to pynput ``GlobalHotKeys`` combos.

    ``bindings`` maps an action name to a combo such as ``<alt>+l``; only
    actions that also have a callback in ``start`` are registered.
    """

    def __init__(self, bindings: Dict[str, str]) -> None:
        self._bindings = dict(bindings)
        self._listener: Optional[object] = None

    def hotkey_map(self, actions: Dict[str, Callable[[], None]]) -> Dict[str, Callable[[], None]]:
        return {
            combo: actions[name]
            for name, combo in self._bindings.items()
            if name in actions and combo
        }

    def start(self, actions: Dict[str, Callable[[], None]]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._listener = keyboard.GlobalHotKeys(self.hotkey_map(actions))
        self._listener.start()

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None
