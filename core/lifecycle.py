# app/core/lifecycle.py
"""
Per-screen mount scopes.

Streamlit has no unmount callback, so the navigation shell calls
`ScreenLifecycle.activate(<screen>)` on every run: the active screen keeps
(or gets) its MountScope, every other screen's scope is closed. A closed
scope drops late completions and has revoked every object URL it owned.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, MutableMapping, Optional, TypeVar

from core.images import ObjectUrlRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MountScope:
    def __init__(self, name: str, registry: Optional[ObjectUrlRegistry] = None):
        self.name = name
        self.registry = registry or ObjectUrlRegistry()
        self._cancelled = False
        self._groups: Dict[str, List[str]] = {}
        self.cache: Dict[str, Any] = {}

    @property
    def alive(self) -> bool:
        return not self._cancelled

    def track(self, group: str, handles: Iterable[str]) -> bool:
        """Take ownership of object URLs; revokes them at once if already closed."""
        handles = list(handles)
        if self._cancelled:
            self.registry.revoke_all(handles)
            return False
        self._groups.setdefault(group, []).extend(handles)
        return True

    def release(self, group: str) -> int:
        """Revoke the URLs of one group (e.g. when the entity list changed)."""
        return self.registry.revoke_all(self._groups.pop(group, []))

    def owned(self) -> List[str]:
        return [h for handles in self._groups.values() for h in handles]

    def apply(self, setter: Callable[[T], Any], value: T) -> bool:
        """Hand an async result to `setter` only while the screen is mounted."""
        if self._cancelled:
            logger.debug("Dropped late result for unmounted screen %s", self.name)
            return False
        setter(value)
        return True

    def close(self) -> None:
        self._cancelled = True
        try:
            for group in list(self._groups):
                self.release(group)
        finally:
            self._groups.clear()
            self.cache.clear()

    def __enter__(self) -> "MountScope":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class ScreenLifecycle:
    def __init__(self, scopes: Optional[MutableMapping[str, MountScope]] = None):
        self.scopes: MutableMapping[str, MountScope] = scopes if scopes is not None else {}

    def activate(self, key: str) -> MountScope:
        for other in [k for k in self.scopes if k != key]:
            self.scopes.pop(other).close()
            logger.debug("Unmounted screen %s", other)
        scope = self.scopes.get(key)
        if scope is None or not scope.alive:
            scope = MountScope(key)
            self.scopes[key] = scope
        return scope

    def close_all(self) -> None:
        for key in list(self.scopes):
            self.scopes.pop(key).close()
