"""Per-proxy property cache.

Each proxy role declares up front which properties it cares about; anything
else BlueZ reports is ignored.  Cached values keep their D-Bus signature so
typed getters can tell a real boolean from something that merely looks
false.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Mapping, NamedTuple, Optional

from bleclient.core.errors import PropertyNotFoundError, PropertyTypeMismatchError
from bleclient.core.log import print_and_log, LOG__DEBUG
from bleclient.dbuslayer.bus import TypedValue

__all__ = ["PropertyEntry", "PropertyCache", "ChangeCallback", "tri_state"]

# (interface, name, True/False for booleans, None for anything else)
ChangeCallback = Callable[[str, str, Optional[bool]], None]


class PropertyEntry(NamedTuple):
    signature: str
    value: Any
    generation: int


def tri_state(value: TypedValue) -> Optional[bool]:
    if value.is_boolean:
        return bool(value.value)
    return None


class PropertyCache:
    """Ordered name → :class:`PropertyEntry` store restricted to a whitelist."""

    MAX_PROPERTIES = 4

    def __init__(self, names: Iterable[str], owner: str = ""):
        self._names = tuple(names)
        if len(self._names) > self.MAX_PROPERTIES:
            raise ValueError(f"at most {self.MAX_PROPERTIES} properties per proxy")
        self.owner = owner
        self.interface = ""
        self.change_callback: Optional[ChangeCallback] = None
        self._entries: Dict[str, PropertyEntry] = {}
        self._generation = 0

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    @property
    def names(self) -> tuple:
        return self._names

    def accepts(self, name: str) -> bool:
        return name in self._names

    def set(self, name: str, value: Any, live: bool = False) -> bool:
        """Store *value* under *name*.

        Returns False (and stores nothing) when *name* is not declared for
        this cache.  A *live* update, one that came from a PropertiesChanged
        signal rather than a snapshot, is reported to the change callback
        after it is stored.
        """
        if not self.accepts(name):
            return False

        typed = TypedValue.wrap(value)
        self._generation += 1
        self._entries[name] = PropertyEntry(typed.signature, typed.value, self._generation)

        if live and self.change_callback is not None:
            self.change_callback(self.interface, name, tri_state(typed))
        return True

    def load(self, properties: Mapping[str, Any]) -> None:
        """Bulk-load a property dictionary without raising change events."""
        for name, value in properties.items():
            self.set(str(name), value, live=False)

    def update(self, properties: Mapping[str, Any]) -> None:
        for name, value in properties.items():
            self.set(str(name), value, live=True)

    def discard(self, name: str) -> None:
        if self._entries.pop(name, None) is not None:
            print_and_log(f"[DEBUG] {self.owner}: property {name} invalidated", LOG__DEBUG)

    def clear(self) -> None:
        self._entries.clear()

    # ------------------------------------------------------------------
    # Typed access
    # ------------------------------------------------------------------
    def get(self, name: str) -> TypedValue:
        entry = self._entries.get(name)
        if entry is None:
            raise PropertyNotFoundError(self.owner, name)
        return TypedValue(entry.signature, entry.value)

    def get_boolean(self, name: str) -> bool:
        """Return the cached boolean, raising if it is absent or not a boolean."""
        value = self.get(name)
        if not value.is_boolean:
            raise PropertyTypeMismatchError(self.owner, name, value.signature)
        return bool(value.value)

    def entry(self, name: str) -> Optional[PropertyEntry]:
        return self._entries.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self):  # pragma: no cover – debugging aid
        return f"<PropertyCache {self.owner} {dict(self._entries)!r}>"
