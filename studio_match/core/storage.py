"""Local persistence for small UI-state values.

:class:`LocalStorage` is a string key/value area backed by a single JSON
file and shared by every :class:`PreferenceStore` opened on it. Each store is
its own execution context: a write made through one store is announced to the
listeners of the others, the same way a browser fires ``storage`` events in
every tab except the one that wrote.

Values are wrapped in an envelope::

    {"value": ..., "timestamp": <ms>, "version": "1", "expiresAt": <ms>}

and read back only when the version matches and the expiry has not passed.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any, Generic, NamedTuple, TypeVar

log = logging.getLogger(__name__)

STORAGE_PREFIX = "stm_"
STORAGE_VERSION = "1"
FILTER_TTL = 24 * 60 * 60.0

T = TypeVar("T")


class StorageKeys(str, Enum):
    """Logical keys persisted by the application."""

    PEOPLE_FILTERS = "people_filters"
    TEAM_FILTERS = "team_filters"
    ACTIVE_TAB = "active_tab"
    SCROLL_POSITION = "scroll_position"
    ONBOARDING_STEP = "onboarding_step"
    THEME = "theme"
    LAST_VIEWED_PROFILE = "last_viewed_profile"
    CHAT_DRAFT = "chat_draft"


class StorageEvent(NamedTuple):
    key: str
    old_value: str | None
    new_value: str | None


StorageListener = Callable[[StorageEvent], None]


class LocalStorage:
    """Persist raw string items to ``path``.

    Data is written to the file on every mutation; without a ``path`` the
    storage only lives in memory. Each write first reloads the file, so keys
    written by another instance on the same path are kept. Reads use the
    copy loaded last, and listeners only hear about writes made through this
    instance.
    """

    def __init__(self, path: Path | None = None) -> None:
        """Initialise storage using the JSON file at ``path``."""
        self.path = path
        self._items: dict[str, str] = {}
        self._listeners: list[tuple[object, StorageListener]] = []
        if path is not None and path.exists():
            self._load()

    # ------------------------------------------------------------------
    # Internal helpers
    def _load(self) -> None:
        assert self.path is not None
        data = json.loads(self.path.read_text(encoding="utf-8"))
        self._items = {str(k): str(v) for k, v in data.items()}

    def _reload(self) -> None:
        if self.path is not None and self.path.exists():
            self._load()

    def _save(self) -> None:
        if self.path is None:
            return
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(self._items, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    def _notify(self, origin: object, event: StorageEvent) -> None:
        for context, listener in list(self._listeners):
            if context is origin:
                continue
            try:
                listener(event)
            except Exception:
                log.exception("Storage listener failed for key %s", event.key)

    # ------------------------------------------------------------------
    # Item operations
    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str, origin: object = None) -> None:
        self._reload()
        old = self._items.get(key)
        self._items[key] = value
        self._save()
        self._notify(origin, StorageEvent(key, old, value))

    def remove_item(self, key: str, origin: object = None) -> None:
        self._reload()
        if key not in self._items:
            return
        old = self._items.pop(key)
        self._save()
        self._notify(origin, StorageEvent(key, old, None))

    def keys(self) -> list[str]:
        return list(self._items)

    def add_listener(
        self, listener: StorageListener, context: object = None
    ) -> Callable[[], None]:
        """Register ``listener`` for writes made outside ``context``.

        Returns a callable that removes the listener again.
        """
        entry = (context, listener)
        self._listeners.append(entry)

        def remove() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return remove


class PreferenceStore:
    """Namespaced, versioned and expiring values on top of :class:`LocalStorage`.

    None of the methods raise: failures are logged and reported through the
    return value (the caller's default on reads, ``False`` on writes).
    """

    def __init__(
        self,
        storage: LocalStorage,
        prefix: str = STORAGE_PREFIX,
        version: str = STORAGE_VERSION,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage
        self.prefix = prefix
        self.version = version
        self.clock = clock

    def storage_key(self, key: str | StorageKeys) -> str:
        name = key.value if isinstance(key, StorageKeys) else key
        return f"{self.prefix}{name}"

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def unwrap(self, raw: str) -> tuple[bool, Any]:
        """Decode an envelope; ``(False, None)`` when stale or foreign."""
        envelope = json.loads(raw)
        if not isinstance(envelope, dict) or "value" not in envelope:
            return False, None
        if envelope.get("version") != self.version:
            return False, None
        expires_at = envelope.get("expiresAt")
        if expires_at is not None and self._now_ms() > expires_at:
            return False, None
        return True, envelope["value"]

    def get(self, key: str | StorageKeys, default: T) -> T:
        prefixed = self.storage_key(key)
        try:
            raw = self.storage.get_item(prefixed)
            if raw is None:
                return default
            fresh, value = self.unwrap(raw)
            if not fresh:
                self.storage.remove_item(prefixed, origin=self)
                return default
            return value
        except Exception as exc:
            log.warning('Error reading from storage key "%s": %s', key, exc)
            return default

    def set(
        self, key: str | StorageKeys, value: Any, expires_in: float | None = None
    ) -> bool:
        """Store ``value``; ``expires_in`` is a lifetime in seconds."""
        now = self._now_ms()
        envelope: dict[str, Any] = {
            "value": value,
            "timestamp": now,
            "version": self.version,
        }
        if expires_in:
            envelope["expiresAt"] = now + int(expires_in * 1000)
        try:
            raw = json.dumps(envelope)
            self.storage.set_item(self.storage_key(key), raw, origin=self)
        except Exception as exc:
            log.warning('Error writing to storage key "%s": %s', key, exc)
            return False
        return True

    def remove(self, key: str | StorageKeys) -> bool:
        try:
            self.storage.remove_item(self.storage_key(key), origin=self)
        except Exception as exc:
            log.warning('Error removing storage key "%s": %s', key, exc)
            return False
        return True

    def clear(self) -> bool:
        """Remove every item under this store's prefix."""
        try:
            for key in self.storage.keys():
                if key.startswith(self.prefix):
                    self.storage.remove_item(key, origin=self)
        except Exception as exc:
            log.warning("Error clearing app storage: %s", exc)
            return False
        return True


class PersistedState(Generic[T]):
    """A value mirrored to a :class:`PreferenceStore`.

    With ``sync`` enabled, writes to the same key made through another store
    on the same :class:`LocalStorage` are applied here as they happen.
    """

    def __init__(
        self,
        store: PreferenceStore,
        key: str | StorageKeys,
        default: T,
        expires_in: float | None = None,
        sync: bool = True,
    ) -> None:
        self.store = store
        self.key = key
        self.expires_in = expires_in
        self.value: T = store.get(key, default)
        self._detach: Callable[[], None] | None = None
        if sync:
            self._detach = store.storage.add_listener(self._on_storage, context=store)

    def set(self, value: T | Callable[[T], T]) -> T:
        next_value = value(self.value) if callable(value) else value
        self.store.set(self.key, next_value, self.expires_in)
        self.value = next_value
        return next_value

    def _on_storage(self, event: StorageEvent) -> None:
        if event.key != self.store.storage_key(self.key) or not event.new_value:
            return
        try:
            fresh, value = self.store.unwrap(event.new_value)
        except ValueError as exc:
            log.warning("Error parsing storage event: %s", exc)
            return
        if fresh:
            self.value = value

    def close(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None


def persisted_filters(
    store: PreferenceStore, kind: str, default: T
) -> PersistedState[T]:
    """Filter state for the ``"people"`` or ``"team"`` deck, kept for a day."""
    key = StorageKeys.PEOPLE_FILTERS if kind == "people" else StorageKeys.TEAM_FILTERS
    return PersistedState(store, key, default, expires_in=FILTER_TTL)


def persisted_tab(store: PreferenceStore, default: str) -> PersistedState[str]:
    return PersistedState(store, StorageKeys.ACTIVE_TAB, default)
