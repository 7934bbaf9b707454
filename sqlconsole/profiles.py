"""Connection profile repository on top of a flat key/value store."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import ValidationError

from .errors import DeleteError, HotkeyConflictError, LoadError, ProfileNotFoundError, SaveError
from .models import DEFAULT_STATEMENT_SEPARATOR, ConnectionProfile
from .storage import KeyValueStore

LOG = logging.getLogger(__name__)

PROPERTY_SEPARATOR = "."


@dataclass(frozen=True, slots=True)
class _FieldMapping:
    key: str
    attribute: str
    encode: Callable[[Any], str]
    decode: Callable[[str], Any]


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _optional_text(value: str) -> str | None:
    return value or None


def _decode_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def _decode_order(value: str) -> int | None:
    return int(value) if value else None


def _decode_hotkey(value: str) -> str | None:
    return value[0] if value else None


_FIELDS: tuple[_FieldMapping, ...] = (
    _FieldMapping("ConnectionName", "name", _text, str),
    _FieldMapping("DriverClassName", "driver_class_name", _text, _optional_text),
    _FieldMapping("ConnectionUrl", "connection_url", _text, str),
    _FieldMapping("UserName", "user_name", _text, _optional_text),
    _FieldMapping("Password", "password", _text, _optional_text),
    _FieldMapping("LoginAutomatically", "auto_login", lambda flag: "true" if flag else "false", _decode_bool),
    _FieldMapping(
        "StatementSeparator",
        "statement_separator",
        lambda value: value or DEFAULT_STATEMENT_SEPARATOR,
        str,
    ),
    _FieldMapping("Hotkey", "hotkey", _text, _decode_hotkey),
    _FieldMapping("Order", "order", _text, _decode_order),
)
_FIELDS_BY_KEY = {mapping.key: mapping for mapping in _FIELDS}


def split_key(key: str) -> tuple[str, str]:
    """Split ``"<profile name>.<field>"`` at the last separator."""

    profile_name, sep, field_name = key.rpartition(PROPERTY_SEPARATOR)
    if not sep or not profile_name or not field_name:
        raise LoadError(f"Property separator not found: {key!r}")
    return profile_name, field_name


def profile_sort_key(profile: ConnectionProfile) -> tuple[int, int, str]:
    """Ordered profiles first (by order, then name), the rest by name."""

    if profile.order is not None:
        return (0, profile.order, profile.name)
    return (1, 0, profile.name)


class ProfileStore:
    """Persists named connection profiles as ``"<name>.<field>"`` pairs."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._lock = threading.RLock()

    def list(self) -> list[ConnectionProfile]:
        """Load every profile, sorted for display."""

        with self._lock:
            try:
                values = self._store.load()
            except (OSError, ValueError) as exc:
                raise LoadError(f"Failed to load connection profiles: {exc}") from exc

        grouped: dict[str, dict[str, Any]] = {}
        for key, value in values.items():
            profile_name, field_name = split_key(key)
            mapping = _FIELDS_BY_KEY.get(field_name)
            if mapping is None:
                raise LoadError(f"Unknown profile field {field_name!r} in key {key!r}")
            try:
                decoded = mapping.decode(value)
            except ValueError as exc:
                raise LoadError(f"Invalid value for {key!r}: {value!r}") from exc
            fields = grouped.setdefault(profile_name, {"name": profile_name})
            fields[mapping.attribute] = decoded

        profiles: list[ConnectionProfile] = []
        for profile_name, fields in grouped.items():
            fields["name"] = fields.get("name") or profile_name
            try:
                profiles.append(ConnectionProfile(**fields))
            except ValidationError as exc:
                raise LoadError(f"Invalid connection profile {profile_name!r}: {exc}") from exc
        profiles.sort(key=profile_sort_key)
        return profiles

    def find_by_name(self, name: str) -> ConnectionProfile | None:
        """Return the profile whose name matches case-insensitively."""

        for profile in self.list():
            if profile.same_name(name):
                return profile
        return None

    def save(self, profile: ConnectionProfile, *, replacing: str | None = None) -> None:
        """Insert or replace every stored field of ``profile``.

        ``replacing`` names a profile about to be removed by the caller; its
        hotkey does not count as taken.
        """

        if not profile.name or not profile.name.strip():
            raise SaveError("A connection must have a non-empty name")
        if profile.hotkey is not None:
            self._check_hotkey_available(profile, replacing)

        with self._lock:
            try:
                values = self._store.load()
                for key in [key for key in values if self._belongs_to(key, profile.name)]:
                    del values[key]
                values.update(self._encode(profile))
                self._store.persist(values)
            except (OSError, ValueError) as exc:
                raise SaveError(f"Failed to save connection profile {profile.name!r}: {exc}") from exc
        LOG.info("Saved connection profile", extra={"profile": profile.name})

    def delete_by_name(self, name: str) -> None:
        """Remove every stored field of the named profile."""

        with self._lock:
            try:
                values = self._store.load()
                doomed = [key for key in values if self._belongs_to(key, name)]
                if not doomed:
                    raise ProfileNotFoundError(name)
                for key in doomed:
                    del values[key]
                self._store.persist(values)
            except (OSError, ValueError) as exc:
                raise DeleteError(f"Failed to delete connection profile {name!r}: {exc}") from exc
        LOG.info("Deleted connection profile", extra={"profile": name})

    def rename(self, old_name: str, profile: ConnectionProfile) -> None:
        """Save ``profile`` under its new name, then drop ``old_name``.

        The two steps are not atomic: if the delete fails the old entry stays
        next to the new one.
        """

        self.save(profile, replacing=old_name)
        if not profile.same_name(old_name):
            self.delete_by_name(old_name)

    def _check_hotkey_available(self, profile: ConnectionProfile, replacing: str | None = None) -> None:
        assert profile.hotkey is not None
        try:
            existing = self.list()
        except LoadError:
            LOG.warning(
                "Skipping hotkey check, existing profiles could not be read",
                extra={"profile": profile.name},
                exc_info=True,
            )
            return
        wanted = profile.hotkey.upper()
        for other in existing:
            if other.hotkey is None or other.same_name(profile.name):
                continue
            if replacing is not None and other.same_name(replacing):
                continue
            if other.hotkey.upper() == wanted:
                raise HotkeyConflictError(profile.hotkey, other.name)

    @staticmethod
    def _belongs_to(key: str, name: str) -> bool:
        profile_name, sep, _ = key.rpartition(PROPERTY_SEPARATOR)
        if not sep:
            raise ValueError(f"Property separator not found: {key!r}")
        return profile_name.casefold() == name.casefold()

    @staticmethod
    def _encode(profile: ConnectionProfile) -> dict[str, str]:
        values: dict[str, str] = {}
        for mapping in _FIELDS:
            value = mapping.encode(getattr(profile, mapping.attribute))
            if value:
                values[f"{profile.name}{PROPERTY_SEPARATOR}{mapping.key}"] = value
        return values


__all__ = ["PROPERTY_SEPARATOR", "ProfileStore", "profile_sort_key", "split_key"]
