"""User settings: typed sections merged explicitly, one field at a time.

Settings travel as camelCase JSON (``{"treeDisplay": {"showBirthYear": ...}}``)
and live in memory as one dataclass per section. Every section declares its
fields in a rule table (type, whether it may be cleared, allowed choices or
range) and has its own ``merge_<section>`` function checked against that
table; a single bad value rejects the whole update. Unknown sections or keys
are ignored with a warning.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import json
import logging
import re

from .fs import PersistenceError, json_load_map, json_save_map


class SettingsError(ValueError):
    """A settings update carried a value of the wrong type or outside its range."""


THEMES = ("light", "dark", "auto")
GENERATION_LIMIT = (1, 50)

_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


@dataclass(frozen=True)
class Rule:
    """Declared type of one settings field."""

    kind: type
    optional: bool = False
    choices: Tuple[str, ...] = ()
    bounds: Optional[Tuple[int, int]] = None
    color: bool = False

    def check(self, label: str, value: Any) -> Any:
        if value is None:
            if self.optional:
                return None
            raise SettingsError(f"{label} cannot be empty")
        if self.kind is bool:
            if not isinstance(value, bool):
                raise SettingsError(f"{label} must be true or false")
            return value
        if self.kind is int:
            if isinstance(value, bool) or not isinstance(value, int):
                raise SettingsError(f"{label} must be an integer")
            if self.bounds and not self.bounds[0] <= value <= self.bounds[1]:
                raise SettingsError(f"{label} must be between {self.bounds[0]} and {self.bounds[1]}")
            return value
        if not isinstance(value, str):
            raise SettingsError(f"{label} must be a string")
        if self.choices and value not in self.choices:
            raise SettingsError(f"{label} must be one of {', '.join(self.choices)}")
        if self.color and not _COLOR_RE.match(value):
            raise SettingsError(f"{label} must be a #rrggbb colour")
        return value


def _one_of(*choices: str) -> Rule:
    return Rule(str, choices=choices)


FLAG = Rule(bool)
TEXT = Rule(str)
OPTIONAL_TEXT = Rule(str, optional=True)
COLOR = Rule(str, color=True)

PROFILE_RULES = {
    "name": TEXT,
    "email": TEXT,
    "display_picture": OPTIONAL_TEXT,
    "bio": OPTIONAL_TEXT,
    "language": _one_of("en", "ne", "hi", "es", "fr"),
}

TREE_DISPLAY_RULES = {
    "layout": _one_of("vertical", "horizontal", "circular"),
    "show_birth_year": FLAG,
    "show_death_year": FLAG,
    "show_photos": FLAG,
    "show_notes": FLAG,
    "show_extended_info": FLAG,
    "node_color": COLOR,
    "connection_line_color": COLOR,
    "text_size": _one_of("small", "medium", "large"),
    "photo_shape": _one_of("circle", "square", "rounded"),
    "generation_limit": Rule(int, bounds=GENERATION_LIMIT),
}

PRIVACY_RULES = {
    "visibility_control": _one_of("public", "private", "family"),
    "data_encryption": FLAG,
    "share_permissions": _one_of("view", "edit", "admin"),
}

DATA_SYNC_RULES = {
    "cloud_sync": FLAG,
    "offline_mode": FLAG,
    "auto_save_interval": Rule(int, bounds=(5, 3600)),
}

APPEARANCE_RULES = {
    "theme_preset": _one_of("classic", "modern", "minimalist"),
    "accent_color": COLOR,
    "background_type": _one_of("solid", "pattern"),
    "node_size": _one_of("small", "medium", "large"),
}

NOTIFICATION_RULES = {
    "birthday_reminders": FLAG,
    "anniversary_reminders": FLAG,
    "family_updates": FLAG,
    "sync_alerts": FLAG,
    "backup_alerts": FLAG,
}

ADVANCED_RULES = {
    "case_sensitive_search": FLAG,
    "sort_by": _one_of("name", "birthYear", "createdAt"),
    "debug_mode": FLAG,
}


@dataclass
class ProfileSettings:
    name: str = ""
    email: str = ""
    display_picture: Optional[str] = None
    bio: Optional[str] = None
    language: str = "en"


@dataclass
class TreeDisplaySettings:
    layout: str = "vertical"
    show_birth_year: bool = True
    show_death_year: bool = True
    show_photos: bool = True
    show_notes: bool = False
    show_extended_info: bool = False
    node_color: str = "#5a78c9"
    connection_line_color: str = "#999999"
    text_size: str = "medium"
    photo_shape: str = "circle"
    generation_limit: int = 10


@dataclass
class PrivacySettings:
    visibility_control: str = "family"
    data_encryption: bool = False
    share_permissions: str = "view"


@dataclass
class DataSyncSettings:
    cloud_sync: bool = False
    offline_mode: bool = True
    auto_save_interval: int = 30


@dataclass
class AppearanceSettings:
    theme_preset: str = "modern"
    accent_color: str = "#5a78c9"
    background_type: str = "solid"
    node_size: str = "medium"


@dataclass
class NotificationSettings:
    birthday_reminders: bool = True
    anniversary_reminders: bool = True
    family_updates: bool = True
    sync_alerts: bool = True
    backup_alerts: bool = True


@dataclass
class AdvancedSettings:
    case_sensitive_search: bool = False
    sort_by: str = "name"
    debug_mode: bool = False


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(w.title() for w in rest)


def _checked_changes(where: str, rules: Dict[str, Rule], updates: Any) -> Dict[str, Any]:
    """Validated ``{field: value}`` changes for one section.

    Keys may be camelCase or snake_case; keys missing from ``rules`` are
    skipped with a warning.
    """
    if not isinstance(updates, dict):
        raise SettingsError(f"{where} must be an object")
    names = {}
    for name in rules:
        names[name] = name
        names[_camel(name)] = name
    changes: Dict[str, Any] = {}
    for key, value in updates.items():
        name = names.get(key)
        if name is None:
            logging.warning("Ignoring unknown setting %s.%s", where, key)
            continue
        changes[name] = rules[name].check(f"{where}.{_camel(name)}", value)
    return changes


def merge_profile(current: ProfileSettings, updates: Any) -> ProfileSettings:
    return replace(current, **_checked_changes("profile", PROFILE_RULES, updates))


def merge_tree_display(current: TreeDisplaySettings, updates: Any) -> TreeDisplaySettings:
    return replace(current, **_checked_changes("treeDisplay", TREE_DISPLAY_RULES, updates))


def merge_privacy(current: PrivacySettings, updates: Any) -> PrivacySettings:
    return replace(current, **_checked_changes("privacy", PRIVACY_RULES, updates))


def merge_data_sync(current: DataSyncSettings, updates: Any) -> DataSyncSettings:
    return replace(current, **_checked_changes("dataSync", DATA_SYNC_RULES, updates))


def merge_appearance(current: AppearanceSettings, updates: Any) -> AppearanceSettings:
    return replace(current, **_checked_changes("appearance", APPEARANCE_RULES, updates))


def merge_notifications(current: NotificationSettings, updates: Any) -> NotificationSettings:
    return replace(current, **_checked_changes("notifications", NOTIFICATION_RULES, updates))


def merge_advanced(current: AdvancedSettings, updates: Any) -> AdvancedSettings:
    return replace(current, **_checked_changes("advanced", ADVANCED_RULES, updates))


def _section_to_dict(section: Any, rules: Dict[str, Rule]) -> Dict[str, Any]:
    return {_camel(name): getattr(section, name) for name in rules}


@dataclass
class Settings:
    profile: ProfileSettings = field(default_factory=ProfileSettings)
    theme: str = "auto"
    tree_display: TreeDisplaySettings = field(default_factory=TreeDisplaySettings)
    privacy: PrivacySettings = field(default_factory=PrivacySettings)
    data_sync: DataSyncSettings = field(default_factory=DataSyncSettings)
    appearance: AppearanceSettings = field(default_factory=AppearanceSettings)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    advanced: AdvancedSettings = field(default_factory=AdvancedSettings)

    def merge(self, updates: Dict[str, Any]) -> "Settings":
        """Return a new Settings with ``updates`` applied.

        Raises SettingsError (and leaves ``self`` untouched) on the first
        invalid value. A section given as null is left as it is.
        """
        if not isinstance(updates, dict):
            raise SettingsError("settings update must be an object")
        new = replace(self)
        for key, value in updates.items():
            if value is None:
                continue
            if key == "theme":
                if value not in THEMES:
                    raise SettingsError(f"theme must be one of {', '.join(THEMES)}")
                new.theme = value
            elif key == "profile":
                new.profile = merge_profile(new.profile, value)
            elif key in ("treeDisplay", "tree_display"):
                new.tree_display = merge_tree_display(new.tree_display, value)
            elif key == "privacy":
                new.privacy = merge_privacy(new.privacy, value)
            elif key in ("dataSync", "data_sync"):
                new.data_sync = merge_data_sync(new.data_sync, value)
            elif key == "appearance":
                new.appearance = merge_appearance(new.appearance, value)
            elif key == "notifications":
                new.notifications = merge_notifications(new.notifications, value)
            elif key == "advanced":
                new.advanced = merge_advanced(new.advanced, value)
            else:
                logging.warning("Ignoring unknown settings section %s", key)
        return new

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profile": _section_to_dict(self.profile, PROFILE_RULES),
            "theme": self.theme,
            "treeDisplay": _section_to_dict(self.tree_display, TREE_DISPLAY_RULES),
            "privacy": _section_to_dict(self.privacy, PRIVACY_RULES),
            "dataSync": _section_to_dict(self.data_sync, DATA_SYNC_RULES),
            "appearance": _section_to_dict(self.appearance, APPEARANCE_RULES),
            "notifications": _section_to_dict(self.notifications, NOTIFICATION_RULES),
            "advanced": _section_to_dict(self.advanced, ADVANCED_RULES),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any], base: Optional["Settings"] = None) -> "Settings":
        return (base or Settings()).merge(d)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @staticmethod
    def from_json(text: str) -> "Settings":
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise SettingsError(f"invalid settings JSON: {exc}") from exc
        return Settings.from_dict(data)


def default_settings(generation_limit: Optional[int] = None) -> Settings:
    """Factory defaults, optionally with another default generation limit.

    The limit is clamped into the allowed range.
    """
    s = Settings()
    if generation_limit is not None:
        lo, hi = GENERATION_LIMIT
        s.tree_display.generation_limit = max(lo, min(int(generation_limit), hi))
    return s


def load_settings(path: Path, base: Optional[Settings] = None) -> Settings:
    """Settings stored at ``path`` merged over ``base`` (the defaults).

    A missing file gives ``base``. An unreadable file or one with bad values
    falls back to ``base`` with a warning.
    """
    base = base or Settings()
    try:
        data = json_load_map(path)
    except PersistenceError as exc:
        logging.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return base
    try:
        return Settings.from_dict(data, base)
    except SettingsError as exc:
        logging.warning("Ignoring stored settings in %s: %s", path, exc)
        return base


def save_settings(path: Path, settings: Settings) -> None:
    json_save_map(path, settings.to_dict())
