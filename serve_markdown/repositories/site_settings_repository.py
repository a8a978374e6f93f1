from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock
from typing import Any, cast

import yaml

from serve_markdown.models.site_settings import SiteSettings

LOGGER = logging.getLogger("serve_markdown.settings")


def load_site_settings(path: Path) -> SiteSettings:
    if not path.is_file():
        return SiteSettings()

    with path.open(encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)

    if raw is None:
        return SiteSettings()
    if not isinstance(raw, dict):
        raise ValueError(f"Site settings document must be a mapping: {path}")
    return SiteSettings.model_validate(cast(dict[str, Any], raw))


class SiteSettingsRepository:
    """Holds the active settings snapshot and persists it as YAML.

    Readers take one snapshot per request through `current()`; `replace()`
    swaps the whole snapshot so a request never sees a half-applied update.
    """

    def __init__(self, path: Path, *, initial: SiteSettings | None = None) -> None:
        self._path = path
        self._lock = Lock()
        self._current = initial if initial is not None else load_site_settings(path)

    @property
    def path(self) -> Path:
        return self._path

    def current(self) -> SiteSettings:
        with self._lock:
            return self._current

    def replace(self, document: dict[str, Any]) -> SiteSettings:
        settings = SiteSettings.model_validate(document)
        self._write(settings)
        with self._lock:
            self._current = settings
        LOGGER.info("site settings updated path=%s", self._path)
        return settings

    def reload(self) -> SiteSettings:
        settings = load_site_settings(self._path)
        with self._lock:
            self._current = settings
        return settings

    def delete(self) -> bool:
        with self._lock:
            self._current = SiteSettings()
        if not self._path.is_file():
            return False
        self._path.unlink()
        return True

    def _write(self, settings: SiteSettings) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(settings.to_document(), handle, sort_keys=False, allow_unicode=True)
