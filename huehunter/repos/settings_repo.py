from __future__ import annotations

import logging
from pathlib import Path

from huehunter.io.json_file import ensure_dir, read_json_object, write_json_atomic
from huehunter.models.settings import Settings

log = logging.getLogger(__name__)


class SettingsRepo:
    """
    Owns <app_data_dir>/settings.json.

    load_or_create() fills in defaults for anything missing and writes the
    normalized file back when it did not exist or was incomplete.
    """

    def __init__(self, app_data_dir: Path) -> None:
        self._app_data_dir = app_data_dir
        ensure_dir(self._app_data_dir)

    @property
    def path(self) -> Path:
        return self._app_data_dir / "settings.json"

    def load_or_create(self) -> Settings:
        existed = self.path.exists()
        data = read_json_object(self.path)
        settings = Settings.from_dict(data)

        normalized = settings.to_dict()
        if not existed or normalized != data:
            log.info("writing settings file (existed=%s)", existed)
            self.save(settings, backup=existed)
        return settings

    def save(self, settings: Settings, *, backup: bool = True) -> None:
        write_json_atomic(self.path, settings.to_dict(), backup=backup)
