import json
import logging
import os
import tempfile
import threading
from typing import Dict, Optional

from pydantic import ValidationError

from dockyard.appstore.models import AppSettings
from dockyard.errors import FileSystemError

logger = logging.getLogger(__name__)

# Prefix marking a template placeholder such as "!config" or "!PUID".
TOKEN_PREFIX = "!"

DEFAULT_TOKENS: Dict[str, str] = {
    "!PUID": "1000",
    "!PGID": "1000",
    "!TZ": "Etc/UTC",
    "!config": "./config",
    "!downloads": "./downloads",
    "!music": "./music",
    "!movies": "./movies",
    "!tv": "./tv",
    "!books": "./books",
    "!comics": "./comics",
    "!podcasts": "./podcasts",
}


def default_settings() -> AppSettings:
    return AppSettings(tokens=dict(DEFAULT_TOKENS))


class SettingsStore:
    """Persisted operator settings consumed by the template normalizer.

    Stored token values are merged over ``DEFAULT_TOKENS`` so that newly
    introduced defaults stay available to existing installations.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._settings: Optional[AppSettings] = None

    def get(self) -> AppSettings:
        with self._lock:
            return self._load().model_copy(deep=True)

    def tokens(self) -> Dict[str, str]:
        return self.get().tokens

    def save(self, settings: AppSettings) -> AppSettings:
        merged = AppSettings(
            tokens={**DEFAULT_TOKENS, **settings.tokens},
            disable_save_to_server=settings.disable_save_to_server,
        )
        directory = os.path.dirname(os.path.abspath(self.path))
        with self._lock:
            try:
                os.makedirs(directory, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(prefix=".settings-", suffix=".json", dir=directory)
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(merged.model_dump(mode="json"), f, indent=2)
                os.replace(tmp_path, self.path)
            except OSError as exc:
                logger.error("Failed to write settings file at %s: %s", self.path, exc)
                raise FileSystemError(f"Failed to write settings file {self.path}: {exc}") from exc
            self._settings = merged
        logger.info("Saved settings to %s", self.path)
        return merged.model_copy(deep=True)

    def _load(self) -> AppSettings:
        if self._settings is not None:
            return self._settings

        if not os.path.exists(self.path):
            self._settings = default_settings()
            return self._settings

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            stored = AppSettings.model_validate(raw if isinstance(raw, dict) else {})
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.error("Error reading settings file %s, using defaults: %s", self.path, exc)
            self._settings = default_settings()
            return self._settings

        self._settings = AppSettings(
            tokens={**DEFAULT_TOKENS, **stored.tokens},
            disable_save_to_server=stored.disable_save_to_server,
        )
        return self._settings
