from __future__ import annotations
"""Application settings persistence helpers."""

from dataclasses import asdict, dataclass
import json
from pathlib import Path

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class AppSettings:
    """Simple container for persistent app settings."""

    request_timeout: float = 30.0
    list_page_size: int = 1000
    log_level: str = "INFO"


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".storage_browser_settings.json"
        self._path = Path(storage_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()

        try:
            timeout = float(data.get("request_timeout", AppSettings.request_timeout))
        except (TypeError, ValueError):
            timeout = AppSettings.request_timeout
        if timeout <= 0:
            timeout = AppSettings.request_timeout

        try:
            page_size = int(data.get("list_page_size", AppSettings.list_page_size))
        except (TypeError, ValueError):
            page_size = AppSettings.list_page_size
        if page_size <= 0:
            page_size = AppSettings.list_page_size

        log_level = data.get("log_level", AppSettings.log_level)
        if not isinstance(log_level, str) or log_level.upper() not in LOG_LEVELS:
            log_level = AppSettings.log_level

        return AppSettings(
            request_timeout=timeout,
            list_page_size=page_size,
            log_level=log_level.upper(),
        )

    def save(self, settings: AppSettings) -> None:
        payload = asdict(settings)
        payload["request_timeout"] = max(float(settings.request_timeout), 1.0)
        payload["list_page_size"] = max(int(settings.list_page_size), 1)
        if str(settings.log_level).upper() not in LOG_LEVELS:
            payload["log_level"] = AppSettings.log_level
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
