"""Simple JSON-based config store."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path

# Time left for the recognizer to emit ``ended`` after its last upload returns.
_FLUSH_MARGIN_S = 2.0


@dataclass
class DictationSettings:
    max_restart_attempts: int = 5
    transient_backoff_s: float = 1.0
    recoverable_backoff_s: float = 3.0
    end_timeout_s: float = 15.0
    request_timeout_s: float = 10.0
    no_speech_timeout_s: float = 8.0
    utterance_silence_ms: int = 700
    energy_threshold: float = 500.0

    @property
    def ending_watchdog_s(self) -> float:
        """Ending watchdog that never cuts off the final utterance upload."""
        return max(self.end_timeout_s, self.request_timeout_s + _FLUSH_MARGIN_S)


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "dictation" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", ""))

    def set_api_key(self, key: str) -> None:
        data = self._read_all()
        data["api_key"] = key
        self._write_all(data)

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", "Key.alt_r"))

    def set_hotkey(self, hotkey: str) -> None:
        data = self._read_all()
        data["hotkey"] = hotkey
        self._write_all(data)

    def get_language(self) -> str:
        data = self._read_all()
        return str(data.get("language", "en-US"))

    def set_language(self, language: str) -> None:
        data = self._read_all()
        data["language"] = language
        self._write_all(data)

    def get_log_level(self) -> str:
        data = self._read_all()
        return str(data.get("log_level", "INFO")).upper()

    def get_settings(self) -> DictationSettings:
        """Dictation tuning; unknown keys are ignored, bad values keep defaults."""
        stored = self._read_all().get("dictation", {})
        settings = DictationSettings()
        if not isinstance(stored, dict):
            return settings
        for field in fields(DictationSettings):
            if field.name not in stored:
                continue
            default = getattr(settings, field.name)
            try:
                value = type(default)(stored[field.name])
            except (TypeError, ValueError):
                continue
            if value < 0:
                continue
            setattr(settings, field.name, value)
        return settings

    def set_settings(self, settings: DictationSettings) -> None:
        data = self._read_all()
        data["dictation"] = asdict(settings)
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
