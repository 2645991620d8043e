"""Simple JSON-based config store, also used as the credential store."""

from __future__ import annotations

import json
import os
from pathlib import Path

DEFAULT_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "gemini-2.5-flash-preview-09-2025:generateContent"
)
DEFAULT_HOTKEY = "Key.f9"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "voice_note" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", "")).strip()

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key.strip())

    def get_recognizer_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("recognizer_api_key", "")) or os.getenv("DASHSCOPE_API_KEY", "")

    def set_recognizer_api_key(self, key: str) -> None:
        self._set("recognizer_api_key", key.strip())

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", DEFAULT_HOTKEY))

    def set_hotkey(self, hotkey: str) -> None:
        self._set("hotkey", hotkey)

    def get_endpoint(self) -> str:
        data = self._read_all()
        return str(data.get("endpoint", DEFAULT_ENDPOINT))

    def _set(self, name: str, value: str) -> None:
        data = self._read_all()
        data[name] = value
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
