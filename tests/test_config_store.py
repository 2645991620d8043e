from __future__ import annotations

from pathlib import Path

import pytest

from config import DEFAULT_ENDPOINT, DEFAULT_HOTKEY, JsonConfigStore


def test_config_read_write(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get_api_key() == ""
    assert store.get_hotkey() == DEFAULT_HOTKEY == "Key.f9"
    assert store.get_endpoint() == DEFAULT_ENDPOINT

    store.set_api_key("  abc  ")
    store.set_hotkey("Key.f10")

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get_api_key() == "abc"
    assert reloaded.get_hotkey() == "Key.f10"


def test_config_invalid_json_fallback(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{invalid", encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_api_key() == ""
    assert store.get_hotkey() == DEFAULT_HOTKEY


def test_config_non_object_fallback(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('["not", "an", "object"]', encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_api_key() == ""

    store.set_api_key("key")
    assert store.get_api_key() == "key"


def test_keys_are_stored_independently(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")

    store.set_api_key("gemini")
    store.set_recognizer_api_key("dashscope")

    assert store.get_api_key() == "gemini"
    assert store.get_recognizer_api_key() == "dashscope"


def test_recognizer_key_falls_back_to_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DASHSCOPE_API_KEY", "from-env")
    store = JsonConfigStore(path=tmp_path / "config.json")

    assert store.get_recognizer_api_key() == "from-env"

    store.set_recognizer_api_key("from-config")
    assert store.get_recognizer_api_key() == "from-config"


def test_endpoint_can_be_overridden(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"endpoint": "http://localhost:9000/generate"}', encoding="utf-8")

    assert JsonConfigStore(path=path).get_endpoint() == "http://localhost:9000/generate"
