import json
from pathlib import Path

from teller.config.loader import (
    camel_to_snake,
    convert_keys,
    convert_to_camel,
    load_config,
    save_config,
    snake_to_camel,
)
from teller.config.schema import Config


def test_key_case_conversion() -> None:
    assert camel_to_snake("dailyDraftLimit") == "daily_draft_limit"
    assert snake_to_camel("daily_draft_limit") == "dailyDraftLimit"
    nested = {"safety": {"dailyDraftLimit": 3}, "providers": {"tiers": [{"timeoutMs": 100}]}}
    assert convert_keys(nested) == {"safety": {"daily_draft_limit": 3}, "providers": {"tiers": [{"timeout_ms": 100}]}}
    assert convert_to_camel(convert_keys(nested)) == nested


def test_save_then_load_round_trips(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    config = Config()
    config.safety.daily_draft_limit = 3
    config.assistant.enabled_by_default = False
    config.storage.db_path = str(tmp_path / "teller.db")

    save_config(config, path)

    raw = json.loads(path.read_text())
    assert raw["safety"]["dailyDraftLimit"] == 3
    loaded = load_config(path)
    assert loaded.safety.daily_draft_limit == 3
    assert loaded.assistant.enabled_by_default is False
    assert [t.name for t in loaded.providers.tiers] == [t.name for t in config.providers.tiers]


def test_partial_file_keeps_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"safety": {"network": "Base Sepolia"}}))

    loaded = load_config(path)

    assert loaded.safety.network == "Base Sepolia"
    assert loaded.safety.daily_draft_limit == Config().safety.daily_draft_limit
    assert loaded.providers.tiers


def test_invalid_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert load_config(path).safety.daily_draft_limit == Config().safety.daily_draft_limit

    path.write_text(json.dumps(["not", "an", "object"]))
    assert load_config(path).memory.episode_retention == 50


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    assert load_config(tmp_path / "absent.json").retrieval.top_n == 7
