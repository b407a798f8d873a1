"""Tests for settings loading."""

import logging
from pathlib import Path

from ropaflow.config import COLLECTION_KEY, Settings, load_settings, settings_from_mapping


def test_defaults():
    settings = Settings()
    assert (settings.node_width, settings.node_height) == (180.0, 80.0)
    assert settings.ordering_passes == 4
    assert settings.collection_key == COLLECTION_KEY == "ropa_flows_v3"
    assert settings.left_panel_min <= settings.left_panel_width <= settings.left_panel_max
    assert settings.right_panel_min <= settings.right_panel_width <= settings.right_panel_max


def test_missing_file_gives_defaults(tmp_path: Path):
    assert load_settings(tmp_path / "absent.yml") == Settings()
    assert load_settings(None) == Settings()


def test_yaml_overrides(tmp_path: Path):
    path = tmp_path / "ropaflow.yml"
    path.write_text(
        "node_width: 200\nrank_gap: 120\nordering_passes: 8\nstore_dir: snapshots\nunknown_key: 1\n",
        encoding="utf-8",
    )
    settings = load_settings(path)

    assert settings.node_width == 200.0
    assert isinstance(settings.node_width, float)
    assert settings.rank_gap == 120.0
    assert settings.ordering_passes == 8
    assert settings.store_dir == Path("snapshots")
    assert settings.node_height == 80.0


def test_bad_values_keep_defaults(caplog):
    with caplog.at_level(logging.WARNING):
        settings = settings_from_mapping({"node_width": "wide", "ordering_passes": True, "collection_key": ""})

    assert settings.node_width == 180.0
    assert settings.ordering_passes == 4
    assert settings.collection_key == COLLECTION_KEY
    assert "Invalid value for setting 'node_width'" in caplog.text


def test_negative_passes_clamped():
    assert settings_from_mapping({"ordering_passes": -3}).ordering_passes == 0


def test_malformed_yaml_gives_defaults(tmp_path: Path, caplog):
    path = tmp_path / "ropaflow.yml"
    path.write_text("node_width: [unclosed\n", encoding="utf-8")
    with caplog.at_level(logging.WARNING):
        assert load_settings(path) == Settings()
    assert "Could not read settings" in caplog.text


def test_non_mapping_yaml_gives_defaults(tmp_path: Path):
    path = tmp_path / "ropaflow.yml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    assert load_settings(path) == Settings()
