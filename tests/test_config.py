"""Unit tests for configuration dataclasses and the parameter dictionary."""

from __future__ import annotations

import logging

import pytest

from roiquant.core.config import AnalysisConfig, ParameterDictionary, SizeFilterConfig
from roiquant.core.utils import setup_logging, validate_file_path


def test_parse_simple_and_multi_valued_entries() -> None:
    params = ParameterDictionary()
    assert params.parse_parameter_line("window_size=32")
    assert params.parse_parameter_line("channels=dapi, gfp,rfp")

    assert params.get_int("window_size") == 32
    assert params.value_count("channels") == 3
    assert params.get_values("channels") == ["dapi", "gfp", "rfp"]
    assert params.get_value("channels", 1) == "gfp"


def test_malformed_entries_are_skipped_with_warning(caplog) -> None:
    params = ParameterDictionary()
    lines = ["# comment", "", "min_size=5", "no equals sign", "bad=value;rm", "max_size=50"]

    with caplog.at_level(logging.WARNING, logger="roiquant.core.config"):
        added = params.parse_parameter_lines(lines)

    assert added == 2
    assert params.keys() == ["min_size", "max_size"]
    assert "malformed" in caplog.text


def test_add_value_appends_and_set_value_replaces() -> None:
    params = ParameterDictionary()
    params.add_value("size", 3)
    params.add_value("size", 5)
    assert params.get_values("size") == ["3", "5"]

    params.set_value("size", 7)
    assert params.get_values("size") == ["7"]

    params.add_if_not_set("size", 9)
    params.add_if_not_set("overlap", 0.25)
    assert params.get_int("size") == 7
    assert params.get_float("overlap") == pytest.approx(0.25)


def test_boolean_values_are_normalized() -> None:
    params = ParameterDictionary({"binary": True, "rescale": "FALSE"})
    params.parse_parameter_line("verbose=True")

    assert params.get_value("binary") == "true"
    assert params.get_value("rescale") == "false"
    assert params.has_key_and_true("verbose")
    assert not params.has_key_and_true("rescale")
    assert not params.has_key_and_true("missing")


def test_missing_key_and_index_raise() -> None:
    params = ParameterDictionary({"a": 1})
    with pytest.raises(KeyError):
        params.get_value("b")
    with pytest.raises(IndexError):
        params.get_value("a", 2)


def test_discard_illegal_arguments() -> None:
    params = ParameterDictionary({"min_size": 5, "max_size": 50, "typo": 1})
    discarded = params.discard_illegal_arguments(["min_size", "max_size"])

    assert discarded == ["typo"]
    assert "typo" not in params
    assert len(params) == 2


def test_to_dict_and_yaml_loading(tmp_path) -> None:
    path = tmp_path / "params.yaml"
    path.write_text("window_size: 16\nchannels:\n  - dapi\n  - gfp\n")

    params = ParameterDictionary.from_yaml(path)

    assert params.to_dict() == {"window_size": "16", "channels": ["dapi", "gfp"]}
    params.remove("channels")
    assert not params.has_key("channels")


def test_analysis_config_yaml_round_trip(tmp_path) -> None:
    config = AnalysisConfig(size_filter=SizeFilterConfig(min_size=2, max_size=20))
    config.threshold.window_size = 32
    config.log_level = "DEBUG"
    path = tmp_path / "config.yaml"

    config.save(path)
    loaded = AnalysisConfig.load(path)

    assert loaded.to_dict() == config.to_dict()


def test_analysis_config_json_round_trip(tmp_path) -> None:
    config = AnalysisConfig()
    config.clustering.max_iterations = 4
    path = tmp_path / "config.json"

    config.save(path)
    assert AnalysisConfig.load(path).clustering.max_iterations == 4


def test_from_dict_warns_on_unknown_settings(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="roiquant.core.config"):
        config = AnalysisConfig.from_dict({"size_filter": {"min_size": 3, "colour": "red"}})

    assert config.size_filter.min_size == 3
    assert config.size_filter.max_size == 50
    assert "colour" in caplog.text


def test_validate_file_path(tmp_path) -> None:
    good = tmp_path / "image.tif"
    good.write_bytes(b"")
    assert validate_file_path(good, [".tif", ".tiff"]) == good

    with pytest.raises(FileNotFoundError):
        validate_file_path(tmp_path / "missing.tif", [".tif"])
    with pytest.raises(ValueError):
        validate_file_path(good, [".png"])


def test_setup_logging_rejects_unknown_level() -> None:
    with pytest.raises(ValueError):
        setup_logging(log_level="LOUD")
