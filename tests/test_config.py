"""Tests for pipeline configuration parsing."""

from __future__ import annotations

import json
import logging

import pytest

from tableprep.config import (
    EncodingOptions,
    GeoOptions,
    OutlierOptions,
    PipelineConfiguration,
)


class TestDefaults:
    """Tests for the default configuration."""

    def test_default_toggles(self):
        config = PipelineConfiguration()
        assert config.remove_duplicates is True
        assert config.handle_missing is True
        assert config.missing_strategy == "remove"
        assert config.outlier.enabled is False
        assert config.encoding.enabled is False
        assert config.scaling.enabled is False
        assert config.model.enabled is False

    def test_config_is_immutable(self):
        config = PipelineConfiguration()
        with pytest.raises(AttributeError):
            config.target_column = "y"  # type: ignore[misc]


class TestFromDict:
    """Tests for camelCase parsing."""

    def test_nested_camel_case_keys(self):
        config = PipelineConfiguration.from_dict(
            {
                "targetColumn": "price",
                "missingStrategy": "mean",
                "outlier": {"enabled": True, "method": "zscore", "threshold": 3},
                "scaling": {"enabled": True, "method": "minmax", "featureRange": [0, 10]},
                "features": {"lag": {"enabled": True, "column": "sales", "periods": [1, 7]}},
            }
        )
        assert config.target_column == "price"
        assert config.missing_strategy == "mean"
        assert config.outlier == OutlierOptions(enabled=True, method="zscore", threshold=3)
        assert config.scaling.feature_range == (0, 10)
        assert config.features.lag.periods == (1, 7)

    def test_invalid_choice_rejected(self):
        with pytest.raises(ValueError, match="Invalid EncodingOptions.method 'fancy'"):
            EncodingOptions.from_dict({"method": "fancy"})

    def test_invalid_missing_strategy_rejected(self):
        with pytest.raises(ValueError, match="missingStrategy"):
            PipelineConfiguration.from_dict({"missingStrategy": "guess"})

    def test_aliases(self):
        geo = GeoOptions.from_dict({"method": "h3"})
        assert geo.method == "hex"
        config = PipelineConfiguration.from_dict(
            {"features": {"binning": {"method": "equal"}}}
        )
        assert config.features.binning.method == "uniform"

    def test_unknown_keys_warn(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tableprep.config"):
            config = PipelineConfiguration.from_dict({"colour": "blue"})
        assert config == PipelineConfiguration()
        assert "colour" in caplog.text

    def test_tolerance_bounds(self):
        with pytest.raises(ValueError, match="nearDuplicateTolerance"):
            PipelineConfiguration(near_duplicate_tolerance=1.5)

    def test_to_dict_round_trip(self):
        config = PipelineConfiguration.from_dict(
            {"encoding": {"enabled": True, "method": "label", "selectedColumns": ["city"]}}
        )
        data = config.to_dict()
        assert data["encoding"]["selectedColumns"] == ["city"]
        assert PipelineConfiguration.from_dict(data) == config


class TestFromJsonFile:
    """Tests for reading configuration files."""

    def test_reads_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"removeNearDuplicates": True, "caseType": "title"}))
        config = PipelineConfiguration.from_json_file(path)
        assert config.remove_near_duplicates is True
        assert config.case_type == "title"

    def test_non_object_rejected(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError, match="must contain a JSON object"):
            PipelineConfiguration.from_json_file(path)
