"""Tests for deadscan.config.validation."""

from __future__ import annotations

from deadscan.config.validation import validate_config


class TestValidateConfig:
    """Tests for validate_config."""

    def test_valid_config_has_no_warnings(self) -> None:
        data = {
            "data_dir": "/data",
            "store": "file",
            "ignore": ["gen/**"],
            "analyzer": {"scitools_dir": "/opt", "script": "u.pl", "timeout": 1.5},
            "git": {"binary": "git", "timeout": 10, "depth": 1},
            "queue": {"max_pending": 0},
            "scheduler": {"max_workers": 1},
        }

        assert validate_config(data, source="deadscan.yml") == []

    def test_unknown_top_level_key_with_suggestion(self) -> None:
        warnings = validate_config({"analyser": {}}, source="deadscan.yml")

        assert len(warnings) == 1
        assert warnings[0].key == "analyser"
        assert warnings[0].suggestion == "analyzer"
        assert warnings[0].source == "deadscan.yml"

    def test_unknown_section_key_with_suggestion(self) -> None:
        warnings = validate_config({"queue": {"max_pendng": 5}}, source="x")

        assert warnings[0].key == "queue.max_pendng"
        assert warnings[0].suggestion == "queue.max_pending"

    def test_wrong_types(self) -> None:
        warnings = validate_config(
            {
                "data_dir": 5,
                "ignore": "gen/**",
                "analyzer": {"timeout": "ten"},
                "git": {"depth": True},
                "scheduler": [],
            },
            source="x",
        )

        assert {w.key for w in warnings} == {
            "data_dir",
            "ignore",
            "analyzer.timeout",
            "git.depth",
            "scheduler",
        }

    def test_invalid_store(self) -> None:
        warnings = validate_config({"store": "memroy"}, source="x")

        assert warnings[0].key == "store"
        assert warnings[0].suggestion == "memory"

    def test_non_mapping_document(self) -> None:
        warnings = validate_config(["a"], source="x")  # type: ignore[arg-type]

        assert len(warnings) == 1
        assert "mapping" in warnings[0].message
