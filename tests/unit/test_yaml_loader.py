from __future__ import annotations

import io

import pytest
import yaml

from kinesim.yaml_loader import load_document


class TestLoadDocument:
    """Joint-named documents are read with YAML 1.2 booleans."""

    @pytest.mark.parametrize("word", ["yes", "no", "on", "off", "Yes", "OFF", "y"])
    def test_yaml11_boolean_words_stay_text(self, word: str) -> None:
        assert load_document(f"{word}: {word}") == {word: word}

    @pytest.mark.parametrize(
        ("text", "expected"),
        [("true", True), ("False", False), ("TRUE", True), ("tree", "tree")],
    )
    def test_true_and_false(self, text: str, expected: object) -> None:
        assert load_document(text) == expected

    def test_numbers_and_nulls_unchanged(self) -> None:
        assert load_document("[1, 2.5, .inf, ~, 0x10]") == [
            1,
            2.5,
            float("inf"),
            None,
            16,
        ]

    def test_reads_streams(self) -> None:
        assert load_document(io.StringIO("- {pos-of: j1}\n")) == [{"pos-of": "j1"}]

    def test_safe_loader_is_unchanged(self) -> None:
        assert yaml.safe_load("on") is True

    def test_rejects_python_tags(self) -> None:
        with pytest.raises(yaml.YAMLError):
            load_document("!!python/object/apply:os.getcwd []")
