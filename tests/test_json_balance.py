"""Tests for the tool-argument bracket balance check."""

import pytest

from ccrouter.messages.json_balance import is_balanced_json


class TestIsBalancedJson:
    """Tests for is_balanced_json."""

    @pytest.mark.parametrize(
        "text",
        ['{"a": 1}', '[1, 2, {"b": [3]}]', "{}", '"plain"', ""],
    )
    def test_balanced_fragments(self, text):
        """Test that closed structures are accepted."""
        assert is_balanced_json(text) is True

    @pytest.mark.parametrize(
        "text",
        ['{"a": ', '{"a": [1, 2}', "[", '{"a": {"b": 1}'],
    )
    def test_unclosed_fragments(self, text):
        """Test that fragments with open brackets are rejected."""
        assert is_balanced_json(text) is False

    def test_rejects_close_before_open(self):
        """Test that a count going negative is rejected even if it ends at zero."""
        assert is_balanced_json("}{") is False
        assert is_balanced_json("][") is False

    def test_does_not_validate_json(self):
        """Test that balanced but invalid JSON still passes."""
        assert is_balanced_json("{not json}") is True
