"""Tests for services/token_usage.py: extraction and aggregation."""

from __future__ import annotations

from types import SimpleNamespace

from services.token_usage import extract_usage_from_response, sum_message_usage


class TestExtractUsageFromResponse:
    def test_usage_metadata(self):
        resp = SimpleNamespace(usage_metadata={"input_tokens": 100, "output_tokens": 50})
        assert extract_usage_from_response(resp) == {
            "input_tokens": 100,
            "output_tokens": 50,
            "total_tokens": 150,
        }

    def test_falls_back_to_token_usage(self):
        resp = SimpleNamespace(
            usage_metadata=None,
            response_metadata={"token_usage": {"prompt_tokens": 7, "completion_tokens": 2}},
        )
        assert extract_usage_from_response(resp)["total_tokens"] == 9

    def test_none_values_count_as_zero(self):
        resp = SimpleNamespace(usage_metadata={"input_tokens": None, "output_tokens": 4})
        assert extract_usage_from_response(resp)["input_tokens"] == 0

    def test_no_usage_is_none(self):
        assert extract_usage_from_response(SimpleNamespace()) is None
        assert extract_usage_from_response(SimpleNamespace(usage_metadata={}, response_metadata={})) is None


class TestSumMessageUsage:
    def test_counts_assistant_messages_only(self):
        messages = [
            SimpleNamespace(role="user", prompt_tokens=None, completion_tokens=None),
            SimpleNamespace(role="assistant", prompt_tokens=10, completion_tokens=5),
            SimpleNamespace(role="system", prompt_tokens=None, completion_tokens=None),
            SimpleNamespace(role="assistant", prompt_tokens=20, completion_tokens=None),
        ]
        assert sum_message_usage(messages) == {
            "prompt_tokens": 30,
            "completion_tokens": 5,
            "total_tokens": 35,
            "replies": 2,
        }

    def test_empty(self):
        assert sum_message_usage([])["replies"] == 0
