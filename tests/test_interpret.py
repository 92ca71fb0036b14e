"""Tests for receipt interpretation (mocked Gemini client)."""

import json
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from easysplit.config import Settings
from easysplit.interpret import (
    FUNCTION_NAME,
    create_flattened_schema,
    interpret_receipt_text,
    parse_interpretation,
    strip_code_fences,
)

PAYLOAD = {
    "items": [{"name": "Burger", "price": 10.0}, {"name": "Fries", "price": 4.0}],
    "subtotal": 14.0,
    "tax": 1.12,
    "tip": 2.1,
    "total": 17.22,
}


def _function_call_response(args, name=FUNCTION_NAME):
    part = SimpleNamespace(function_call=SimpleNamespace(name=name, args=args))
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))], text=None)


def _text_response(text):
    return SimpleNamespace(candidates=[], text=text)


class TestParseInterpretation:
    def test_dict_payload(self):
        result = parse_interpretation(PAYLOAD)
        assert result.success
        assert result.interpretation.subtotal == Decimal("14.0")
        assert [i.name for i in result.interpretation.items] == ["Burger", "Fries"]

    def test_json_in_markdown_fences(self):
        text = "```json\n" + json.dumps(PAYLOAD) + "\n```"
        result = parse_interpretation(text)
        assert result.success
        assert result.interpretation.tax == Decimal("1.12")

    def test_unparseable_text(self):
        result = parse_interpretation("Sorry, I cannot read this receipt.")
        assert not result.success
        assert "parse" in result.error

    def test_json_array_is_rejected(self):
        result = parse_interpretation("[1, 2, 3]")
        assert not result.success

    def test_invalid_fields_are_rejected(self):
        result = parse_interpretation({"items": [{"name": "X", "price": "free"}]})
        assert not result.success
        assert result.interpretation is None

    @pytest.mark.parametrize("items", [5, "Burger 10.00", {"name": "Burger", "price": 10}, [5]])
    def test_items_that_are_not_a_list_of_objects_are_rejected(self, items):
        payload = {"items": items, "subtotal": 1, "total": 1}
        assert not parse_interpretation(payload).success
        assert not parse_interpretation(json.dumps(payload)).success


def test_strip_code_fences():
    assert strip_code_fences("```json\n{}\n```") == "{}"
    assert strip_code_fences("```\n{}\n```") == "{}"
    assert strip_code_fences(" {} ") == "{}"


def test_schema_has_no_refs():
    schema = create_flattened_schema()
    assert "$defs" not in json.dumps(schema)
    assert set(schema["properties"]) == {"items", "subtotal", "tax", "tip", "total"}


class TestInterpretReceiptText:
    def test_function_call_response(self):
        settings = Settings(gemini_api_key="key")
        with patch("easysplit.interpret.genai.Client") as client_cls:
            client_cls.return_value.models.generate_content.return_value = _function_call_response(PAYLOAD)
            result = interpret_receipt_text("BURGER 10.00", settings)
        assert result.success
        assert result.interpretation.total == Decimal("17.22")
        client_cls.assert_called_once_with(api_key="key")
        kwargs = client_cls.return_value.models.generate_content.call_args.kwargs
        assert kwargs["model"] == settings.gemini_model_name
        assert "BURGER 10.00" in kwargs["contents"][0]

    def test_text_fallback(self):
        with patch("easysplit.interpret.genai.Client") as client_cls:
            client_cls.return_value.models.generate_content.return_value = _text_response("```json\n" + json.dumps(PAYLOAD) + "\n```")
            result = interpret_receipt_text("BURGER 10.00", Settings(gemini_api_key="key"))
        assert result.success

    def test_unexpected_function_is_failure(self):
        with patch("easysplit.interpret.genai.Client") as client_cls:
            client_cls.return_value.models.generate_content.return_value = _function_call_response(PAYLOAD, name="other")
            result = interpret_receipt_text("BURGER 10.00", Settings(gemini_api_key="key"))
        assert not result.success

    def test_api_error_is_failure(self):
        with patch("easysplit.interpret.genai.Client") as client_cls:
            client_cls.return_value.models.generate_content.side_effect = RuntimeError("quota exceeded")
            result = interpret_receipt_text("BURGER 10.00", Settings(gemini_api_key="key"))
        assert not result.success
        assert "quota exceeded" in result.error

    def test_missing_api_key(self):
        result = interpret_receipt_text("BURGER 10.00", Settings(gemini_api_key=None))
        assert not result.success
        assert "GEMINI_API_KEY" in result.error

    def test_empty_text_skips_api(self):
        with patch("easysplit.interpret.genai.Client") as client_cls:
            result = interpret_receipt_text("   ", Settings(gemini_api_key="key"))
        assert not result.success
        client_cls.assert_not_called()
