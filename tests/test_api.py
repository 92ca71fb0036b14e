"""Tests for the FastAPI endpoints (OCR and interpretation mocked)."""

from decimal import Decimal
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from easysplit.api import app, get_settings
from easysplit.config import Settings
from easysplit.interpret import InterpretationResult
from easysplit.ocr import ExtractionResult

AUTH = {"Authorization": "Bearer test-key"}
RECEIPT_JSON = {
    "items": [{"name": "Burger", "unit_price": "10.00"}, {"name": "Fries", "unit_price": "4.00"}],
    "subtotal": "14.00",
    "tax": "1.12",
    "tip": "2.10",
    "total": "17.22",
}


@pytest.fixture
def client(settings):
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def _png_upload():
    return {"file": ("receipt.png", b"\x89PNG small", "image/png")}


class TestAuth:
    def test_root_is_open(self, client):
        assert client.get("/").json() == {"message": "EasySplit API is running"}

    def test_missing_token(self, client):
        response = client.post("/individual-breakdown", json={"receipt": RECEIPT_JSON})
        assert response.status_code in (401, 403)

    def test_wrong_token(self, client):
        response = client.post("/individual-breakdown", json={"receipt": RECEIPT_JSON}, headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_unconfigured_key(self):
        app.dependency_overrides[get_settings] = lambda: Settings(api_key=None)
        try:
            response = TestClient(app).post("/individual-breakdown", json={"receipt": RECEIPT_JSON}, headers=AUTH)
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 500


class TestReceiptProcessing:
    def test_process_receipt(self, client):
        with patch("easysplit.api.ocr.extract_receipt_text", return_value=ExtractionResult(success=True, text="BURGER 10.00")) as extract:
            response = client.post("/process-receipt", files=_png_upload(), headers=AUTH)
        assert response.status_code == 200
        assert response.json()["text"] == "BURGER 10.00"
        assert extract.call_args.args[1] == "image/png"

    def test_wrong_file_type_rejected_before_ocr(self, client):
        with patch("easysplit.api.ocr.extract_receipt_text") as extract:
            response = client.post("/process-receipt", files={"file": ("r.gif", b"GIF89a", "image/gif")}, headers=AUTH)
        assert response.status_code == 400
        extract.assert_not_called()

    def test_ocr_failure(self, client):
        with patch("easysplit.api.ocr.extract_receipt_text", return_value=ExtractionResult(success=False, error="no text")):
            response = client.post("/process-receipt", files=_png_upload(), headers=AUTH)
        assert response.status_code == 502

    def test_interpret_receipt(self, client):
        result = InterpretationResult.model_validate({"success": True, "interpretation": RECEIPT_JSON})
        with patch("easysplit.api.interpret.interpret_receipt_text", return_value=result):
            response = client.post("/interpret-receipt", json={"ocr_text": "BURGER 10.00"}, headers=AUTH)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert Decimal(body["interpretation"]["total"]) == Decimal("17.22")

    def test_interpret_empty_text(self, client):
        response = client.post("/interpret-receipt", json={"ocr_text": "  "}, headers=AUTH)
        assert response.status_code == 400

    def test_upload_receipt_runs_both_stages(self, client):
        result = InterpretationResult.model_validate({"success": True, "interpretation": RECEIPT_JSON})
        with patch("easysplit.api.ocr.extract_receipt_text", return_value=ExtractionResult(success=True, text="BURGER 10.00")), \
             patch("easysplit.api.interpret.interpret_receipt_text", return_value=result) as interpret:
            response = client.post("/upload-receipt", files=_png_upload(), headers=AUTH)
        assert response.status_code == 200
        assert [i["name"] for i in response.json()["items"]] == ["Burger", "Fries"]
        assert interpret.call_args.args[0] == "BURGER 10.00"

    def test_upload_receipt_interpretation_failure(self, client):
        with patch("easysplit.api.ocr.extract_receipt_text", return_value=ExtractionResult(success=True, text="???")), \
             patch("easysplit.api.interpret.interpret_receipt_text", return_value=InterpretationResult(success=False, error="bad")):
            response = client.post("/upload-receipt", files=_png_upload(), headers=AUTH)
        assert response.status_code == 502


class TestCalculations:
    def test_calculate_share_scenario_a(self, client):
        response = client.post("/calculate-share", json={
            "receipt": RECEIPT_JSON,
            "selected_items": [{"index": 0}],
        }, headers=AUTH)
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["subtotal"]) == Decimal("10.00")
        assert round(Decimal(body["user_share"]), 2) == Decimal("12.30")
        assert body["selected_items"][0]["name"] == "Burger"

    def test_calculate_share_custom_amount(self, client):
        response = client.post("/calculate-share", json={"receipt": RECEIPT_JSON, "custom_amount": "25.50"}, headers=AUTH)
        assert response.status_code == 200
        assert Decimal(response.json()["subtotal"]) == Decimal("25.50")

    def test_calculate_share_numeric_custom_amount(self, client):
        response = client.post("/calculate-share", json={"receipt": RECEIPT_JSON, "custom_amount": 25.5}, headers=AUTH)
        assert response.status_code == 200
        assert Decimal(response.json()["subtotal"]) == Decimal("25.5")

    def test_calculate_share_nothing_selected(self, client):
        response = client.post("/calculate-share", json={"receipt": RECEIPT_JSON}, headers=AUTH)
        assert response.status_code == 400

    def test_calculate_share_unknown_item(self, client):
        response = client.post("/calculate-share", json={"receipt": RECEIPT_JSON, "selected_items": [{"index": 5}]}, headers=AUTH)
        assert response.status_code == 400

    def test_amend_receipt(self, client):
        response = client.post("/amend-receipt", json={
            "receipt": RECEIPT_JSON, "field": "tax", "value": "10", "is_percentage": True,
        }, headers=AUTH)
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["tax"]) == Decimal("1.40")
        assert Decimal(body["total"]) == Decimal("17.50")

    @pytest.mark.parametrize("value, is_percentage, expected_tax", [(8.5, True, "1.19"), (2, False, "2")])
    def test_amend_receipt_numeric_value(self, client, value, is_percentage, expected_tax):
        response = client.post("/amend-receipt", json={
            "receipt": RECEIPT_JSON, "field": "tax", "value": value, "is_percentage": is_percentage,
        }, headers=AUTH)
        assert response.status_code == 200
        assert Decimal(response.json()["tax"]) == Decimal(expected_tax)

    def test_amend_receipt_non_numeric_text(self, client):
        response = client.post("/amend-receipt", json={
            "receipt": RECEIPT_JSON, "field": "tax", "value": "1e2", "is_percentage": True,
        }, headers=AUTH)
        assert response.status_code == 400

    def test_amend_receipt_invalid(self, client):
        response = client.post("/amend-receipt", json={
            "receipt": RECEIPT_JSON, "field": "tip", "value": "-1", "is_percentage": False,
        }, headers=AUTH)
        assert response.status_code == 400

    def test_individual_breakdown(self, client):
        response = client.post("/individual-breakdown", json={"receipt": RECEIPT_JSON}, headers=AUTH)
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["tip_rate"]) == Decimal("0.15")
        assert len(body["items"]) == 2
