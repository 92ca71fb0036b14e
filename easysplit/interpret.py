# easysplit/interpret.py
import json
import re
import time
from typing import Any, Optional

from google import genai
from google.genai import types
from loguru import logger
from pydantic import BaseModel, ValidationError

from .config import Settings, get_gemini_config
from .models import Receipt

FUNCTION_NAME = "interpret_receipt"


class InterpretationResult(BaseModel):
    success: bool
    interpretation: Optional[Receipt] = None
    error: Optional[str] = None


def create_flattened_schema() -> dict[str, Any]:
    """
    JSON schema for the receipt, written out by hand because Gemini's
    function declarations reject the $ref/$defs pydantic would generate.
    """
    return {
        "type": "object",
        "properties": {
            "items": {
                "type": "array",
                "description": "Every food or drink item on the receipt",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {
                            "type": "string",
                            "description": "Complete, meaningful item name without quantities or item codes"
                        },
                        "price": {
                            "type": "number",
                            "description": "Price of the item line, without the currency symbol"
                        }
                    },
                    "required": ["name", "price"]
                }
            },
            "subtotal": {
                "type": "number",
                "description": "Subtotal before tax and tip"
            },
            "tax": {
                "type": "number",
                "description": "Tax amount, 0 if none is printed"
            },
            "tip": {
                "type": "number",
                "description": "Tip or gratuity amount, 0 if none is printed"
            },
            "total": {
                "type": "number",
                "description": "The final grand total"
            }
        },
        "required": ["items"]
    }


def generate_interpretation_prompt(ocr_text: str) -> str:
    return f"""You are a professional receipt parsing assistant. Carefully analyse the OCR text of a restaurant receipt and call the `{FUNCTION_NAME}` function with what you find.

Rules:
1. Find every food and drink item and its price.
2. Item names must be complete and meaningful (drop item numbers and quantities).
3. Prices are plain numbers without the currency symbol.
4. Identify the subtotal, tax, tip and total. If the subtotal is not printed, use the sum of the item prices.
5. If tax or tip is not on the receipt, use 0.

Receipt text:

{ocr_text}
"""


def strip_code_fences(text: str) -> str:
    return re.sub(r"```(?:json)?\n?|\n?```", "", text).strip()


def parse_interpretation(payload: Any) -> InterpretationResult:
    """Validate the model's output, either a dict of function-call args or a JSON string."""
    if isinstance(payload, str):
        try:
            payload = json.loads(strip_code_fences(payload))
        except json.JSONDecodeError as e:
            logger.error(f"Error parsing interpretation response: {e}")
            return InterpretationResult(success=False, error=f"Failed to parse receipt interpretation: {e}")
    if not isinstance(payload, dict):
        return InterpretationResult(success=False, error="Receipt interpretation is not a JSON object.")
    try:
        receipt = Receipt.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Interpretation failed validation: {e}")
        return InterpretationResult(success=False, error=f"Receipt interpretation is malformed: {e.error_count()} invalid field(s).")
    return InterpretationResult(success=True, interpretation=receipt)


def _function_call_args(response: Any) -> Optional[dict[str, Any]]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates or not candidates[0].content or not candidates[0].content.parts:
        return None
    for part in candidates[0].content.parts:
        function_call = getattr(part, "function_call", None)
        if function_call and function_call.name == FUNCTION_NAME:
            return dict(function_call.args or {})
    return None


def interpret_receipt_text(ocr_text: str, settings: Settings) -> InterpretationResult:
    """Turn OCR text into a structured Receipt with Gemini function calling."""
    if not ocr_text or not ocr_text.strip():
        return InterpretationResult(success=False, error="No OCR text provided")

    start_time = time.time()
    try:
        gemini_api_key, model_name = get_gemini_config(settings)
        client = genai.Client(api_key=gemini_api_key)

        receipt_function = {
            "name": FUNCTION_NAME,
            "description": "Records the structured items and totals of a restaurant receipt.",
            "parameters": create_flattened_schema()
        }
        config_obj = types.GenerateContentConfig(
            tools=[types.Tool(function_declarations=[receipt_function])],
            temperature=0.1,
            max_output_tokens=1000
        )

        logger.info("Interpreting OCR text with Gemini...")
        response = client.models.generate_content(
            model=model_name,
            contents=[generate_interpretation_prompt(ocr_text)],
            config=config_obj,
        )
    except Exception as e:
        logger.error(f"An error occurred calling Gemini API: {e}")
        return InterpretationResult(success=False, error=f"Gemini API call failed: {e}")

    logger.info(f"Gemini interpretation received in {time.time() - start_time:.2f} seconds.")
    args = _function_call_args(response)
    if args is not None:
        return parse_interpretation(args)

    # Some models answer with the JSON as text instead of calling the function
    text = getattr(response, "text", None)
    if text:
        logger.warning("Model did not return a function call, parsing the text reply instead.")
        return parse_interpretation(text)
    logger.error("Error: Model did not return a valid function call.")
    return InterpretationResult(success=False, error="Model did not return the expected function call structure.")
