# easysplit/api.py
import os
from decimal import Decimal
from typing import List, Optional, Union

from dotenv import load_dotenv

# Load environment variables first
dotenv_path = os.path.join(os.path.dirname(__file__), '../.env')
load_dotenv(dotenv_path)

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from pydantic import BaseModel, Field

from . import interpret, ocr, split_logic
from .config import Settings, configure_logging, load_settings
from .errors import InvalidAmendmentError, NoSelectionError, UploadRejected
from .models import (
    AmendmentField,
    BillTotals,
    IndividualBreakdown,
    Receipt,
    SelectableItem,
    SelectionStyle,
)

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings(dotenv_path)
        configure_logging(_settings.log_level)
    return _settings


# --- API Key Authentication ---
security_scheme = HTTPBearer()

async def get_api_key(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
    settings: Settings = Depends(get_settings),
):
    if not settings.api_key:
        logger.error("API_KEY environment variable is not set; refusing all requests.")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="API key is not configured")
    # Expecting a Bearer token that matches the API_KEY
    if credentials.scheme != "Bearer" or credentials.credentials != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API Key",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials

# --- FastAPI App Instance ---
app = FastAPI(
    title="EasySplit API",
    description="API for scanning receipts and calculating one diner's share of the bill.",
    version="1.0.0",
    docs_url=None,
    redoc_url=None,
    openapi_url=None
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Request / response bodies ---
class InterpretRequest(BaseModel):
    ocr_text: str

class AmendRequest(BaseModel):
    receipt: Receipt
    field: AmendmentField
    value: Union[str, float]
    is_percentage: bool = True

class ItemSelection(BaseModel):
    index: int = Field(ge=0, description="Position of the item on the receipt")
    share_count: int = Field(default=1, ge=1)

class CalculateShareRequest(BaseModel):
    receipt: Receipt
    selected_items: List[ItemSelection] = Field(default_factory=list)
    custom_amount: Optional[Union[str, float]] = None
    style: SelectionStyle = SelectionStyle.SHARED

class BreakdownRequest(BaseModel):
    receipt: Receipt


async def _read_upload(file: UploadFile, settings: Settings) -> tuple[bytes, str]:
    data = await file.read()
    try:
        ocr.validate_upload(file.filename or "upload", file.content_type, len(data), settings)
        return ocr.prepare_document(data, file.content_type, settings)
    except UploadRejected as e:
        raise HTTPException(status_code=400, detail=e.message)


# --- API Endpoints ---

@app.post("/process-receipt", response_model=ocr.ExtractionResult)
async def process_receipt(
    file: UploadFile = File(...),
    api_key: str = Depends(get_api_key),
    settings: Settings = Depends(get_settings),
):
    data, content_type = await _read_upload(file, settings)
    result = ocr.extract_receipt_text(data, content_type, settings)
    if not result.success:
        raise HTTPException(status_code=502, detail=f"Processing error: {result.error}")
    return result


@app.post("/interpret-receipt", response_model=interpret.InterpretationResult)
async def interpret_receipt(
    request: InterpretRequest,
    api_key: str = Depends(get_api_key),
    settings: Settings = Depends(get_settings),
):
    if not request.ocr_text.strip():
        raise HTTPException(status_code=400, detail="No OCR text provided")
    result = interpret.interpret_receipt_text(request.ocr_text, settings)
    if not result.success:
        raise HTTPException(status_code=502, detail=f"Parsing error: {result.error}")
    return result


@app.post("/upload-receipt", response_model=Receipt)
async def upload_receipt(
    file: UploadFile = File(...),
    api_key: str = Depends(get_api_key),
    settings: Settings = Depends(get_settings),
):
    data, content_type = await _read_upload(file, settings)
    extraction = ocr.extract_receipt_text(data, content_type, settings)
    if not extraction.success:
        raise HTTPException(status_code=502, detail=f"Processing error: {extraction.error}")
    result = interpret.interpret_receipt_text(extraction.text, settings)
    if not result.success:
        raise HTTPException(status_code=502, detail=f"Parsing error: {result.error}")
    return result.interpretation


@app.post("/amend-receipt", response_model=Receipt)
async def amend_receipt(request: AmendRequest, api_key: str = Depends(get_api_key)):
    try:
        return split_logic.amend_receipt(request.receipt, request.field, request.value, request.is_percentage)
    except InvalidAmendmentError as e:
        raise HTTPException(status_code=400, detail=e.message)


@app.post("/calculate-share", response_model=BillTotals)
async def calculate_share(request: CalculateShareRequest, api_key: str = Depends(get_api_key)):
    items = SelectableItem.from_receipt(request.receipt)
    for selection in request.selected_items:
        if selection.index >= len(items):
            raise HTTPException(status_code=400, detail=f"Item index {selection.index} is not on the receipt.")
        items[selection.index].selected = True
        items[selection.index].share_count = selection.share_count

    custom_amount: Optional[Decimal] = split_logic.parse_custom_amount(request.custom_amount)
    try:
        return split_logic.calculate_my_share(request.receipt, items, custom_amount, request.style)
    except NoSelectionError as e:
        raise HTTPException(status_code=400, detail=e.message)


@app.post("/individual-breakdown", response_model=IndividualBreakdown)
async def individual_breakdown(request: BreakdownRequest, api_key: str = Depends(get_api_key)):
    return split_logic.calculate_individual_breakdown(request.receipt)


@app.get("/")
async def read_root():
    return {"message": "EasySplit API is running"}
