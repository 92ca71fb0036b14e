# easysplit/workflow.py
"""Step-by-step flow of one split: upload, optional tax/tip entry, mode, selection, summary.

The workflow owns all of the mutable state of a session (receipt, item
selection, share counts, the custom amount) and calls the pure calculators in
:mod:`easysplit.split_logic` at each transition. The OCR and interpretation
services are injected as plain callables so the same flow runs against the
HTTP API, the Gemini functions directly, or test doubles.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional

from loguru import logger
from pydantic import BaseModel

from .config import Settings
from .errors import (
    ExtractionFailed,
    InterpretationFailed,
    InvalidTransitionError,
    NoSelectionError,
    UnknownItemError,
)
from .interpret import InterpretationResult
from .models import (
    AmendmentField,
    BillTotals,
    CalculationMode,
    IndividualBreakdown,
    Receipt,
    SelectableItem,
    SelectionStyle,
)
from .money import ZERO
from .ocr import ExtractionResult, validate_upload
from . import split_logic

Extractor = Callable[[bytes, str], ExtractionResult]
Interpreter = Callable[[str], InterpretationResult]


class WorkflowStep(str, Enum):
    UPLOAD = "upload"
    TAX_AMENDMENT = "tax_amendment"
    TIP_AMENDMENT = "tip_amendment"
    MODE_SELECT = "mode_select"
    INDIVIDUAL_BREAKDOWN = "individual_breakdown"
    ITEM_SELECTION = "item_selection"
    SETTLEMENT_SUMMARY = "settlement_summary"


STEP_NUMBERS = {
    WorkflowStep.UPLOAD: 1,
    WorkflowStep.TAX_AMENDMENT: 1,
    WorkflowStep.TIP_AMENDMENT: 1,
    WorkflowStep.MODE_SELECT: 2,
    WorkflowStep.INDIVIDUAL_BREAKDOWN: 3,
    WorkflowStep.ITEM_SELECTION: 3,
    WorkflowStep.SETTLEMENT_SUMMARY: 4,
}


@dataclass
class UploadedFile:
    name: str
    content_type: Optional[str]
    data: bytes


class WorkflowSnapshot(BaseModel):
    step: WorkflowStep
    step_number: int
    receipt: Optional[Receipt] = None
    mode: Optional[CalculationMode] = None
    selection_style: SelectionStyle = SelectionStyle.SHARED
    items: List[SelectableItem] = []
    custom_amount: Optional[Decimal] = None
    selection_subtotal: Decimal = ZERO
    breakdown: Optional[IndividualBreakdown] = None
    totals: Optional[BillTotals] = None


class Workflow:
    def __init__(self, extract: Extractor, interpret: Interpreter, settings: Optional[Settings] = None):
        self._extract = extract
        self._interpret = interpret
        self.settings = settings or Settings()
        self._reset()

    def _reset(self) -> None:
        self.step = WorkflowStep.UPLOAD
        self.receipt: Optional[Receipt] = None
        self.mode: Optional[CalculationMode] = None
        self.selection_style = SelectionStyle.SHARED
        self.items: List[SelectableItem] = []
        self.custom_amount_input = ""
        self.breakdown: Optional[IndividualBreakdown] = None
        self.totals: Optional[BillTotals] = None
        self._history: List[WorkflowStep] = []

    # --- helpers ---
    def _require(self, *steps: WorkflowStep) -> None:
        if self.step not in steps:
            allowed = ", ".join(s.value for s in steps)
            raise InvalidTransitionError(f"This action is only available at: {allowed} (current step: {self.step.value}).")

    def _advance(self, step: WorkflowStep) -> None:
        logger.info(f"Workflow: {self.step.value} -> {step.value}")
        self._history.append(self.step)
        self.step = step

    def _find_item(self, item_id: str) -> SelectableItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise UnknownItemError(f"Item {item_id} is not on this receipt.")

    def _step_after(self, step: WorkflowStep) -> WorkflowStep:
        if step == WorkflowStep.UPLOAD and self.settings.prompt_missing_tax and self.receipt.tax == 0:
            return WorkflowStep.TAX_AMENDMENT
        if step in (WorkflowStep.UPLOAD, WorkflowStep.TAX_AMENDMENT) and self.settings.prompt_missing_tip and self.receipt.tip == 0:
            return WorkflowStep.TIP_AMENDMENT
        return WorkflowStep.MODE_SELECT

    @property
    def step_number(self) -> int:
        return STEP_NUMBERS[self.step]

    @property
    def custom_amount(self) -> Optional[Decimal]:
        return split_logic.parse_custom_amount(self.custom_amount_input)

    # --- upload ---
    def upload(self, file: UploadedFile) -> Receipt:
        """Validate the file, run OCR then interpretation, and move past the upload step.

        Either both external stages succeed or the workflow stays at UPLOAD.
        """
        self._require(WorkflowStep.UPLOAD)
        validate_upload(file.name, file.content_type, len(file.data), self.settings)

        logger.info(f"Processing file: {file.name}, type: {file.content_type}, size: {len(file.data)}")
        try:
            extraction = self._extract(file.data, file.content_type)
        except Exception as e:
            logger.error(f"OCR collaborator raised: {e}")
            raise ExtractionFailed("Unable to process your receipt, please try again") from e
        if not extraction.success or not extraction.text:
            logger.error(f"Error processing receipt: {extraction.error}")
            raise ExtractionFailed("Unable to process your receipt, please try again")

        try:
            interpretation = self._interpret(extraction.text)
        except Exception as e:
            logger.error(f"Interpretation collaborator raised: {e}")
            raise InterpretationFailed("Unable to parse receipt content, please try again") from e
        if not interpretation.success or interpretation.interpretation is None:
            logger.error(f"Error interpreting receipt: {interpretation.error}")
            raise InterpretationFailed("Unable to parse receipt content, please try again")

        self.receipt = interpretation.interpretation
        self.mode = None
        self.items = []
        self.custom_amount_input = ""
        self.breakdown = None
        self.totals = None
        self._history = []
        self._advance(self._step_after(WorkflowStep.UPLOAD))
        return self.receipt

    def proceed_with_current_receipt(self) -> Receipt:
        """Leave the upload step again after going back to it, without re-uploading."""
        self._require(WorkflowStep.UPLOAD)
        if self.receipt is None:
            raise InvalidTransitionError("Please upload a receipt first.")
        self._advance(self._step_after(WorkflowStep.UPLOAD))
        return self.receipt

    # --- tax / tip amendment ---
    def submit_amendment(self, value, is_percentage: bool) -> Receipt:
        self._require(WorkflowStep.TAX_AMENDMENT, WorkflowStep.TIP_AMENDMENT)
        field = AmendmentField.TAX if self.step == WorkflowStep.TAX_AMENDMENT else AmendmentField.TIP
        self.receipt = split_logic.amend_receipt(self.receipt, field, value, is_percentage)
        self._advance(self._step_after(self.step))
        return self.receipt

    def skip_amendment(self) -> Receipt:
        self._require(WorkflowStep.TAX_AMENDMENT, WorkflowStep.TIP_AMENDMENT)
        self._advance(self._step_after(self.step))
        return self.receipt

    # --- mode ---
    def select_mode(self, mode: CalculationMode) -> None:
        self._require(WorkflowStep.MODE_SELECT)
        self.mode = CalculationMode(mode)
        if self.mode == CalculationMode.INDIVIDUAL:
            self.breakdown = split_logic.calculate_individual_breakdown(self.receipt)
            self._advance(WorkflowStep.INDIVIDUAL_BREAKDOWN)
        else:
            self.items = SelectableItem.from_receipt(self.receipt)
            self.custom_amount_input = ""
            self.selection_style = SelectionStyle.SHARED
            self._advance(WorkflowStep.ITEM_SELECTION)

    # --- item selection ---
    def toggle_item(self, item_id: str) -> SelectableItem:
        self._require(WorkflowStep.ITEM_SELECTION)
        item = self._find_item(item_id)
        item.selected = not item.selected
        return item

    def set_share_count(self, item_id: str, value) -> SelectableItem:
        """Set how many people split an item; blank or invalid input becomes 1."""
        self._require(WorkflowStep.ITEM_SELECTION)
        item = self._find_item(item_id)
        if not item.selected:
            logger.debug(f"Ignoring share count for unselected item {item_id}")
            return item
        item.share_count = split_logic.coerce_share_count(value)
        return item

    def set_custom_amount(self, value) -> Optional[Decimal]:
        self._require(WorkflowStep.ITEM_SELECTION)
        self.custom_amount_input = "" if value is None else str(value)
        return self.custom_amount

    def set_selection_style(self, style: SelectionStyle) -> None:
        self._require(WorkflowStep.ITEM_SELECTION)
        self.selection_style = SelectionStyle(style)

    def clear_selection(self) -> None:
        self._require(WorkflowStep.ITEM_SELECTION)
        for item in self.items:
            item.selected = False
            item.share_count = 1
        self.custom_amount_input = ""

    def selection_subtotal(self) -> Decimal:
        """Running subtotal of the current selection, 0 when nothing is selected."""
        try:
            subtotal, _ = split_logic.aggregate_selection(self.items, self.custom_amount, self.selection_style)
        except NoSelectionError:
            return ZERO
        return subtotal

    def confirm_selection(self) -> BillTotals:
        """Compute the settlement; raises NoSelectionError and stays put when nothing is selected."""
        self._require(WorkflowStep.ITEM_SELECTION)
        self.totals = split_logic.calculate_my_share(self.receipt, self.items, self.custom_amount, self.selection_style)
        self._advance(WorkflowStep.SETTLEMENT_SUMMARY)
        return self.totals

    # --- navigation ---
    def back(self) -> WorkflowStep:
        """Return to the previous step, keeping the receipt and dropping the settlement result."""
        if not self._history:
            raise InvalidTransitionError("There is no previous step.")
        previous = self._history.pop()
        logger.info(f"Workflow: {self.step.value} -> {previous.value} (back)")
        self.step = previous
        self.totals = None
        return self.step

    def start_over(self) -> None:
        logger.info("Workflow reset")
        self._reset()

    def snapshot(self) -> WorkflowSnapshot:
        return WorkflowSnapshot(
            step=self.step,
            step_number=self.step_number,
            receipt=self.receipt,
            mode=self.mode,
            selection_style=self.selection_style,
            items=[item.model_copy() for item in self.items],
            custom_amount=self.custom_amount,
            selection_subtotal=self.selection_subtotal() if self.step == WorkflowStep.ITEM_SELECTION else ZERO,
            breakdown=self.breakdown,
            totals=self.totals,
        )
