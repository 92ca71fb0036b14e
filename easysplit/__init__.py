"""Scan a restaurant receipt and work out what one diner owes."""

from .errors import (
    ExtractionFailed,
    InterpretationFailed,
    InvalidAmendmentError,
    InvalidTransitionError,
    NoSelectionError,
    SplitBillError,
    UnknownItemError,
    UploadRejected,
)
from .models import (
    AmendmentField,
    BillTotals,
    CalculationMode,
    IndividualBreakdown,
    Receipt,
    ReceiptItem,
    SelectableItem,
    SelectionStyle,
)
from .workflow import UploadedFile, Workflow, WorkflowStep

__all__ = [
    "AmendmentField",
    "BillTotals",
    "CalculationMode",
    "ExtractionFailed",
    "IndividualBreakdown",
    "InterpretationFailed",
    "InvalidAmendmentError",
    "InvalidTransitionError",
    "NoSelectionError",
    "Receipt",
    "ReceiptItem",
    "SelectableItem",
    "SelectionStyle",
    "SplitBillError",
    "UnknownItemError",
    "UploadRejected",
    "UploadedFile",
    "Workflow",
    "WorkflowStep",
]
