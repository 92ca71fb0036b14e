# easysplit/errors.py
"""Recoverable errors raised by the receipt workflow and the split calculators.

Every error carries a message that is safe to show to the user as-is.
"""


class SplitBillError(Exception):
    """Base class for all user-facing split errors."""

    title = "Something went wrong"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UploadRejected(SplitBillError):
    """Wrong file type or size, detected before any network call."""

    title = "Invalid file"


class ExtractionFailed(SplitBillError):
    title = "Processing Error"


class InterpretationFailed(SplitBillError):
    title = "Parsing Error"


class NoSelectionError(SplitBillError):
    title = "Nothing selected"

    def __init__(self, message: str = "Please select at least one item or enter an amount."):
        super().__init__(message)


class InvalidAmendmentError(SplitBillError):
    title = "Invalid input"


class InvalidTransitionError(SplitBillError):
    """An action was attempted from a step that does not offer it."""

    title = "Not available"


class UnknownItemError(SplitBillError):
    """The item id is not on the current selection list."""

    title = "Item not found"
