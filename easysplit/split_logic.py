# easysplit/split_logic.py
from decimal import Decimal
from typing import Iterable, List, Optional, Union

from loguru import logger

from .errors import InvalidAmendmentError, NoSelectionError
from .models import (
    AmendmentField,
    BillTotals,
    IndividualBreakdown,
    ItemBreakdown,
    ItemShareLine,
    Rates,
    Receipt,
    SelectableItem,
    SelectionStyle,
)
from .money import ZERO, clean_and_convert_number, round_cents

HUNDRED = Decimal("100")


def extract_rates(receipt: Receipt) -> Rates:
    """Effective tax and tip rates of a receipt, both 0 when the subtotal is not positive."""
    if receipt.subtotal <= 0:
        return Rates(tax_rate=ZERO, tip_rate=ZERO)
    return Rates(tax_rate=receipt.tax / receipt.subtotal, tip_rate=receipt.tip / receipt.subtotal)


def calculate_item_share(unit_price: Decimal, share_count: int) -> Decimal:
    """Per-person share of one item: divide first, then round half-up to the cent."""
    if share_count < 1:
        raise ValueError(f"share_count must be at least 1, got {share_count}")
    return round_cents(Decimal(unit_price) / share_count)


def coerce_share_count(value: Union[str, int, float, None]) -> int:
    """Turn whatever the share-count field holds into a valid count (minimum 1)."""
    if isinstance(value, bool):
        return 1
    if isinstance(value, int):
        return value if value >= 1 else 1
    parsed = clean_and_convert_number(value) if isinstance(value, (str, float, Decimal)) else None
    if parsed is None or parsed < 1 or parsed != parsed.to_integral_value():
        return 1
    return int(parsed)


def parse_custom_amount(value: Union[str, int, float, Decimal, None]) -> Optional[Decimal]:
    """Custom amount as entered by the user; None when absent, invalid or negative."""
    amount = clean_and_convert_number(value)
    if amount is None or amount < 0:
        return None
    return amount


def aggregate_selection(
    items: Iterable[SelectableItem],
    custom_amount: Optional[Decimal] = None,
    style: SelectionStyle = SelectionStyle.SHARED,
) -> tuple[Decimal, List[ItemShareLine]]:
    """Sum the selected items (plus the custom amount) into the user's subtotal.

    In exact style every selected item counts in full; in shared style each one
    contributes its rounded per-person share.

    Raises:
        NoSelectionError: nothing selected and no positive custom amount.
    """
    lines: List[ItemShareLine] = []
    user_subtotal = ZERO
    for item in items:
        if not item.selected:
            continue
        if style == SelectionStyle.EXACT:
            share_count, item_share = 1, item.price
        else:
            share_count = item.share_count
            item_share = calculate_item_share(item.price, share_count)
        lines.append(ItemShareLine(name=item.name, price=item.price, share_count=share_count, item_share=item_share))
        user_subtotal += item_share

    if custom_amount is not None and custom_amount > 0:
        user_subtotal += custom_amount

    if user_subtotal <= 0:
        raise NoSelectionError()
    return user_subtotal, lines


def calculate_settlement(
    user_subtotal: Decimal,
    receipt: Receipt,
    selected_items: Optional[List[ItemShareLine]] = None,
    custom_amount: Optional[Decimal] = None,
) -> BillTotals:
    """Allocate the bill's tax and tip to the user in proportion to their subtotal.

    Values keep full precision, rounding is left to the display.
    """
    proportion = user_subtotal / receipt.subtotal if receipt.subtotal > 0 else ZERO
    user_tax = receipt.tax * proportion
    user_tip = receipt.tip * proportion
    user_total = user_subtotal + user_tax + user_tip
    logger.debug(f"Settlement: subtotal={user_subtotal} proportion={proportion} total={user_total}")
    return BillTotals(
        subtotal=user_subtotal,
        tax=user_tax,
        tip=user_tip,
        total=user_total,
        user_share=user_total,
        selected_items=selected_items,
        custom_amount=custom_amount,
    )


def calculate_my_share(
    receipt: Receipt,
    items: Iterable[SelectableItem],
    custom_amount: Optional[Decimal] = None,
    style: SelectionStyle = SelectionStyle.SHARED,
) -> BillTotals:
    user_subtotal, lines = aggregate_selection(items, custom_amount, style)
    return calculate_settlement(user_subtotal, receipt, selected_items=lines or None, custom_amount=custom_amount)


def calculate_individual_breakdown(receipt: Receipt) -> IndividualBreakdown:
    """Cost of every receipt item including its proportional tax and tip."""
    rates = extract_rates(receipt)
    rows = []
    for item in receipt.items:
        item_tax = item.unit_price * rates.tax_rate
        item_tip = item.unit_price * rates.tip_rate
        rows.append(ItemBreakdown(
            name=item.name,
            unit_price=item.unit_price,
            item_tax=item_tax,
            item_tip=item_tip,
            item_total=item.unit_price + item_tax + item_tip,
        ))
    return IndividualBreakdown(tax_rate=rates.tax_rate, tip_rate=rates.tip_rate, items=rows)


def amend_receipt(
    receipt: Receipt,
    field: AmendmentField,
    value: Union[str, int, float, Decimal, None],
    is_percentage: bool,
) -> Receipt:
    """Replace the receipt's tax or tip with a user-entered amount or percentage.

    The total is recomputed as subtotal + tax + tip. A percentage is applied to
    the subtotal and rounded half-up to the cent.

    Raises:
        InvalidAmendmentError: non-numeric, negative, or a percentage above 100.
    """
    field = AmendmentField(field)
    label = field.value
    amount = clean_and_convert_number(value)
    if amount is None:
        raise InvalidAmendmentError(f"Please enter a valid {label} amount or percentage.")
    if amount < 0:
        raise InvalidAmendmentError(f"The {label} cannot be negative.")

    if is_percentage:
        if amount > HUNDRED:
            raise InvalidAmendmentError(f"The {label} percentage cannot exceed 100%.")
        amount = round_cents(receipt.subtotal * amount / HUNDRED)

    updated = {field.value: amount}
    tax = updated.get("tax", receipt.tax)
    tip = updated.get("tip", receipt.tip)
    updated["total"] = receipt.subtotal + tax + tip
    logger.info(f"Receipt {label} amended to {amount} (percentage={is_percentage}), total now {updated['total']}")
    return receipt.model_copy(update=updated)
