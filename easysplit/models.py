# easysplit/models.py
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, List, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from .money import ZERO, clean_and_convert_number


def _coerce_money(value: Any) -> Any:
    if value is None or isinstance(value, Decimal):
        return value
    converted = clean_and_convert_number(value)
    # Leave unparseable input alone so pydantic reports it as a validation error
    return converted if converted is not None else value


Money = Annotated[Decimal, BeforeValidator(_coerce_money), Field(ge=0)]


class CalculationMode(str, Enum):
    INDIVIDUAL = "individual"
    SHARED = "shared"


class SelectionStyle(str, Enum):
    EXACT = "exact"    # the user claims 100% of every selected item
    SHARED = "shared"  # each selected item is divided by its share count


class AmendmentField(str, Enum):
    TAX = "tax"
    TIP = "tip"


# --- Receipt ---
class ReceiptItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Item name as printed on the receipt")
    unit_price: Money = Field(validation_alias=AliasChoices("unit_price", "price", "unitPrice"))

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class Receipt(BaseModel):
    """Normalized receipt: items plus the bill-level totals.

    ``total`` is expected to be close to ``subtotal + tax + tip`` but that is
    not enforced, the interpreter reports what is printed on the receipt.
    """
    model_config = ConfigDict(frozen=True)

    items: List[ReceiptItem] = Field(default_factory=list)
    subtotal: Money
    tax: Money = ZERO
    tip: Money = ZERO
    total: Money

    @model_validator(mode="before")
    @classmethod
    def _fill_missing_totals(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        items = data.get("items")
        if items is None:
            items = []
        if not isinstance(items, list):
            # leave it for the field validator to reject
            return data
        items = [item if isinstance(item, ReceiptItem) else ReceiptItem.model_validate(item) for item in items]
        data["items"] = items
        for key in ("tax", "tip"):
            if data.get(key) is None:
                data[key] = ZERO
        if data.get("subtotal") is None:
            data["subtotal"] = sum((item.unit_price for item in items), ZERO)
        if data.get("total") is None:
            parts = [_coerce_money(data[key]) for key in ("subtotal", "tax", "tip")]
            if all(isinstance(p, Decimal) for p in parts):
                data["total"] = sum(parts, ZERO)
        return data


# --- Selection ---
class SelectableItem(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    id: str
    name: str
    price: Decimal = Field(frozen=True)
    selected: bool = False
    share_count: int = Field(default=1, ge=1)

    @classmethod
    def from_receipt(cls, receipt: Receipt) -> List["SelectableItem"]:
        return [
            cls(id=f"item-{index}", name=item.name, price=item.unit_price)
            for index, item in enumerate(receipt.items)
        ]


# --- Calculation results ---
class Rates(BaseModel):
    model_config = ConfigDict(frozen=True)

    tax_rate: Decimal
    tip_rate: Decimal


class ItemShareLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    price: Decimal
    share_count: int
    item_share: Decimal


class BillTotals(BaseModel):
    """One user's settlement. ``user_share`` is always equal to ``total``."""
    model_config = ConfigDict(frozen=True)

    subtotal: Money
    tax: Money
    tip: Money
    total: Money
    user_share: Money
    selected_items: Optional[List[ItemShareLine]] = None
    custom_amount: Optional[Money] = None

    @model_validator(mode="after")
    def _share_matches_total(self) -> "BillTotals":
        if self.user_share != self.total:
            raise ValueError("user_share must equal total")
        return self


class ItemBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    unit_price: Decimal
    item_tax: Decimal
    item_tip: Decimal
    item_total: Decimal


class IndividualBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    tax_rate: Decimal
    tip_rate: Decimal
    items: List[ItemBreakdown] = Field(default_factory=list)
