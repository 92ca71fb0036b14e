import pytest

from easysplit.config import Settings
from easysplit.models import Receipt


@pytest.fixture
def burger_receipt():
    return Receipt(
        items=[{"name": "Burger", "price": "10.00"}, {"name": "Fries", "price": "4.00"}],
        subtotal="14.00",
        tax="1.12",
        tip="2.10",
        total="17.22",
    )


@pytest.fixture
def settings():
    return Settings(api_key="test-key", gemini_api_key="gemini-test-key")
