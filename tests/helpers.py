"""Shared builders for ledger tests."""

from decimal import Decimal
from uuid import uuid4

from ledger_kernel.domain.dtos import ItemInput

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()


def make_item(
    unit_price: str = "10000.00",
    quantity: int = 1,
    tax_rate: str = "18",
    discount_percent: str = "0",
    description: str = "Steel rods",
) -> ItemInput:
    """One line item; the defaults total 11,800 (10,000 + 18% tax)."""
    return ItemInput(
        description=description,
        quantity=quantity,
        unit_price=Decimal(unit_price),
        tax_rate=Decimal(tax_rate),
        discount_percent=Decimal(discount_percent),
    )
