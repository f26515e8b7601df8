# checkout_api/app/services/pricing.py
"""
Order pricing from the store of record.

Everything here is pure: callers pass in the menu items they resolved from
the store and the cart as submitted, and get integer minor-unit amounts back.
Client-side prices never enter the computation.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from checkout_api.app.core.errors import AvailabilityError
from checkout_api.app.models.checkout import CartItem
from checkout_api.app.models.order import MenuItem, OrderItem
from checkout_api.app.models.payment import LineItem

TAX_CENTS = 0  # tax is not computed
TIP_NAME = "Tip"
TIP_DESCRIPTION = "Gratuity for service"


@dataclass(frozen=True)
class Totals:
    subtotal_cents: int
    tax_cents: int
    tip_cents: int
    total_cents: int


def _index(resolved: Iterable[MenuItem]) -> Dict[str, MenuItem]:
    # first match wins, same as a linear scan over the query result
    out: Dict[str, MenuItem] = {}
    for item in resolved:
        out.setdefault(item.id, item)
    return out


def _lookup(menu: Dict[str, MenuItem], line: CartItem) -> MenuItem:
    item = menu.get(line.menu_item_id)
    if item is None:
        raise AvailabilityError(details=[{"menuItemId": line.menu_item_id}])
    return item


def compute_totals(resolved: Sequence[MenuItem], cart: Sequence[CartItem], tip_cents: int) -> Totals:
    """subtotal = sum(price * qty) over the cart; total = subtotal + tax + tip."""
    if tip_cents < 0:
        raise ValueError("tip_cents must be >= 0")
    menu = _index(resolved)
    subtotal = 0
    for line in cart:
        subtotal += _lookup(menu, line).price_cents * line.quantity
    return Totals(
        subtotal_cents=subtotal,
        tax_cents=TAX_CENTS,
        tip_cents=tip_cents,
        total_cents=subtotal + TAX_CENTS + tip_cents,
    )


def build_order_items(resolved: Sequence[MenuItem], cart: Sequence[CartItem]) -> List[OrderItem]:
    """One snapshot per cart line, in cart order."""
    menu = _index(resolved)
    return [OrderItem.snapshot(_lookup(menu, line), line.quantity) for line in cart]


def build_line_items(
    order_items: Sequence[OrderItem],
    resolved: Sequence[MenuItem],
    tip_cents: int,
    currency: str = "usd",
) -> List[LineItem]:
    """
    Payment-page rows: one per order item priced at its snapshot, then a
    single "Tip" row when a tip was given.
    """
    menu = _index(resolved)
    rows: List[LineItem] = []
    for oi in order_items:
        source = menu.get(oi.menu_item_id)
        rows.append(
            LineItem(
                name=source.name if source else oi.name_snapshot,
                description=source.description if source else None,
                unit_amount=oi.price_cents_snapshot,
                quantity=oi.quantity,
                currency=currency,
            )
        )
    if tip_cents > 0:
        rows.append(
            LineItem(
                name=TIP_NAME,
                description=TIP_DESCRIPTION,
                unit_amount=tip_cents,
                quantity=1,
                currency=currency,
            )
        )
    return rows
