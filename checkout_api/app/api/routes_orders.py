from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from checkout_api.app.api.deps import get_order_store
from checkout_api.app.core.errors import NotFoundError
from checkout_api.app.services.order_store import OrderStore

router = APIRouter(prefix="/api", tags=["orders"])


@router.get("/orders/{order_id}")
async def get_order(order_id: str, store: OrderStore = Depends(get_order_store)) -> Dict[str, Any]:
    """Order as the success / cancel pages see it (no internal cost data)."""
    order = await store.get_order(order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order.public_view()
