# checkout_api/app/services/order_store.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from redis.asyncio import Redis  # redis>=5

from checkout_api.app.models.order import (
    CheckoutState,
    MenuItem,
    Order,
    OrderStatus,
    PaymentStatus,
    Store,
    utcnow,
)

log = logging.getLogger(__name__)


@runtime_checkable
class OrderStore(Protocol):
    """Persistence used by checkout, webhooks and the reconciliation worker."""

    async def get_store(self, store_id: str) -> Optional[Store]: ...
    async def put_store(self, store: Store) -> None: ...
    async def put_menu_item(self, item: MenuItem) -> None: ...
    async def find_available_menu_items(self, store_id: str, ids: Sequence[str]) -> List[MenuItem]: ...
    async def next_order_number(self, store_id: str) -> int: ...
    async def create_order(self, order: Order) -> Order: ...
    async def update_order(self, order_id: str, **changes: Any) -> Optional[Order]: ...
    async def get_order(self, order_id: str) -> Optional[Order]: ...
    async def find_order_by_session(self, session_id: str) -> Optional[Order]: ...
    async def list_orders_in_state(self, state: CheckoutState, older_than: datetime) -> List[Order]: ...


# -----------------------------------------------------------------------------
# Redis implementation
#
# Keys (all under `prefix`):
#   store:<id>                 JSON Store
#   store:<id>:menu            hash  menu_item_id -> JSON MenuItem
#   store:<id>:orders          zset  order_id scored by order number
#   store:<id>:order_seq       counter for order numbers
#   order:<id>                 JSON Order (items embedded)
#   order:by-session:<sid>     order_id
#   orders:state:<STATE>       zset  order_id scored by created_at (epoch s);
#                              only PLACED orders still awaiting payment
# -----------------------------------------------------------------------------

def _tracked_state(order: Order) -> Optional[CheckoutState]:
    """State index an order belongs in, or None once it is settled."""
    if order.status == OrderStatus.PLACED and order.payment_status == PaymentStatus.PENDING:
        return order.checkout_state
    return None


class RedisOrderStore:
    def __init__(self, redis: Redis, prefix: str = "checkout") -> None:
        self.redis = redis
        self.prefix = prefix.rstrip(":")

    # ---------- keys ----------

    def _store_key(self, store_id: str) -> str:
        return f"{self.prefix}:store:{store_id}"

    def _menu_key(self, store_id: str) -> str:
        return f"{self.prefix}:store:{store_id}:menu"

    def _store_orders_key(self, store_id: str) -> str:
        return f"{self.prefix}:store:{store_id}:orders"

    def _seq_key(self, store_id: str) -> str:
        return f"{self.prefix}:store:{store_id}:order_seq"

    def _order_key(self, order_id: str) -> str:
        return f"{self.prefix}:order:{order_id}"

    def _session_key(self, session_id: str) -> str:
        return f"{self.prefix}:order:by-session:{session_id}"

    def _state_key(self, state: CheckoutState) -> str:
        return f"{self.prefix}:orders:state:{state.value}"

    # ---------- catalog ----------

    async def get_store(self, store_id: str) -> Optional[Store]:
        raw = await self.redis.get(self._store_key(store_id))
        if not raw:
            return None
        return Store.model_validate_json(raw)

    async def put_store(self, store: Store) -> None:
        await self.redis.set(self._store_key(store.id), store.model_dump_json(by_alias=True))

    async def put_menu_item(self, item: MenuItem) -> None:
        await self.redis.hset(self._menu_key(item.store_id), item.id, item.model_dump_json(by_alias=True))

    async def find_available_menu_items(self, store_id: str, ids: Sequence[str]) -> List[MenuItem]:
        """
        Items among `ids` that belong to `store_id` and are available.
        Duplicate ids collapse to one item, unknown / foreign ids yield nothing.
        """
        unique = list(dict.fromkeys(ids))
        if not unique:
            return []
        raws = await self.redis.hmget(self._menu_key(store_id), unique)
        out: List[MenuItem] = []
        for raw in raws:
            if not raw:
                continue
            item = MenuItem.model_validate_json(raw)
            if item.store_id == store_id and item.is_available:
                out.append(item)
        return out

    # ---------- orders ----------

    async def next_order_number(self, store_id: str) -> int:
        """
        Atomic per-store sequence. The counter is seeded once from the highest
        existing order number, so stores with older orders keep counting.
        """
        seq_key = self._seq_key(store_id)
        if not await self.redis.exists(seq_key):
            top = await self.redis.zrevrange(self._store_orders_key(store_id), 0, 0, withscores=True)
            last = int(top[0][1]) if top else 0
            # SETNX: a concurrent seeder may win, both then INCR the same counter
            await self.redis.setnx(seq_key, last)
        return int(await self.redis.incr(seq_key))

    async def create_order(self, order: Order) -> Order:
        """Order and its item snapshots land in one MULTI/EXEC."""
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.set(self._order_key(order.id), order.model_dump_json(by_alias=True))
            pipe.zadd(self._store_orders_key(order.store_id), {order.id: order.order_number})
            state = _tracked_state(order)
            if state is not None:
                pipe.zadd(self._state_key(state), {order.id: order.created_at.timestamp()})
            if order.stripe_checkout_session_id:
                pipe.set(self._session_key(order.stripe_checkout_session_id), order.id)
            await pipe.execute()
        return order

    async def update_order(self, order_id: str, **changes: Any) -> Optional[Order]:
        """
        Read-modify-write under WATCH, so a concurrent webhook and request
        never overwrite each other. Returns None for an unknown order.
        """
        key = self._order_key(order_id)
        result: Dict[str, Optional[Order]] = {"order": None}

        async def _txn(pipe) -> None:
            raw = await pipe.get(key)
            if not raw:
                result["order"] = None
                return
            current = Order.model_validate_json(raw)
            updated = Order.model_validate({**current.model_dump(), **changes, "updated_at": utcnow()})

            pipe.multi()
            pipe.set(key, updated.model_dump_json(by_alias=True))
            old_state, new_state = _tracked_state(current), _tracked_state(updated)
            if old_state != new_state:
                if old_state is not None:
                    pipe.zrem(self._state_key(old_state), order_id)
                if new_state is not None:
                    pipe.zadd(self._state_key(new_state), {order_id: updated.created_at.timestamp()})
            sid = updated.stripe_checkout_session_id
            if sid and sid != current.stripe_checkout_session_id:
                pipe.set(self._session_key(sid), order_id)
            result["order"] = updated

        await self.redis.transaction(_txn, key)
        return result["order"]

    async def get_order(self, order_id: str) -> Optional[Order]:
        raw = await self.redis.get(self._order_key(order_id))
        if not raw:
            return None
        return Order.model_validate_json(raw)

    async def find_order_by_session(self, session_id: str) -> Optional[Order]:
        order_id = await self.redis.get(self._session_key(session_id))
        if not order_id:
            return None
        return await self.get_order(order_id)

    async def list_orders_in_state(self, state: CheckoutState, older_than: datetime) -> List[Order]:
        ids = await self.redis.zrangebyscore(self._state_key(state), "-inf", older_than.timestamp())
        if not ids:
            return []
        raws = await self.redis.mget([self._order_key(i) for i in ids])
        out: List[Order] = []
        for order_id, raw in zip(ids, raws):
            if not raw:
                log.warning("state index %s points at missing order %s", state.value, order_id)
                continue
            out.append(Order.model_validate_json(raw))
        return out
