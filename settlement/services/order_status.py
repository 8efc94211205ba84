from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from settlement.api.client import SettlementClient
from settlement.models import Order, Receipt, parse_orders
from settlement.services.audit import log_audit
from settlement.services.receipt_verification import available_actions
from settlement.services.status_normalizer import ORDER_STATUS, PAYMENT_STATUS

logger = logging.getLogger(__name__)

FORWARD_PATH: Tuple[str, ...] = ("pending", "confirmed", "processing", "shipped", "delivered")
TERMINAL_STATUSES = frozenset({"delivered", "cancelled"})


def next_statuses(current: str) -> Tuple[str, ...]:
    """Suggested next statuses; a hint for the UI, the server decides legality."""
    code = ORDER_STATUS.to_canonical(current)
    if code in TERMINAL_STATUSES or code not in FORWARD_PATH:
        return ()
    idx = FORWARD_PATH.index(code)
    return FORWARD_PATH[idx + 1 : idx + 2] + ("cancelled",)


@dataclass(frozen=True)
class ReceiptPanel:
    """What the order screen shows about a transfer receipt."""

    receipt: Optional[Receipt]
    actions: Tuple[str, ...] = ()

    @property
    def has_receipt(self) -> bool:
        return self.receipt is not None


def receipt_panel(order: Order) -> Optional[ReceiptPanel]:
    """Receipt panel for transfer orders; ``None`` for other payment methods."""
    if not order.is_transfer:
        return None
    if order.receipt is None:
        return ReceiptPanel(receipt=None, actions=())
    return ReceiptPanel(receipt=order.receipt, actions=available_actions(order.receipt.receipt_status))


class OrderStatusMachine:
    """Submits order status changes and keeps the last confirmed snapshot."""

    def __init__(self, client: SettlementClient) -> None:
        self._client = client
        self.orders: Dict[str, Order] = {}

    def current(self, order_id: str) -> Optional[Order]:
        return self.orders.get(str(order_id))

    async def load(self, order_id: str) -> Order:
        order = Order.from_payload(await self._client.get_order(str(order_id)))
        self.orders[order.id] = order
        return order

    async def list_orders(self, status: Optional[str] = None, payment_status: Optional[str] = None) -> List[Order]:
        status_code = ORDER_STATUS.to_canonical_strict(status) if status else None
        payment_code = PAYMENT_STATUS.to_canonical_strict(payment_status) if payment_status else None
        orders = parse_orders(await self._client.list_orders())
        for o in orders:
            self.orders[o.id] = o
        return [
            o
            for o in orders
            if (status_code is None or o.order_status == status_code)
            and (payment_code is None or o.payment_status == payment_code)
        ]

    async def request_status_change(self, order_id: str, desired_status: str) -> Order:
        code = ORDER_STATUS.to_canonical_strict(desired_status)
        order_id = str(order_id)
        logger.info("Changing order %s status to %s", order_id, code)
        await self._client.update_order_status(order_id, code)
        previous = self.current(order_id)
        order = await self.load(order_id)
        log_audit(
            actor=self._client.actor,
            action="order_status_change",
            target_type="order",
            target_id=order_id,
            meta={"from": previous.order_status if previous else None, "requested": code, "now": order.order_status},
        )
        return order
