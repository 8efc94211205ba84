from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from settlement.errors import TransportError
from settlement.services.status_normalizer import (
    ORDER_STATUS,
    PAYMENT_FREQUENCY,
    PAYMENT_METHOD,
    PAYMENT_STATUS,
    PLAN_STATUS,
    RECEIPT_STATUS,
)
from settlement.utils.money import quantize_cents, to_decimal
from settlement.utils.time import parse_timestamp

# Payload parsing is lenient on vocabulary (aliases are canonicalized, unknown
# values are kept for display) and strict on structure: missing ids or
# non-numeric amounts raise TransportError.


def _required(payload: Mapping[str, Any], key: str, what: str) -> Any:
    value = payload.get(key)
    if value is None or value == "":
        raise TransportError(f"{what} payload missing '{key}'")
    return value


def _amount(payload: Mapping[str, Any], key: str, what: str, default: Any = None) -> Decimal:
    raw = payload.get(key, default)
    try:
        return to_decimal(raw)
    except ValueError as e:
        raise TransportError(f"{what} payload has invalid '{key}': {raw!r}") from e


def _opt_str(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value)
    return value or None


@dataclass(frozen=True)
class OrderItem:
    product_id: Optional[str]
    name: Optional[str]
    quantity: int
    price: Decimal
    size: Optional[str] = None
    color: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "OrderItem":
        return cls(
            product_id=_opt_str(payload, "productId"),
            name=_opt_str(payload, "name") or _opt_str(payload, "productName"),
            quantity=int(payload.get("quantity") or 1),
            price=_amount(payload, "price", "order item", default=0),
            size=_opt_str(payload, "size"),
            color=_opt_str(payload, "color"),
        )


@dataclass(frozen=True)
class Receipt:
    receipt_status: str
    receipt_path: Optional[str]
    receipt_file_name: Optional[str]
    receipt_mime_type: Optional[str]
    uploaded_at: Optional[datetime]
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    rejection_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.receipt_status in ("aprobado", "rechazado")

    def receipt_url(self, server_base: str) -> Optional[str]:
        """Link to the uploaded file; ``receiptPath`` is relative to the server root."""
        if not self.receipt_path:
            return None
        if self.receipt_path.startswith(("http://", "https://")):
            return self.receipt_path
        return server_base.rstrip("/") + "/" + self.receipt_path.lstrip("/")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Receipt":
        status = RECEIPT_STATUS.to_canonical(payload.get("receiptStatus") or "pendiente")
        raw_reason = payload.get("rejectionReason")
        if raw_reason is not None and not isinstance(raw_reason, str):
            raise TransportError(f"receipt payload has invalid 'rejectionReason': {raw_reason!r}")
        reason = (raw_reason or "").strip() or None
        if status != "rechazado":
            reason = None
        return cls(
            receipt_status=status,
            receipt_path=_opt_str(payload, "receiptPath"),
            receipt_file_name=_opt_str(payload, "receiptFileName"),
            receipt_mime_type=_opt_str(payload, "receiptMimeType"),
            uploaded_at=parse_timestamp(payload.get("uploadedAt")),
            verified_at=parse_timestamp(payload.get("verifiedAt")),
            verified_by=_opt_str(payload, "verifiedBy"),
            rejection_reason=reason,
        )


@dataclass(frozen=True)
class Order:
    id: str
    order_number: str
    order_status: str
    payment_status: str
    payment_method: str
    total: Decimal
    items: Tuple[OrderItem, ...] = ()
    receipt: Optional[Receipt] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_transfer(self) -> bool:
        return self.payment_method == "transfer"

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Order":
        oid = str(_required(payload, "id", "order"))
        receipt_raw = payload.get("receipt")
        return cls(
            id=oid,
            order_number=str(payload.get("orderNumber") or oid),
            order_status=ORDER_STATUS.to_canonical(payload.get("orderStatus") or "pending"),
            payment_status=PAYMENT_STATUS.to_canonical(payload.get("paymentStatus") or "pending"),
            payment_method=PAYMENT_METHOD.to_canonical(payload.get("paymentMethod") or ""),
            total=_amount(payload, "total", "order", default=0),
            items=tuple(OrderItem.from_payload(i) for i in (payload.get("items") or [])),
            receipt=Receipt.from_payload(receipt_raw) if isinstance(receipt_raw, Mapping) else None,
            notes=_opt_str(payload, "notes"),
            created_at=parse_timestamp(payload.get("createdAt")),
            updated_at=parse_timestamp(payload.get("updatedAt")),
        )


@dataclass(frozen=True)
class Payment:
    id: str
    amount: Decimal
    payment_date: Optional[datetime]
    payment_method: Optional[str]
    notes: Optional[str] = None
    verified: bool = False
    verified_at: Optional[datetime] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Payment":
        method = payload.get("paymentMethod")
        return cls(
            id=str(_required(payload, "id", "payment")),
            amount=_amount(payload, "amount", "payment"),
            payment_date=parse_timestamp(payload.get("paymentDate")),
            payment_method=PAYMENT_METHOD.to_canonical(method) if method else None,
            notes=_opt_str(payload, "notes"),
            verified=bool(payload.get("verified")),
            verified_at=parse_timestamp(payload.get("verifiedAt")),
        )


@dataclass(frozen=True)
class ReservationPlan:
    """Installment plan as reported by the server.

    ``paid_amount`` and ``remaining_amount`` are owned by the server and are
    never recomputed from ``payments``. A payload where they disagree with
    ``total_amount`` is rejected.
    """

    id: str
    user_id: Optional[str]
    product_id: Optional[str]
    quantity: int
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    number_of_payments: int
    payment_frequency: str
    status: str
    payments: Tuple[Payment, ...] = ()
    size: Optional[str] = None
    color: Optional[str] = None
    completed_at: Optional[datetime] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    product_name: Optional[str] = None

    def __post_init__(self) -> None:
        # Servers computing in floating point send sub-cent noise (333.34000000000003)
        remaining = quantize_cents(self.remaining_amount)
        if remaining != quantize_cents(self.total_amount - self.paid_amount):
            raise TransportError(
                f"plan {self.id}: remainingAmount {self.remaining_amount} != totalAmount {self.total_amount} - paidAmount {self.paid_amount}"
            )
        if remaining < 0:
            raise TransportError(f"plan {self.id}: negative remainingAmount {self.remaining_amount}")

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def find_payment(self, payment_id: str) -> Optional[Payment]:
        for p in self.payments:
            if p.id == str(payment_id):
                return p
        return None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ReservationPlan":
        frequency = payload.get("paymentFrequency") or "mensual"
        return cls(
            id=str(_required(payload, "id", "plan")),
            user_id=_opt_str(payload, "userId"),
            product_id=_opt_str(payload, "productId"),
            quantity=int(payload.get("quantity") or 1),
            total_amount=quantize_cents(_amount(payload, "totalAmount", "plan")),
            paid_amount=quantize_cents(_amount(payload, "paidAmount", "plan", default=0)),
            remaining_amount=quantize_cents(_amount(payload, "remainingAmount", "plan")),
            number_of_payments=int(payload.get("numberOfPayments") or 1),
            payment_frequency=PAYMENT_FREQUENCY.to_canonical(frequency),
            status=PLAN_STATUS.to_canonical(payload.get("status") or "active"),
            payments=tuple(Payment.from_payload(p) for p in (payload.get("payments") or [])),
            size=_opt_str(payload, "size"),
            color=_opt_str(payload, "color"),
            completed_at=parse_timestamp(payload.get("completedAt")),
            user_name=_opt_str(payload, "userName"),
            user_email=_opt_str(payload, "userEmail"),
            product_name=_opt_str(payload, "productName"),
        )


@dataclass(frozen=True)
class ReceiptQueueEntry:
    """An order waiting in the transfer receipt review queue."""

    id: str
    order_number: str
    customer_name: Optional[str]
    customer_email: Optional[str]
    order_date: Optional[datetime]
    total: Decimal
    receipt: Receipt

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ReceiptQueueEntry":
        oid = str(_required(payload, "id", "receipt entry"))
        receipt_raw = payload.get("receipt")
        if not isinstance(receipt_raw, Mapping):
            raise TransportError(f"receipt entry {oid} has no receipt")
        return cls(
            id=oid,
            order_number=str(payload.get("orderNumber") or oid),
            customer_name=_opt_str(payload, "customerName"),
            customer_email=_opt_str(payload, "customerEmail"),
            order_date=parse_timestamp(payload.get("orderDate")),
            total=_amount(payload, "total", "receipt entry", default=0),
            receipt=Receipt.from_payload(receipt_raw),
        )


@dataclass(frozen=True)
class ReceiptFilters:
    status: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    limit: int = 20
    offset: int = 0

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if self.status:
            params["status"] = self.status
        if self.date_from:
            params["dateFrom"] = self.date_from
        if self.date_to:
            params["dateTo"] = self.date_to
        params["limit"] = self.limit
        params["offset"] = self.offset
        return params


@dataclass(frozen=True)
class ReceiptPage:
    items: Tuple[ReceiptQueueEntry, ...]
    total: int
    has_more: bool
    filters: ReceiptFilters = field(default_factory=ReceiptFilters)


@dataclass
class PlanDraft:
    """Input for creating a reservation plan."""

    user_id: str
    product_id: str
    quantity: int = 1
    number_of_payments: int = 3
    payment_frequency: str = "mensual"
    size: Optional[str] = None
    color: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "userId": self.user_id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "numberOfPayments": self.number_of_payments,
            "paymentFrequency": self.payment_frequency,
        }
        if self.size:
            body["size"] = self.size
        if self.color:
            body["color"] = self.color
        return body


def parse_orders(rows: List[Mapping[str, Any]]) -> List[Order]:
    return [Order.from_payload(r) for r in rows]


def parse_plans(rows: List[Mapping[str, Any]]) -> List[ReservationPlan]:
    return [ReservationPlan.from_payload(r) for r in rows]
