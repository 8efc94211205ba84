from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence

from settlement.api.client import SettlementClient
from settlement.errors import TransportError, ValidationError
from settlement.models import PlanDraft, ReservationPlan, parse_plans
from settlement.services.audit import log_audit
from settlement.services.status_normalizer import PAYMENT_FREQUENCY, PLAN_STATUS
from settlement.utils.money import quantize_cents, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanQuote:
    total_amount: Decimal
    installment_amount: Decimal
    number_of_payments: int


@dataclass(frozen=True)
class ProductOptions:
    """The bits of a catalog product that plan creation needs."""

    unit_price: Decimal
    sizes: Sequence[str] = ()
    colors: Sequence[str] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ProductOptions":
        # finalPrice is the discounted price computed by the catalog service
        price = payload.get("finalPrice") or payload.get("price") or 0
        return cls(
            unit_price=to_decimal(price),
            sizes=tuple(payload.get("sizes") or ()),
            colors=tuple(payload.get("colors") or ()),
        )


def quote(unit_price: Any, quantity: int, number_of_payments: int) -> PlanQuote:
    if quantity < 1:
        raise ValidationError("La cantidad debe ser al menos 1", field="quantity")
    if number_of_payments < 1:
        raise ValidationError("La cantidad de pagos debe ser al menos 1", field="number_of_payments")
    total = to_decimal(unit_price) * quantity
    return PlanQuote(
        total_amount=quantize_cents(total),
        installment_amount=quantize_cents(total / number_of_payments),
        number_of_payments=number_of_payments,
    )


def validate_draft(draft: PlanDraft, product: Optional[ProductOptions] = None) -> PlanDraft:
    if not (draft.user_id or "").strip() or not (draft.product_id or "").strip():
        raise ValidationError("Usuario y producto son requeridos", field="user_id")
    if draft.quantity < 1:
        raise ValidationError("La cantidad debe ser al menos 1", field="quantity")
    if draft.number_of_payments < 1:
        raise ValidationError("La cantidad de pagos debe ser al menos 1", field="number_of_payments")
    frequency = PAYMENT_FREQUENCY.to_canonical_strict(draft.payment_frequency)
    if product is not None:
        if product.sizes and not draft.size:
            raise ValidationError("Debes seleccionar una talla", field="size")
        if product.colors and not draft.color:
            raise ValidationError("Debes seleccionar un color", field="color")
    return replace(draft, payment_frequency=frequency)


class ReservationPlanDesk:
    def __init__(self, client: SettlementClient) -> None:
        self._client = client

    async def list_plans(self, status: Optional[str] = None) -> List[ReservationPlan]:
        code = PLAN_STATUS.to_canonical_strict(status) if status else None
        return parse_plans(await self._client.list_plans(code))

    async def create_plan(self, draft: PlanDraft, product: Optional[ProductOptions] = None) -> Optional[ReservationPlan]:
        """Create a plan; returns it when the server echoes it back."""
        checked = validate_draft(draft, product)
        data = await self._client.create_plan(checked.to_payload())
        raw = data.get("plan")
        plan = None
        if isinstance(raw, Mapping):
            plan = ReservationPlan.from_payload(raw)
        elif raw is not None:
            raise TransportError("Respuesta no válida del servidor: plan malformado")
        log_audit(
            actor=self._client.actor,
            action="plan_create",
            target_type="reservation_plan",
            target_id=plan.id if plan else None,
            meta={"user_id": checked.user_id, "product_id": checked.product_id, "payments": checked.number_of_payments},
        )
        logger.info("Reservation plan created for user %s", checked.user_id)
        return plan
