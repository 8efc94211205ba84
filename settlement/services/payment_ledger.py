from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Awaitable, Optional

from settlement.api.client import SettlementClient
from settlement.errors import SettlementError, ValidationError
from settlement.models import ReservationPlan
from settlement.services.audit import log_audit
from settlement.utils.money import quantize_cents, to_decimal
from settlement.utils.time import today_iso, to_date_param

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def progress(plan: ReservationPlan) -> Decimal:
    """Paid share of the plan in percent, clamped to [0, 100]. Display only."""
    if plan.total_amount <= 0:
        return Decimal("0")
    pct = plan.paid_amount / plan.total_amount * HUNDRED
    return min(HUNDRED, max(Decimal("0"), pct))


def installment_amount(plan: ReservationPlan) -> Decimal:
    return quantize_cents(plan.total_amount / max(1, plan.number_of_payments))


class PaymentLedger:
    """Records and verifies installment payments of one reservation plan.

    The server owns ``paidAmount``, ``remainingAmount`` and ``status``; after
    every mutation (successful or not) the plan is fetched again and replaces
    the held snapshot.
    """

    def __init__(self, client: SettlementClient) -> None:
        self._client = client
        self.plan: Optional[ReservationPlan] = None

    async def load(self, plan_id: str) -> ReservationPlan:
        plan = ReservationPlan.from_payload(await self._client.get_plan(str(plan_id)))
        self.plan = plan
        return plan

    def progress(self, plan: Optional[ReservationPlan] = None) -> Decimal:
        target = plan or self.plan
        if target is None:
            raise ValidationError("no plan loaded")
        return progress(target)

    async def _mutate_then_reload(self, plan_id: str, call: Awaitable[Any]) -> ReservationPlan:
        try:
            await call
        except SettlementError:
            try:
                await self.load(plan_id)
            except SettlementError as reload_exc:
                logger.warning("Reload of plan %s after failed mutation also failed: %s", plan_id, reload_exc)
            raise
        return await self.load(plan_id)

    async def add_payment(
        self,
        plan: ReservationPlan,
        amount: Any,
        payment_date: Optional[str] = None,
        notes: str = "",
    ) -> ReservationPlan:
        try:
            # Checked at the precision that goes on the wire
            value = quantize_cents(to_decimal(amount))
        except ValueError as e:
            raise ValidationError("El monto debe ser un número", field="amount") from e
        if value <= 0:
            raise ValidationError("El monto debe ser mayor a 0", field="amount")
        if value > plan.remaining_amount:
            raise ValidationError(
                f"El monto {value} supera el saldo pendiente {plan.remaining_amount}",
                field="amount",
            )
        if not plan.is_active:
            raise ValidationError(f"El plan no está activo ({plan.status})", field="status")
        try:
            when = to_date_param(payment_date) or today_iso()
        except ValueError as e:
            raise ValidationError(str(e), field="payment_date") from e

        logger.info("Adding payment of %s to plan %s", value, plan.id)
        call = self._client.add_plan_payment(plan.id, value, when, (notes or "").strip())
        updated = await self._mutate_then_reload(plan.id, call)
        log_audit(
            actor=self._client.actor,
            action="plan_payment_add",
            target_type="reservation_plan",
            target_id=plan.id,
            meta={"amount": str(value), "payment_date": when, "remaining": str(updated.remaining_amount)},
        )
        return updated

    async def verify_payment(self, plan: ReservationPlan, payment_id: str) -> ReservationPlan:
        payment = plan.find_payment(payment_id)
        if payment is None:
            raise ValidationError(f"El pago {payment_id} no pertenece al plan {plan.id}", field="payment_id")
        if payment.verified:
            raise ValidationError(f"El pago {payment_id} ya está verificado", field="payment_id")

        logger.info("Verifying payment %s of plan %s", payment.id, plan.id)
        call = self._client.verify_plan_payment(payment.id)
        updated = await self._mutate_then_reload(plan.id, call)
        if updated.status == "completed" and plan.status != "completed":
            logger.info("Plan %s reported completed by server", plan.id)
        log_audit(
            actor=self._client.actor,
            action="plan_payment_verify",
            target_type="reservation_plan",
            target_id=plan.id,
            meta={"payment_id": payment.id, "status": updated.status},
        )
        return updated
