from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List

import httpx
import pytest

from settlement.errors import RequestError, TransportError, ValidationError
from settlement.models import ReservationPlan
from settlement.services.payment_ledger import PaymentLedger, installment_amount, progress

from .conftest import body_of, plan_payload


class PlanServer:
    """Stateful fake of the plan endpoints.

    paidAmount counts every recorded payment; the plan completes when the
    remaining balance reaches zero.
    """

    def __init__(self, total: int = 900) -> None:
        self.total = total
        self.payments: List[Dict[str, Any]] = []

    def snapshot(self, request: httpx.Request) -> Dict[str, Any]:
        paid = sum(p["amount"] for p in self.payments)
        status = "completed" if paid >= self.total else "active"
        return {"success": True, "plan": plan_payload(self.total, paid, status=status, payments=list(self.payments))}

    def add(self, request: httpx.Request) -> Dict[str, Any]:
        body = body_of(request)
        self.payments.append(
            {
                "id": f"pay-{len(self.payments) + 1}",
                "amount": body["amount"],
                "paymentDate": body["paymentDate"],
                "paymentMethod": "transferencia",
                "notes": body["notes"],
                "verified": False,
            }
        )
        return {"success": True}

    def verify(self, request: httpx.Request) -> Dict[str, Any]:
        pid = request.url.path.split("/")[-2]
        for p in self.payments:
            if p["id"] == pid:
                p["verified"] = True
        return {"success": True}

    def mount(self, api) -> None:
        api.on("GET", "/reservation-plans/plan-1", self.snapshot)
        api.on("POST", "/reservation-plans/plan-1/payments", self.add)
        for n in range(1, 6):
            api.on("PUT", f"/reservation-plans/payments/pay-{n}/verify", self.verify)


def _plan(total: float, paid: float, **kw: Any) -> ReservationPlan:
    return ReservationPlan.from_payload(plan_payload(total, paid, **kw))


def test_loaded_plan_respects_balance_invariant() -> None:
    plan = _plan(900, 300)
    assert plan.remaining_amount == plan.total_amount - plan.paid_amount == Decimal("600")


def test_inconsistent_aggregates_are_rejected() -> None:
    with pytest.raises(TransportError):
        ReservationPlan.from_payload(plan_payload(900, 300, remaining=500))
    with pytest.raises(TransportError):
        ReservationPlan.from_payload(plan_payload(900, 1000))


def test_float_noise_in_balances_is_rounded_to_cents() -> None:
    # 1000 - 666.66 == 333.34000000000003 in binary floating point
    plan = _plan(1000, 666.66)
    assert plan.remaining_amount == Decimal("333.34")
    assert plan.paid_amount == Decimal("666.66")


@pytest.mark.asyncio
async def test_exact_remaining_of_noisy_plan_can_be_paid(api, client) -> None:
    api.on("GET", "/reservation-plans/plan-1", {"success": True, "plan": plan_payload(1000, 666.66)})
    api.on("POST", "/reservation-plans/plan-1/payments", {"success": True})
    ledger = PaymentLedger(client)
    plan = await ledger.load("plan-1")
    await ledger.add_payment(plan, "333.34")
    assert body_of(api.calls("POST")[0])["amount"] == 333.34


@pytest.mark.asyncio
async def test_sub_cent_amount_is_rejected_before_sending(api, client) -> None:
    with pytest.raises(ValidationError):
        await PaymentLedger(client).add_payment(_plan(900, 0), "0.004")
    assert api.requests == []


@pytest.mark.asyncio
async def test_amount_is_validated_and_sent_in_cents(api, client) -> None:
    api.on("GET", "/reservation-plans/plan-1", {"success": True, "plan": plan_payload(900, 0)})
    api.on("POST", "/reservation-plans/plan-1/payments", {"success": True})
    await PaymentLedger(client).add_payment(_plan(900, 0), "100.555")
    assert body_of(api.calls("POST")[0])["amount"] == 100.56
    with pytest.raises(ValidationError):
        await PaymentLedger(client).add_payment(_plan(400, 300), "100.005")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -50, "0.00", "abc"])
async def test_non_positive_or_invalid_amount_sends_nothing(api, client, amount) -> None:
    ledger = PaymentLedger(client)
    with pytest.raises(ValidationError):
        await ledger.add_payment(_plan(900, 0), amount)
    assert api.requests == []


@pytest.mark.asyncio
async def test_amount_above_remaining_sends_nothing(api, client) -> None:
    plan = _plan(400, 300)
    assert plan.remaining_amount == Decimal("100")
    with pytest.raises(ValidationError):
        await PaymentLedger(client).add_payment(plan, 150)
    assert api.requests == []


@pytest.mark.asyncio
async def test_three_monthly_installments_complete_the_plan(api, client) -> None:
    server = PlanServer(900)
    server.mount(api)
    ledger = PaymentLedger(client)
    plan = await ledger.load("plan-1")

    plan = await ledger.add_payment(plan, 300, "2026-08-01")
    plan = await ledger.verify_payment(plan, "pay-1")
    plan = await ledger.add_payment(plan, 300, "2026-09-01")
    plan = await ledger.verify_payment(plan, "pay-2")
    assert plan.remaining_amount == Decimal("300")
    assert plan.status == "active"
    assert all(p.verified for p in plan.payments)

    plan = await ledger.add_payment(plan, 300, "2026-10-01", notes="  última cuota ")
    assert plan.remaining_amount == 0
    reloaded = await ledger.load("plan-1")
    assert reloaded.status == "completed"
    assert ledger.progress() == Decimal("100")

    posted = [body_of(r) for r in api.calls("POST")]
    assert [p["paymentDate"] for p in posted] == ["2026-08-01", "2026-09-01", "2026-10-01"]
    assert posted[-1]["notes"] == "última cuota"


@pytest.mark.asyncio
async def test_every_mutation_is_followed_by_a_reload(api, client) -> None:
    server = PlanServer(900)
    server.mount(api)
    ledger = PaymentLedger(client)
    plan = await ledger.load("plan-1")
    await ledger.add_payment(plan, 100)
    methods = [r.method for r in api.requests]
    assert methods == ["GET", "POST", "GET"]
    assert ledger.plan is not None and ledger.plan.paid_amount == Decimal("100")


@pytest.mark.asyncio
async def test_failed_mutation_still_reloads_and_raises(api, client) -> None:
    api.on("GET", "/reservation-plans/plan-1", {"success": True, "plan": plan_payload(900, 300)})
    api.on(
        "POST",
        "/reservation-plans/plan-1/payments",
        httpx.Response(400, json={"success": False, "message": "Plan vencido"}),
    )
    ledger = PaymentLedger(client)
    plan = await ledger.load("plan-1")
    with pytest.raises(RequestError, match="Plan vencido"):
        await ledger.add_payment(plan, 100)
    assert [r.method for r in api.requests] == ["GET", "POST", "GET"]


@pytest.mark.asyncio
async def test_verify_unknown_or_verified_payment_is_local_error(api, client) -> None:
    plan = _plan(
        900,
        300,
        payments=[{"id": "pay-1", "amount": 300, "paymentDate": "2026-08-01", "verified": True}],
    )
    ledger = PaymentLedger(client)
    with pytest.raises(ValidationError):
        await ledger.verify_payment(plan, "pay-1")
    with pytest.raises(ValidationError):
        await ledger.verify_payment(plan, "pay-404")
    assert api.requests == []


def test_progress_is_clamped_and_safe_on_zero_total() -> None:
    assert progress(_plan(900, 300)).quantize(Decimal("0.01")) == Decimal("33.33")
    assert progress(_plan(0, 0)) == Decimal("0")
    assert installment_amount(_plan(1000, 0)) == Decimal("333.33")
