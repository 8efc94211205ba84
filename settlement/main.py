"""Operator console for the settlement layer.

Usage examples::

    python -m settlement receipts --status pendiente
    python -m settlement receipt-status ORDER_ID rechazado --reason "monto ilegible"
    python -m settlement plan PLAN_ID
    python -m settlement add-payment PLAN_ID 300 --date 2026-10-01
    python -m settlement verify-payment PLAN_ID PAYMENT_ID
    python -m settlement order-status ORDER_ID confirmado
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from settlement.api.client import SettlementClient, get_client
from settlement.config import refresh_settings, settings
from settlement.errors import SettlementError, ValidationError
from settlement.logging_config import setup_logging
from settlement.models import ReceiptFilters, ReceiptPage, ReservationPlan
from settlement.services.order_status import OrderStatusMachine, receipt_panel
from settlement.services.payment_ledger import PaymentLedger, installment_amount
from settlement.services.receipt_verification import ReceiptVerificationWorkflow
from settlement.services.reservation_plans import ReservationPlanDesk
from settlement.services.status_normalizer import (
    ORDER_STATUS,
    PAYMENT_FREQUENCY,
    PAYMENT_METHOD,
    PAYMENT_STATUS,
    PLAN_STATUS,
    RECEIPT_STATUS,
)
from settlement.utils.correlation import set_correlation_id

logger = logging.getLogger(__name__)


def _print_receipts(page: ReceiptPage) -> None:
    f = page.filters
    print(f"Comprobantes {f.offset + 1 if page.items else 0}-{f.offset + len(page.items)} de {page.total}")
    for e in page.items:
        print(f"  {e.id} #{e.order_number} {e.customer_name or '-'} {e.total} {RECEIPT_STATUS.to_display_label(e.receipt.receipt_status)}")
    if page.has_more:
        print(f"  (siguiente: --offset {f.offset + f.limit})")


def _print_plan(plan: ReservationPlan, pct) -> None:
    print(f"Plan {plan.id} [{PLAN_STATUS.to_display_label(plan.status)}] {plan.product_name or plan.product_id or '-'}")
    print(f"  total={plan.total_amount} pagado={plan.paid_amount} pendiente={plan.remaining_amount} progreso={pct:.0f}%")
    print(f"  {plan.number_of_payments} cuotas {PAYMENT_FREQUENCY.to_display_label(plan.payment_frequency)} de {installment_amount(plan)}")
    for p in plan.payments:
        mark = "verificado" if p.verified else "sin verificar"
        day = p.payment_date.date().isoformat() if p.payment_date else "-"
        print(f"  - {p.id} {day} {p.amount} {mark}")


async def _run(args: argparse.Namespace, client: SettlementClient) -> int:
    if args.command == "receipts":
        wf = ReceiptVerificationWorkflow(client, page_size=args.limit)
        filters = ReceiptFilters(status=args.status, date_from=args.date_from, date_to=args.date_to, limit=wf.filters.limit, offset=args.offset)
        _print_receipts(await wf.list_receipts(filters))
    elif args.command == "receipt-status":
        wf = ReceiptVerificationWorkflow(client)
        page = await wf.set_status(args.order_id, args.status, args.reason)
        print("Comprobante actualizado")
        _print_receipts(page)
    elif args.command == "plans":
        for plan in await ReservationPlanDesk(client).list_plans(args.status):
            print(f"{plan.id} {PLAN_STATUS.to_display_label(plan.status)} total={plan.total_amount} pendiente={plan.remaining_amount}")
    elif args.command == "plan":
        ledger = PaymentLedger(client)
        plan = await ledger.load(args.plan_id)
        _print_plan(plan, ledger.progress(plan))
    elif args.command == "add-payment":
        ledger = PaymentLedger(client)
        plan = await ledger.load(args.plan_id)
        plan = await ledger.add_payment(plan, args.amount, args.date, args.notes)
        print("Pago agregado")
        _print_plan(plan, ledger.progress(plan))
    elif args.command == "verify-payment":
        ledger = PaymentLedger(client)
        plan = await ledger.load(args.plan_id)
        plan = await ledger.verify_payment(plan, args.payment_id)
        print("Pago verificado")
        _print_plan(plan, ledger.progress(plan))
    elif args.command == "order":
        order = await OrderStatusMachine(client).load(args.order_id)
        print(f"Orden #{order.order_number}: {ORDER_STATUS.to_display_label(order.order_status)} / {PAYMENT_STATUS.to_display_label(order.payment_status)} ({PAYMENT_METHOD.to_display_label(order.payment_method)})")
        panel = receipt_panel(order)
        if panel is not None:
            if not panel.has_receipt:
                print("  Sin comprobante")
            else:
                actions = ", ".join(RECEIPT_STATUS.to_display_label(a) for a in panel.actions) or "-"
                print(f"  Comprobante: {RECEIPT_STATUS.to_display_label(panel.receipt.receipt_status)} (acciones: {actions})")
                url = panel.receipt.receipt_url(settings.server_base_url)
                if url:
                    print(f"  Archivo: {url}")
    elif args.command == "order-status":
        order = await OrderStatusMachine(client).request_status_change(args.order_id, args.status)
        print(f"Estado de orden actualizado: {ORDER_STATUS.to_display_label(order.order_status)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="settlement", description="Settlement and status console")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("receipts", help="list the transfer receipt queue")
    p.add_argument("--status")
    p.add_argument("--date-from")
    p.add_argument("--date-to")
    p.add_argument("--limit", type=int)
    p.add_argument("--offset", type=int, default=0)

    p = sub.add_parser("receipt-status", help="approve, review or reject a receipt")
    p.add_argument("order_id")
    p.add_argument("status")
    p.add_argument("--reason")

    p = sub.add_parser("plans", help="list reservation plans")
    p.add_argument("--status")

    p = sub.add_parser("plan", help="show a reservation plan")
    p.add_argument("plan_id")

    p = sub.add_parser("add-payment", help="record an installment payment")
    p.add_argument("plan_id")
    p.add_argument("amount")
    p.add_argument("--date")
    p.add_argument("--notes", default="")

    p = sub.add_parser("verify-payment", help="mark a payment as verified")
    p.add_argument("plan_id")
    p.add_argument("payment_id")

    p = sub.add_parser("order", help="show an order")
    p.add_argument("order_id")

    p = sub.add_parser("order-status", help="request an order status change")
    p.add_argument("order_id")
    p.add_argument("status")
    return parser


async def _main(args: argparse.Namespace) -> int:
    set_correlation_id()
    client = get_client()
    try:
        return await _run(args, client)
    except ValidationError as e:
        print(f"Dato inválido: {e.message}", file=sys.stderr)
        return 2
    except SettlementError as e:
        logger.error("Command %s failed: %s", args.command, e.message)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    finally:
        await client.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    refresh_settings()
    setup_logging()
    args = build_parser().parse_args(argv)
    return asyncio.run(_main(args))


if __name__ == "__main__":
    raise SystemExit(main())
