"""Review queue for bank-transfer receipts.

Review states::

    pendiente ──► en_revision ──► aprobado | rechazado
        └───────────────────────► aprobado | rechazado

``aprobado`` and ``rechazado`` are terminal in the queue. A rejection always
carries a reason; approvals and reviews never do.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional, Tuple

from settlement.api.client import SettlementClient
from settlement.config import settings
from settlement.errors import ActionInProgressError, TransportError, ValidationError
from settlement.models import ReceiptFilters, ReceiptPage, ReceiptQueueEntry
from settlement.services.audit import log_audit
from settlement.services.status_normalizer import RECEIPT_STATUS
from settlement.utils.time import to_date_param

logger = logging.getLogger(__name__)

REVIEW_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "pendiente": ("en_revision", "aprobado", "rechazado"),
    "en_revision": ("aprobado", "rechazado"),
    "aprobado": (),
    "rechazado": (),
}

_FILTER_FIELDS = ("status", "date_from", "date_to")
_PAGING_FIELDS = ("limit", "offset")


def available_actions(receipt_status: str) -> Tuple[str, ...]:
    """Target statuses the review queue offers from ``receipt_status``."""
    return REVIEW_TRANSITIONS.get(RECEIPT_STATUS.to_canonical(receipt_status), ())


def require_rejection_reason(new_status: str, rejection_reason: Optional[str]) -> Optional[str]:
    """Return the reason to send for ``new_status`` (canonical), or raise."""
    if new_status != "rechazado":
        return None
    reason = (rejection_reason or "").strip()
    if not reason:
        raise ValidationError("Debe proporcionar un motivo de rechazo", field="rejection_reason")
    return reason


def normalize_filters(filters: ReceiptFilters) -> ReceiptFilters:
    if filters.limit < 1:
        raise ValidationError("limit must be at least 1", field="limit")
    if filters.offset < 0:
        raise ValidationError("offset must not be negative", field="offset")
    try:
        date_from = to_date_param(filters.date_from)
        date_to = to_date_param(filters.date_to)
    except ValueError as e:
        raise ValidationError(str(e), field="date") from e
    if date_from and date_to and date_from > date_to:
        raise ValidationError("dateFrom must not be after dateTo", field="date_from")
    status = RECEIPT_STATUS.to_canonical_strict(filters.status) if filters.status else None
    return replace(filters, status=status, date_from=date_from, date_to=date_to)


def apply_filter_changes(filters: ReceiptFilters, **changes: Any) -> ReceiptFilters:
    """New filters with ``changes`` applied.

    Any change to status or dates sends the queue back to the first page.
    """
    unknown = set(changes) - set(_FILTER_FIELDS) - set(_PAGING_FIELDS)
    if unknown:
        raise ValidationError(f"unknown receipt filter(s): {', '.join(sorted(unknown))}")
    updated = replace(filters, **changes)
    if any(_filter_key(updated, f) != _filter_key(filters, f) for f in _FILTER_FIELDS):
        updated = replace(updated, offset=0)
    return updated


def _filter_key(filters: ReceiptFilters, name: str) -> Any:
    # Compares what would be sent, so "Pendiente" and "pendiente" are one filter
    value = getattr(filters, name) or None
    if value is None:
        return None
    if name == "status":
        return RECEIPT_STATUS.to_canonical(value)
    try:
        return to_date_param(value)
    except ValueError:
        return value


def parse_receipt_page(data: Mapping[str, Any], filters: ReceiptFilters) -> ReceiptPage:
    rows = data.get("data")
    if rows is None:
        rows = data.get("items")
    if not isinstance(rows, list):
        raise TransportError("Respuesta no válida del servidor: falta la lista de comprobantes")
    items = tuple(ReceiptQueueEntry.from_payload(r) for r in rows)
    pagination = data.get("pagination")
    if not isinstance(pagination, Mapping):
        pagination = data
    try:
        total = int(pagination.get("total", len(items)))
    except (TypeError, ValueError) as e:
        raise TransportError("Respuesta no válida del servidor: total inválido") from e
    has_more = pagination.get("hasMore")
    if has_more is None:
        has_more = filters.offset + len(items) < total
    return ReceiptPage(items=items, total=total, has_more=bool(has_more), filters=filters)


class ReceiptVerificationWorkflow:
    def __init__(self, client: SettlementClient, page_size: Optional[int] = None) -> None:
        self._client = client
        self.filters = ReceiptFilters(limit=page_size or settings.receipts_page_size)
        self.page: Optional[ReceiptPage] = None
        # True while an approve/review/reject request is in flight
        self.processing = False

    @property
    def can_go_next(self) -> bool:
        return bool(self.page and self.page.has_more)

    @property
    def can_go_previous(self) -> bool:
        return self.filters.offset > 0

    async def list_receipts(self, filters: Optional[ReceiptFilters] = None) -> ReceiptPage:
        wanted = normalize_filters(filters or self.filters)
        data = await self._client.list_receipts(wanted.to_params())
        page = parse_receipt_page(data, wanted)
        self.filters = wanted
        self.page = page
        logger.debug("Loaded %d receipts (total=%d, offset=%d)", len(page.items), page.total, wanted.offset)
        return page

    async def reload(self) -> ReceiptPage:
        return await self.list_receipts(self.filters)

    async def change_filter(self, **changes: Any) -> ReceiptPage:
        return await self.list_receipts(apply_filter_changes(self.filters, **changes))

    async def next_page(self) -> ReceiptPage:
        if not self.can_go_next:
            raise ValidationError("No hay más comprobantes", field="offset")
        return await self.list_receipts(replace(self.filters, offset=self.filters.offset + self.filters.limit))

    async def previous_page(self) -> ReceiptPage:
        return await self.list_receipts(replace(self.filters, offset=max(0, self.filters.offset - self.filters.limit)))

    async def set_status(self, owner_id: str, new_status: str, rejection_reason: Optional[str] = None) -> ReceiptPage:
        status = RECEIPT_STATUS.to_canonical_strict(new_status)
        reason = require_rejection_reason(status, rejection_reason)
        if self.processing:
            raise ActionInProgressError("Ya hay una acción en curso sobre los comprobantes")
        self.processing = True
        try:
            await self._client.update_receipt_status(str(owner_id), status, reason)
        finally:
            self.processing = False
        logger.info("Receipt of order %s set to %s", owner_id, status)
        log_audit(
            actor=self._client.actor,
            action="receipt_status_change",
            target_type="receipt",
            target_id=str(owner_id),
            meta={"status": status, "rejection_reason": reason},
        )
        return await self.reload()

    async def approve(self, owner_id: str) -> ReceiptPage:
        return await self.set_status(owner_id, "aprobado")

    async def start_review(self, owner_id: str) -> ReceiptPage:
        return await self.set_status(owner_id, "en_revision")

    async def reject(self, owner_id: str, rejection_reason: str) -> ReceiptPage:
        return await self.set_status(owner_id, "rechazado", rejection_reason)
