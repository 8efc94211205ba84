"""Canonical status codes and their locale aliases.

Each status dimension (order status, payment status, receipt status, plan
status, payment method, payment frequency) has one :class:`StatusTable`. The
tables are pure data; every lookup goes through :func:`normalize_status_key`
so ``"En Revisión"``, ``"en-revision"`` and ``"EN_REVISION"`` all land on the
same entry.

There are two lookup flavours:

- ``to_canonical`` / ``to_display_label`` never fail and are meant for
  rendering whatever the server sent;
- ``to_canonical_strict`` raises :class:`ValidationError` and must be used for
  anything that ends up in a request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from settlement.errors import ValidationError
from settlement.utils.text_normalize import normalize_status_key

VOCAB_CANONICAL = "canonical"
VOCAB_ES = "es"
VOCAB_EN = "en"
VOCABULARIES: Tuple[str, ...] = (VOCAB_CANONICAL, VOCAB_ES, VOCAB_EN)

UNKNOWN_LABEL = "Desconocido"


@dataclass(frozen=True)
class StatusEntry:
    code: str
    label: str
    es: str
    en: str
    extra: Tuple[str, ...] = ()

    def alias(self, vocabulary: str) -> str:
        if vocabulary == VOCAB_ES:
            return self.es
        if vocabulary == VOCAB_EN:
            return self.en
        return self.code

    def spellings(self) -> Iterable[str]:
        yield self.code
        yield self.es
        yield self.en
        yield from self.extra


@dataclass
class StatusTable:
    dimension: str
    entries: Tuple[StatusEntry, ...]
    _by_code: Dict[str, StatusEntry] = field(init=False, repr=False)
    _by_key: Dict[str, StatusEntry] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._by_code = {e.code: e for e in self.entries}
        self._by_key = {}
        for e in self.entries:
            for spelling in e.spellings():
                key = normalize_status_key(spelling)
                other = self._by_key.get(key)
                if other is not None and other.code != e.code:
                    raise ValueError(f"{self.dimension}: alias {spelling!r} maps to both {other.code} and {e.code}")
                self._by_key[key] = e

    @property
    def codes(self) -> Tuple[str, ...]:
        return tuple(e.code for e in self.entries)

    def lookup(self, value: Optional[str]) -> Optional[StatusEntry]:
        return self._by_key.get(normalize_status_key(value))

    def to_canonical(self, value):
        """Canonical code for a known alias; anything else comes back unchanged."""
        entry = self.lookup(value)
        return entry.code if entry else value

    def to_canonical_strict(self, value: Optional[str]) -> str:
        entry = self.lookup(value)
        if entry is None:
            allowed = ", ".join(self.codes)
            raise ValidationError(f"unknown {self.dimension} {value!r} (expected one of: {allowed})", field=self.dimension)
        return entry.code

    def to_locale_alias(self, canonical: str, vocabulary: str = VOCAB_ES) -> str:
        if vocabulary not in VOCABULARIES:
            raise ValueError(f"unknown vocabulary {vocabulary!r}")
        return self._by_code[canonical].alias(vocabulary)

    def to_display_label(self, value: Optional[str]) -> str:
        entry = self.lookup(value)
        if entry is not None:
            return entry.label
        if isinstance(value, str) and value.strip():
            return value
        return UNKNOWN_LABEL


ORDER_STATUS = StatusTable(
    "order status",
    (
        StatusEntry("pending", "Pendiente", es="pendiente", en="pending", extra=("pendiente_de_confirmacion",)),
        StatusEntry("confirmed", "Confirmada", es="confirmado", en="confirmed", extra=("confirmada",)),
        StatusEntry("processing", "Procesando", es="procesando", en="processing", extra=("en_proceso",)),
        StatusEntry("shipped", "Enviada", es="enviado", en="shipped", extra=("enviada",)),
        StatusEntry("delivered", "Entregada", es="entregado", en="delivered", extra=("entregada",)),
        StatusEntry("cancelled", "Cancelada", es="cancelado", en="cancelled", extra=("cancelada", "canceled")),
    ),
)

PAYMENT_STATUS = StatusTable(
    "payment status",
    (
        StatusEntry("pending", "Pendiente", es="pendiente", en="pending"),
        StatusEntry("paid", "Pagado", es="pagado", en="paid", extra=("pagada",)),
        StatusEntry("failed", "Fallido", es="fallido", en="failed", extra=("fallida",)),
        StatusEntry("refunded", "Reembolsado", es="reembolsado", en="refunded", extra=("reembolsada",)),
    ),
)

RECEIPT_STATUS = StatusTable(
    "receipt status",
    (
        StatusEntry("pendiente", "Pendiente", es="pendiente", en="pending"),
        StatusEntry("en_revision", "En Revisión", es="en_revision", en="in_review", extra=("under_review", "reviewing")),
        StatusEntry("aprobado", "Aprobado", es="aprobado", en="approved", extra=("aprobada",)),
        StatusEntry("rechazado", "Rechazado", es="rechazado", en="rejected", extra=("rechazada",)),
    ),
)

PLAN_STATUS = StatusTable(
    "plan status",
    (
        StatusEntry("active", "Activo", es="activo", en="active"),
        StatusEntry("completed", "Completado", es="completado", en="completed"),
        StatusEntry("cancelled", "Cancelado", es="cancelado", en="cancelled", extra=("canceled",)),
        StatusEntry("expired", "Expirado", es="expirado", en="expired", extra=("vencido",)),
    ),
)

PAYMENT_METHOD = StatusTable(
    "payment method",
    (
        StatusEntry("cash", "Efectivo", es="efectivo", en="cash"),
        StatusEntry("transfer", "Transferencia", es="transferencia", en="transfer", extra=("bank_transfer", "transferencia_bancaria")),
    ),
)

PAYMENT_FREQUENCY = StatusTable(
    "payment frequency",
    (
        StatusEntry("semanal", "Semanal", es="semanal", en="weekly"),
        StatusEntry("quincenal", "Quincenal", es="quincenal", en="biweekly", extra=("fortnightly",)),
        StatusEntry("mensual", "Mensual", es="mensual", en="monthly"),
    ),
)

TABLES: Tuple[StatusTable, ...] = (
    ORDER_STATUS,
    PAYMENT_STATUS,
    RECEIPT_STATUS,
    PLAN_STATUS,
    PAYMENT_METHOD,
    PAYMENT_FREQUENCY,
)
