from __future__ import annotations

import pytest

from settlement.errors import ValidationError
from settlement.services.status_normalizer import (
    ORDER_STATUS,
    PAYMENT_METHOD,
    PAYMENT_STATUS,
    RECEIPT_STATUS,
    TABLES,
    VOCABULARIES,
    StatusEntry,
    StatusTable,
)


@pytest.mark.parametrize("table", TABLES, ids=lambda t: t.dimension)
def test_alias_round_trip_every_code_and_vocabulary(table: StatusTable) -> None:
    for code in table.codes:
        for vocab in VOCABULARIES:
            assert table.to_canonical(table.to_locale_alias(code, vocab)) == code


def test_spanish_form_values_map_to_order_codes() -> None:
    assert ORDER_STATUS.to_canonical("confirmado") == "confirmed"
    assert ORDER_STATUS.to_canonical("Cancelada") == "cancelled"
    assert ORDER_STATUS.to_canonical("  ENVIADO ") == "shipped"
    assert ORDER_STATUS.to_locale_alias("processing", "es") == "procesando"


def test_receipt_status_tolerates_accents_and_spaces() -> None:
    assert RECEIPT_STATUS.to_canonical("En Revisión") == "en_revision"
    assert RECEIPT_STATUS.to_canonical("en-revision") == "en_revision"
    assert RECEIPT_STATUS.to_canonical("approved") == "aprobado"


def test_unknown_value_passes_through_leniently() -> None:
    assert ORDER_STATUS.to_canonical("on_hold") == "on_hold"
    assert ORDER_STATUS.to_canonical(None) is None


def test_strict_lookup_rejects_unknown() -> None:
    with pytest.raises(ValidationError) as exc:
        ORDER_STATUS.to_canonical_strict("on_hold")
    assert exc.value.field == "order status"
    with pytest.raises(ValidationError):
        PAYMENT_STATUS.to_canonical_strict("")


def test_display_label_is_total() -> None:
    assert PAYMENT_STATUS.to_display_label("pagado") == "Pagado"
    assert PAYMENT_METHOD.to_display_label("transferencia") == "Transferencia"
    assert ORDER_STATUS.to_display_label("on_hold") == "on_hold"
    assert ORDER_STATUS.to_display_label(None) == "Desconocido"
    assert ORDER_STATUS.to_display_label("  ") == "Desconocido"


def test_conflicting_aliases_rejected_at_table_build() -> None:
    with pytest.raises(ValueError):
        StatusTable(
            "broken",
            (
                StatusEntry("a", "A", es="uno", en="one"),
                StatusEntry("b", "B", es="uno", en="two"),
            ),
        )
