from __future__ import annotations

import types
from pathlib import Path

from settlement.config import refresh_settings, settings


def test_healthcheck_import() -> None:
    import settlement.healthcheck as hc
    assert isinstance(hc, types.ModuleType)


def test_env_example_keys_present() -> None:
    # Ensure critical env keys exist in example template for documentation correctness
    root = Path(__file__).resolve().parents[1]
    example = (root / ".env.example").read_text(encoding="utf-8")
    for key in [
        "API_BASE_URL",
        "API_TOKEN",
        "RECEIPTS_PAGE_SIZE",
        "LOG_TO_FILE",
    ]:
        assert key in example


def test_settings_refresh_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("RECEIPTS_PAGE_SIZE", "50")
    monkeypatch.setenv("API_BASE_URL", "https://tienda.example/api")
    try:
        refresh_settings()
        assert settings.receipts_page_size == 50
        assert settings.api_base_url == "https://tienda.example/api"
    finally:
        monkeypatch.undo()
        refresh_settings()


def test_cli_parser_knows_every_command() -> None:
    from settlement.main import build_parser

    parser = build_parser()
    args = parser.parse_args(["receipt-status", "ord-1", "rechazado", "--reason", "ilegible"])
    assert (args.order_id, args.status, args.reason) == ("ord-1", "rechazado", "ilegible")
    args = parser.parse_args(["add-payment", "plan-1", "300", "--date", "2026-10-01"])
    assert args.amount == "300"
