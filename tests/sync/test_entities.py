"""Tests for sync domain entities."""

from datetime import datetime, timedelta, timezone

import pytest

from src.phonefleet.sync.domain.entities import (
    EntityKind,
    InventoryStatus,
    NetworkProvider,
    ParseResult,
    RecordError,
    SimRecord,
    StockRecord,
    SyncResult,
    TicketRecord,
)


class TestSheetRecord:
    """Tests for the natural key and values() contract."""

    def test_sim_values_follow_sheet_columns(self):
        sim = SimRecord(
            icc="8957",
            provider=NetworkProvider.MOVISTAR,
            distributor_name="ACME",
            distributor_id="d-1",
            ip="10.0.0.1",
        )

        assert sim.natural_key == "8957"
        assert sim.values() == ("MOVISTAR", "d-1", "Inventario", "10.0.0.1")

    def test_stock_values_unwrap_enums(self):
        stock = StockRecord(imei="356", status=InventoryStatus.USED, model_id="m-1")

        assert stock.natural_key == "356"
        assert stock.values() == ("m-1", None, None, None, "USED")

    def test_names_are_not_written(self):
        stock = StockRecord(imei="356", brand="Samsung", model="A15", distributor_name="ACME")

        assert "Samsung" not in stock.values()
        assert "ACME" not in stock.values()

    def test_ticket_key(self):
        ticket = TicketRecord(key="SUP-9", title="Cambio")

        assert ticket.natural_key == "SUP-9"
        assert len(ticket.values()) == len(TicketRecord.SHEET_COLUMNS)


class TestParseResult:
    def test_total(self):
        result = ParseResult(
            records=[object(), object()],
            errors=[RecordError(record={"icc": "1"}, reason="bad")],
        )

        assert result.total == 3


class TestSyncResult:
    """Tests for SyncResult."""

    def test_duration(self):
        started = datetime(2024, 1, 1, tzinfo=timezone.utc)
        result = SyncResult(
            kind=EntityKind.SIM,
            success=True,
            started_at=started,
            completed_at=started + timedelta(seconds=2.5),
        )

        assert result.duration_seconds == 2.5

    def test_duration_none_while_running(self):
        result = SyncResult(kind=EntityKind.SIM, success=False, started_at=datetime.now(timezone.utc))

        assert result.duration_seconds is None

    @pytest.mark.parametrize(
        "fields, expected",
        [
            ({}, 200),
            ({"errors": 1}, 207),
            ({"fatal": True, "errors": 1}, 500),
            ({"no_input": True}, 400),
            ({"no_input": True, "errors": 3}, 400),
        ],
    )
    def test_http_status(self, fields, expected):
        result = SyncResult(kind=EntityKind.TICKET, success=False, **fields)

        assert result.http_status == expected

    def test_to_dict_minimal(self):
        result = SyncResult(kind=EntityKind.TICKET, success=True, processed=3, created=3)

        assert result.to_dict() == {
            "success": True,
            "processed": 3,
            "created": 3,
            "updated": 0,
            "unchanged": 0,
            "deactivated": 0,
            "errors": 0,
        }

    def test_to_dict_with_catalog_counts_and_errors(self):
        result = SyncResult(
            kind=EntityKind.STOCK,
            success=False,
            processed=1,
            errors=1,
            created_distributors=2,
            created_models=0,
            error_details=[RecordError(record={"imei": "unknown"}, reason="Missing")],
        )

        payload = result.to_dict()

        assert payload["createdDistributors"] == 2
        assert payload["createdModels"] == 0
        assert payload["details"] == {
            "errors": [{"record": {"imei": "unknown"}, "error": "Missing"}]
        }
        assert "error" not in payload

    def test_to_dict_includes_fatal_error_message(self):
        result = SyncResult(kind=EntityKind.SIM, success=False, fatal=True, error="store down")

        assert result.to_dict()["error"] == "store down"
