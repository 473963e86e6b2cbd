"""Tests for the SheetFieldMapper adapter."""

from datetime import datetime, timezone

import pytest

from src.phonefleet.api.exceptions import RecordValidationError
from src.phonefleet.sync.adapters.field_mapper import (
    SheetFieldMapper,
    clean_cell,
    derive_stock_status,
    map_sim_status,
    normalize_header,
    parse_empresa,
    parse_ticket_date,
    split_model,
)
from src.phonefleet.sync.domain.entities import (
    EntityKind,
    InventoryStatus,
    NetworkProvider,
)


class TestCellHelpers:
    """Tests for the pure cell-level helpers."""

    def test_normalize_header_ignores_case_accents_and_spacing(self):
        assert normalize_header("  Dirección IP ") == "direccion_ip"
        assert normalize_header("Hora de  inscripción") == "hora_de_inscripcion"
        assert normalize_header("ICC") == "icc"

    def test_clean_cell(self):
        assert clean_cell(None) is None
        assert clean_cell("   ") is None
        assert clean_cell("  abc ") == "abc"
        # Numeric ids come back from exports as floats
        assert clean_cell(356789012345678.0) == "356789012345678"
        assert clean_cell(12) == "12"

    def test_parse_empresa(self):
        assert parse_empresa("CLARO (ACME)") == (NetworkProvider.CLARO, "ACME")
        assert parse_empresa("movistar ( Norte Sur )") == (
            NetworkProvider.MOVISTAR,
            "Norte Sur",
        )

    def test_parse_empresa_keeps_nested_parentheses(self):
        assert parse_empresa("CLARO (ACME (Norte))") == (
            NetworkProvider.CLARO,
            "ACME (Norte)",
        )

    @pytest.mark.parametrize("value", ["BadFormat", "ENTEL (ACME)", "CLARO ACME"])
    def test_parse_empresa_rejects_other_shapes(self, value):
        with pytest.raises(RecordValidationError) as exc_info:
            parse_empresa(value)
        assert "Invalid Empresa format" in exc_info.value.message
        assert exc_info.value.field == "empresa"

    def test_map_sim_status(self):
        assert map_sim_status(None) == "Inventario"
        assert map_sim_status("Active") == "Activado"
        assert map_sim_status("inactive") == "Desactivado"
        assert map_sim_status("Suspendido") == "Suspendido"

    def test_split_model(self):
        assert split_model("Samsung A15") == ("Samsung", "A15")
        assert split_model("Motorola Moto G54 5G") == ("Motorola", "Moto G54 5G")
        assert split_model("A15") == ("Unknown", "A15")
        assert split_model(None) == ("Unknown", "Unknown")

    def test_derive_stock_status(self):
        assert derive_stock_status("Ana", "T-1") == InventoryStatus.USED
        assert derive_stock_status("Ana", None) == InventoryStatus.ASSIGNED
        assert derive_stock_status(None, "T-1") == InventoryStatus.NOT_REPAIRED
        assert derive_stock_status(None, None) == InventoryStatus.NEW

    def test_parse_ticket_date_formats(self):
        expected = datetime(2024, 3, 5, 14, 30, tzinfo=timezone.utc)
        assert parse_ticket_date("05/03/2024 14:30") == expected
        assert parse_ticket_date("05/03/2024 14:30:00") == expected
        assert parse_ticket_date("2024-03-05T14:30:00Z") == expected
        assert parse_ticket_date("2024-03-05") == datetime(2024, 3, 5, tzinfo=timezone.utc)

    def test_parse_ticket_date_unparseable_is_none(self):
        assert parse_ticket_date("yesterday") is None
        assert parse_ticket_date(None) is None


class TestSheetFieldMapper:
    """Tests for SheetFieldMapper.parse."""

    @pytest.fixture
    def mapper(self):
        return SheetFieldMapper()

    def test_sim_rows(self, mapper):
        rows = [
            {"ICC": "8957", "Empresa": "CLARO (ACME)", "Estado": "active", "IP": "10.0.0.1"},
            {"ICC": "8958", "Empresa": "MOVISTAR (Beta)", "Estado": ""},
        ]

        result = mapper.parse(EntityKind.SIM, rows)

        assert result.errors == []
        first, second = result.records
        assert first.icc == "8957"
        assert first.provider == NetworkProvider.CLARO
        assert first.distributor_name == "ACME"
        assert first.status == "Activado"
        assert first.ip == "10.0.0.1"
        assert second.status == "Inventario"
        assert second.ip is None

    def test_bad_empresa_is_rejected_not_raised(self, mapper):
        rows = [
            {"ICC": "1", "Empresa": "CLARO (ACME)"},
            {"ICC": "2", "Empresa": "BadFormat"},
            {"ICC": "3", "Empresa": "MOVISTAR (ACME)"},
        ]

        result = mapper.parse(EntityKind.SIM, rows)

        assert [r.icc for r in result.records] == ["1", "3"]
        assert len(result.errors) == 1
        error = result.errors[0].to_dict()
        assert error["record"] == {"icc": "2", "empresa": "BadFormat"}
        assert "Invalid Empresa format" in error["error"]

    def test_missing_required_field(self, mapper):
        result = mapper.parse(EntityKind.SIM, [{"ICC": "", "Empresa": "CLARO (X)"}])

        assert result.records == []
        assert result.errors[0].reason == "Missing required field(s): icc"
        assert result.errors[0].record["icc"] == "unknown"

    def test_header_variants_resolve_to_the_same_fields(self, mapper):
        rows = [
            {" iccid ": "1", "EMPRESA": "CLARO (A)", "Dirección IP": "1.1.1.1"},
        ]

        result = mapper.parse(EntityKind.SIM, rows)

        assert result.records[0].icc == "1"
        assert result.records[0].ip == "1.1.1.1"

    def test_columns_resolved_once_per_header_set(self, mapper):
        rows = [{"ICC": str(i), "Empresa": "CLARO (A)"} for i in range(50)]

        mapper.parse(EntityKind.SIM, rows)

        assert len(mapper._column_cache) == 1

    def test_stock_rows(self, mapper):
        rows = [
            {"IMEI": 356000000000001.0, "Modelo": "Samsung A15", "Distribuidora": "ACME",
             "Asignado a": "Ana", "Ticket": ""},
            {"IMEI": "356000000000002", "Modelo": "", "Distribuidora": ""},
        ]

        result = mapper.parse(EntityKind.STOCK, rows)

        first, second = result.records
        assert first.imei == "356000000000001"
        assert (first.brand, first.model) == ("Samsung", "A15")
        assert first.distributor_name == "ACME"
        assert first.status == InventoryStatus.ASSIGNED
        assert second.distributor_name is None
        assert second.status == InventoryStatus.NEW

    def test_enrolled_rows(self, mapper):
        rows = [
            {"Device Name": "CEL-001", "IMEI/MEID/ESN": "356000000000001",
             "Android Enter Email": "a@x.com", "Ruta": "R1"},
            {"Device Name": "", "IMEI/MEID/ESN": "356000000000002"},
        ]

        result = mapper.parse(EntityKind.ENROLLED, rows)

        assert len(result.records) == 1
        record = result.records[0]
        assert record.device_name == "CEL-001"
        assert record.android_enterprise_email == "a@x.com"
        assert record.route == "R1"
        assert record.phone is None
        assert result.errors[0].reason == "Missing required field(s): device_name"

    def test_ticket_classification(self, mapper):
        rows = [
            {"Key": "SUP-1", "Title": "Cambio equipo R-2 P-1", "Label": "soporte"},
            {"Key": "SUP-2", "Title": "Entrega", "Label": "ASG-CEL"},
            {"Key": "SUP-3", "Title": "Recambio R-1", "Label": "asg-cel,otro"},
            {"Key": "SUP-4", "Title": "Reemplazo", "Label": "REC-CEL",
             "Created": "05/03/2024 14:30", "Updated": "not a date"},
        ]

        result = mapper.parse(EntityKind.TICKET, rows)

        by_key = {r.key: r for r in result.records}
        assert by_key["SUP-1"].replacement_count == 2
        assert by_key["SUP-1"].pending_count == 1
        assert by_key["SUP-1"].is_replacement is True
        assert by_key["SUP-1"].is_assignment is False

        assert by_key["SUP-2"].is_assignment is True
        assert by_key["SUP-2"].is_replacement is False

        # Never both assignment and replacement
        assert by_key["SUP-3"].is_assignment is True
        assert by_key["SUP-3"].is_replacement is False

        assert by_key["SUP-4"].is_replacement is True
        assert by_key["SUP-4"].created == datetime(2024, 3, 5, 14, 30, tzinfo=timezone.utc)
        assert by_key["SUP-4"].updated is None
        assert by_key["SUP-4"].creator == "Unknown"
