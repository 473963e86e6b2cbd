"""Tests for the workbook snapshot provider."""

import io

import pytest
from openpyxl import Workbook

from src.phonefleet.api.exceptions import ConfigurationError
from src.phonefleet.sync.adapters.field_mapper import SheetFieldMapper
from src.phonefleet.sync.adapters.workbook_snapshot import WorkbookSnapshotProvider
from src.phonefleet.sync.domain.entities import EntityKind


def workbook_bytes(wb: Workbook) -> bytes:
    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output.getvalue()


@pytest.fixture
def inventory_bytes():
    """Workbook with a SIM sheet and a SOTI sheet carrying a banner row."""
    wb = Workbook()
    ws = wb.active
    ws.title = "SIMs"
    ws.append(["ICC", "Empresa", "Estado", "IP"])
    ws.append(["8957001", "CLARO (ACME)", "Active", "10.0.0.1"])
    ws.append([None, None, None, None])
    ws.append(["8957002", "MOVISTAR (Beta)", None, None])

    soti = wb.create_sheet("SOTI")
    soti.append(["Exported 2024-03-05"])
    soti.append(["Device Name", "IMEI/MEID/ESN", "Ruta"])
    soti.append(["CEL-001", 356000000000001, "R1"])
    return workbook_bytes(wb)


class TestWorkbookSnapshotProvider:
    """Tests for WorkbookSnapshotProvider."""

    def test_read_rows_skips_blank_rows(self, inventory_bytes):
        provider = WorkbookSnapshotProvider(inventory_bytes)

        rows = provider.read_rows(EntityKind.SIM)

        assert rows == [
            {"ICC": "8957001", "Empresa": "CLARO (ACME)", "Estado": "Active", "IP": "10.0.0.1"},
            {"ICC": "8957002", "Empresa": "MOVISTAR (Beta)", "Estado": None, "IP": None},
        ]

    def test_enrolled_header_is_second_row(self, inventory_bytes):
        provider = WorkbookSnapshotProvider(inventory_bytes)

        rows = provider.read_rows(EntityKind.ENROLLED)

        assert rows == [
            {"Device Name": "CEL-001", "IMEI/MEID/ESN": 356000000000001, "Ruta": "R1"}
        ]

    async def test_fetch_rows_feeds_the_mapper(self, inventory_bytes):
        provider = WorkbookSnapshotProvider(inventory_bytes)

        rows = await provider.fetch_rows(EntityKind.ENROLLED)
        parsed = SheetFieldMapper().parse(EntityKind.ENROLLED, rows)

        assert parsed.errors == []
        assert parsed.records[0].imei == "356000000000001"

    def test_sheet_names_can_be_overridden(self):
        wb = Workbook()
        wb.active.title = "Inventario"
        wb.active.append(["Key", "Title"])
        wb.active.append(["SUP-1", "Entrega"])
        provider = WorkbookSnapshotProvider(
            workbook_bytes(wb), sheets={EntityKind.TICKET: "Inventario"}
        )

        assert provider.read_rows(EntityKind.TICKET) == [{"Key": "SUP-1", "Title": "Entrega"}]

    def test_missing_sheet(self, inventory_bytes):
        provider = WorkbookSnapshotProvider(inventory_bytes)

        with pytest.raises(ConfigurationError) as exc_info:
            provider.read_rows(EntityKind.TICKET)

        assert "SIMs" in exc_info.value.details["available"]

    def test_missing_file(self, tmp_path):
        provider = WorkbookSnapshotProvider(tmp_path / "nope.xlsx")

        with pytest.raises(ConfigurationError):
            provider.read_rows(EntityKind.SIM)
