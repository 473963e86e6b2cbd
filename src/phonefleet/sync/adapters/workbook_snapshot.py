"""Workbook snapshot provider.

Implements ISnapshotProvider over an .xlsx export of the inventory
spreadsheet, one worksheet per entity kind. Cells are returned untouched;
typing and validation belong to the field mapper.
"""

import io
import logging
from pathlib import Path
from typing import Any, Optional, Union

import anyio
from openpyxl import load_workbook

from ...api.exceptions import ConfigurationError
from ..domain.entities import EntityKind
from ..domain.ports import ISnapshotProvider

logger = logging.getLogger(__name__)

DEFAULT_SHEETS: dict[EntityKind, str] = {
    EntityKind.SIM: "SIMs",
    EntityKind.STOCK: "Stock",
    EntityKind.ENROLLED: "SOTI",
    EntityKind.TICKET: "Tickets",
}

# 1-based header row per kind; the SOTI export has a banner row on top
HEADER_ROWS: dict[EntityKind, int] = {
    EntityKind.ENROLLED: 2,
}


class WorkbookSnapshotProvider(ISnapshotProvider):
    """Reads sheet rows from an openpyxl workbook.

    Example:
        provider = WorkbookSnapshotProvider("exports/inventory.xlsx")
        rows = await provider.fetch_rows(EntityKind.SIM)
    """

    def __init__(
        self,
        source: Union[str, Path, bytes],
        sheets: Optional[dict[EntityKind, str]] = None,
    ):
        self.source = source
        self.sheets = {**DEFAULT_SHEETS, **(sheets or {})}

    async def fetch_rows(self, kind: EntityKind) -> list[dict[str, Any]]:
        # openpyxl is blocking; keep the event loop free
        return await anyio.to_thread.run_sync(self.read_rows, kind)

    def read_rows(self, kind: EntityKind) -> list[dict[str, Any]]:
        """Read one worksheet as a list of {header: cell} rows.

        Fully blank rows are skipped.

        Raises:
            ConfigurationError: If the workbook or worksheet does not exist
        """
        sheet_name = self.sheets[kind]
        header_row = HEADER_ROWS.get(kind, 1)

        try:
            if isinstance(self.source, bytes):
                wb = load_workbook(filename=io.BytesIO(self.source), read_only=True, data_only=True)
            else:
                wb = load_workbook(filename=str(self.source), read_only=True, data_only=True)
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"Snapshot workbook not found: {self.source}",
                cause=e,
            )

        try:
            if sheet_name not in wb.sheetnames:
                raise ConfigurationError(
                    f"Worksheet '{sheet_name}' not found in snapshot workbook",
                    details={"available": wb.sheetnames},
                )
            ws = wb[sheet_name]

            header_cells = next(
                ws.iter_rows(min_row=header_row, max_row=header_row, values_only=True),
                None,
            )
            if not header_cells:
                return []
            headers = [
                str(h).strip() if h is not None else None for h in header_cells
            ]

            rows: list[dict[str, Any]] = []
            for values in ws.iter_rows(min_row=header_row + 1, values_only=True):
                if all(v is None or str(v).strip() == "" for v in values):
                    continue
                rows.append({
                    header: value
                    for header, value in zip(headers, values)
                    if header
                })
        finally:
            wb.close()

        logger.debug(f"Read {len(rows)} rows from worksheet '{sheet_name}'")
        return rows
