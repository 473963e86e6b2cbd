"""Field mapper adapter for spreadsheet rows.

This adapter implements IRecordParser and turns raw sheet rows (header ->
text cell) into typed records for each entity kind.

Header spellings vary between exports (case, accents, spaces vs
underscores), so every logical field declares the spellings it accepts.
The alias table is resolved once per distinct set of headers into a
field -> header map, then reused for every row with those headers.
"""

import logging
import re
import unicodedata
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from ...api.exceptions import RecordValidationError
from ..domain.entities import (
    EnrolledDeviceRecord,
    EntityKind,
    InventoryStatus,
    NetworkProvider,
    ParseResult,
    RecordError,
    SimRecord,
    StockRecord,
    TicketRecord,
)
from ..domain.ports import IRecordParser

logger = logging.getLogger(__name__)


# Logical field -> accepted header spellings, in priority order.
# Spellings are compared after normalize_header().
FIELD_ALIASES: dict[EntityKind, dict[str, list[str]]] = {
    EntityKind.SIM: {
        "icc": ["icc", "iccid"],
        "ip": ["ip", "direccion_ip"],
        "status": ["estado", "status"],
        "empresa": ["empresa", "company"],
    },
    EntityKind.STOCK: {
        "imei": ["imei"],
        "modelo": ["modelo", "model"],
        "distribuidora": ["distribuidora", "distributor", "empresa"],
        "asignado_a": ["asignado_a", "asignado", "assigned_to"],
        "ticket": ["ticket", "ticket_id"],
    },
    EntityKind.ENROLLED: {
        "device_name": ["device_name", "nombre_de_dispositivo", "nombre_dispositivo"],
        "assigned_user": ["assigned_user", "usuario_asignado"],
        "model": ["model", "modelo"],
        "imei": ["imei", "imei/meid/esn"],
        "route": ["route", "ruta"],
        "registration_time": ["registration_time", "hora_de_registro"],
        "enrollment_time": ["enrollment_time", "hora_de_inscripcion"],
        "connection_date": ["connection_date", "fecha_de_conexion"],
        "disconnection_date": ["disconnection_date", "fecha_de_desconexion"],
        "phone": ["phone", "telefono"],
        "bssid_network": ["bssid_network", "red_bssid"],
        "ssid_network": ["ssid_network", "red_ssid"],
        "jira_ticket_id": ["jira_ticket_id", "id_ticket_jira"],
        "custom_phone": ["custom_phone", "telefono_personalizado"],
        "custom_email": ["custom_email", "correo_personalizado"],
        "android_enterprise_email": [
            "android_enter_email",
            "android_enterprise_email",
            "correo_android_enterprise",
        ],
        "location": ["location", "ubicacion"],
    },
    EntityKind.TICKET: {
        "issue_type": ["issue_type", "issuetype", "tipo"],
        "key": ["key", "clave"],
        "title": ["title", "titulo", "summary"],
        "label": ["label", "etiqueta", "labels"],
        "enterprise": ["enterprise", "empresa", "distribuidora"],
        "created": ["created", "creado", "fecha_creacion"],
        "updated": ["updated", "actualizado", "fecha_actualizacion"],
        "creator": ["creator", "creador"],
        "status": ["status", "estado"],
        "category_status": ["category_status", "categoria_estado"],
    },
}

REQUIRED_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.SIM: ("icc", "empresa"),
    EntityKind.STOCK: ("imei",),
    EntityKind.ENROLLED: ("imei", "device_name"),
    EntityKind.TICKET: ("key", "title"),
}

# Fields echoed back in a RecordError so rejections stay small
SUMMARY_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.SIM: ("icc", "empresa"),
    EntityKind.STOCK: ("imei", "modelo"),
    EntityKind.ENROLLED: ("imei", "device_name"),
    EntityKind.TICKET: ("key", "title"),
}

EMPRESA_PATTERN = re.compile(r"^(CLARO|MOVISTAR)\s*\((.+)\)\s*$", re.IGNORECASE)
REPLACEMENT_PATTERN = re.compile(r"R-(\d+)", re.IGNORECASE)
PENDING_PATTERN = re.compile(r"P-(\d+)", re.IGNORECASE)

ASSIGNMENT_LABEL = "ASG-CEL"
REPLACEMENT_LABEL = "REC-CEL"

SIM_STATUS_MAP = {
    "active": "Activado",
    "inactive": "Desactivado",
}
DEFAULT_SIM_STATUS = "Inventario"

# Day-first formats the ticket export uses, tried before ISO 8601
TICKET_DATE_FORMATS = [
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
]


# ============================================
# Cell helpers
# ============================================

def normalize_header(header: Any) -> str:
    """Lowercase, strip accents and turn whitespace runs into underscores."""
    text = unicodedata.normalize("NFD", str(header).strip().lower())
    text = "".join(c for c in text if unicodedata.category(c) != "Mn")
    return re.sub(r"\s+", "_", text)


def clean_cell(value: Any) -> Optional[str]:
    """Coerce a cell to a trimmed string; blank cells become None."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        # Spreadsheet exports turn long numeric ids (IMEI, ICC) into floats
        value = int(value)
    text = str(value).strip()
    return text or None


def parse_empresa(value: str) -> tuple[NetworkProvider, str]:
    """Split an "Empresa" composite such as "CLARO (ACME)".

    Raises:
        RecordValidationError: If the value does not match PROVIDER (DISTRIBUTOR)
    """
    match = EMPRESA_PATTERN.match(value.strip())
    if not match:
        raise RecordValidationError(
            f"Invalid Empresa format: {value}. Expected: PROVIDER (DISTRIBUTOR)",
            field="empresa",
        )
    provider = NetworkProvider(match.group(1).upper())
    return provider, match.group(2).strip()


def map_sim_status(value: Optional[str]) -> str:
    if not value:
        return DEFAULT_SIM_STATUS
    return SIM_STATUS_MAP.get(value.lower(), value)


def split_model(value: Optional[str]) -> tuple[str, str]:
    """Split a free-text "Brand Model" cell into (brand, model).

    A single word is taken as the model of an unknown brand.
    """
    if not value:
        return "Unknown", "Unknown"
    parts = value.split()
    if len(parts) == 1:
        return "Unknown", parts[0]
    return parts[0], " ".join(parts[1:])


def derive_stock_status(assigned_to: Optional[str], ticket: Optional[str]) -> InventoryStatus:
    if assigned_to and ticket:
        return InventoryStatus.USED
    if assigned_to:
        return InventoryStatus.ASSIGNED
    if ticket:
        return InventoryStatus.NOT_REPAIRED
    return InventoryStatus.NEW


def parse_ticket_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a ticket timestamp into an aware UTC datetime.

    Unparseable values yield None so that re-running a sync over the same
    sheet writes the same value.
    """
    if not value:
        return None
    for fmt in TICKET_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable ticket date: {value!r}")
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _marker_count(pattern: re.Pattern, text: str) -> Optional[int]:
    match = pattern.search(text)
    return int(match.group(1)) if match else None


# ============================================
# Parser
# ============================================

class SheetFieldMapper(IRecordParser):
    """Parses spreadsheet rows for all four entity kinds.

    Stateless apart from the header-resolution cache, so one instance can be
    shared between runs.
    """

    def __init__(self, aliases: Optional[dict[EntityKind, dict[str, list[str]]]] = None):
        self.aliases = aliases or FIELD_ALIASES
        self._column_cache: dict[tuple[EntityKind, frozenset[str]], dict[str, str]] = {}
        self._builders: dict[EntityKind, Callable[[dict[str, Optional[str]]], Any]] = {
            EntityKind.SIM: self._build_sim,
            EntityKind.STOCK: self._build_stock,
            EntityKind.ENROLLED: self._build_enrolled,
            EntityKind.TICKET: self._build_ticket,
        }

    def resolve_columns(self, kind: EntityKind, headers: Sequence[Any]) -> dict[str, str]:
        """Map each logical field to the header that carries it.

        The first alias (in priority order) present among the headers wins.
        Results are cached per header set.
        """
        cache_key = (kind, frozenset(str(h) for h in headers))
        cached = self._column_cache.get(cache_key)
        if cached is not None:
            return cached

        by_normalized: dict[str, str] = {}
        for header in headers:
            by_normalized.setdefault(normalize_header(header), str(header))

        columns: dict[str, str] = {}
        for field_name, spellings in self.aliases[kind].items():
            for spelling in spellings:
                header = by_normalized.get(normalize_header(spelling))
                if header is not None:
                    columns[field_name] = header
                    break

        self._column_cache[cache_key] = columns
        return columns

    def parse(self, kind: EntityKind, rows: Sequence[dict[str, Any]]) -> ParseResult:
        """Parse a batch of rows; bad rows become RecordErrors."""
        result = ParseResult()
        build = self._builders[kind]

        for row in rows:
            columns = self.resolve_columns(kind, list(row.keys()))
            fields = {
                name: clean_cell(row.get(header))
                for name, header in columns.items()
            }
            try:
                missing = [f for f in REQUIRED_FIELDS[kind] if not fields.get(f)]
                if missing:
                    raise RecordValidationError(
                        f"Missing required field(s): {', '.join(missing)}",
                        field=missing[0],
                    )
                result.records.append(build(fields))
            except RecordValidationError as e:
                result.errors.append(
                    RecordError(record=self._summarize(kind, fields), reason=e.message)
                )

        if result.errors:
            logger.info(
                f"Parsed {len(result.records)} {kind.value} records, "
                f"rejected {len(result.errors)}"
            )
        return result

    def _summarize(self, kind: EntityKind, fields: dict[str, Optional[str]]) -> dict[str, Any]:
        return {name: fields.get(name) or "unknown" for name in SUMMARY_FIELDS[kind]}

    def _build_sim(self, fields: dict[str, Optional[str]]) -> SimRecord:
        provider, distributor_name = parse_empresa(fields["empresa"])
        return SimRecord(
            icc=fields["icc"],
            provider=provider,
            distributor_name=distributor_name,
            status=map_sim_status(fields.get("status")),
            ip=fields.get("ip"),
        )

    def _build_stock(self, fields: dict[str, Optional[str]]) -> StockRecord:
        brand, model = split_model(fields.get("modelo"))
        assigned_to = fields.get("asignado_a")
        ticket = fields.get("ticket")
        return StockRecord(
            imei=fields["imei"],
            brand=brand,
            model=model,
            distributor_name=fields.get("distribuidora"),
            assigned_to=assigned_to,
            ticket=ticket,
            status=derive_stock_status(assigned_to, ticket),
        )

    def _build_enrolled(self, fields: dict[str, Optional[str]]) -> EnrolledDeviceRecord:
        return EnrolledDeviceRecord(
            **{name: fields.get(name) for name in self.aliases[EntityKind.ENROLLED]}
        )

    def _build_ticket(self, fields: dict[str, Optional[str]]) -> TicketRecord:
        title = fields["title"]
        label = fields.get("label") or ""
        replacement_count = _marker_count(REPLACEMENT_PATTERN, title)
        is_assignment = ASSIGNMENT_LABEL in label.upper()
        is_replacement = not is_assignment and (
            replacement_count is not None or REPLACEMENT_LABEL in label.upper()
        )
        return TicketRecord(
            key=fields["key"],
            title=title,
            issue_type=fields.get("issue_type") or "",
            label=label,
            enterprise=fields.get("enterprise") or "",
            created=parse_ticket_date(fields.get("created")),
            updated=parse_ticket_date(fields.get("updated")),
            creator=fields.get("creator") or "Unknown",
            status=fields.get("status") or "Unknown",
            category_status=fields.get("category_status") or "Unknown",
            replacement_count=replacement_count,
            pending_count=_marker_count(PENDING_PATTERN, title),
            is_replacement=is_replacement,
            is_assignment=is_assignment,
        )
