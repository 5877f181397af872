from __future__ import annotations

import logging
import re
from io import BytesIO
from typing import Any, Mapping

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from sqlalchemy.orm import Session

from priceport.core.config import settings
from priceport.core.pricing.errors import (
    FieldError,
    InvalidArgumentError,
    InvalidStateError,
    PricingFailure,
)
from priceport.services.price_schedule_service import PriceScheduleService
from priceport.services.schedule_read_cache import ScheduleReadCache

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

TEMPLATE_COLUMNS = [
    "item_id",
    "customer_id",
    "effective_date",
    "base_price",
    "discount1_pct",
    "discount2_pct",
    "tax_pct",
    "notes",
]
REQUIRED_COLUMNS = {"item_id", "effective_date", "base_price"}

# Normalized header -> field. camelCase API names collapse to one word,
# the price-list labels used by purchasing (harga, pot1, pot2, ppn) map too.
HEADER_ALIASES = {
    "itemid": "item_id",
    "item": "item_id",
    "customerid": "customer_id",
    "customer": "customer_id",
    "effectivedate": "effective_date",
    "date": "effective_date",
    "tanggal_berlaku": "effective_date",
    "baseprice": "base_price",
    "harga": "base_price",
    "discount1": "discount1_pct",
    "discount1pct": "discount1_pct",
    "pot1": "discount1_pct",
    "discount2": "discount2_pct",
    "discount2pct": "discount2_pct",
    "pot2": "discount2_pct",
    "tax": "tax_pct",
    "taxpct": "tax_pct",
    "ppn": "tax_pct",
    "catatan": "notes",
    "keterangan": "notes",
}

_MANDATORY_FILL = PatternFill("solid", fgColor="FCE4D6")
_MANDATORY_FONT = Font(bold=True, color="9C0006")


def _normalize_header(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", (value or "").strip().lower()).strip("_")


def canonical_field(header: Any) -> str | None:
    name = _normalize_header(str(header or ""))
    if not name:
        return None
    if name in TEMPLATE_COLUMNS:
        return name
    return HEADER_ALIASES.get(name) or HEADER_ALIASES.get(name.replace("_", ""))


def _ensure_enabled() -> None:
    if not settings.PRICE_SCHEDULE_BULK_ENABLED:
        raise InvalidStateError("Bulk price schedule import is disabled.")


def _check_row_count(count: int) -> None:
    if count == 0:
        raise InvalidArgumentError([FieldError("rows", "required", "No rows to import.")])
    limit = settings.PRICE_SCHEDULE_BULK_MAX_ROWS
    if count > limit:
        raise InvalidArgumentError(
            [FieldError("rows", "too_many", f"At most {limit} rows per import; got {count}.")]
        )


def bulk_create(
    db: Session,
    rows: list[Mapping[str, Any]],
    actor: str,
    *,
    row_numbers: list[int] | None = None,
    cache: ScheduleReadCache | None = None,
) -> dict[str, Any]:
    """
    Creates one schedule per row, each inside its own savepoint.

    A failing row is reported and rolled back alone; the caller commits the
    rest. Row numbers default to 1-based positions in `rows`.
    """
    _ensure_enabled()
    _check_row_count(len(rows))
    if row_numbers is None:
        row_numbers = list(range(1, len(rows) + 1))

    service = PriceScheduleService(db, cache=cache)
    results: list[dict[str, Any]] = []
    created = 0
    failed = 0

    for row_number, row in zip(row_numbers, rows):
        try:
            values = {canonical_field(k) or k: v for k, v in row.items()}
            with db.begin_nested():
                record = service.create(values, actor)
            created += 1
            results.append(
                {
                    "row_number": row_number,
                    "status": "created",
                    "schedule_id": record.schedule.id,
                    "errors": [],
                }
            )
        except PricingFailure as exc:
            failed += 1
            errors = [err.to_dict() for err in exc.errors] or [
                {"field": None, "code": exc.code, "message": exc.message}
            ]
            results.append(
                {
                    "row_number": row_number,
                    "status": "failed",
                    "schedule_id": None,
                    "errors": errors,
                }
            )

    summary = {"processed": created + failed, "created": created, "failed": failed}
    logger.info(
        "price_schedule_bulk_done processed=%s created=%s failed=%s user=%s",
        summary["processed"],
        created,
        failed,
        actor,
    )
    return {"summary": summary, "results": results}


def parse_workbook(payload: bytes) -> tuple[list[dict[str, Any]], list[int]]:
    """Rows of the first sheet keyed by field name, plus their sheet row numbers."""
    if not payload:
        raise InvalidArgumentError([FieldError("file", "required", "Uploaded file is empty.")])
    try:
        workbook = load_workbook(filename=BytesIO(payload), data_only=True)
    except Exception as exc:
        raise InvalidArgumentError(
            [FieldError("file", "invalid", f"Invalid workbook: {exc}")]
        ) from exc

    sheet = workbook[workbook.sheetnames[0]] if workbook.sheetnames else None
    if sheet is None:
        raise InvalidArgumentError([FieldError("file", "invalid", "Workbook has no sheets.")])
    raw_rows = list(sheet.iter_rows(values_only=True))

    if not raw_rows:
        raise InvalidArgumentError([FieldError("file", "invalid", "Sheet is empty.")])

    header_pos: dict[str, int] = {}
    for idx, cell in enumerate(raw_rows[0]):
        name = canonical_field(cell)
        if name and name not in header_pos:
            header_pos[name] = idx

    missing = sorted(REQUIRED_COLUMNS - set(header_pos))
    if missing:
        raise InvalidArgumentError(
            [
                FieldError(name, "missing_column", f"Column '{name}' is required in sheet header.")
                for name in missing
            ]
        )

    rows: list[dict[str, Any]] = []
    row_numbers: list[int] = []
    for row_index, values in enumerate(raw_rows[1:], start=2):
        row_data: dict[str, Any] = {}
        has_value = False
        for name, idx in header_pos.items():
            value = values[idx] if idx < len(values) else None
            if value is not None and str(value).strip():
                has_value = True
            row_data[name] = value
        if not has_value:
            continue
        rows.append(row_data)
        row_numbers.append(row_index)
    return rows, row_numbers


def import_workbook(
    db: Session,
    payload: bytes,
    actor: str,
    *,
    cache: ScheduleReadCache | None = None,
) -> dict[str, Any]:
    _ensure_enabled()
    rows, row_numbers = parse_workbook(payload)
    return bulk_create(db, rows, actor, row_numbers=row_numbers, cache=cache)


def build_template() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "PRICE_SCHEDULE"
    ws.append(TEMPLATE_COLUMNS)
    ws.freeze_panes = "A2"
    for idx, column_name in enumerate(TEMPLATE_COLUMNS, start=1):
        cell = ws.cell(row=1, column=idx)
        if column_name in REQUIRED_COLUMNS:
            cell.fill = _MANDATORY_FILL
            cell.font = _MANDATORY_FONT
        ws.column_dimensions[get_column_letter(idx)].width = max(14, min(36, len(column_name) + 5))

    readme = wb.create_sheet("README")
    readme.append(["Instruction"])
    for line in [
        "One row per schedule. Mandatory columns are highlighted in orange.",
        "effective_date: YYYY-MM-DD. Leave customer_id empty for a global price.",
        "Percentages are 0-100. Prices after discount are calculated on import.",
        "Headers harga, pot1, pot2 and ppn are accepted as well.",
    ]:
        readme.append([line])
    readme.column_dimensions["A"].width = 120

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
