"""Validate an uploaded file against a template and build a preview.

Rows are mapped through the template (``fileHeader -> coreField``) the
same way the backend will ingest them, so mapping mistakes show up
before a batch is created.  PDFs are accepted without a preview; the
backend extracts them.
"""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from recon_console.core.errors import ValidationError
from recon_console.core.logging import get_logger
from recon_console.schemas.template import FieldType, FilePreview, Template
from recon_console.services.upload.templates import resolve_field_type

logger = get_logger(__name__)

CSV = "CSV"
EXCEL = "Excel"
PDF = "PDF"

_CONTENT_TYPES: dict[str, str] = {
    "text/csv": CSV,
    "application/vnd.ms-excel": EXCEL,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": EXCEL,
    "application/pdf": PDF,
}

_EXTENSIONS: dict[str, str] = {
    "csv": CSV,
    "xlsx": EXCEL,
    "xls": EXCEL,
    "pdf": PDF,
}

# Date formats we accept, ordered from most specific to least
_DATE_FORMATS: list[str] = [
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d %b %Y",
]


def detect_file_type(filename: str, content_type: Optional[str] = None) -> str:
    """CSV, Excel or PDF; anything else is rejected."""
    if content_type in _CONTENT_TYPES:
        return _CONTENT_TYPES[content_type]
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if extension in _EXTENSIONS:
        return _EXTENSIONS[extension]
    raise ValidationError("Please upload a CSV, Excel (.xlsx/.xls), or PDF file.")


def parse_date_value(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _to_number(value: Any) -> Decimal:
    try:
        return Decimal(str(value).replace(",", "").strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")


def map_row(row: dict[str, Any], template: Template) -> dict[str, Any]:
    """Apply the template to one source row."""
    mapped: dict[str, Any] = {}
    for field in template.fields:
        value = row.get(field.file_header)
        if value is None:
            value = ""
        field_type = resolve_field_type(field)
        if field_type is FieldType.NUMBER:
            value = _to_number(value) if value != "" else Decimal("0")
        elif field_type is FieldType.DATE:
            parsed = parse_date_value(value)
            value = parsed.isoformat() if parsed else value
        mapped[field.core_field] = value
    return mapped


def read_csv_rows(content: bytes) -> list[dict[str, Any]]:
    text = content.decode("utf-8-sig")  # handle BOM if present
    reader = csv.DictReader(io.StringIO(text))
    return [row for row in reader if any((v or "").strip() for v in row.values() if isinstance(v, str))]


def read_excel_rows(content: bytes) -> list[dict[str, Any]]:
    """Rows of the first worksheet, keyed by the header row."""
    from openpyxl import load_workbook

    workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        keys = [str(h) if h is not None else "" for h in header]
        result = []
        for values in rows:
            if values is None or all(v is None for v in values):
                continue
            result.append(dict(zip(keys, values)))
        return result
    finally:
        workbook.close()


def _date_range(rows: list[dict[str, Any]], template: Template) -> str:
    date_header = next(
        (f.file_header for f in template.fields if resolve_field_type(f) is FieldType.DATE),
        None,
    )
    if date_header is None:
        return ""
    dates = [d for d in (parse_date_value(r.get(date_header)) for r in rows) if d]
    if not dates:
        return ""
    low, high = min(dates), max(dates)
    return f"{low.month}/{low.day}/{low.year} - {high.month}/{high.day}/{high.year}"


def _file_size(content: bytes) -> str:
    return f"{len(content) / 1024 / 1024:.2f} MB"


def preview_file(
    content: bytes,
    filename: str,
    side: str,
    template: Optional[Template],
    content_type: Optional[str] = None,
) -> FilePreview:
    """Validate one file; problems are reported in the preview, not raised."""
    try:
        file_type = detect_file_type(filename, content_type)
    except ValidationError as exc:
        return FilePreview(filename=filename, side=side, status="error", error_message=str(exc))

    if template is None:
        return FilePreview(
            filename=filename,
            side=side,
            status="error",
            error_message=f"No {side} template selected.",
        )

    if file_type == PDF:
        return FilePreview(
            filename=filename,
            side=side,
            status="uploaded",
            date_range="Pending backend processing",
            file_size=_file_size(content),
            file_type=file_type,
        )

    try:
        rows = read_csv_rows(content) if file_type == CSV else read_excel_rows(content)
    except Exception as exc:
        logger.warning("Failed to read %s file %s: %s", file_type, filename, exc)
        return FilePreview(
            filename=filename,
            side=side,
            status="error",
            error_message=f"Failed to validate {file_type} file.",
        )

    sample = None
    if rows:
        sample = map_row(rows[0], template)
        sample["rawData"] = {k: v for k, v in rows[0].items()}

    logger.info("Validated %s file %s: %d rows", file_type, filename, len(rows))
    return FilePreview(
        filename=filename,
        side=side,
        status="validated",
        total_records=len(rows),
        date_range=_date_range(rows, template) or "Date range not available",
        file_size=_file_size(content),
        file_type=file_type,
        sample_data=sample,
    )
