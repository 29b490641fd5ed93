"""Drafting and validating field-mapping templates."""

from __future__ import annotations

import json
from typing import Any

from recon_console.core.errors import ValidationError
from recon_console.core.logging import get_logger
from recon_console.schemas.template import FieldType, Template, TemplateField, TemplateType

logger = get_logger(__name__)

STANDARD_FIELDS: tuple[str, ...] = (
    "transaction_id",
    "amount",
    "credit_amount",
    "debit_amount",
    "date",
    "description",
    "debit_direction",
    "credit_direction",
    "debit_credit_direction",
    "status",
)

NUMERIC_FIELDS: frozenset[str] = frozenset({"amount", "credit_amount", "debit_amount"})


def infer_field_type(core_field: str) -> FieldType:
    name = (core_field or "").lower()
    if name in NUMERIC_FIELDS:
        return FieldType.NUMBER
    if name == "date":
        return FieldType.DATE
    return FieldType.STRING


def draft_template_fields(headers: list[str]) -> list[TemplateField]:
    """One field per column; standard column names map to themselves."""
    fields = []
    for header in headers:
        lowered = header.strip().lower()
        core = lowered if lowered in STANDARD_FIELDS else ""
        fields.append(
            TemplateField(
                file_header=header,
                core_field=core,
                type=infer_field_type(lowered),
            )
        )
    return fields


def template_from_json(text: str | bytes) -> Template:
    """Read an exported template file (``fields`` or legacy ``mappings``)."""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("Failed to parse JSON file.") from exc
    if not isinstance(data, dict) or not data.get("name") or not data.get("type"):
        raise ValidationError("Invalid JSON template format.")

    fields = []
    for item in data.get("fields") or data.get("mappings") or []:
        core = item.get("coreField") or item.get("targetField") or ""
        fields.append(
            TemplateField(
                file_header=item.get("fileHeader") or item.get("sourceField") or "",
                core_field=core,
                type=item.get("type") or infer_field_type(core),
            )
        )
    try:
        template_type = TemplateType(str(data["type"]).upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown template type: {data['type']!r}") from exc
    return Template(name=data["name"], type=template_type, fields=fields)


def validate_template(template: Template) -> Template:
    """Reject templates the backend would not be able to apply."""
    if not template.name.strip() or not template.fields:
        raise ValidationError("Name, type, and at least one field mapping are required.")
    if any(not f.file_header or not f.core_field for f in template.fields):
        raise ValidationError("All fields must have a source and target field.")
    return template


def resolve_field_type(field: TemplateField) -> FieldType:
    return field.type or infer_field_type(field.core_field)


def parse_backend_templates(payload: list[dict[str, Any]] | None) -> list[Template]:
    templates = []
    for item in payload or []:
        try:
            templates.append(Template.model_validate(item))
        except ValueError as exc:
            logger.warning("Skipping malformed template %s: %s", item.get("id"), exc)
    return templates
