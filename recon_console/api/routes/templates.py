"""Field-mapping template endpoints.

Templates are stored by the backend; these routes validate before
forwarding and offer two local helpers: drafting fields from a CSV header
row and importing an exported JSON template.
"""

from __future__ import annotations

import csv
import io
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response

from recon_console.api.dependencies import backend_http_error, get_client
from recon_console.clients.backend import ReconciliationApiClient
from recon_console.core.errors import BackendError, ValidationError
from recon_console.core.logging import get_logger
from recon_console.schemas.template import Template, TemplateField, TemplateType
from recon_console.services.upload.templates import (
    draft_template_fields,
    parse_backend_templates,
    template_from_json,
    validate_template,
)

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=list[Template])
async def list_templates(
    type: Optional[TemplateType] = Query(None, description="BACKOFFICE or VENDOR"),
    client: ReconciliationApiClient = Depends(get_client),
) -> list[Template]:
    try:
        if type is None:
            payload = await client.list_templates()
        else:
            payload = await client.list_templates_by_type(type.value)
    except BackendError as exc:
        raise backend_http_error(exc)
    return parse_backend_templates(payload)


@router.get("/{template_id}", response_model=Template)
async def get_template(
    template_id: str,
    client: ReconciliationApiClient = Depends(get_client),
) -> Template:
    try:
        payload = await client.get_template(template_id)
    except BackendError as exc:
        raise backend_http_error(exc)
    return Template.model_validate(payload)


@router.post("", response_model=Template, status_code=201)
async def create_template(
    template: Template,
    client: ReconciliationApiClient = Depends(get_client),
) -> Template:
    try:
        validate_template(template)
        payload = await client.create_template(template.to_backend())
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except BackendError as exc:
        raise backend_http_error(exc)
    logger.info("Template %r created", template.name)
    return Template.model_validate(payload) if payload else template


@router.put("/{template_id}", response_model=Template)
async def update_template(
    template_id: str,
    template: Template,
    client: ReconciliationApiClient = Depends(get_client),
) -> Template:
    try:
        validate_template(template)
        payload = await client.update_template(template_id, template.to_backend())
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except BackendError as exc:
        raise backend_http_error(exc)
    logger.info("Template %s updated", template_id)
    if payload:
        return Template.model_validate(payload)
    return template.model_copy(update={"id": template_id})


@router.delete("/{template_id}", status_code=204)
async def delete_template(
    template_id: str,
    client: ReconciliationApiClient = Depends(get_client),
) -> Response:
    try:
        await client.delete_template(template_id)
    except BackendError as exc:
        raise backend_http_error(exc)
    logger.info("Template %s deleted", template_id)
    return Response(status_code=204)


@router.post("/draft", response_model=list[TemplateField])
async def draft_from_csv(file: UploadFile = File(...)) -> list[TemplateField]:
    """Suggest template fields from the header row of a sample CSV."""
    content = await file.read()
    try:
        header = next(csv.reader(io.StringIO(content.decode("utf-8-sig"))), None)
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Failed to read CSV headers.")
    if not header:
        raise HTTPException(status_code=400, detail="CSV file has no header row.")
    return draft_template_fields([h.strip() for h in header if h.strip()])


@router.post("/import", response_model=Template)
async def import_template(file: UploadFile = File(...)) -> Template:
    """Parse an exported JSON template; the caller saves it with POST."""
    try:
        return template_from_json(await file.read())
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
