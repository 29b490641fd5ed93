"""Upload endpoints: file validation preview and batch creation."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from recon_console.api.dependencies import backend_http_error, get_client
from recon_console.clients.backend import ReconciliationApiClient
from recon_console.core.errors import BackendError, ValidationError
from recon_console.core.logging import get_logger
from recon_console.schemas.template import FilePreview, Template, UploadResult
from recon_console.services.upload.file_preview import preview_file
from recon_console.services.upload.submission import UploadedFile, submit_batch

logger = get_logger(__name__)

router = APIRouter()


async def _read_upload(upload: Optional[UploadFile]) -> Optional[UploadedFile]:
    if upload is None:
        return None
    content = await upload.read()
    return UploadedFile(
        filename=upload.filename or "unknown",
        content=content,
        content_type=upload.content_type,
    )


@router.post("/preview", response_model=FilePreview)
async def preview_upload(
    file: UploadFile = File(...),
    side: str = Form(..., description="bank or vendor"),
    template_id: Optional[str] = Form(None),
    client: ReconciliationApiClient = Depends(get_client),
) -> FilePreview:
    """Validate one file against its template before the batch is submitted.

    Read or mapping problems come back as ``status="error"`` in the
    preview; only a backend failure while fetching the template is an
    HTTP error.
    """
    side = side.strip().lower()
    if side not in ("bank", "vendor"):
        raise HTTPException(status_code=400, detail="side must be 'bank' or 'vendor'")

    template: Optional[Template] = None
    if template_id:
        try:
            raw = await client.get_template(template_id)
        except BackendError as exc:
            raise backend_http_error(exc)
        template = Template.model_validate(raw)

    content = await file.read()
    filename = file.filename or "unknown"
    logger.info("Previewing %s file %s (%d bytes)", side, filename, len(content))
    return preview_file(content, filename, side, template, file.content_type)


@router.post("/batches", response_model=UploadResult, status_code=201)
async def create_batch(
    bank_file: Optional[UploadFile] = File(None),
    vendor_file: Optional[UploadFile] = File(None),
    bank_template_id: Optional[str] = Form(None),
    vendor_template_id: Optional[str] = Form(None),
    client: ReconciliationApiClient = Depends(get_client),
) -> UploadResult:
    """Upload a backoffice and a vendor file to start a reconciliation batch."""
    try:
        return await submit_batch(
            client,
            await _read_upload(bank_file),
            await _read_upload(vendor_file),
            bank_template_id,
            vendor_template_id,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except BackendError as exc:
        logger.error("Batch upload failed: %s", exc)
        raise backend_http_error(exc)
