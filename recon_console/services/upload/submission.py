"""Create a reconciliation batch from a backoffice and a vendor file."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from recon_console.clients.backend import ReconciliationApiClient
from recon_console.core.errors import BackendError, ValidationError
from recon_console.core.logging import get_logger
from recon_console.schemas.template import UploadResult
from recon_console.services.mapping.batch_mapper import format_batch_id
from recon_console.services.upload.file_preview import detect_file_type

logger = get_logger(__name__)


@dataclass
class UploadedFile:
    filename: str
    content: bytes
    content_type: Optional[str] = None


def validate_submission(
    bank_file: Optional[UploadedFile],
    vendor_file: Optional[UploadedFile],
    bank_template_id: Optional[str],
    vendor_template_id: Optional[str],
) -> None:
    """Everything that can be checked without the backend."""
    if bank_file is None or vendor_file is None or not bank_file.content or not vendor_file.content:
        raise ValidationError("Please upload both bank and vendor files.")
    if not bank_template_id or not vendor_template_id:
        raise ValidationError("Please select both bank and vendor templates.")
    detect_file_type(bank_file.filename, bank_file.content_type)
    detect_file_type(vendor_file.filename, vendor_file.content_type)


async def submit_batch(
    client: ReconciliationApiClient,
    bank_file: Optional[UploadedFile],
    vendor_file: Optional[UploadedFile],
    bank_template_id: Optional[str],
    vendor_template_id: Optional[str],
) -> UploadResult:
    """Validate locally, then upload; returns the new batch id."""
    validate_submission(bank_file, vendor_file, bank_template_id, vendor_template_id)

    result = await client.upload_reconciliation_batch(
        (bank_file.filename, bank_file.content),
        (vendor_file.filename, vendor_file.content),
        bank_template_id,
        vendor_template_id,
    )
    batch_id = result.get("batchId") if isinstance(result, dict) else None
    if not isinstance(batch_id, int):
        raise BackendError("Backend did not return a batch id for the upload")

    logger.info(
        "Batch %d created from %s and %s", batch_id, bank_file.filename, vendor_file.filename
    )
    return UploadResult(batch_id=batch_id, display_id=format_batch_id(batch_id))
