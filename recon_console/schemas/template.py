"""Pydantic schemas for file-to-core-field mapping templates."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class TemplateType(str, Enum):
    BACKOFFICE = "BACKOFFICE"
    VENDOR = "VENDOR"


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"


class TemplateField(BaseModel):
    """Maps one column header of an uploaded file to a core field."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    file_header: str = Field("", alias="fileHeader")
    core_field: str = Field("", alias="coreField")
    type: Optional[FieldType] = None


class Template(BaseModel):
    """A named set of field mappings for backoffice or vendor files."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: str
    type: TemplateType
    fields: list[TemplateField] = Field(default_factory=list)
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")

    def to_backend(self) -> dict[str, Any]:
        """Payload accepted by the backend's template endpoints."""
        return {
            "name": self.name,
            "type": self.type.value,
            "fields": [
                {"fileHeader": f.file_header, "coreField": f.core_field}
                for f in self.fields
            ],
        }


class FilePreview(BaseModel):
    """Result of validating an uploaded file against a template."""

    filename: str
    side: str = Field(..., description="bank | vendor")
    status: str = Field(..., description="uploaded | validated | error")
    error_message: Optional[str] = None
    total_records: int = 0
    date_range: str = ""
    file_size: str = ""
    file_type: str = ""
    sample_data: Optional[dict[str, Any]] = None


class UploadResult(BaseModel):
    """Returned after a batch was accepted by the backend."""

    batch_id: int
    display_id: str
