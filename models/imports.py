"""
Import run models.

Requests accepted by the import API and the results an import run reports.
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.base import BaseSchema
from models.ingest import ParsedFile, RawInput
from models.fields import FieldMappingDecision


class RecordError(BaseModel):
    """Failure of one record, by position in the submitted list."""

    index: int = Field(ge=0)
    error: str


class BatchCreateResult(BaseModel):
    """
    Aggregated outcome of writing records in chunks.

    success_count + failed_count always equals the number of records
    submitted; each index is either behind a record id or in errors.
    """

    success_count: int = 0
    failed_count: int = 0
    record_ids: list[str] = Field(default_factory=list)
    errors: list[RecordError] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success_count + self.failed_count


class ImportSummary(BaseModel):
    """What an import run did, or why it stopped."""

    success: bool
    message: str
    table_id: Optional[str] = None
    total_records: int = 0
    success_count: int = 0
    failed_count: int = 0
    record_ids: list[str] = Field(default_factory=list)
    errors: list[RecordError] = Field(default_factory=list)
    fields_count: int = 0
    created_fields: list[str] = Field(default_factory=list)
    created_fields_count: int = 0
    dropped_fields: list[str] = Field(default_factory=list)
    error_code: Optional[str] = None


# ===================
# API REQUESTS
# ===================

class ParseTextRequest(BaseSchema, RawInput):
    """Pasted JSON text."""

    # Not stripped here: sanitizing is the parser's job
    model_config = ConfigDict(str_strip_whitespace=False)

    source_name: str = Field(default="pasted.json", max_length=255)


class TableTarget(BaseSchema):
    """
    Which table to import into.

    Either base_url, or app_token + table_id. Both may be omitted when
    DEFAULT_APP_TOKEN / DEFAULT_TABLE_ID are configured.
    """

    # Record keys are field names; surrounding spaces are significant
    model_config = ConfigDict(str_strip_whitespace=False)

    app_token: Optional[str] = Field(None, max_length=100)
    table_id: Optional[str] = Field(None, max_length=100)
    base_url: Optional[str] = Field(None, description="https://<host>/base/<app_token>?table=<table_id>")


class ValidateFieldsRequest(TableTarget):
    """Reconcile the fields of parsed files against a table."""

    files: list[ParsedFile] = Field(default_factory=list)


class ImportRequest(TableTarget):
    """Run a full import of parsed files into a table."""

    files: list[ParsedFile] = Field(default_factory=list)
    records: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Plain record objects, used in addition to files"
    )
    decision: Optional[FieldMappingDecision] = Field(
        None,
        description="Field resolutions; omitted = approve every suggestion"
    )
    raw_json_field: Optional[str] = Field(
        None,
        max_length=100,
        description="If set, each row also stores its original JSON in this text field"
    )

    @model_validator(mode="after")
    def _has_input(self) -> "ImportRequest":
        if not self.files and not self.records:
            raise ValueError("files or records must be provided")
        return self
