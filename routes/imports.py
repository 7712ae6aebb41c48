"""
JSON import API routes.

Flow used by the upload UI:
    1. POST /parse or /parse-file   JSON text/file -> ParsedFile
    2. POST /validate               parsed files -> exact / similar / new fields
    3. POST /run                    parsed files + decisions -> ImportSummary
"""

from fastapi import APIRouter, Depends, File, Header, UploadFile
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from config import get_settings
from exceptions import (
    AppError,
    InvalidBaseUrlError,
    MissingTargetError,
    NoRecordsError,
    UnauthorizedError,
)
from integrations.lark import parse_lark_base_url
from models.fields import ExistingField, FieldValidationResult
from models.imports import (
    ImportRequest,
    ImportSummary,
    ParseTextRequest,
    TableTarget,
    ValidateFieldsRequest,
)
from models.ingest import InputErrorCode, ParsedFile, ParsedRecord
from parsers.json_parser import parse_json_bytes, parse_json_text
from services.import_service import get_import_service

logger = structlog.get_logger(__name__)


def require_api_key(x_api_key: Optional[str] = Header(None)) -> None:
    """Enforce x-api-key when API_KEY is configured."""
    expected = get_settings().api_key
    if expected and x_api_key != expected:
        logger.warning("api_key_rejected", provided=bool(x_api_key))
        raise UnauthorizedError()


router = APIRouter(
    prefix="/api/imports",
    tags=["JSON Import"],
    dependencies=[Depends(require_api_key)],
)


# ===================
# HELPERS
# ===================

def handle_error(e: AppError) -> JSONResponse:
    """Convert exception to JSON response."""
    return JSONResponse(
        status_code=e.status_code,
        content=e.to_dict()
    )


def resolve_target(target: TableTarget) -> tuple[str, str]:
    """
    App token and table id for a request.

    Priority: base_url, explicit app_token/table_id, configured defaults.

    Raises:
        InvalidBaseUrlError: base_url given but not parseable
        MissingTargetError: nothing identifies a table
    """
    if target.base_url:
        info = parse_lark_base_url(target.base_url)
        if info is None:
            raise InvalidBaseUrlError(target.base_url)
        return info.app_token, info.table_id

    settings = get_settings()
    app_token = (target.app_token or "").strip() or settings.default_app_token
    table_id = (target.table_id or "").strip() or settings.default_table_id

    if not app_token:
        raise MissingTargetError("app_token")
    if not table_id:
        raise MissingTargetError("table_id")

    return app_token, table_id


# ===================
# ROUTES
# ===================

@router.post("/parse", response_model=ParsedFile)
async def parse_text(request: ParseTextRequest):
    """
    Parse pasted JSON text.

    Malformed input is not an HTTP error: the ParsedFile comes back with
    status "error", an error_code and diagnostics.
    """
    return parse_json_text(request.text, request.source_name)


@router.post("/parse-file", response_model=ParsedFile)
async def parse_file(file: UploadFile = File(..., description="JSON file")):
    """Parse an uploaded .json file."""
    file_name = file.filename or "upload.json"
    logger.info("json_upload_received", filename=file_name, content_type=file.content_type)

    if not file_name.lower().endswith(".json"):
        return ParsedFile.failed(file_name, InputErrorCode.INVALID_FILE_TYPE)

    content = await file.read()
    return parse_json_bytes(content, file_name)


@router.post("/fields", response_model=list[ExistingField])
async def list_fields(target: TableTarget):
    """Fields of the target table with their normalized names."""
    try:
        app_token, table_id = resolve_target(target)
        return await get_import_service().fetch_existing_fields(app_token, table_id)
    except AppError as e:
        return handle_error(e)


@router.post("/validate", response_model=FieldValidationResult)
async def validate_fields(request: ValidateFieldsRequest):
    """Classify the parsed files' field names as exact / similar / new."""
    try:
        app_token, table_id = resolve_target(request)
        return await get_import_service().validate_fields(app_token, table_id, request.files)
    except AppError as e:
        return handle_error(e)


@router.post("/run", response_model=ImportSummary)
async def run_import(request: ImportRequest):
    """
    Import parsed files (and/or plain records) into the table.

    Returns 200 with the summary even when some chunks failed; a run that
    stopped early (auth, schema) has success=false and an error_code.
    """
    try:
        app_token, table_id = resolve_target(request)
    except AppError as e:
        return handle_error(e)

    files = list(request.files)
    if request.records:
        files.append(ParsedFile(
            file_name="records",
            records=[ParsedRecord(data=data) for data in request.records],
        ))

    if not any(f.is_importable for f in files):
        return handle_error(NoRecordsError("No importable files"))

    return await get_import_service().run_import(
        app_token,
        table_id,
        files,
        decision=request.decision,
        raw_json_field=request.raw_json_field,
    )
