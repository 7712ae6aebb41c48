"""
Import orchestration.

Runs one import end to end against a Lark table:

    authenticate -> read fields -> reconcile names -> create missing fields
    -> transform records -> write in chunks -> summary

Each run builds its own RunContext from a fresh schema read. Errors raised
inside the run (auth, schema read, field creation, transport) are caught here
and reported as a failed ImportSummary; per-chunk write failures only mark
their records.
"""

import json
from typing import Any, Callable, Iterable, Optional
import structlog

from exceptions import AppError, NoRecordsError, SchemaReadError, ValidationError
from integrations.lark import LarkClient
from models.fields import (
    ExistingField,
    FieldMappingDecision,
    FieldType,
    FieldValidationResult,
)
from models.imports import BatchCreateResult, ImportSummary
from models.ingest import ParsedFile, ParsedRecord
from services.batch_import_service import BatchImportService
from services.field_matcher_service import (
    collect_field_names,
    get_field_matcher_service,
    to_existing_fields,
)
from services.record_transformer_service import RecordTransformerService
from services.run_context import RunContext
from services.schema_sync_service import PlannedField, SchemaSyncService
from utils.text_utils import normalize_field_name

logger = structlog.get_logger(__name__)


def pending_records(files: Iterable[ParsedFile]) -> list[ParsedRecord]:
    """Records of every importable file, in file order."""
    return [
        record
        for parsed in files
        if parsed.is_importable
        for record in parsed.records
        if record.status == "pending"
    ]


def raw_json_text(data: dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)


class ImportService:
    """
    Import runs against Lark Base.

    client_factory builds a fresh LarkClient per run (tests pass a fake).
    """

    def __init__(
        self,
        client_factory: Callable[[], Any] = LarkClient.from_settings,
        batch_size: Optional[int] = None
    ):
        self.client_factory = client_factory
        self.batch_size = batch_size
        self.matcher = get_field_matcher_service()
        self.transformer = RecordTransformerService()

    async def _read_fields(self, client, app_token: str, table_id: str) -> list[ExistingField]:
        result = await client.list_fields(app_token, table_id)
        if not result.ok:
            logger.error(
                "schema_read_failed",
                table_id=table_id,
                lark_code=result.code,
                error=result.message
            )
            raise SchemaReadError(table_id, result.code, result.message)
        return to_existing_fields(result.data)

    async def fetch_existing_fields(self, app_token: str, table_id: str) -> list[ExistingField]:
        """
        Current fields of a table, with normalized names.

        Raises:
            ConfigurationError / LarkAuthError / SchemaReadError
        """
        async with self.client_factory() as client:
            await client.authenticate()
            fields = await self._read_fields(client, app_token, table_id)

        logger.info("existing_fields_fetched", table_id=table_id, count=len(fields))
        return fields

    async def validate_fields(
        self,
        app_token: str,
        table_id: str,
        files: list[ParsedFile]
    ) -> FieldValidationResult:
        """Reconcile field names of parsed files with the table's fields."""
        records = pending_records(files)
        if not records:
            raise NoRecordsError("No importable files")

        existing = await self.fetch_existing_fields(app_token, table_id)
        names = collect_field_names(r.data for r in records)
        return self.matcher.validate_fields(names, existing)

    def _apply_outcome(self, records: list[ParsedRecord], batch: BatchCreateResult) -> None:
        failed = {e.index: e.error for e in batch.errors}
        for index, record in enumerate(records):
            if index in failed:
                record.status = "error"
                record.error = failed[index]
            else:
                record.status = "success"
                record.error = None

    @staticmethod
    def _apply_file_status(files: list[ParsedFile]) -> None:
        for parsed in files:
            if not parsed.is_importable:
                continue
            failed = sum(1 for r in parsed.records if r.status == "error")
            if failed:
                parsed.status = "error"
                parsed.error = f"{failed} of {len(parsed.records)} records failed"
            else:
                parsed.status = "success"

    @staticmethod
    def _check_raw_json_field(
        raw_json_field: str,
        names: list[str],
        context: RunContext
    ) -> None:
        """
        The raw JSON column must not take over a record field or a typed field.

        Raises:
            ValidationError: Name collides with an incoming field, or with an
                existing field that is not Text
        """
        normalized = normalize_field_name(raw_json_field)

        clashing = [n for n in names if normalize_field_name(n) == normalized]
        if clashing:
            raise ValidationError(
                f"raw_json_field '{raw_json_field}' collides with record field '{clashing[0]}'",
                code="RAW_JSON_FIELD_CONFLICT",
                details={"raw_json_field": raw_json_field, "record_field": clashing[0]}
            )

        for existing in context.existing_fields:
            if existing.normalized_name == normalized and existing.type != FieldType.TEXT:
                raise ValidationError(
                    f"raw_json_field '{raw_json_field}' names a non-text field '{existing.field_name}'",
                    code="RAW_JSON_FIELD_CONFLICT",
                    details={
                        "raw_json_field": raw_json_field,
                        "existing_field": existing.field_name,
                        "field_type": existing.type,
                    }
                )

    async def run_import(
        self,
        app_token: str,
        table_id: str,
        files: list[ParsedFile],
        decision: Optional[FieldMappingDecision] = None,
        raw_json_field: Optional[str] = None
    ) -> ImportSummary:
        """
        Import every pending record of the given files.

        Args:
            app_token: Base app token
            table_id: Target table
            files: Parsed inputs; files with status "error" are skipped
            decision: Field resolutions; None approves every suggestion
            raw_json_field: Optional text field receiving each record's
                original JSON

        Returns:
            ImportSummary. Record and file statuses are updated in place.
        """
        records = pending_records(files)
        if not records:
            error = NoRecordsError("No importable records")
            return ImportSummary(
                success=False,
                message=error.message,
                table_id=table_id,
                error_code=error.code,
            )

        names = collect_field_names(r.data for r in records)
        logger.info(
            "import_started",
            table_id=table_id,
            files=len(files),
            records=len(records),
            fields=len(names)
        )

        context: Optional[RunContext] = None

        try:
            async with self.client_factory() as client:
                await client.authenticate()

                context = RunContext.from_fields(
                    app_token, table_id, await self._read_fields(client, app_token, table_id)
                )
                if raw_json_field:
                    self._check_raw_json_field(raw_json_field, names, context)

                validation = self.matcher.validate_fields(names, context.existing_fields)
                decision = decision or FieldMappingDecision.approve_all(validation)

                sync = SchemaSyncService(client)
                planned = sync.plan_fields(validation, decision)
                if raw_json_field:
                    planned.append(PlannedField(
                        name=raw_json_field,
                        aliases=[raw_json_field],
                        field_type=FieldType.TEXT,
                    ))

                data = [r.data for r in records]
                sync_result = await sync.create_missing_fields(
                    context, planned, data, decision.field_types
                )
                mapping, dropped = self.matcher.resolve_field_targets(
                    validation, decision, sync_result.name_map
                )
                dropped_set = set(dropped)
                url_fields = context.url_field_names
                number_fields = context.number_field_names
                checkbox_fields = context.checkbox_field_names
                raw_target = sync_result.name_map.get(raw_json_field) if raw_json_field else None

                rows = []
                for record in records:
                    kept = {k: v for k, v in record.data.items() if k not in dropped_set}
                    row = self.transformer.transform_record(
                        kept, mapping, url_fields, number_fields, checkbox_fields
                    )
                    if raw_target:
                        row[raw_target] = raw_json_text(record.data)
                    rows.append(row)

                batch = await BatchImportService(client, self.batch_size).create_records(
                    app_token, table_id, rows
                )

        except AppError as e:
            created_fields = [f.field_name for f in context.created_fields] if context else []
            logger.error(
                "import_failed",
                table_id=table_id,
                error_code=e.code,
                error=e.message,
                created_fields=created_fields
            )
            return ImportSummary(
                success=False,
                message=e.message,
                table_id=table_id,
                total_records=len(records),
                fields_count=len(names),
                created_fields=created_fields,
                created_fields_count=len(created_fields),
                error_code=e.code,
            )

        created_fields = sync_result.created_names
        self._apply_outcome(records, batch)
        self._apply_file_status(files)

        success = batch.failed_count == 0
        message = (
            "Import completed"
            if success
            else f"{batch.success_count} succeeded, {batch.failed_count} failed"
        )

        logger.info(
            "import_complete",
            table_id=table_id,
            success=batch.success_count,
            failed=batch.failed_count,
            created_fields=len(created_fields)
        )

        return ImportSummary(
            success=success,
            message=message,
            table_id=table_id,
            total_records=len(records),
            success_count=batch.success_count,
            failed_count=batch.failed_count,
            record_ids=batch.record_ids,
            errors=batch.errors,
            fields_count=len(names),
            created_fields=created_fields,
            created_fields_count=len(created_fields),
            dropped_fields=dropped,
        )


# =============================================================================
# Singleton
# =============================================================================

_import_service: Optional[ImportService] = None


def get_import_service() -> ImportService:
    """Get or create ImportService instance."""
    global _import_service
    if _import_service is None:
        _import_service = ImportService()
    return _import_service
