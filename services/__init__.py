"""
Business logic services.

Each service handles one stage of an import run.
"""

from services.run_context import RunContext
from services.field_matcher_service import (
    FieldMatcherService,
    get_field_matcher_service,
    collect_field_names,
    to_existing_fields,
)
from services.schema_sync_service import (
    SchemaSyncService,
    SchemaSyncResult,
    PlannedField,
    infer_field_type,
)
from services.record_transformer_service import RecordTransformerService
from services.batch_import_service import BatchImportService, ChunkOutcome
from services.import_service import ImportService, get_import_service

__all__ = [
    "RunContext",
    "FieldMatcherService",
    "get_field_matcher_service",
    "collect_field_names",
    "to_existing_fields",
    "SchemaSyncService",
    "SchemaSyncResult",
    "PlannedField",
    "infer_field_type",
    "RecordTransformerService",
    "BatchImportService",
    "ChunkOutcome",
    "ImportService",
    "get_import_service",
]
