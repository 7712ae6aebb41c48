"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.ingest import (
    InputErrorCode,
    RawInput,
    ParseDiagnostics,
    ParsedRecord,
    ParsedFile,
)
from models.fields import (
    FieldType,
    ExistingField,
    ExactMatch,
    SimilarMatch,
    FieldValidationResult,
    FieldMappingDecision,
)
from models.values import ValueKind, TaggedValue
from models.imports import (
    RecordError,
    BatchCreateResult,
    ImportSummary,
    ParseTextRequest,
    TableTarget,
    ValidateFieldsRequest,
    ImportRequest,
)

__all__ = [
    "BaseSchema",
    # Parsed input
    "InputErrorCode",
    "RawInput",
    "ParseDiagnostics",
    "ParsedRecord",
    "ParsedFile",
    # Fields
    "FieldType",
    "ExistingField",
    "ExactMatch",
    "SimilarMatch",
    "FieldValidationResult",
    "FieldMappingDecision",
    # Values
    "ValueKind",
    "TaggedValue",
    # Import runs
    "RecordError",
    "BatchCreateResult",
    "ImportSummary",
    "ParseTextRequest",
    "TableTarget",
    "ValidateFieldsRequest",
    "ImportRequest",
]
