"""
Remote schema and field reconciliation models.
"""

from enum import IntEnum
from typing import Optional
from pydantic import BaseModel, Field


class FieldType(IntEnum):
    """Lark Base field type codes used by this importer."""
    TEXT = 1
    NUMBER = 2
    SINGLE_SELECT = 3
    MULTI_SELECT = 4
    DATE_TIME = 5
    CHECKBOX = 7
    USER = 11
    PHONE = 13
    URL = 15
    ATTACHMENT = 17


class ExistingField(BaseModel):
    """
    A field already present in the target table.

    type stays a plain int: the provider has more type codes than FieldType
    lists, and unknown ones must round-trip untouched.
    """

    field_id: str
    field_name: str
    normalized_name: str
    type: int


class ExactMatch(BaseModel):
    json_field: str
    existing_field: str


class SimilarMatch(BaseModel):
    """Incoming name that only matches an existing field after normalization."""

    json_field: str
    existing_field: str
    normalized_name: str


class FieldValidationResult(BaseModel):
    """
    Partition of incoming field names against the remote schema.

    Every incoming name lands in exactly one of exact_matches,
    similar_matches or new_fields.
    """

    exact_matches: list[ExactMatch] = Field(default_factory=list)
    similar_matches: list[SimilarMatch] = Field(default_factory=list)
    new_fields: list[str] = Field(default_factory=list)
    ambiguous: list[str] = Field(
        default_factory=list,
        description="Normalized names shared by more than one existing field"
    )

    @property
    def needs_approval(self) -> bool:
        return bool(self.similar_matches or self.new_fields)

    def all_fields(self) -> list[str]:
        return (
            [m.json_field for m in self.exact_matches]
            + [m.json_field for m in self.similar_matches]
            + list(self.new_fields)
        )


class FieldMappingDecision(BaseModel):
    """
    Caller's resolution of a FieldValidationResult.

    similar_mappings: json field -> existing field name, or None to create a
        new field under the json spelling. Similar fields not listed here map
        onto the existing field.
    approved_new_fields: new fields the caller agreed to create. New fields
        not in this set are dropped from every record.
    field_types: explicit Lark type per field name; overrides inference.
    """

    similar_mappings: dict[str, Optional[str]] = Field(default_factory=dict)
    approved_new_fields: set[str] = Field(default_factory=set)
    field_types: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def approve_all(cls, validation: FieldValidationResult) -> "FieldMappingDecision":
        """Accept every suggestion: similar -> existing, all new fields created."""
        return cls(
            similar_mappings={m.json_field: m.existing_field for m in validation.similar_matches},
            approved_new_fields=set(validation.new_fields),
        )
