"""
Run-scoped schema state.

One RunContext is built per import run from a fresh schema read and passed
to every stage. Nothing here outlives the run.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from models.fields import ExistingField, FieldType
from utils.text_utils import normalize_field_name


@dataclass
class RunContext:
    """
    Target table and its fields as known during one run.

    normalized_to_name maps a normalized name to the literal name of the
    first field seen with it. Fields created during the run are appended to
    existing_fields and never displace an earlier mapping.
    """
    app_token: str
    table_id: str
    existing_fields: list[ExistingField] = field(default_factory=list)
    normalized_to_name: dict[str, str] = field(default_factory=dict)
    created_fields: list[ExistingField] = field(default_factory=list)

    @classmethod
    def from_fields(
        cls,
        app_token: str,
        table_id: str,
        fields: Iterable[ExistingField]
    ) -> "RunContext":
        context = cls(app_token=app_token, table_id=table_id)
        for existing in fields:
            context._add(existing)
        return context

    def _add(self, existing: ExistingField) -> None:
        self.existing_fields.append(existing)
        self.normalized_to_name.setdefault(existing.normalized_name, existing.field_name)

    def register_created(self, field_id: str, field_name: str, field_type: int) -> ExistingField:
        """Record a field created in this run so later lookups see it."""
        created = ExistingField(
            field_id=field_id,
            field_name=field_name,
            normalized_name=normalize_field_name(field_name),
            type=int(field_type),
        )
        self._add(created)
        self.created_fields.append(created)
        return created

    def find_by_name(self, field_name: str) -> Optional[ExistingField]:
        for existing in self.existing_fields:
            if existing.field_name == field_name:
                return existing
        return None

    def resolve_normalized(self, name: str) -> Optional[str]:
        """Literal field name for a name's normalized form, if known."""
        return self.normalized_to_name.get(normalize_field_name(name))

    def field_names_of_type(self, field_type: FieldType) -> set[str]:
        return {f.field_name for f in self.existing_fields if f.type == field_type}

    @property
    def url_field_names(self) -> set[str]:
        return self.field_names_of_type(FieldType.URL)

    @property
    def number_field_names(self) -> set[str]:
        return self.field_names_of_type(FieldType.NUMBER)

    @property
    def checkbox_field_names(self) -> set[str]:
        return self.field_names_of_type(FieldType.CHECKBOX)
