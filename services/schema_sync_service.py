"""
Schema synchronization service.

Creates the fields an import needs but the target table lacks. Runs before
any record is written, one field at a time.

Type of a created field:
    1. type supplied by the caller for the name (or an alias), else
    2. inferred from the first non-null value in the records:
         number -> Number, bool -> Checkbox, http(s) URL -> Url,
         null / array / object / other text -> Text
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional
import structlog

from exceptions import ExternalServiceError, FieldCreateError
from models.fields import ExistingField, FieldMappingDecision, FieldType, FieldValidationResult
from models.values import TaggedValue, ValueKind
from services.run_context import RunContext
from utils.text_utils import is_http_url, normalize_field_name

logger = structlog.get_logger(__name__)


@dataclass
class PlannedField:
    """
    A remote field the run needs.

    aliases: every incoming spelling sharing the normalized name, used for
        type lookup.
    force_new: created even though an existing field has the same
        normalized name (a similar match the caller chose not to map).
    """
    name: str
    aliases: list[str] = field(default_factory=list)
    force_new: bool = False
    field_type: Optional[int] = None

    @property
    def normalized_name(self) -> str:
        return normalize_field_name(self.name)


@dataclass
class SchemaSyncResult:
    """name_map: every requested spelling -> remote field it resolves to."""
    created_fields: list[ExistingField] = field(default_factory=list)
    name_map: dict[str, str] = field(default_factory=dict)

    @property
    def created_names(self) -> list[str]:
        return [f.field_name for f in self.created_fields]


def infer_field_type(value: Any) -> FieldType:
    """Lark field type for a sample JSON value."""
    tagged = TaggedValue.from_raw(value)

    if tagged.kind == ValueKind.NUMBER:
        return FieldType.NUMBER
    if tagged.kind == ValueKind.BOOL:
        return FieldType.CHECKBOX
    if tagged.kind == ValueKind.TEXT and is_http_url(tagged.value):
        return FieldType.URL
    return FieldType.TEXT


def first_non_null_value(records: Iterable[Mapping[str, Any]], names: list[str]) -> Any:
    """First value that isn't None for any of names, scanning records in order."""
    for record in records:
        for name in names:
            value = record.get(name)
            if value is not None:
                return value
    return None


class SchemaSyncService:
    """
    Creates missing fields through a Lark client.

    Usage:
        sync = SchemaSyncService(client)
        planned = sync.plan_fields(validation, decision)
        result = await sync.create_missing_fields(context, planned, records, decision.field_types)
    """

    def __init__(self, client):
        self.client = client

    def plan_fields(
        self,
        validation: FieldValidationResult,
        decision: FieldMappingDecision
    ) -> list[PlannedField]:
        """
        Fields to create: approved new fields plus similar fields resolved to
        "create new", one per normalized name (first spelling wins).
        """
        incoming = validation.all_fields()
        aliases_by_normalized: dict[str, list[str]] = {}
        for name in incoming:
            aliases_by_normalized.setdefault(normalize_field_name(name), []).append(name)

        planned: dict[str, PlannedField] = {}

        def _plan(name: str, force_new: bool) -> None:
            normalized = normalize_field_name(name)
            already = planned.get(normalized)
            if already is not None:
                if name not in already.aliases:
                    already.aliases.append(name)
                return
            aliases = [name] + [a for a in aliases_by_normalized.get(normalized, []) if a != name]
            planned[normalized] = PlannedField(name=name, aliases=aliases, force_new=force_new)

        for name in validation.new_fields:
            if name in decision.approved_new_fields:
                _plan(name, force_new=False)

        for match in validation.similar_matches:
            if match.json_field in decision.similar_mappings and decision.similar_mappings[match.json_field] is None:
                _plan(match.json_field, force_new=True)

        return list(planned.values())

    def resolve_field_type(
        self,
        planned: PlannedField,
        records: list[Mapping[str, Any]],
        field_types: Optional[Mapping[str, int]] = None
    ) -> int:
        """Caller-supplied type for the name or an alias, else inferred."""
        if planned.field_type is not None:
            return int(planned.field_type)

        field_types = field_types or {}
        for name in [planned.name] + planned.aliases:
            if name in field_types:
                return int(field_types[name])

        return infer_field_type(first_non_null_value(records, [planned.name] + planned.aliases))

    async def create_missing_fields(
        self,
        context: RunContext,
        planned_fields: list[PlannedField],
        records: list[Mapping[str, Any]],
        field_types: Optional[Mapping[str, int]] = None
    ) -> SchemaSyncResult:
        """
        Create each planned field that the table doesn't have yet.

        Fields already present (same literal name, or same normalized name
        unless force_new) are reused. The context is updated after every
        successful creation.

        Raises:
            FieldCreateError: Any creation failed. Fields created before the
                failure stay in the table.
        """
        result = SchemaSyncResult()

        for planned in planned_fields:
            reused = context.find_by_name(planned.name)
            if reused is None and not planned.force_new:
                remote_name = context.resolve_normalized(planned.name)
                reused = context.find_by_name(remote_name) if remote_name else None

            if reused is not None:
                logger.debug("field_already_exists", field_name=planned.name, existing=reused.field_name)
                for alias in [planned.name] + planned.aliases:
                    result.name_map[alias] = reused.field_name
                continue

            field_type = self.resolve_field_type(planned, records, field_types)

            try:
                created = await self.client.create_field(
                    context.app_token, context.table_id, planned.name, field_type
                )
            except ExternalServiceError as e:
                logger.error("field_create_failed", field_name=planned.name, error=e.message)
                raise FieldCreateError(planned.name, e.message) from e

            if not created.ok:
                logger.error(
                    "field_create_failed",
                    field_name=planned.name,
                    lark_code=created.code,
                    error=created.message
                )
                raise FieldCreateError(planned.name, created.message, lark_code=created.code)

            existing = context.register_created(created.data, planned.name, field_type)
            result.created_fields.append(existing)
            for alias in [planned.name] + planned.aliases:
                result.name_map[alias] = planned.name

            logger.info(
                "field_created",
                field_name=planned.name,
                field_id=created.data,
                field_type=field_type
            )

        return result
