"""
Field reconciliation service.

Classifies incoming JSON field names against the fields of the target table
and turns the caller's resolutions into a write mapping.

Classification per incoming name:
    exact    normalized form matches and the literal name is identical
    similar  normalized form matches but the spelling differs
             ("ＩＤ" vs "ID", "価格（税込）" vs "価格(税込)")
    new      nothing matches; needs approval before it is created
"""

from collections import defaultdict
from typing import Iterable, Mapping, Optional
import structlog

from integrations.lark import RemoteField
from models.fields import (
    ExactMatch,
    ExistingField,
    FieldMappingDecision,
    FieldValidationResult,
    SimilarMatch,
)
from utils.text_utils import normalize_field_name

logger = structlog.get_logger(__name__)


def collect_field_names(records: Iterable[Mapping]) -> list[str]:
    """Unique keys across records, in first-seen order."""
    seen: dict[str, None] = {}
    for record in records:
        for key in record.keys():
            seen.setdefault(key, None)
    return list(seen)


def to_existing_fields(remote_fields: Iterable[RemoteField]) -> list[ExistingField]:
    """Attach normalized names to fields listed by Lark."""
    return [
        ExistingField(
            field_id=f.field_id,
            field_name=f.field_name,
            normalized_name=normalize_field_name(f.field_name),
            type=f.type,
        )
        for f in remote_fields
    ]


class FieldMatcherService:
    """Compares incoming field names with the remote schema."""

    def validate_fields(
        self,
        incoming_names: Iterable[str],
        existing_fields: Iterable[ExistingField]
    ) -> FieldValidationResult:
        """
        Partition incoming names into exact / similar / new.

        When several existing fields share one normalized name, an incoming
        name identical to any of them is exact; otherwise it is paired with
        the first one listed. Such names are reported in `ambiguous`.

        Args:
            incoming_names: Field names found in the records
            existing_fields: Fields of the target table

        Returns:
            FieldValidationResult covering each incoming name exactly once
        """
        by_normalized: dict[str, list[ExistingField]] = defaultdict(list)
        for existing in existing_fields:
            by_normalized[existing.normalized_name].append(existing)

        ambiguous = sorted(n for n, fields in by_normalized.items() if len(fields) > 1)
        if ambiguous:
            logger.warning(
                "ambiguous_existing_fields",
                normalized_names=ambiguous,
                resolution="first_listed"
            )

        result = FieldValidationResult(ambiguous=ambiguous)
        seen: set[str] = set()

        for name in incoming_names:
            if name in seen:
                continue
            seen.add(name)

            normalized = normalize_field_name(name)
            candidates = by_normalized.get(normalized)

            if not candidates:
                result.new_fields.append(name)
            elif any(c.field_name == name for c in candidates):
                result.exact_matches.append(ExactMatch(json_field=name, existing_field=name))
            else:
                result.similar_matches.append(SimilarMatch(
                    json_field=name,
                    existing_field=candidates[0].field_name,
                    normalized_name=normalized,
                ))

        logger.info(
            "fields_validated",
            exact=len(result.exact_matches),
            similar=len(result.similar_matches),
            new=len(result.new_fields)
        )
        return result

    def resolve_field_targets(
        self,
        validation: FieldValidationResult,
        decision: FieldMappingDecision,
        created_names: Mapping[str, str]
    ) -> tuple[dict[str, str], list[str]]:
        """
        Decide which remote field each incoming name is written to.

        Args:
            validation: Result of validate_fields()
            decision: Caller resolutions
            created_names: Incoming name -> remote name for every field the
                schema sync created or reused

        Returns:
            (mapping, dropped): incoming name -> remote field name, and the
            unapproved new names that must not be written
        """
        mapping: dict[str, str] = {}
        dropped: list[str] = []

        for match in validation.exact_matches:
            mapping[match.json_field] = match.existing_field

        for match in validation.similar_matches:
            target: Optional[str] = decision.similar_mappings.get(
                match.json_field, match.existing_field
            )
            if target is None:
                target = created_names.get(match.json_field, match.json_field)
            mapping[match.json_field] = target

        for name in validation.new_fields:
            if name in decision.approved_new_fields and name in created_names:
                mapping[name] = created_names[name]
            else:
                dropped.append(name)

        if dropped:
            logger.info("unapproved_fields_dropped", fields=dropped)

        return mapping, dropped


# =============================================================================
# Singleton
# =============================================================================

_field_matcher_service: Optional[FieldMatcherService] = None


def get_field_matcher_service() -> FieldMatcherService:
    """Get or create FieldMatcherService instance."""
    global _field_matcher_service
    if _field_matcher_service is None:
        _field_matcher_service = FieldMatcherService()
    return _field_matcher_service
