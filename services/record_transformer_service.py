"""
Record value transformation.

Turns one parsed JSON object into the `fields` payload Lark accepts for the
target table. Values Lark would reject are dropped from the row instead of
failing the record.
"""

from typing import Any, Collection, Mapping, Optional
import math
import re
import structlog

from models.values import TaggedValue, ValueKind
from utils.text_utils import is_http_url, normalize_field_name

logger = structlog.get_logger(__name__)

_NUMERIC_STRING = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def parse_numeric_string(text: str) -> Optional[int | float]:
    """
    "21" -> 21, " 1.5 " -> 1.5, "1e3" -> 1000.0; anything else -> None.
    """
    candidate = text.strip()
    if not _NUMERIC_STRING.match(candidate):
        return None
    if any(c in candidate for c in ".eE"):
        number = float(candidate)
        return number if math.isfinite(number) else None
    return int(candidate)


def to_link(url: str) -> dict[str, str]:
    """Lark URL field value."""
    return {"link": url, "text": url}


class RecordTransformerService:
    """Applies field-name mapping and per-type write rules."""

    def resolve_target(self, key: str, name_mapping: Mapping[str, str]) -> str:
        """Remote field name for a JSON key: literal, then normalized, then the key."""
        if key in name_mapping:
            return name_mapping[key]
        return name_mapping.get(normalize_field_name(key), key)

    def convert_value(
        self,
        value: Any,
        target: str,
        url_fields: Collection[str],
        number_fields: Collection[str],
        checkbox_fields: Collection[str] = ()
    ) -> tuple[bool, Any]:
        """
        Convert one value for its target field.

        Returns:
            (keep, converted). keep is False when the value must be left out.
        """
        tagged = TaggedValue.from_raw(value)

        if tagged.is_empty:
            return False, None

        if target in url_fields:
            if tagged.kind == ValueKind.TEXT and is_http_url(tagged.value):
                return True, to_link(tagged.value)
            return False, None

        if target in number_fields:
            if tagged.is_finite_number:
                return True, tagged.value
            if tagged.kind == ValueKind.TEXT:
                number = parse_numeric_string(tagged.value)
                if number is not None:
                    return True, number
            return False, None

        if target in checkbox_fields:
            if tagged.kind == ValueKind.BOOL:
                return True, tagged.value
            if tagged.kind == ValueKind.TEXT and tagged.value.strip().lower() in ("true", "false"):
                return True, tagged.value.strip().lower() == "true"
            return False, None

        return True, tagged.as_text()

    def transform_record(
        self,
        record: Mapping[str, Any],
        name_mapping: Mapping[str, str],
        url_fields: Collection[str],
        number_fields: Collection[str],
        checkbox_fields: Collection[str] = ()
    ) -> dict[str, Any]:
        """
        Build the Lark `fields` object for one record.

        Rules per entry:
            - null / "" values are dropped
            - URL fields: only absolute http(s) URLs, as {"link", "text"}
            - Number fields: numbers and numeric strings, else dropped
            - Checkbox fields: booleans and "true"/"false", else dropped
            - everything else is written as text (arrays/objects as JSON)

        Args:
            record: Parsed JSON object
            name_mapping: JSON key or normalized name -> remote field name
            url_fields: Remote fields of type Url
            number_fields: Remote fields of type Number
            checkbox_fields: Remote fields of type Checkbox

        Returns:
            Dict ready to send as a record's `fields`
        """
        fields: dict[str, Any] = {}
        skipped: list[str] = []

        for key, value in record.items():
            target = self.resolve_target(key, name_mapping)
            keep, converted = self.convert_value(
                value, target, url_fields, number_fields, checkbox_fields
            )
            if keep:
                fields[target] = converted
            elif value is not None and value != "":
                skipped.append(target)

        if skipped:
            logger.debug("record_values_dropped", fields=skipped)

        return fields
