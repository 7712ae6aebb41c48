"""
Tagged field values.

JSON values arrive as any of str/int/float/bool/list/dict/None. They are
classified once into a TaggedValue so the transformer branches on kind
instead of re-inspecting Python types at every rule.
"""

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ValueKind(str, Enum):
    NULL = "null"
    NUMBER = "number"
    BOOL = "bool"
    TEXT = "text"
    STRUCTURED = "structured"   # list or dict, carried as JSON text


@dataclass(frozen=True)
class TaggedValue:
    """A JSON value with its kind decided up front."""
    kind: ValueKind
    value: Union[None, int, float, bool, str]

    @classmethod
    def from_raw(cls, raw: Any) -> "TaggedValue":
        # bool before number: bool is an int subclass
        if raw is None:
            return cls(ValueKind.NULL, None)
        if isinstance(raw, bool):
            return cls(ValueKind.BOOL, raw)
        if isinstance(raw, (int, float)):
            return cls(ValueKind.NUMBER, raw)
        if isinstance(raw, str):
            return cls(ValueKind.TEXT, raw)
        if isinstance(raw, (list, dict, tuple)):
            return cls(ValueKind.STRUCTURED, to_json_text(raw))
        return cls(ValueKind.TEXT, str(raw))

    @property
    def is_empty(self) -> bool:
        """Null or empty string."""
        return self.kind == ValueKind.NULL or (self.kind == ValueKind.TEXT and self.value == "")

    @property
    def is_finite_number(self) -> bool:
        return self.kind == ValueKind.NUMBER and math.isfinite(self.value)

    def as_text(self) -> str:
        """Text form written to non-numeric fields."""
        if self.kind == ValueKind.NULL:
            return ""
        if self.kind == ValueKind.BOOL:
            return "true" if self.value else "false"
        if self.kind == ValueKind.NUMBER:
            return format_number(self.value)
        return self.value


def to_json_text(value: Any) -> str:
    """Compact JSON, non-ASCII kept readable."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def format_number(value: Union[int, float]) -> str:
    """Render a number the way it usually appears in JSON (20.0 -> "20")."""
    if isinstance(value, float) and value.is_integer() and math.isfinite(value):
        return str(int(value))
    return str(value)
