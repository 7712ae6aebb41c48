"""
Input parsers module.
"""

from parsers.json_parser import (
    parse_json_text,
    parse_json_bytes,
    recover_json,
    repair_json_quotes,
    escape_control_characters,
    records_from_value,
    ParseStage,
    RecoveryResult,
)

__all__ = [
    "parse_json_text",
    "parse_json_bytes",
    "recover_json",
    "repair_json_quotes",
    "escape_control_characters",
    "records_from_value",
    "ParseStage",
    "RecoveryResult",
]
