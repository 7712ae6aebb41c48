"""
JSON parser for pasted and uploaded record data.

Hand-written or copy-pasted JSON is frequently almost valid: values contain
unescaped double quotes ("he said "hi"") or raw tabs and newlines. Parsing
runs in stages and stops at the first one that succeeds:

    0. sanitize   BOM / zero-width characters removed
    1. direct     json.loads on the sanitized text
    2. quotes     embedded quotes escaped, then json.loads
    3. controls   quotes repaired, raw control characters inside strings
                  escaped, then json.loads
    4. failure    diagnostics from the direct attempt

The parsed value must be an object or a non-empty array of objects. Every
object becomes one ParsedRecord. Bad input never raises: the result is a
ParsedFile with status "error" and a named InputErrorCode.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
import structlog

from models.ingest import (
    InputErrorCode,
    ParseDiagnostics,
    ParsedFile,
    ParsedRecord,
)
from utils.text_utils import sanitize_json_text

logger = structlog.get_logger(__name__)

# Characters shown on each side of a parse error offset
CONTEXT_RADIUS = 30

_ARRAY = "array"
_OBJECT = "object"

_STRING_LITERAL = re.compile(r'"(?:[^"\\]|\\.)*"', re.DOTALL)
_OTHER_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_LITERAL_STARTS = ("true", "false", "null")


class ParseStage(str, Enum):
    """Stage that produced the parsed value."""
    DIRECT = "direct"
    QUOTE_REPAIR = "quote_repair"
    CONTROL_ESCAPE = "control_escape"


@dataclass
class RecoveryResult:
    """Outcome of recover_json()."""
    ok: bool
    value: Any = None
    stage: Optional[ParseStage] = None
    diagnostics: Optional[ParseDiagnostics] = None


# ===================
# QUOTE REPAIR
# ===================

def _skip_whitespace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def _find_string_end(text: str, pos: int) -> int:
    """Index of the next unescaped quote at or after pos, or -1."""
    while pos < len(text):
        ch = text[pos]
        if ch == "\\":
            pos += 2
            continue
        if ch == '"':
            return pos
        pos += 1
    return -1


def _looks_like_value_after_comma(text: str, pos: int, in_array: bool) -> bool:
    """
    Decide whether the text after a comma continues the JSON structure.

    In an object the next token must be a key ("name":). In an array any
    value may follow; a string counts only if its own closing quote is
    followed by a structural character.
    """
    i = _skip_whitespace(text, pos)
    if i >= len(text):
        return False

    ch = text[i]

    if in_array:
        if ch in "{[":
            return True
        if ch in "-0123456789":
            return True
        if text.startswith(_LITERAL_STARTS, i):
            return True
        if ch == '"':
            end = _find_string_end(text, i + 1)
            if end < 0:
                return False
            k = _skip_whitespace(text, end + 1)
            return k >= len(text) or text[k] in ",]}:"
        return False

    if ch == '"':
        end = _find_string_end(text, i + 1)
        if end < 0:
            return False
        k = _skip_whitespace(text, end + 1)
        return k < len(text) and text[k] == ":"

    return False


def _is_structural_quote(text: str, pos: int, container: str) -> bool:
    """True if the quote at pos closes the current string literal."""
    j = _skip_whitespace(text, pos + 1)
    if j >= len(text):
        return True

    next_char = text[j]
    if next_char in "}]:":
        return True
    if next_char == ",":
        return _looks_like_value_after_comma(text, j + 1, container == _ARRAY)
    return False


def repair_json_quotes(text: str) -> str:
    """
    Escape double quotes that sit inside string values.

    Tracks whether the cursor is inside a string and which container
    (array/object) is innermost. A quote inside a string only ends it when
    what follows is structural for that container; otherwise it is written
    back as \\".

    Examples:
        {"a": "he said "hi" to me"}  ->  {"a": "he said \\"hi\\" to me"}
        ["a "b" c", "d"]             ->  ["a \\"b\\" c", "d"]

    Args:
        text: Sanitized JSON text

    Returns:
        Text with embedded quotes escaped (unchanged if already valid)
    """
    result: list[str] = []
    stack: list[str] = []
    in_string = False
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]

        if not in_string:
            result.append(ch)
            if ch == '"':
                in_string = True
            elif ch == "[":
                stack.append(_ARRAY)
            elif ch == "{":
                stack.append(_OBJECT)
            elif ch in "]}" and stack:
                stack.pop()
            i += 1
            continue

        if ch == "\\":
            # Escape pair passes through as-is
            result.append(text[i:i + 2])
            i += 2
            continue

        if ch == '"':
            container = stack[-1] if stack else _OBJECT
            if _is_structural_quote(text, i, container):
                result.append(ch)
                in_string = False
            else:
                result.append('\\"')
            i += 1
            continue

        result.append(ch)
        i += 1

    return "".join(result)


# ===================
# CONTROL CHARACTERS
# ===================

def _escape_controls_in_literal(match: re.Match) -> str:
    literal = match.group(0)
    literal = (
        literal
        .replace("\t", "\\t")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return _OTHER_CONTROL_CHARS.sub(lambda m: "\\u%04x" % ord(m.group(0)), literal)


def escape_control_characters(text: str) -> str:
    """
    Escape raw control characters inside string literals.

    Only correct on text whose strings are properly terminated, so it runs
    after repair_json_quotes().
    """
    return _STRING_LITERAL.sub(_escape_controls_in_literal, text)


# ===================
# STAGED PARSE
# ===================

def _diagnostics(
    text: str,
    error: json.JSONDecodeError,
    repair_error: Optional[Exception]
) -> ParseDiagnostics:
    position = error.pos
    context = None
    code_point = None

    if position is not None:
        start = max(0, position - CONTEXT_RADIUS)
        context = text[start:position + CONTEXT_RADIUS]
        if position < len(text):
            code_point = "U+%04X" % ord(text[position])

    repair_message = str(repair_error) if repair_error else None
    if repair_message == str(error):
        repair_message = None

    return ParseDiagnostics(
        message=str(error),
        position=position,
        context=context,
        code_point=code_point,
        repair_message=repair_message,
    )


class _NonFiniteConstant(ValueError):
    def __init__(self, token: str):
        super().__init__(token)
        self.token = token


def _reject_constant(token: str) -> Any:
    raise _NonFiniteConstant(token)


def _loads(text: str) -> Any:
    """
    Strict json.loads: NaN, Infinity and -Infinity are rejected.

    The rejection is raised as a JSONDecodeError pointing at the first such
    token outside a string literal.
    """
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except _NonFiniteConstant as e:
        masked = _STRING_LITERAL.sub(lambda m: " " * len(m.group(0)), text)
        position = max(masked.find(e.token), 0)
        raise json.JSONDecodeError(f"Invalid JSON token {e.token}", text, position) from e


def recover_json(text: str) -> RecoveryResult:
    """
    Parse sanitized text, repairing it if needed.

    Args:
        text: Output of sanitize_json_text()

    Returns:
        RecoveryResult with the value and the stage that produced it, or
        diagnostics if every stage failed
    """
    try:
        return RecoveryResult(ok=True, value=_loads(text), stage=ParseStage.DIRECT)
    except json.JSONDecodeError as e:
        first_error = e

    repaired = repair_json_quotes(text)
    try:
        return RecoveryResult(ok=True, value=_loads(repaired), stage=ParseStage.QUOTE_REPAIR)
    except json.JSONDecodeError:
        pass

    try:
        value = _loads(escape_control_characters(repaired))
        return RecoveryResult(ok=True, value=value, stage=ParseStage.CONTROL_ESCAPE)
    except json.JSONDecodeError as e:
        last_error = e

    return RecoveryResult(
        ok=False,
        diagnostics=_diagnostics(text, first_error, last_error),
    )


def _format_failure(diagnostics: ParseDiagnostics) -> str:
    message = f"Failed to parse JSON: {diagnostics.message}"
    if diagnostics.context is not None:
        message += f'\nNear position {diagnostics.position}: "...{diagnostics.context}..."'
    if diagnostics.code_point:
        message += f"\nOffending character: {diagnostics.code_point}"
    if diagnostics.repair_message:
        message += f"\nAfter repair: {diagnostics.repair_message}"
    return message


def records_from_value(value: Any, source_name: str) -> ParsedFile:
    """
    Check the shape of a parsed value and wrap it as records.

    Accepted:
        - non-empty list whose elements are all objects
        - non-empty object (one record)

    Args:
        value: Parsed JSON value
        source_name: File name or paste label

    Returns:
        ParsedFile with pending records, or an error result
    """
    if isinstance(value, list):
        if not value:
            return ParsedFile.failed(source_name, InputErrorCode.EMPTY_ARRAY)

        if any(not isinstance(item, dict) for item in value):
            return ParsedFile.failed(source_name, InputErrorCode.NON_OBJECT_ELEMENT)

        return ParsedFile(
            file_name=source_name,
            records=[ParsedRecord(data=item) for item in value],
        )

    if not isinstance(value, dict):
        return ParsedFile.failed(source_name, InputErrorCode.INVALID_ROOT)

    if not value:
        return ParsedFile.failed(source_name, InputErrorCode.EMPTY_OBJECT)

    return ParsedFile(file_name=source_name, records=[ParsedRecord(data=value)])


def parse_json_text(text: str, source_name: str = "pasted.json") -> ParsedFile:
    """
    Parse raw JSON text into records.

    Args:
        text: Raw text from a paste or file
        source_name: Label carried into the result

    Returns:
        ParsedFile (status "pending" with records, or "error")
    """
    sanitized = sanitize_json_text(text or "")

    if not sanitized:
        logger.info("json_input_empty", source=source_name)
        return ParsedFile.failed(source_name, InputErrorCode.EMPTY_INPUT)

    recovery = recover_json(sanitized)

    if not recovery.ok:
        logger.warning(
            "json_parse_failed",
            source=source_name,
            error=recovery.diagnostics.message,
            position=recovery.diagnostics.position,
            code_point=recovery.diagnostics.code_point
        )
        return ParsedFile.failed(
            source_name,
            InputErrorCode.PARSE_FAILED,
            error=_format_failure(recovery.diagnostics),
            diagnostics=recovery.diagnostics,
        )

    if recovery.stage != ParseStage.DIRECT:
        logger.info("json_repaired", source=source_name, stage=recovery.stage.value)

    parsed = records_from_value(recovery.value, source_name)
    parsed.repaired = recovery.stage != ParseStage.DIRECT

    if parsed.status == "error":
        logger.info("json_shape_rejected", source=source_name, error_code=parsed.error_code.value)
    else:
        logger.info("json_parsed", source=source_name, records=len(parsed.records))

    return parsed


def parse_json_bytes(content: bytes, file_name: str) -> ParsedFile:
    """
    Parse an uploaded .json file.

    Decodes as UTF-8 (a UTF-8 BOM is accepted). Undecodable content is
    reported as PARSE_FAILED.
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        logger.warning("json_file_not_utf8", source=file_name, position=e.start)
        return ParsedFile.failed(
            file_name,
            InputErrorCode.PARSE_FAILED,
            error=f"File is not valid UTF-8 (byte {e.start})",
            diagnostics=ParseDiagnostics(message=str(e), position=e.start),
        )

    return parse_json_text(text, file_name)
