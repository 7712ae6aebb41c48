"""
Parsed input models.

Data structures for JSON uploaded as a file or pasted as text, before it is
reconciled against a Lark table.
"""

from enum import Enum
from typing import Any, Optional, Literal
from pydantic import BaseModel, Field


RecordStatus = Literal["pending", "success", "error"]
FileStatus = Literal["pending", "processing", "success", "error"]


class InputErrorCode(str, Enum):
    """Named reasons a raw input yields no records."""
    EMPTY_INPUT = "EMPTY_INPUT"                  # Nothing left after sanitizing
    PARSE_FAILED = "PARSE_FAILED"                # All repair stages failed
    INVALID_ROOT = "INVALID_ROOT"                # Root is a string/number/bool/null
    EMPTY_ARRAY = "EMPTY_ARRAY"                  # []
    NON_OBJECT_ELEMENT = "NON_OBJECT_ELEMENT"    # [{"a": 1}, 2]
    EMPTY_OBJECT = "EMPTY_OBJECT"                # {}
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"      # Upload without a .json name


INPUT_ERROR_MESSAGES: dict[InputErrorCode, str] = {
    InputErrorCode.EMPTY_INPUT: "Input is empty",
    InputErrorCode.PARSE_FAILED: "Failed to parse JSON",
    InputErrorCode.INVALID_ROOT: "Input must be a JSON object or an array of objects",
    InputErrorCode.EMPTY_ARRAY: "An empty array cannot be imported",
    InputErrorCode.NON_OBJECT_ELEMENT: "Every element of the array must be an object",
    InputErrorCode.EMPTY_OBJECT: "An empty JSON object cannot be imported",
    InputErrorCode.INVALID_FILE_TYPE: "Only .json files can be imported",
}


class RawInput(BaseModel):
    """Text as received from an upload or paste, plus where it came from."""

    text: str
    source_name: str = Field(default="pasted.json", description="File name or paste label")


class ParseDiagnostics(BaseModel):
    """Where and why the final parse attempt failed."""

    message: str = Field(description="Error from the direct parse attempt")
    position: Optional[int] = Field(None, description="Character offset of the error")
    context: Optional[str] = Field(None, description="Source text around the offset")
    code_point: Optional[str] = Field(None, description="Offending character, e.g. U+0022")
    repair_message: Optional[str] = Field(
        None,
        description="Error after quote/control-character repair, when different"
    )


class ParsedRecord(BaseModel):
    """One JSON object destined to become one table row."""

    data: dict[str, Any]
    status: RecordStatus = "pending"
    error: Optional[str] = None


class ParsedFile(BaseModel):
    """
    Result of parsing one input.

    A failed parse is still a ParsedFile: status "error", no records, and a
    named error_code. Callers branch on status instead of catching exceptions.
    """

    file_name: str
    records: list[ParsedRecord] = Field(default_factory=list)
    status: FileStatus = "pending"
    error: Optional[str] = None
    error_code: Optional[InputErrorCode] = None
    diagnostics: Optional[ParseDiagnostics] = None
    repaired: bool = Field(False, description="True if a repair stage was needed")

    @property
    def is_importable(self) -> bool:
        return self.status != "error" and len(self.records) > 0

    @classmethod
    def failed(
        cls,
        file_name: str,
        error_code: InputErrorCode,
        error: Optional[str] = None,
        diagnostics: Optional[ParseDiagnostics] = None
    ) -> "ParsedFile":
        """Build an error result with the default message for the code."""
        return cls(
            file_name=file_name,
            status="error",
            error=error or INPUT_ERROR_MESSAGES[error_code],
            error_code=error_code,
            diagnostics=diagnostics,
        )
