"""
Error types for the bid reconciliation engine.

Only two conditions unwind the pipeline:
- ParseFailure: structural repair exhausted, the text is not a JSON object
- ValidationError: parsed, but a mandatory top-level field is missing

Everything else (discrepancies, low coverage) is data and travels in the
DiagnosticReport.
"""
from typing import Optional, Any


class ReconcileError(Exception):
    """
    Base error for reconciliation failures.

    All errors in this hierarchy contain structured data for logging and debugging.
    """

    def __init__(
        self,
        message: str,
        field_path: Optional[str] = None,
        original_value: Optional[Any] = None,
        attempted_fixes: Optional[list[str]] = None,
    ):
        self.message = message
        self.field_path = field_path
        self.original_value = original_value
        self.attempted_fixes = attempted_fixes or []
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "field_path": self.field_path,
            "original_value": str(self.original_value)[:100] if self.original_value else None,
            "attempted_fixes": self.attempted_fixes,
        }


class ParseFailure(ReconcileError):
    """
    The candidate text could not be turned into a JSON object.

    Carries the failure offset and a bounded window of the repaired text
    around it, so the caller can log what the generator actually sent.
    """

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
        context: str = "",
        attempted_fixes: Optional[list[str]] = None,
    ):
        super().__init__(message, attempted_fixes=attempted_fixes)
        self.position = position
        self.line = line
        self.column = column
        self.context = context

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["position"] = self.position
        d["line"] = self.line
        d["column"] = self.column
        d["context"] = self.context
        return d


class ValidationError(ReconcileError):
    """
    Parsed data is missing a mandatory field or has one of the wrong shape.

    Raised before migration so nothing downstream sees a half-formed record.
    """

    def __init__(
        self,
        message: str,
        missing_fields: Optional[list[str]] = None,
        invalid_fields: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["missing_fields"] = self.missing_fields
        d["invalid_fields"] = {k: str(v)[:50] for k, v in self.invalid_fields.items()}
        return d
