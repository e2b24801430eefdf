"""Result and reply models returned by handlers and the dispatcher."""

from typing import Any

from pydantic import BaseModel, Field

from docstore_server.core.serialization import to_json


class OperationResult(BaseModel):
    """Outcome of one handler call."""

    operation: str
    summary: str
    data: Any = None


class ErrorInfo(BaseModel):
    """Failure payload carried by a reply."""

    kind: str
    message: str
    details: dict = Field(default_factory=dict)


class DispatchReply(BaseModel):
    """Uniform reply rendered back to the transport."""

    ok: bool
    operation: str
    summary: str | None = None
    data: Any = None
    error: ErrorInfo | None = None

    @classmethod
    def success(cls, result: OperationResult) -> "DispatchReply":
        return cls(
            ok=True,
            operation=result.operation,
            summary=result.summary,
            data=result.data,
        )

    @classmethod
    def failure(
        cls, operation: str, kind: str, message: str, details: dict | None = None
    ) -> "DispatchReply":
        return cls(
            ok=False,
            operation=operation,
            error=ErrorInfo(kind=kind, message=message, details=details or {}),
        )

    def render_text(self, include_data: bool = True) -> str:
        """One summary line, followed by the structured payload as JSON."""
        if not self.ok:
            return f"Error [{self.error.kind}]: {self.error.message}"
        text = self.summary or f"{self.operation} succeeded"
        if include_data and self.data is not None:
            text += "\n" + to_json(self.data, indent=2)
        return text

    def to_json(self) -> str:
        return to_json(self.model_dump(), indent=2)


__all__ = ["OperationResult", "ErrorInfo", "DispatchReply"]
