"""Pydantic models: settings, operation parameters and replies."""

from docstore_server.models.config import ServerSettings
from docstore_server.models.results import DispatchReply, ErrorInfo, OperationResult

__all__ = ["ServerSettings", "DispatchReply", "ErrorInfo", "OperationResult"]
