"""Execution and conversation services."""

from pocket_assistant.services.assistant import (
    AssistantService,
    SubmitResult,
    UndoOutcome,
    format_execution_message,
)
from pocket_assistant.services.executor import ExecutionResult, PlanExecutor, UndoResult

__all__ = [
    "AssistantService",
    "SubmitResult",
    "UndoOutcome",
    "format_execution_message",
    "PlanExecutor",
    "ExecutionResult",
    "UndoResult",
]
