"""Multi-turn dialog state machine for filling transaction slots."""

from pocket_assistant.dialog.manager import (
    StepResult,
    build_execution_plan,
    create_empty_state,
    format_summary,
    resolve_pocket,
    step,
)

__all__ = [
    "StepResult",
    "build_execution_plan",
    "create_empty_state",
    "format_summary",
    "resolve_pocket",
    "step",
]
