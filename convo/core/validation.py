from __future__ import annotations

from typing import Optional

from convo.models.schemas import Message, Role, ValidationReason


class MessageValidationError(ValueError):
    """Raised when a message breaks the structural contract for history admission."""

    def __init__(self, reason: ValidationReason, detail: str, tool_call_index: Optional[int] = None):
        super().__init__(detail)
        self.reason = reason
        self.detail = detail
        self.tool_call_index = tool_call_index


def _is_absent(content: object) -> bool:
    return content is None or content == ""


def validate_message(msg: Message | None) -> None:
    """
    Checks one message against the admission rules. Raises MessageValidationError
    on the first violation found.

    Only role and tool-call structure are checked. Content shape is left to the
    provider: empty strings, content-part lists and non-string values all pass.
    """
    if msg is None:
        raise MessageValidationError(ValidationReason.NIL_MESSAGE, "message cannot be nil")

    if msg.role == "":
        raise MessageValidationError(ValidationReason.EMPTY_ROLE, "message role cannot be empty")

    if msg.role == Role.TOOL.value:
        if not msg.tool_call_id:
            raise MessageValidationError(
                ValidationReason.MISSING_TOOL_CALL_ID,
                "tool role message must have ToolCallID",
            )
        if _is_absent(msg.content):
            raise MessageValidationError(
                ValidationReason.MISSING_TOOL_CONTENT,
                "tool role message must have content",
            )

    if msg.role == Role.ASSISTANT.value and msg.tool_calls:
        for i, tool_call in enumerate(msg.tool_calls):
            if not tool_call.id:
                raise MessageValidationError(
                    ValidationReason.TOOL_CALL_MISSING_ID,
                    f"tool call at index {i} must have an ID",
                    tool_call_index=i,
                )
            if not tool_call.type:
                raise MessageValidationError(
                    ValidationReason.TOOL_CALL_MISSING_TYPE,
                    f"tool call at index {i} must have a type",
                    tool_call_index=i,
                )
            if not tool_call.function.name:
                raise MessageValidationError(
                    ValidationReason.TOOL_CALL_MISSING_FUNCTION_NAME,
                    f"tool call at index {i} must have a function name",
                    tool_call_index=i,
                )


def is_valid_message(msg: Message | None) -> bool:
    try:
        validate_message(msg)
    except MessageValidationError:
        return False
    return True
