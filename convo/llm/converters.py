"""
Conversions between plain inputs, OpenAI chat-completions payloads and Message.
"""
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from convo.models.schemas import FunctionCall, Message, Role, ToolCall


def text_message(role: str, text: str) -> Message:
    return Message(role=role, content=text)


def multimodal_message(role: str, parts: Sequence[Dict[str, Any]]) -> Message:
    """Builds a message whose content is a list of text / image_url parts."""
    return Message(role=role, content=list(parts))


def image_part(url: str) -> Dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": url}}


def text_part(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def tool_result_message(tool_call_id: str, content: Any) -> Message:
    return Message(role=Role.TOOL.value, content=content, tool_call_id=tool_call_id)


def assistant_tool_call_message(calls: Sequence[Dict[str, Any]], content: Any = None) -> Message:
    """
    Builds an assistant message from provider-agnostic call descriptions of
    the form {"id": ..., "name": ..., "arguments": ...}.
    """
    tool_calls = [
        ToolCall(
            id=call.get("id", ""),
            type=call.get("type", "function"),
            function=FunctionCall(
                name=call.get("name", ""),
                arguments=call.get("arguments", ""),
            ),
        )
        for call in calls
    ]
    return Message(role=Role.ASSISTANT.value, content=content, tool_calls=tool_calls)


def to_payload(message: Message) -> Dict[str, Any]:
    # Absent fields are omitted rather than sent as null.
    return message.model_dump(exclude_none=True)


def to_payloads(messages: Sequence[Message]) -> List[Dict[str, Any]]:
    return [to_payload(m) for m in messages]


def message_from_completion(payload: Any) -> Optional[Message]:
    """
    Extracts choices[0].message from a chat-completions response.
    Returns None when the payload does not have that shape.
    """
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    raw_message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(raw_message, dict):
        return None
    try:
        return Message.model_validate(raw_message)
    except ValidationError:
        return None
