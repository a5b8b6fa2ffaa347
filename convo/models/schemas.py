from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Enums ---

class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ValidationReason(str, Enum):
    NIL_MESSAGE = "NilMessage"
    EMPTY_ROLE = "EmptyRole"
    MISSING_TOOL_CALL_ID = "MissingToolCallID"
    MISSING_TOOL_CONTENT = "MissingToolContent"
    TOOL_CALL_MISSING_ID = "ToolCallMissingID"
    TOOL_CALL_MISSING_TYPE = "ToolCallMissingType"
    TOOL_CALL_MISSING_FUNCTION_NAME = "ToolCallMissingFunctionName"


# --- Conversation Models ---

class FunctionCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    # Serialized parameters; empty is valid for zero-parameter functions.
    arguments: str = ""


class ToolCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    type: str = ""
    function: FunctionCall = Field(default_factory=FunctionCall)


class Message(BaseModel):
    """
    A single chat message in OpenAI chat-completions shape.

    `content` is opaque: None, a string, a list of content parts, or any other
    JSON value. It is stored and returned exactly as given.
    """
    model_config = ConfigDict(frozen=True)

    role: str = ""
    content: Any = None
    name: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None


class SkippedMessage(BaseModel):
    index: int
    role: Optional[str] = None
    reason: ValidationReason
    detail: str
    tool_call_index: Optional[int] = None


class AddResult(BaseModel):
    admitted: int = 0
    skipped: List[SkippedMessage] = Field(default_factory=list)


# --- API Request Models ---

class AddMessagesRequest(BaseModel):
    # null entries are kept so they are reported as NilMessage, not rejected by the parser.
    messages: List[Optional[Message]]


class ChatRequest(BaseModel):
    messages: List[Optional[Message]]
    session_id: Optional[str] = None
    temperature: float = 0.2


# --- API Response Models ---

class AddMessagesResponse(AddResult):
    session_id: str


class HistoryResponse(BaseModel):
    session_id: str
    messages: List[Message] = Field(default_factory=list)


class ChatResponse(BaseModel):
    session_id: str
    message: Message
    admitted: int
    skipped: List[SkippedMessage] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = "ok"


class LLMHealthResponse(HealthResponse):
    provider: str
    model: Optional[str] = None
    model_available: bool
    fallback_used: bool
