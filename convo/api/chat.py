import logging
from fastapi import APIRouter, HTTPException, status

from convo.llm.client import model_client, ProviderConnectionError, ModelUnavailableError
from convo.models.schemas import ChatRequest, ChatResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/chat", tags=["Chat"], response_model=ChatResponse)
def post_chat_messages(request: ChatRequest):
    """
    Adds the request messages to the session history, sends the history to the
    chat provider and returns the assistant reply.
    """
    session_id = request.session_id or "default"

    try:
        result = model_client.chat(session_id, request.messages, temperature=request.temperature)
    except ModelUnavailableError as e:
        logger.error(f"Chat model unavailable: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except ProviderConnectionError as e:
        logger.error(f"Chat provider request failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return ChatResponse(
        session_id=session_id,
        message=result.message,
        admitted=result.added.admitted,
        skipped=result.added.skipped,
    )
