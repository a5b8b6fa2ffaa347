import logging
from fastapi import APIRouter

from convo.llm.client import model_client
from convo.models.schemas import AddMessagesRequest, AddMessagesResponse, HistoryResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/sessions/{session_id}/messages", tags=["Sessions"], response_model=AddMessagesResponse)
def add_session_messages(session_id: str, request: AddMessagesRequest):
    """
    Appends messages to a session's history without calling the model.
    Invalid messages are skipped and listed in the response.
    """
    result = model_client.store.add(session_id, *request.messages)
    if result.skipped:
        logger.info(
            f"Session '{session_id}': admitted {result.admitted} of {len(request.messages)} messages, "
            f"{len(result.skipped)} skipped."
        )
    return AddMessagesResponse(session_id=session_id, admitted=result.admitted, skipped=result.skipped)


@router.get("/sessions/{session_id}/messages", tags=["Sessions"], response_model=HistoryResponse)
def get_session_messages(session_id: str):
    return HistoryResponse(session_id=session_id, messages=model_client.store.get(session_id))
