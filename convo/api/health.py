from fastapi import APIRouter
from convo.models.schemas import LLMHealthResponse
from convo.llm.client import model_client

router = APIRouter()

@router.get("/health", tags=["System"], response_model=LLMHealthResponse)
def health_check():
    """
    Performs a health check of the application, including chat provider connectivity.
    """
    detection = model_client.get_detection_status(refresh=True)
    provider_state = "up" if detection.provider_up else "down"
    return LLMHealthResponse(
        status="ok",
        provider=provider_state,
        model=detection.selected_model,
        model_available=detection.model_available,
        fallback_used=detection.fallback_used,
    )
