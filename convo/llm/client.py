import httpx
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from convo.core.memory import ConversationStore
from convo.core.settings import Settings, get_settings
from convo.llm.converters import message_from_completion, to_payloads
from convo.models.schemas import AddResult, Message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelDetection:
    provider_up: bool
    model_available: bool
    selected_model: Optional[str]
    reason: str
    fallback_used: bool


@dataclass(frozen=True)
class ChatResult:
    message: Message
    added: AddResult


class ProviderConnectionError(Exception):
    """Custom exception for chat provider connection issues."""
    pass


class ModelUnavailableError(Exception):
    """Raised when no suitable model is served by the provider."""
    pass


class ChatModelClient:
    """
    Client for an OpenAI-compatible chat-completions server that keeps
    per-session history in a ConversationStore.
    """

    def __init__(self, settings: Optional[Settings] = None, store: Optional[ConversationStore] = None):
        settings = settings or get_settings()
        self.base_url = settings.base_url
        self.timeout = settings.timeout_sec
        headers = {"Authorization": f"Bearer {settings.api_key}"} if settings.api_key else {}
        self.client = httpx.Client(base_url=self.base_url, timeout=self.timeout, headers=headers)
        self.store = store if store is not None else ConversationStore(settings.max_history_length)
        self._env_model = settings.model
        self._fallback_model = settings.fallback_model
        self._detection: Optional[ModelDetection] = None
        self.model: Optional[str] = None
        logger.info(
            "ChatModelClient initialized: "
            f"base_url={self.base_url} "
            f"model={self._env_model} "
            f"fallback_model={self._fallback_model} "
            f"max_history_length={self.store.max_history_length}"
        )

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.client.request(method, path, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(f"{method} {path} returned HTTP {status_code}: {e.response.text}")
            raise ProviderConnectionError(f"Provider HTTP error: {status_code} - {e.response.text}") from e
        except httpx.TimeoutException as e:
            logger.error(f"{method} {path} timed out after {self.timeout}s: {e}")
            raise ProviderConnectionError(f"Provider request timed out after {self.timeout}s.") from e
        except httpx.TransportError as e:
            logger.error(f"{method} {path} failed at transport level: {e}")
            raise ProviderConnectionError(f"Could not connect to chat provider at {self.base_url}. Is it running?") from e
        except ValueError as e:
            logger.error(f"{method} {path} returned a non-JSON body: {e}")
            raise ProviderConnectionError("Provider returned a non-JSON response.") from e

    def _list_model_ids(self, response_data: Any) -> List[str]:
        """
        Reads model ids from an OpenAI `GET /models` body:
        {"object": "list", "data": [{"id": ..., "object": "model"}, ...]}.
        Anything else yields no models.
        """
        if not isinstance(response_data, dict):
            logger.warning(f"Ignoring /models body that is not an object: {type(response_data).__name__}")
            return []
        entries = response_data.get("data")
        if not isinstance(entries, list):
            return []
        return [str(entry["id"]) for entry in entries if isinstance(entry, dict) and entry.get("id")]

    def _select_model(self, model_ids: List[str]) -> tuple[Optional[str], bool, str]:
        """Returns (model, fallback_used, reason) or (None, False, reason)."""
        listed = f"{len(model_ids)} model(s) listed at {self.base_url}/models"
        if self._env_model and self._env_model in model_ids:
            return self._env_model, False, f"Using configured model '{self._env_model}' ({listed})."
        if self._fallback_model in model_ids:
            return self._fallback_model, True, (
                f"Configured model '{self._env_model}' not listed; using fallback model "
                f"'{self._fallback_model}' ({listed})."
            )
        if model_ids:
            return model_ids[0], True, (
                f"Neither '{self._env_model}' nor '{self._fallback_model}' is listed; "
                f"using first listed model '{model_ids[0]}' ({listed})."
            )
        return None, False, f"Provider at {self.base_url} is reachable but serves no models."

    def detect_model(self) -> ModelDetection:
        try:
            response_data = self._request("GET", "/models")
        except ProviderConnectionError as e:
            return ModelDetection(
                provider_up=False,
                model_available=False,
                selected_model=None,
                reason=str(e),
                fallback_used=False,
            )

        selected_model, fallback_used, reason = self._select_model(self._list_model_ids(response_data))
        return ModelDetection(
            provider_up=True,
            model_available=selected_model is not None,
            selected_model=selected_model,
            reason=reason,
            fallback_used=fallback_used,
        )

    def refresh_detection(self) -> ModelDetection:
        self._detection = self.detect_model()
        self.model = self._detection.selected_model
        if self._detection.model_available:
            logger.info(f"Chat model '{self.model}' selected: {self._detection.reason}")
        else:
            logger.warning(f"No chat model selected: {self._detection.reason}")
        return self._detection

    def get_detection_status(self, refresh: bool = False) -> ModelDetection:
        if refresh or self._detection is None:
            return self.refresh_detection()
        return self._detection

    def _require_model(self) -> str:
        if not self.model:
            logger.info("No selected model cached. Refreshing model detection before chat.")
            detection = self.refresh_detection()
            if not detection.provider_up:
                raise ProviderConnectionError(detection.reason)
        if not self.model:
            raise ModelUnavailableError(
                "No suitable model is available. Load a model in the provider or configure OPENAI_MODEL."
            )
        return self.model

    def chat(self, session_id: str, messages: Sequence[Optional[Message]], temperature: float = 0.2) -> ChatResult:
        """
        Admits the inbound messages to the session, sends the full session
        history to the provider and records the reply in the same session.
        """
        model = self._require_model()
        added = self.store.add(session_id, *messages)
        history = self.store.get(session_id)

        payload = {
            "model": model,
            "messages": to_payloads(history),
            "temperature": temperature,
        }
        logger.debug(f"Sending chat request for session '{session_id}' with {len(history)} messages.")
        response_data = self._request("POST", "/chat/completions", json=payload)

        reply = message_from_completion(response_data)
        if reply is None:
            logger.error(f"Unexpected chat completion response format: {response_data}")
            raise ProviderConnectionError("Unexpected response format from chat completions endpoint.")

        recorded = self.store.add(session_id, reply)
        if not recorded.admitted:
            skipped = recorded.skipped[0]
            logger.error(
                f"Provider reply for session '{session_id}' was not recorded: "
                f"reason={skipped.reason.value} tool_call_index={skipped.tool_call_index}: {skipped.detail}"
            )
            raise ProviderConnectionError(f"Provider returned an invalid message: {skipped.detail}")
        return ChatResult(message=reply, added=added)

    def close(self) -> None:
        self.client.close()


# Global client instance to avoid recreating it on each request
model_client = ChatModelClient()
