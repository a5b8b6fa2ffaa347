import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from convo.api import health, chat, sessions
from convo.llm.client import model_client

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler()
    ]
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.info("Application starting up...")
    detection = model_client.get_detection_status(refresh=True)
    logging.info(
        "Model selection at startup: "
        f"provider_up={detection.provider_up} "
        f"model_available={detection.model_available} "
        f"selected_model={detection.selected_model} "
        f"fallback_used={detection.fallback_used} "
        f"reason={detection.reason}"
    )
    logging.info("Application startup complete.")
    yield
    model_client.close()


app = FastAPI(
    title="Convo",
    description="Session conversation history for an OpenAI-compatible chat model.",
    version="0.1.0",
    lifespan=lifespan,
)

# Include API routers
app.include_router(health.router)
app.include_router(sessions.router)
app.include_router(chat.router)

@app.get("/", tags=["Root"])
def read_root():
    return {"message": "Welcome to the Convo API. See /docs for details."}
