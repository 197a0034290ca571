import logging

from fastapi import Depends, FastAPI
from fastapi.responses import PlainTextResponse

from readanything.api import sessions_router
from readanything.config import get_settings
from readanything.logging_config import configure_logging
from readanything.services.documents import DocumentService, get_document_service

settings = get_settings()
configure_logging(settings.log_dir, settings.log_level)

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Read Anything API")
app.include_router(sessions_router)


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/healthz")
def healthcheck(service: DocumentService = Depends(get_document_service)) -> dict[str, object]:
    """Report which reasoning engine answers questions and whether it is usable."""

    engine = service.engine
    return {
        "status": "ok",
        "engine": engine.name,
        "engine_available": engine.available,
        "context_char_budget": engine.context_char_budget,
        "decoders": service.pipeline.capabilities.notes,
        "speech_synthesis": service.synthesizer is not None,
    }
