"""HTTP API: topics, lesson turns and fresh questions.

Run with `python -m adaptive_tutor.main --serve` or
`uvicorn adaptive_tutor.server:app`.

The API is stateless: callers send the whole history with every request.
"""

import logging
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from adaptive_tutor.config import settings
from adaptive_tutor.errors import (
    ConfigurationError,
    MalformedResponseError,
    ModelGatewayError,
    PayloadValidationError,
)
from adaptive_tutor.models import (
    GenerateQuestionRequest,
    LessonRequest,
    TopicsResponse,
    parse_request,
)
from adaptive_tutor.services.llm import LLMService, get_llm

log = logging.getLogger(__name__)

app = FastAPI(title="Adaptive Tutor API")


def get_service() -> LLMService:
    return get_llm()


def _view_json(view) -> dict:
    return view.model_dump(mode="json", by_alias=True, exclude_none=True)


# ─── Error mapping ───────────────────────────────────────────────────────────

@app.exception_handler(PayloadValidationError)
async def payload_error_handler(request: Request, exc: PayloadValidationError):
    log.warning(f"{request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    log.warning(f"{request.url.path}: invalid request {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "Invalid request payload"})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    log.error(f"Server configuration error: {exc}")
    return JSONResponse(status_code=500, content={"error": "Server configuration error"})


@app.exception_handler(ModelGatewayError)
async def gateway_error_handler(request: Request, exc: ModelGatewayError):
    log.error(f"{request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"error": "Generation failed", "detail": str(exc)})


@app.exception_handler(MalformedResponseError)
async def malformed_response_handler(request: Request, exc: MalformedResponseError):
    log.error(f"{request.url.path}: {exc}")
    return JSONResponse(
        status_code=502,
        content={"error": str(exc), "raw": exc.raw, "cleaned": exc.cleaned},
    )


# ─── Routes ──────────────────────────────────────────────────────────────────

@app.get("/health")
def health():
    return {"status": "ok", "model_configured": bool(settings.OPENAI_API_KEY)}


@app.get("/api/topics", response_model=TopicsResponse)
def topics(
    grade: Optional[str] = None,
    subject: str = settings.DEFAULT_SUBJECT,
    llm: LLMService = Depends(get_service),
):
    if not grade or not grade.strip():
        raise PayloadValidationError("grade is required")
    return TopicsResponse(topics=llm.list_topics(grade.strip(), subject.strip().lower()))


@app.post("/api/lesson")
def lesson(payload: Any = Body(default=None), llm: LLMService = Depends(get_service)):
    req = parse_request(LessonRequest, payload)
    view = llm.lesson(
        grade=req.grade,
        subject=req.subject,
        topic=req.topic,
        history=req.history,
        difficulty=req.difficulty,
        reveal=req.reveal,
    )
    return _view_json(view)


@app.post("/api/generate-question")
def generate_question(payload: Any = Body(default=None), llm: LLMService = Depends(get_service)):
    req = parse_request(GenerateQuestionRequest, payload)
    view = llm.generate_question(
        grade=req.grade,
        subject=req.subject,
        topic=req.topic,
        history=req.history,
        difficulty=req.difficulty,
    )
    return _view_json(view)
