import logging
import time

from fastapi import APIRouter, Depends, HTTPException

from mathsprint.api.models_practice import (
    AnswerRequest,
    AnswerResponse,
    FeedbackRequest,
    LearnerQuestion,
    QuestionsResponse,
    SessionCreateRequest,
    SessionResponse,
    TelemetryResponse,
)
from mathsprint.core.deps import PracticeEngine, get_engine
from mathsprint.models.practice import BatchRequest, Verdict
from mathsprint.services.session_runtime import SessionRuntime, SubmissionRejected
from mathsprint.services.telemetry import instrument

logger = logging.getLogger("mathsprint.api")
router = APIRouter(prefix="/api/v1/practice", tags=["practice"])


def _session_view(runtime: SessionRuntime) -> SessionResponse:
    snap = runtime.snapshot()
    question = snap.pop("question")
    return SessionResponse(
        **snap,
        question=LearnerQuestion.from_question(question) if question is not None else None,
    )


def _require_session(engine: PracticeEngine, session_id: str) -> SessionRuntime:
    runtime = engine.sessions.get(session_id)
    if runtime is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return runtime


# ──────────────────────────────────────────────
# Stateless endpoints
# ──────────────────────────────────────────────

@router.post("/questions", response_model=QuestionsResponse)
@instrument(route="/api/v1/practice/questions", version="v1")
async def generate_questions(request: BatchRequest, engine: PracticeEngine = Depends(get_engine)):
    t0 = time.time()
    questions = await engine.question_source.request_batch(request)
    elapsed = int((time.time() - t0) * 1000)
    logger.info("Generated %d question(s) in %dms", len(questions), elapsed)
    return QuestionsResponse(questions=questions, generation_time_ms=elapsed)


@router.post("/feedback", response_model=Verdict)
@instrument(route="/api/v1/practice/feedback", version="v1")
async def feedback(request: FeedbackRequest, engine: PracticeEngine = Depends(get_engine)):
    return await engine.pipeline.evaluate(request.question, request.submission)


@router.get("/telemetry", response_model=TelemetryResponse)
async def telemetry(engine: PracticeEngine = Depends(get_engine)):
    return TelemetryResponse(counters=engine.metrics.snapshot())


# ──────────────────────────────────────────────
# Sessions
# ──────────────────────────────────────────────

@router.post("/sessions", response_model=SessionResponse, status_code=201)
@instrument(route="/api/v1/practice/sessions", version="v1")
async def create_session(request: SessionCreateRequest, engine: PracticeEngine = Depends(get_engine)):
    settings = engine.settings
    minutes = request.duration_minutes or settings.default_duration_minutes
    runtime = SessionRuntime(
        engine.question_source,
        engine.pipeline,
        duration_seconds=minutes * 60,
        concepts=request.concepts,
        difficulty=request.difficulty,
        grade=request.grade,
        analysis=request.analysis,
        initial_batch_size=settings.initial_batch_size,
        refill_threshold=settings.refill_threshold,
        refill_cooldown=settings.refill_cooldown_seconds,
        refill_batch_min=settings.refill_batch_min,
    )
    engine.sessions.add(runtime)
    await runtime.start()
    return _session_view(runtime)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, engine: PracticeEngine = Depends(get_engine)):
    return _session_view(_require_session(engine, session_id))


@router.post("/sessions/{session_id}/answers", response_model=AnswerResponse)
@instrument(route="/api/v1/practice/sessions/answers", version="v1")
async def submit_answer(
    session_id: str, request: AnswerRequest, engine: PracticeEngine = Depends(get_engine)
):
    runtime = _require_session(engine, session_id)
    try:
        verdict = await runtime.submit(request.model_dump(exclude_none=True))
    except SubmissionRejected as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return AnswerResponse(verdict=verdict, session=_session_view(runtime))


@router.post("/sessions/{session_id}/dismiss", response_model=SessionResponse)
async def dismiss_feedback(session_id: str, engine: PracticeEngine = Depends(get_engine)):
    runtime = _require_session(engine, session_id)
    await runtime.dismiss()
    return _session_view(runtime)
