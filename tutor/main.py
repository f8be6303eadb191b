from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pypdf.errors import PdfReadError
from starlette.concurrency import run_in_threadpool

from tutor.config import Settings, get_settings
from tutor.context_builder import render_contextual_update, render_system_prompt
from tutor.curriculum_generator import CurriculumGenerationError, CurriculumGenerator
from tutor.deps import get_curriculum_generator, get_session_store, get_settings_dep, get_voice_agent
from tutor.documents import UploadedDocument
from tutor.logging_setup import setup_logging
from tutor.memory import SessionStore
from tutor.pdf_extract import extract_pdf_text
from tutor.schemas import (
    AnswerQuizRequest,
    AnswerQuizResponse,
    ContextResponse,
    ContextUpdateResponse,
    CurriculumGenerationRequest,
    DocumentInfo,
    GeneratedCurriculum,
    MessageResponse,
    SelectDocumentRequest,
    SessionStateResponse,
    VoiceSessionRequest,
    VoiceSessionResponse,
    VoiceStatusResponse,
)
from tutor.voice_agent import VoiceAgentError, VoiceAgentService

logger = logging.getLogger(__name__)

router = APIRouter()

UPLOAD_CHUNK_BYTES = 1024 * 1024


@router.get("/")
def root() -> dict:
    return {
        "ok": True,
        "service": "curriculum-tutor",
        "endpoints": [
            "/health",
            "/curriculum-generation",
            "/voice-agent-session",
            "/sessions/{sessionId}",
            "/sessions/{sessionId}/documents",
            "/sessions/{sessionId}/documents/{documentId}/curriculum",
            "/sessions/{sessionId}/lessons/{levelId}",
            "/sessions/{sessionId}/quiz",
            "/sessions/{sessionId}/levels/{levelId}/complete",
            "/sessions/{sessionId}/voice-session",
            "/sessions/{sessionId}/context-update",
        ],
        "docs": "/docs",
    }


@router.get("/health")
def health() -> dict:
    return {"ok": True}


# Stateless proxies


@router.post("/curriculum-generation", response_model=GeneratedCurriculum)
def curriculum_generation(
    req: CurriculumGenerationRequest,
    generator: CurriculumGenerator = Depends(get_curriculum_generator),
) -> GeneratedCurriculum:
    if not (req.pdfText or "").strip():
        raise HTTPException(status_code=400, detail="No text content provided")
    try:
        return generator.generate(req.pdfText, req.documentName, req.documentId)
    except Exception as e:
        logger.exception("Curriculum generation failed")
        raise HTTPException(status_code=500, detail=f"Curriculum generation failed: {e}")


@router.post("/voice-agent-session", response_model=VoiceSessionResponse)
async def voice_agent_session(
    req: VoiceSessionRequest | None = None,
    voice: VoiceAgentService = Depends(get_voice_agent),
) -> VoiceSessionResponse:
    """
    Returns a conversation token for the tutor agent, briefing the agent with the
    learning context when one is provided. The ElevenLabs key never leaves the server.
    """
    if not voice.configured:
        raise HTTPException(status_code=500, detail="ELEVENLABS_API_KEY not configured")
    ctx = req.learningContext if req else None
    try:
        agent_id, token = await voice.start_session(ctx)
    except VoiceAgentError as e:
        logger.error("ElevenLabs API error: %s", e)
        raise HTTPException(status_code=500, detail=f"Failed to initialize conversation: {e}")
    return VoiceSessionResponse(agentId=agent_id, conversationToken=token)


@router.get("/voice-agent-session", response_model=VoiceStatusResponse)
def voice_agent_status(voice: VoiceAgentService = Depends(get_voice_agent)) -> VoiceStatusResponse:
    agent_id = voice.cache.get()
    return VoiceStatusResponse(configured=voice.configured, agentId=agent_id, hasAgent=bool(agent_id))


@router.delete("/voice-agent-session", response_model=MessageResponse)
def voice_agent_clear(voice: VoiceAgentService = Depends(get_voice_agent)) -> MessageResponse:
    voice.cache.clear()
    return MessageResponse(message="Agent cache cleared")


# Learner sessions. Handlers are async so mutations never interleave.


@router.get("/sessions/{session_id}", response_model=SessionStateResponse)
async def session_state(session_id: str, sessions: SessionStore = Depends(get_session_store)) -> SessionStateResponse:
    return sessions.get_or_create(session_id).snapshot()


@router.delete("/sessions/{session_id}", response_model=MessageResponse)
async def session_drop(session_id: str, sessions: SessionStore = Depends(get_session_store)) -> MessageResponse:
    sessions.drop(session_id)
    return MessageResponse(message="Session cleared")


@router.post("/sessions/{session_id}/documents", response_model=DocumentInfo, status_code=201)
async def session_upload_document(
    session_id: str,
    file: UploadFile = File(...),
    sessions: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings_dep),
) -> DocumentInfo:
    name = file.filename or "document.pdf"
    if not name.lower().endswith(".pdf"):
        raise HTTPException(status_code=415, detail="Only PDF files are accepted")
    max_bytes = settings.MAX_UPLOAD_MB * 1024 * 1024
    too_large = HTTPException(status_code=413, detail=f"File too large (max {settings.MAX_UPLOAD_MB} MB)")
    if file.size is not None and file.size > max_bytes:
        raise too_large
    # Read in chunks so an oversized body is rejected before it is held in memory.
    chunks: list[bytes] = []
    received = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        received += len(chunk)
        if received > max_bytes:
            raise too_large
        chunks.append(chunk)
    data = b"".join(chunks)

    doc = UploadedDocument(
        id=uuid.uuid4().hex,
        name=name,
        size=len(data),
        type=file.content_type or "application/pdf",
        data=data,
    )
    sessions.get_or_create(session_id).documents.add_document(doc)
    return doc.info()


@router.get("/sessions/{session_id}/documents", response_model=list[DocumentInfo])
async def session_list_documents(
    session_id: str, sessions: SessionStore = Depends(get_session_store)
) -> list[DocumentInfo]:
    return [d.info() for d in sessions.get_or_create(session_id).documents.documents]


@router.put("/sessions/{session_id}/documents/selected", response_model=SessionStateResponse)
async def session_select_document(
    session_id: str,
    req: SelectDocumentRequest,
    sessions: SessionStore = Depends(get_session_store),
) -> SessionStateResponse:
    session = sessions.get_or_create(session_id)
    if req.documentId is None:
        session.documents.set_selected_document(None)
    else:
        doc = session.documents.get_document(req.documentId)
        if doc is None:
            raise HTTPException(status_code=404, detail="Document not found")
        session.documents.set_selected_document(doc)
    return session.snapshot()


@router.delete("/sessions/{session_id}/documents/{document_id}", response_model=SessionStateResponse)
async def session_remove_document(
    session_id: str, document_id: str, sessions: SessionStore = Depends(get_session_store)
) -> SessionStateResponse:
    session = sessions.get_or_create(session_id)
    session.documents.remove_document(document_id)
    return session.snapshot()


@router.post("/sessions/{session_id}/documents/{document_id}/curriculum", response_model=SessionStateResponse)
async def session_generate_curriculum(
    session_id: str,
    document_id: str,
    sessions: SessionStore = Depends(get_session_store),
    generator: CurriculumGenerator = Depends(get_curriculum_generator),
) -> SessionStateResponse:
    session = sessions.get_or_create(session_id)
    doc = session.documents.get_document(document_id)
    if doc is None:
        raise HTTPException(status_code=404, detail="Document not found")

    token = session.begin_generation()
    try:
        try:
            pdf_text = await run_in_threadpool(extract_pdf_text, doc.data)
        except PdfReadError as e:
            raise HTTPException(status_code=400, detail=f"Could not read PDF: {e}")
        if not pdf_text.strip():
            raise HTTPException(status_code=400, detail="No text content could be extracted from the PDF")
        curriculum = await run_in_threadpool(generator.generate, pdf_text, doc.name, doc.id)
    except HTTPException:
        session.fail_generation(token)
        raise
    except CurriculumGenerationError as e:
        session.fail_generation(token)
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        session.fail_generation(token)
        logger.exception("Curriculum generation failed for session %s", session_id)
        raise HTTPException(status_code=500, detail=f"Curriculum generation failed: {e}")

    if not session.commit_generation(token, curriculum):
        raise HTTPException(status_code=409, detail="Curriculum generation was superseded")
    return session.snapshot()


@router.delete("/sessions/{session_id}/curriculum", response_model=SessionStateResponse)
async def session_reset_curriculum(
    session_id: str, sessions: SessionStore = Depends(get_session_store)
) -> SessionStateResponse:
    session = sessions.get_or_create(session_id)
    session.reset_curriculum()
    return session.snapshot()


@router.post("/sessions/{session_id}/lessons/{level_id}", response_model=SessionStateResponse)
async def session_start_lesson(
    session_id: str, level_id: int, sessions: SessionStore = Depends(get_session_store)
) -> SessionStateResponse:
    session = sessions.get_or_create(session_id)
    session.flow.start_lesson(level_id)
    return session.snapshot()


@router.post("/sessions/{session_id}/quiz", response_model=SessionStateResponse)
async def session_switch_to_quiz(
    session_id: str, sessions: SessionStore = Depends(get_session_store)
) -> SessionStateResponse:
    session = sessions.get_or_create(session_id)
    session.flow.switch_to_quiz()
    return session.snapshot()


@router.post("/sessions/{session_id}/quiz/answer", response_model=AnswerQuizResponse)
async def session_answer_quiz(
    session_id: str, req: AnswerQuizRequest, sessions: SessionStore = Depends(get_session_store)
) -> AnswerQuizResponse:
    session = sessions.get_or_create(session_id)
    is_correct = session.flow.answer_quiz(req.answerIndex)
    return AnswerQuizResponse(isCorrect=is_correct, state=session.snapshot())


@router.post("/sessions/{session_id}/quiz/retry", response_model=SessionStateResponse)
async def session_retry_quiz(
    session_id: str, sessions: SessionStore = Depends(get_session_store)
) -> SessionStateResponse:
    session = sessions.get_or_create(session_id)
    session.flow.retry_quiz()
    return session.snapshot()


@router.post("/sessions/{session_id}/quiz/review", response_model=SessionStateResponse)
async def session_review_lesson(
    session_id: str, sessions: SessionStore = Depends(get_session_store)
) -> SessionStateResponse:
    session = sessions.get_or_create(session_id)
    session.flow.review_lesson()
    return session.snapshot()


@router.post("/sessions/{session_id}/levels/{level_id}/complete", response_model=SessionStateResponse)
async def session_complete_level(
    session_id: str, level_id: int, sessions: SessionStore = Depends(get_session_store)
) -> SessionStateResponse:
    session = sessions.get_or_create(session_id)
    session.complete_level(level_id)
    return session.snapshot()


@router.post("/sessions/{session_id}/voice-session", response_model=VoiceSessionResponse)
async def session_start_voice(
    session_id: str,
    sessions: SessionStore = Depends(get_session_store),
    voice: VoiceAgentService = Depends(get_voice_agent),
) -> VoiceSessionResponse:
    if not voice.configured:
        raise HTTPException(status_code=500, detail="ELEVENLABS_API_KEY not configured")
    session = sessions.get_or_create(session_id)
    ctx = session.learning_context()
    try:
        agent_id, token = await voice.start_session(ctx)
    except VoiceAgentError as e:
        logger.error("ElevenLabs API error: %s", e)
        raise HTTPException(status_code=500, detail=f"Failed to initialize conversation: {e}")
    session.connect_voice(ctx)
    return VoiceSessionResponse(agentId=agent_id, conversationToken=token)


@router.delete("/sessions/{session_id}/voice-session", response_model=SessionStateResponse)
async def session_stop_voice(
    session_id: str, sessions: SessionStore = Depends(get_session_store)
) -> SessionStateResponse:
    session = sessions.get_or_create(session_id)
    session.disconnect_voice()
    return session.snapshot()


@router.get("/sessions/{session_id}/context", response_model=ContextResponse)
async def session_context(session_id: str, sessions: SessionStore = Depends(get_session_store)) -> ContextResponse:
    ctx = sessions.get_or_create(session_id).learning_context()
    if ctx is None:
        return ContextResponse()
    return ContextResponse(learningContext=ctx, briefing=render_system_prompt(ctx))


@router.get("/sessions/{session_id}/context-update", response_model=ContextUpdateResponse)
async def session_context_update(
    session_id: str, sessions: SessionStore = Depends(get_session_store)
) -> ContextUpdateResponse:
    ctx = sessions.get_or_create(session_id).pending_context_update()
    if ctx is None:
        return ContextUpdateResponse(changed=False)
    return ContextUpdateResponse(changed=True, learningContext=ctx, contextualUpdate=render_contextual_update(ctx))


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)
    app.state.sessions = SessionStore(maxsize=settings.SESSION_MAX, ttl_seconds=settings.SESSION_TTL_SECONDS)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins() or ["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()
