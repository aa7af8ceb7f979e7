"""
FastAPI Server - Main Application
API endpoints for Clarity conversation analysis
"""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from clarity import __version__
from clarity.config.settings import get_cors_origins, get_openrouter_api_key
from clarity.errors import ClarityError, InvalidInput, NotFound
from clarity.llm.agent import AnalysisOrchestrator
from clarity.llm.database import HistoryManager
from clarity.llm.generate import AnalysisClient, UpstreamStream
from clarity.llm.mindmap import MindMapLayoutEngine
from clarity.llm.prompts import ANALYSIS_TYPES, DEFAULT_SELECTED_TYPES
from clarity.server.dependencies import (
    get_analysis_client,
    get_history_manager,
    get_mind_map_engine,
    get_share_fetcher,
)
from clarity.server.schemas import (
    AnalysisTypeInfo,
    AnalysisTypesResponse,
    AnalyzeRequest,
    DeleteResponse,
    ErrorResponse,
    FetchChatRequest,
    FetchChatResponse,
    HistoryListResponse,
    MindMapRequest,
    MindMapResponse,
    SessionRequest,
    SessionResponse,
)
from clarity.tools.extractor import ShareLinkFetcher

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Clarity API...")
    if get_openrouter_api_key():
        logger.info("OpenRouter API key configured")
    else:
        logger.warning("OPENROUTER_API_KEY is not set; analysis requests will fail until it is")
    logger.info("API Server ready!")
    yield
    logger.info("Shutting down Clarity API...")


# Create FastAPI app
app = FastAPI(
    title="Clarity API",
    description="Fetch shared ChatGPT conversations and analyse them with an LLM",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS - Allow frontend to access API
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ClarityError)
async def clarity_error_handler(request: Request, exc: ClarityError):
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message).model_dump(exclude_none=True),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error="Invalid request body",
            details={"errors": jsonable_encoder(exc.errors())},
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error on {request.url.path}: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Internal server error").model_dump(exclude_none=True),
    )


def sse_event(data) -> str:
    """Encode one server-sent event"""
    if isinstance(data, str):
        return f"data: {data}\n\n"
    return f"data: {json.dumps(data)}\n\n"


async def relay_stream(stream: UpstreamStream) -> AsyncIterator[str]:
    """Re-emit upstream deltas as {"content": delta} events, always ending with [DONE]"""
    try:
        async for delta in stream.deltas():
            yield sse_event({"content": delta})
        logger.info("Analysis stream complete")
    except ClarityError as e:
        logger.error(f"Analysis stream failed: {e.message}")
        yield sse_event({"error": e.message})
    finally:
        await stream.aclose()
    yield sse_event("[DONE]")


@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "status": "online",
        "service": "Clarity API",
        "version": __version__,
    }


@app.get("/api/health")
async def health_check(history: HistoryManager = Depends(get_history_manager)):
    """Detailed health check"""
    test_connection = getattr(history.store, 'test_connection', None)
    database_ok = test_connection() if test_connection else True
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "database": "connected" if database_ok else "unavailable",
        "apiKeyConfigured": get_openrouter_api_key() is not None,
    }


@app.post("/api/fetch-chat", response_model=FetchChatResponse)
async def fetch_chat(
    request: FetchChatRequest,
    fetcher: ShareLinkFetcher = Depends(get_share_fetcher),
):
    """
    Fetch a shared ChatGPT conversation

    Returns:
        FetchChatResponse with the extracted conversation
    """
    if not request.url or not request.url.strip():
        raise InvalidInput("URL is required")

    logger.info(f"Fetching shared conversation: {request.url}")
    conversation = await fetcher.fetch(request.url)
    logger.info(f"Extracted {len(conversation.messages)} messages from {conversation.id}")
    return FetchChatResponse(success=True, conversation=conversation)


@app.post("/api/analyze")
async def analyze(
    request: AnalyzeRequest,
    client: AnalysisClient = Depends(get_analysis_client),
):
    """
    Stream one analysis as server-sent events

    Configuration and upstream errors surface as JSON before the stream
    starts; failures after that are sent as an error event.
    """
    if not request.text or not request.analysis_type:
        raise InvalidInput("Missing conversationText or analysisType")

    logger.info(f"Analyzing: {request.analysis_type} ({len(request.text)} chars)")
    stream = await client.stream_analysis(
        request.text,
        request.analysis_type,
        request.conversation_title,
    )

    return StreamingResponse(
        relay_stream(stream),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@app.post("/api/generate-mindmap", response_model=MindMapResponse)
async def generate_mindmap(
    request: MindMapRequest,
    engine: MindMapLayoutEngine = Depends(get_mind_map_engine),
):
    """Build a positioned mind map from completed analyses"""
    if not request.results:
        raise InvalidInput("No analysis results provided")

    mind_map = await engine.generate(request.results, request.conversation_title)
    return MindMapResponse(success=True, mind_map=mind_map)


@app.post("/api/sessions", response_model=SessionResponse)
async def run_session(
    request: SessionRequest,
    client: AnalysisClient = Depends(get_analysis_client),
    fetcher: ShareLinkFetcher = Depends(get_share_fetcher),
    history: HistoryManager = Depends(get_history_manager),
):
    """
    Run a whole analysis session server-side

    The session is returned in its terminal state; a failed session still
    answers 200 with its error recorded on it.
    """
    orchestrator = AnalysisOrchestrator(client, fetcher, history=history)
    session = await orchestrator.run(
        request.input,
        request.analysis_types or DEFAULT_SELECTED_TYPES,
    )
    return SessionResponse(session=session, logs=orchestrator.log.entries())


@app.get("/api/analysis-types", response_model=AnalysisTypesResponse)
async def list_analysis_types():
    types = [
        AnalysisTypeInfo(key=key, default=key in DEFAULT_SELECTED_TYPES, **info)
        for key, info in ANALYSIS_TYPES.items()
    ]
    return AnalysisTypesResponse(types=types)


@app.get("/api/history", response_model=HistoryListResponse)
async def get_history(history: HistoryManager = Depends(get_history_manager)):
    """Past sessions, most recent first"""
    return HistoryListResponse(items=history.list())


@app.get("/api/history/{session_id}")
async def get_history_session(
    session_id: str,
    history: HistoryManager = Depends(get_history_manager),
):
    session = history.get_session(session_id)
    if session is None:
        raise NotFound("Session not found")
    return session.model_dump(mode='json', by_alias=True)


@app.delete("/api/history/{session_id}", response_model=DeleteResponse)
async def delete_history_session(
    session_id: str,
    history: HistoryManager = Depends(get_history_manager),
):
    if not history.delete(session_id):
        raise NotFound("Session not found")
    return DeleteResponse(success=True, message=f"Session {session_id} deleted")


@app.delete("/api/history", response_model=DeleteResponse)
async def clear_history(history: HistoryManager = Depends(get_history_manager)):
    history.clear()
    return DeleteResponse(success=True, message="History cleared")
