"""
Document Replay Engine: Read API Server
=======================================

Read-only API over recorded document histories.
Nothing here writes to an event log; every endpoint is a derived view.

Endpoints:
- GET /files                                   -> Tracked file ids
- GET /files/{file_id}/timeline                -> Authors + event metadata
      ?session_id=&start_time=&end_time=&limit= narrow the listing
- GET /files/{file_id}/sessions                -> Work sessions
- GET /files/{file_id}/snapshot/{event_index}  -> Reconstructed content
- GET /files/{file_id}/stats/{event_index}     -> Per-author statistics
- GET /files/{file_id}/diff?from=&to=          -> Added/removed spans
- GET /files/{file_id}/keyframes               -> Compressed checkpoints
- GET /files/{file_id}/export                  -> Full recorded history

Usage:
    uvicorn backend.api.server:app --reload
"""
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional
import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..contracts.base import ErrorCode, Timestamp
from ..contracts.errors import RangeError, ReplayError
from ..engine import DocumentReplayBackend, ReplayConfig
from ..temporal.sessions import TimelineWindow
from .mapper import (
    map_diff_to_dto, map_keyframes_to_dto, map_state_to_dto,
    map_sessions_to_dto, map_stats_to_dto, map_timeline_to_dto,
)

logger = logging.getLogger(__name__)


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class AuthorModel(BaseModel):
    id: str
    displayName: str
    colorToken: str


class PositionHintModel(BaseModel):
    start: int
    end: int


class EventMetadataModel(BaseModel):
    sequenceIndex: int
    timestamp: str
    authorId: str
    actionType: str
    wordCountDelta: int
    positionHint: Optional[PositionHintModel] = None
    description: str
    secondsFromStart: float = 0.0
    isKeyframe: bool = False
    hasFlags: bool = False
    flagTypes: List[int] = []


class TimelineResponse(BaseModel):
    fileId: str
    fileName: str
    projectName: str
    authors: List[AuthorModel]
    events: List[EventMetadataModel]
    totalEvents: int
    keyframeCount: int
    keyframeInterval: int
    documentEvents: int
    sessionId: Optional[str] = None
    corruptAt: Optional[int] = None


class MarkModel(BaseModel):
    start: int
    end: int
    style: str


class FlagModel(BaseModel):
    flagId: Optional[int] = None
    flagType: int
    flagLabel: str
    confidence: float
    start: int
    end: int
    flaggedText: str = ""


class SnapshotResponse(BaseModel):
    eventIndex: Optional[int] = None
    content: str
    marks: List[MarkModel]
    wordCountsByAuthor: Dict[str, int]
    totalWordCount: int
    stateHash: str
    keyframeIndex: int
    eventsReplayed: int
    flags: List[FlagModel] = []


class AuthorStatsModel(BaseModel):
    authorId: str
    wordCount: int
    eventCount: int
    lastEventIndex: Optional[int] = None
    share: float


class StatsResponse(BaseModel):
    eventIndex: int
    totalWordCount: int
    authors: List[AuthorStatsModel]


class DiffSpanModel(BaseModel):
    start: int
    end: int
    text: str


class DiffResponse(BaseModel):
    fromIndex: int
    toIndex: int
    added: List[DiffSpanModel]
    removed: List[DiffSpanModel]


class KeyframeModel(BaseModel):
    atIndex: int
    compressedContent: str
    marks: List[MarkModel]
    originalSize: int
    compressedSize: int
    wordCountsByAuthor: Dict[str, int]


class KeyframesResponse(BaseModel):
    keyframes: List[KeyframeModel]


class SessionModel(BaseModel):
    id: str
    startIndex: int
    endIndex: int
    startTime: str
    endTime: str
    durationSeconds: float
    eventCount: int
    authorIds: List[str]


class SessionsResponse(BaseModel):
    fileId: str
    sessions: List[SessionModel]


# =============================================================================
# ERROR MAPPING
# =============================================================================

STATUS_BY_CODE: Dict[ErrorCode, int] = {
    ErrorCode.FILE_NOT_FOUND: 404,
    ErrorCode.SESSION_NOT_FOUND: 404,
    ErrorCode.INVALID_INDEX: 400,
    ErrorCode.INVALID_RANGE: 400,
    ErrorCode.CORRUPT_HISTORY: 409,
    ErrorCode.OUT_OF_ORDER: 409,
}


async def replay_error_handler(request: Request, exc: ReplayError) -> JSONResponse:
    status = STATUS_BY_CODE.get(exc.code, 500)
    if status >= 409:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content={"error": exc.to_error().to_dict()})


# =============================================================================
# APPLICATION
# =============================================================================

def get_backend(request: Request) -> DocumentReplayBackend:
    backend = getattr(request.app.state, "backend", None)
    if backend is None:
        raise HTTPException(status_code=503, detail="Backend not initialized")
    return backend


def parse_time_param(name: str, value: Optional[str]) -> Optional[Timestamp]:
    if value is None:
        return None
    try:
        return Timestamp.from_iso(value)
    except ValueError:
        raise RangeError(f"{name} is not an ISO 8601 timestamp: {value!r}", {name: value}) from None


def create_app(backend: Optional[DocumentReplayBackend] = None) -> FastAPI:
    """
    Build the API.

    With no backend, one is created at startup from the environment
    (REPLAY_DATA_DIR, REPLAY_KEYFRAME_INTERVAL, REPLAY_PROFILE, REPLAY_SESSION_GAP).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.backend is None
        if owned:
            config = ReplayConfig.from_env()
            logger.info(
                "Initializing replay backend (storage=%s, dir=%s, keyframe interval=%d)",
                config.storage.backend_type, config.storage.storage_dir, config.keyframe_interval,
            )
            app.state.backend = DocumentReplayBackend(config)
            loaded = app.state.backend.load_all()
            logger.info("Backend initialized with %d documents", loaded)

        yield

        if owned:
            logger.info("Shutting down replay backend")
            app.state.backend = None

    app = FastAPI(
        title="Document Replay Engine API",
        version="0.1.0",
        description="Read layer for recorded document edit timelines",
        lifespan=lifespan,
    )
    app.state.backend = backend

    # CORS (Allow Frontend)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET"],  # STRICT READ-ONLY
        allow_headers=["*"],
    )
    app.add_exception_handler(ReplayError, replay_error_handler)

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    @app.get("/health")
    async def health_check(backend: DocumentReplayBackend = Depends(get_backend)):
        """System status."""
        return {"status": "online", "documents": len(backend.file_ids())}

    @app.get("/files")
    async def list_files(backend: DocumentReplayBackend = Depends(get_backend)):
        return {"fileIds": backend.file_ids()}

    @app.get("/files/{file_id}/timeline", response_model=TimelineResponse)
    async def get_timeline(
        file_id: str,
        session_id: Optional[str] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        limit: Optional[int] = None,
        backend: DocumentReplayBackend = Depends(get_backend),
    ):
        """
        Event metadata only; content is fetched per index via /snapshot.

        Windowed listings keep each event's sequenceIndex.
        """
        window = TimelineWindow(
            session_id=session_id,
            start_time=parse_time_param("start_time", start_time),
            end_time=parse_time_param("end_time", end_time),
            limit=limit,
        )
        return map_timeline_to_dto(backend.timeline(file_id, window))

    @app.get("/files/{file_id}/sessions", response_model=SessionsResponse)
    async def get_sessions(file_id: str, backend: DocumentReplayBackend = Depends(get_backend)):
        return map_sessions_to_dto(file_id, backend.sessions(file_id))

    @app.get("/files/{file_id}/snapshot/{event_index}", response_model=SnapshotResponse)
    async def get_snapshot(
        file_id: str,
        event_index: int,
        backend: DocumentReplayBackend = Depends(get_backend),
    ):
        """
        Reconstructed document after events [0..event_index].

        Past-the-end indices clamp to the last event; negative ones are 400.
        """
        return map_state_to_dto(backend.snapshot(file_id, event_index))

    @app.get("/files/{file_id}/stats/{event_index}", response_model=StatsResponse)
    async def get_stats(
        file_id: str,
        event_index: int,
        backend: DocumentReplayBackend = Depends(get_backend),
    ):
        return map_stats_to_dto(event_index, backend.stats(file_id, event_index))

    @app.get("/files/{file_id}/diff", response_model=DiffResponse)
    async def get_diff(
        file_id: str,
        from_index: int = Query(..., alias="from"),
        to_index: int = Query(..., alias="to"),
        backend: DocumentReplayBackend = Depends(get_backend),
    ):
        return map_diff_to_dto(from_index, to_index, backend.diff(file_id, from_index, to_index))

    @app.get("/files/{file_id}/keyframes", response_model=KeyframesResponse)
    async def get_keyframes(file_id: str, backend: DocumentReplayBackend = Depends(get_backend)):
        return map_keyframes_to_dto(backend.keyframes(file_id))

    @app.get("/files/{file_id}/export")
    async def export_timeline(
        file_id: str,
        backend: DocumentReplayBackend = Depends(get_backend),
    ) -> Dict[str, Any]:
        return backend.export_timeline(file_id)

    return app


app = create_app()
